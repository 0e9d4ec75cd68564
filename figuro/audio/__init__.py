"""Audio module - PCM decoding and single-handle playback."""

from .pcm import AudioAsset, build_playable_buffer, decode, resolve_audio_ref
from .playback import AudioDevice, AudioPlayer, PlaybackHandle, SoundDeviceOutput, StopReason

__all__ = [
    'AudioAsset',
    'build_playable_buffer',
    'decode',
    'resolve_audio_ref',
    'AudioDevice',
    'AudioPlayer',
    'PlaybackHandle',
    'SoundDeviceOutput',
    'StopReason',
]
