"""
PCM decoding - base64 payload to playable float samples.

Speech synthesis returns raw 16-bit signed little-endian linear PCM,
base64 encoded, without any container header.
"""

import base64
import binascii
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import numpy as np

from ..errors import ChannelMismatch, MalformedPayload, NoAudio
from ..models import AudioRef

SAMPLE_WIDTH = 2  # bytes per 16-bit sample
PCM_SCALE = 32768.0


@dataclass(frozen=True, eq=False)
class AudioAsset:
    """
    Decoded audio ready for a playback device.

    samples has shape (channels, frames), float32 in [-1.0, 1.0].
    """

    samples: np.ndarray
    sample_rate: int
    channels: int

    @property
    def frames(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration(self) -> float:
        """Length in seconds."""
        if self.sample_rate <= 0:
            return 0.0
        return self.frames / float(self.sample_rate)

    def interleaved(self) -> np.ndarray:
        """Frames-first view (frames, channels) as expected by output devices."""
        return np.ascontiguousarray(self.samples.T)


def decode(base64_payload: str) -> bytes:
    """
    Decode a base64 PCM payload.

    Args:
        base64_payload: base64 text (whitespace is ignored)

    Returns:
        Raw PCM bytes

    Raises:
        NoAudio: payload is empty
        MalformedPayload: invalid base64, or not a whole number of samples
    """
    if base64_payload is None or not str(base64_payload).strip():
        raise NoAudio("Empty audio payload.")

    compact = "".join(str(base64_payload).split())
    try:
        data = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedPayload(f"Audio payload is not valid base64: {e}") from e

    if len(data) % SAMPLE_WIDTH != 0:
        raise MalformedPayload(
            f"Audio payload length {len(data)} is not a multiple of the {SAMPLE_WIDTH}-byte sample frame."
        )
    return data


def build_playable_buffer(data: bytes, sample_rate_hz: int, channel_count: int) -> AudioAsset:
    """
    Reinterpret PCM bytes as normalized float samples.

    Args:
        data: 16-bit signed little-endian interleaved PCM
        sample_rate_hz: Sample rate of the stream
        channel_count: Number of interleaved channels

    Returns:
        AudioAsset with one row of samples per channel

    Raises:
        ChannelMismatch: byte length not divisible by channel_count * 2
    """
    if channel_count < 1:
        raise ChannelMismatch(f"Invalid channel count: {channel_count}")

    frame_bytes = channel_count * SAMPLE_WIDTH
    if len(data) % frame_bytes != 0:
        raise ChannelMismatch(
            f"{len(data)} bytes cannot be split into {channel_count}-channel 16-bit frames."
        )

    pcm = np.frombuffer(data, dtype="<i2")
    samples = (pcm.reshape(-1, channel_count).T.astype(np.float32) / PCM_SCALE)
    return AudioAsset(samples=samples, sample_rate=sample_rate_hz, channels=channel_count)


async def resolve_audio_ref(
    ref: Optional[AudioRef],
    fetch_bytes: Callable[[str], Awaitable[bytes]],
) -> bytes:
    """
    Turn a cached audio reference into PCM bytes.

    Inline data is base64-decoded; URLs are downloaded with fetch_bytes.

    Raises:
        NoAudio: reference is empty
        MalformedPayload: data cannot be decoded
    """
    if ref is None or ref.is_empty:
        raise NoAudio("No cached audio for this item.")

    if ref.data:
        return decode(ref.data)

    data = await fetch_bytes(ref.url)
    if not data:
        raise NoAudio("Downloaded audio is empty.")
    if len(data) % SAMPLE_WIDTH != 0:
        raise MalformedPayload("Downloaded audio is not a whole number of 16-bit samples.")
    return data
