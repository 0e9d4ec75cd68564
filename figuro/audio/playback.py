"""
Audio playback - one device, at most one playing handle.

The device is created once at process start and owned by the session
orchestrator through AudioPlayer. Starting a new playback stops the
previous handle first.
"""

import asyncio
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from ..errors import AudioFailure, AudioFailureReason
from .pcm import AudioAsset


class StopReason(Enum):
    """Why a playback handle is no longer playing."""
    FINISHED = "finished"  # reached the end naturally
    STOPPED = "stopped"    # explicit stop() by a caller


class AudioDevice(ABC):
    """
    Abstract output device.

    start() begins non-blocking playback and must call on_end once when the
    asset has been played to the end. stop() halts output; on_end may still
    arrive afterwards and is ignored by the handle.
    """

    @abstractmethod
    def start(self, asset: AudioAsset, on_end: Callable[[], None]) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    def close(self) -> None:
        """Release the device. Subclasses override when they hold resources."""
        pass


class SoundDeviceOutput(AudioDevice):
    """Output through the default sounddevice (PortAudio) stream."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        # Deferred: PortAudio is loaded on import
        import sounddevice

        self._sd = sounddevice
        self._loop = loop
        self._timer: Optional[asyncio.TimerHandle] = None

    def start(self, asset: AudioAsset, on_end: Callable[[], None]) -> None:
        loop = self._loop or asyncio.get_running_loop()
        self._cancel_timer()
        try:
            self._sd.play(asset.interleaved(), asset.sample_rate, blocking=False)
        except Exception as e:
            raise AudioFailure(f"Audio playback failed: {e}", AudioFailureReason.PLAYBACK_ERROR) from e
        self._timer = loop.call_later(asset.duration, on_end)

    def stop(self) -> None:
        self._cancel_timer()
        try:
            self._sd.stop()
        except Exception as e:
            logger.warning(f"sounddevice stop failed: {e}")

    def close(self) -> None:
        self.stop()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class PlaybackHandle:
    """
    One playback of one asset.

    Completion fires on_finished exactly once, and only for natural end.
    An explicit stop() records StopReason.STOPPED and suppresses the
    callback, even if the device reports the end afterwards.
    """

    def __init__(
        self,
        device: AudioDevice,
        asset: AudioAsset,
        on_finished: Optional[Callable[["PlaybackHandle"], None]] = None,
    ):
        self._device = device
        self.asset = asset
        self._on_finished = on_finished
        self.stop_reason: Optional[StopReason] = None
        self._done = asyncio.Event()

    @property
    def is_playing(self) -> bool:
        return self.stop_reason is None

    def start(self) -> None:
        try:
            self._device.start(self.asset, self._device_ended)
        except AudioFailure:
            self.stop_reason = StopReason.STOPPED
            self._done.set()
            raise

    def stop(self) -> None:
        """Stop early. Idempotent; never fires the completion callback."""
        if self.stop_reason is not None:
            return
        self.stop_reason = StopReason.STOPPED
        self._done.set()
        self._device.stop()

    async def wait(self) -> StopReason:
        """Wait until the handle stops for any reason."""
        await self._done.wait()
        return self.stop_reason

    def _device_ended(self) -> None:
        if self.stop_reason is not None:
            return
        self.stop_reason = StopReason.FINISHED
        self._done.set()
        if self._on_finished:
            try:
                self._on_finished(self)
            except Exception as e:
                logger.error(f"Playback completion callback failed: {e}")


class AudioPlayer:
    """Owns the audio device and the single current playback handle."""

    def __init__(self, device: AudioDevice):
        self._device = device
        self._current: Optional[PlaybackHandle] = None

    @property
    def current(self) -> Optional[PlaybackHandle]:
        return self._current

    @property
    def is_playing(self) -> bool:
        return self._current is not None and self._current.is_playing

    def play(
        self,
        asset: AudioAsset,
        on_finished: Optional[Callable[[PlaybackHandle], None]] = None,
    ) -> PlaybackHandle:
        """
        Start playing an asset, stopping whatever is playing now.

        Args:
            asset: Decoded audio
            on_finished: Called once on natural completion

        Returns:
            The new playback handle
        """
        self.stop()
        handle = PlaybackHandle(self._device, asset, on_finished)
        self._current = handle
        handle.start()
        logger.debug(f"Playback started ({asset.duration:.2f}s)")
        return handle

    def stop(self) -> None:
        if self._current is not None:
            self._current.stop()
            self._current = None

    def close(self) -> None:
        self.stop()
        self._device.close()
