"""Tests for figuro.audio.playback."""

import struct

import pytest

from figuro.audio import AudioPlayer, PlaybackHandle, StopReason, build_playable_buffer
from figuro.errors import AudioFailure

from .conftest import FakeDevice


@pytest.fixture
def asset():
    return build_playable_buffer(struct.pack("<4h", 0, 1, 2, 3), 24000, 1)


@pytest.mark.asyncio
async def test_natural_end_fires_once(asset):
    device = FakeDevice()
    finished = []
    handle = PlaybackHandle(device, asset, on_finished=finished.append)
    handle.start()

    device.finish()
    device.finish()

    assert finished == [handle]
    assert handle.stop_reason is StopReason.FINISHED
    assert not handle.is_playing
    assert await handle.wait() is StopReason.FINISHED


@pytest.mark.asyncio
async def test_stop_is_idempotent_and_silent(asset):
    device = FakeDevice()
    finished = []
    handle = PlaybackHandle(device, asset, on_finished=finished.append)
    handle.start()

    handle.stop()
    handle.stop()
    # The device may still report the end after a manual stop
    device.finish()

    assert finished == []
    assert handle.stop_reason is StopReason.STOPPED
    assert device.stops == 1
    assert await handle.wait() is StopReason.STOPPED


@pytest.mark.asyncio
async def test_player_keeps_a_single_handle(asset):
    device = FakeDevice()
    player = AudioPlayer(device)

    first = player.play(asset)
    second = player.play(asset)

    assert first.stop_reason is StopReason.STOPPED
    assert second.is_playing
    assert player.current is second
    assert len(device.started) == 2


@pytest.mark.asyncio
async def test_player_stop_and_close(asset):
    device = FakeDevice()
    player = AudioPlayer(device)
    handle = player.play(asset)

    player.stop()
    player.stop()
    assert not player.is_playing
    assert player.current is None
    assert handle.stop_reason is StopReason.STOPPED

    player.close()
    assert device.closed


@pytest.mark.asyncio
async def test_device_failure_marks_handle_stopped(asset):
    class BrokenDevice(FakeDevice):
        def start(self, asset, on_end):
            raise AudioFailure("no output device")

    handle = PlaybackHandle(BrokenDevice(), asset)
    with pytest.raises(AudioFailure):
        handle.start()
    assert not handle.is_playing
