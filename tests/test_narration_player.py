import asyncio

import pytest

from application.NarrationPlayerAdapter import NarrationPlayerAdapter
from domain.errors import PlaybackError

from conftest import MockPlayback, spin


class StuckPlayback(MockPlayback):
    def stop(self) -> None:
        raise RuntimeError("device busy")


@pytest.mark.asyncio
async def test_speak_returns_when_playback_finishes(playback):
    player = NarrationPlayerAdapter(playback)

    await player.speak("You stand at a crossroads.")

    assert playback.spoken == ["You stand at a crossroads."]
    assert not player.is_speaking


@pytest.mark.asyncio
async def test_playback_error_is_raised_with_cause():
    player = NarrationPlayerAdapter(MockPlayback(mode="error"))

    with pytest.raises(PlaybackError) as excinfo:
        await player.speak("You stand at a crossroads.")

    assert isinstance(excinfo.value.cause, RuntimeError)
    assert not player.is_speaking


@pytest.mark.asyncio
async def test_capability_refusing_to_start():
    player = NarrationPlayerAdapter(MockPlayback(mode="raise"))

    with pytest.raises(PlaybackError):
        await player.speak("Hello")

    assert not player.is_speaking


@pytest.mark.asyncio
async def test_late_callbacks_are_ignored():
    playback = MockPlayback(mode="manual")
    player = NarrationPlayerAdapter(playback)

    task = asyncio.create_task(player.speak("Hello"))
    await spin()
    on_done, on_error = playback.callbacks[0]

    on_done()
    on_error(RuntimeError("late"))
    on_done()

    await task
    assert not player.is_speaking


@pytest.mark.asyncio
async def test_second_speak_while_playing_is_refused():
    playback = MockPlayback(mode="manual")
    player = NarrationPlayerAdapter(playback)

    task = asyncio.create_task(player.speak("First"))
    await spin()
    assert player.is_speaking

    with pytest.raises(PlaybackError):
        await player.speak("Second")

    on_done, _ = playback.callbacks[0]
    on_done()
    await task

    assert playback.spoken == ["First"]


@pytest.mark.asyncio
async def test_playback_that_never_finishes_times_out():
    playback = MockPlayback(mode="manual")
    player = NarrationPlayerAdapter(playback, timeout=0.05)

    with pytest.raises(PlaybackError):
        await player.speak("Hello")

    assert not player.is_speaking
    assert playback.stops == 1

    # A completion arriving after the timeout is harmless.
    on_done, _ = playback.callbacks[0]
    on_done()


@pytest.mark.asyncio
async def test_timeout_still_reported_when_stop_fails():
    playback = StuckPlayback(mode="manual")
    player = NarrationPlayerAdapter(playback, timeout=0.05)

    with pytest.raises(PlaybackError):
        await player.speak("Hello")

    assert not player.is_speaking


@pytest.mark.asyncio
async def test_finished_playback_is_not_stopped(playback):
    player = NarrationPlayerAdapter(playback, timeout=1.0)

    await player.speak("Hello")

    assert playback.stops == 0
