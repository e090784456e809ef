import asyncio
import threading

import pytest

from posereplay.playback import PlaybackController
from posereplay.runtime import BackgroundLoop

from conftest import make_records


def test_runs_coroutines_on_its_own_thread():
    async def whoami():
        await asyncio.sleep(0)
        return threading.current_thread().name

    with BackgroundLoop(name="test-loop") as loop:
        assert loop.run(whoami(), timeout=5) == "test-loop"
        assert loop.call(lambda a, b: a + b, 2, 3, timeout=5) == 5

    assert not loop.running


def test_errors_propagate_to_caller():
    def fail():
        raise ValueError("bad")

    with BackgroundLoop() as loop:
        with pytest.raises(ValueError):
            loop.call(fail, timeout=5)


def test_drives_playback_timer_from_another_thread():
    with BackgroundLoop() as loop:
        controller = loop.call(PlaybackController, 0.005, timeout=5)
        loop.call(controller.load, make_records(3), timeout=5)
        loop.call(controller.play, timeout=5)

        future = loop.submit(wait_until_paused(controller))
        state = future.result(timeout=5)
        loop.call(controller.close, timeout=5)

    assert state.current_index == 0
    assert not state.is_playing


async def wait_until_paused(controller):
    while controller.state.is_playing:
        await asyncio.sleep(0.005)
    return controller.state


def test_loop_property_requires_start():
    with pytest.raises(RuntimeError):
        BackgroundLoop().loop
