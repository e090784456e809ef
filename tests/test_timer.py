import asyncio

import pytest

from posereplay.timer import PeriodicTimer


def test_ticks_until_cancelled():
    async def run():
        ticks = []
        timer = PeriodicTimer(0.005, lambda: ticks.append(len(ticks)))
        timer.start()
        while len(ticks) < 3:
            await asyncio.sleep(0.005)
        timer.cancel()
        count = len(ticks)
        await asyncio.sleep(0.03)
        return ticks, count, timer.active

    ticks, count, active = asyncio.run(run())

    assert ticks == list(range(len(ticks)))
    assert len(ticks) == count
    assert not active


def test_cancel_is_idempotent():
    async def run():
        timer = PeriodicTimer(0.01, lambda: None)
        timer.cancel()
        timer.start()
        timer.cancel()
        timer.cancel()
        return timer.active

    assert asyncio.run(run()) is False


def test_cancel_from_inside_callback():
    async def run():
        ticks = []

        def callback():
            ticks.append(1)
            timer.cancel()

        timer = PeriodicTimer(0.005, callback)
        timer.start()
        await asyncio.sleep(0.05)
        return ticks

    assert asyncio.run(run()) == [1]


def test_failing_callback_stops_timer():
    async def run():
        calls = []

        def callback():
            calls.append(1)
            raise RuntimeError("boom")

        timer = PeriodicTimer(0.005, callback)
        timer.start()
        await asyncio.sleep(0.05)
        return calls, timer.active

    calls, active = asyncio.run(run())

    assert calls == [1]
    assert not active


def test_can_restart_after_cancel():
    async def run():
        ticks = []
        timer = PeriodicTimer(0.005, lambda: ticks.append(1))
        timer.start()
        timer.cancel()
        timer.start()
        await asyncio.sleep(0.03)
        timer.cancel()
        return ticks

    assert len(asyncio.run(run())) >= 1


def test_double_start_raises():
    async def run():
        timer = PeriodicTimer(0.01, lambda: None)
        timer.start()
        try:
            timer.start()
        finally:
            timer.cancel()

    with pytest.raises(RuntimeError):
        asyncio.run(run())


def test_start_requires_running_loop():
    with pytest.raises(RuntimeError):
        PeriodicTimer(0.01, lambda: None).start()


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        PeriodicTimer(0, lambda: None)
