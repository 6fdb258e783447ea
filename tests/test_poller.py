"""Tests for the polling controller lifecycle and stale-response guard."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from builders import make_board
from platform_status.poller import ControllerState, PollingController
from platform_status.providers import InvalidStationCode


class GatedFetcher:
    """Fetcher whose responses are released by the test."""

    def __init__(self):
        self.calls = []

    async def fetch(self, station_code):
        future = asyncio.get_running_loop().create_future()
        self.calls.append((station_code, future))
        return await future

    def release(self, index, result):
        self.calls[index][1].set_result(result)

    def fail(self, index, exc):
        self.calls[index][1].set_exception(exc)


class InstantFetcher:
    def __init__(self):
        self.count = 0

    async def fetch(self, station_code):
        self.count += 1
        return make_board(code=station_code, name=f"{station_code} #{self.count}")


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


async def loaded_controller(fetcher, **kwargs):
    controller = PollingController(fetcher, interval=3600, **kwargs)
    task = asyncio.create_task(controller.search("NDLS"))
    await settle()
    fetcher.release(0, make_board(name="initial"))
    await task
    return controller


@pytest.mark.asyncio
class TestPollingController:
    async def test_search_loads_snapshot_and_starts_polling(self):
        fetcher = InstantFetcher()
        controller = PollingController(fetcher, interval=3600)
        assert controller.state is ControllerState.IDLE

        await controller.search("ndls")

        assert controller.state is ControllerState.READY
        assert controller.station_code == "NDLS"
        assert controller.snapshot.code == "NDLS"
        assert controller.polling

        await controller.aclose()
        assert not controller.polling
        assert controller.closed

    async def test_invalid_code_is_rejected(self):
        controller = PollingController(InstantFetcher())
        with pytest.raises(InvalidStationCode):
            await controller.search("   ")
        assert controller.state is ControllerState.IDLE

    async def test_refresh_requires_station(self):
        controller = PollingController(InstantFetcher())
        with pytest.raises(RuntimeError):
            await controller.refresh()

    async def test_manual_refresh_keeps_previous_snapshot_while_loading(self):
        fetcher = GatedFetcher()
        controller = await loaded_controller(fetcher)

        task = asyncio.create_task(controller.refresh())
        await settle()
        assert controller.state is ControllerState.LOADING
        assert controller.snapshot.name == "initial"

        fetcher.release(1, make_board(name="fresh"))
        await task
        assert controller.state is ControllerState.READY
        assert controller.snapshot.name == "fresh"
        await controller.aclose()

    async def test_silent_refresh_does_not_enter_loading(self):
        fetcher = GatedFetcher()
        controller = await loaded_controller(fetcher)

        task = asyncio.create_task(controller.refresh(silent=True))
        await settle()
        assert controller.state is ControllerState.READY

        fetcher.release(1, make_board(name="fresh"))
        await task
        assert controller.snapshot.name == "fresh"
        await controller.aclose()

    async def test_older_response_arriving_late_is_discarded(self):
        fetcher = GatedFetcher()
        controller = await loaded_controller(fetcher)

        older = asyncio.create_task(controller.refresh())
        newer = asyncio.create_task(controller.refresh())
        await settle()

        fetcher.release(2, make_board(name="newer"))
        await newer
        fetcher.release(1, make_board(name="older"))
        await older

        assert controller.snapshot.name == "newer"
        assert controller.state is ControllerState.READY
        await controller.aclose()

    async def test_later_request_completing_last_wins(self):
        fetcher = GatedFetcher()
        controller = await loaded_controller(fetcher)

        first = asyncio.create_task(controller.refresh())
        second = asyncio.create_task(controller.refresh())
        await settle()

        fetcher.release(1, make_board(name="first"))
        await first
        fetcher.release(2, make_board(name="second"))
        await second

        assert controller.snapshot.name == "second"
        await controller.aclose()

    async def test_station_change_drops_old_station_responses(self):
        fetcher = GatedFetcher()
        controller = await loaded_controller(fetcher)

        stale = asyncio.create_task(controller.refresh())
        await settle()
        switch = asyncio.create_task(controller.search("MMCT"))
        await settle()

        fetcher.release(1, make_board(code="NDLS", name="stale"))
        await stale
        assert controller.snapshot is None

        assert fetcher.calls[2][0] == "MMCT"
        fetcher.release(2, make_board(code="MMCT", name="Mumbai Central"))
        await switch

        assert controller.station_code == "MMCT"
        assert controller.snapshot.code == "MMCT"
        await controller.aclose()

    async def test_failure_keeps_last_good_snapshot(self):
        fetcher = GatedFetcher()
        listener = AsyncMock()
        controller = await loaded_controller(fetcher, listener=listener)

        task = asyncio.create_task(controller.refresh())
        await settle()
        fetcher.fail(1, RuntimeError("boom"))
        await task

        assert controller.state is ControllerState.ERROR
        assert str(controller.error) == "boom"
        assert controller.snapshot.name == "initial"
        assert listener.await_count == 2

        task = asyncio.create_task(controller.refresh())
        await settle()
        fetcher.release(2, make_board(name="recovered"))
        await task
        assert controller.state is ControllerState.READY
        assert controller.error is None
        await controller.aclose()

    async def test_response_after_teardown_is_ignored(self):
        fetcher = GatedFetcher()
        listener = AsyncMock()
        controller = PollingController(fetcher, interval=3600, listener=listener)

        task = asyncio.create_task(controller.search("NDLS"))
        await settle()
        assert controller.state is ControllerState.LOADING
        await controller.aclose()
        assert controller.state is ControllerState.IDLE

        fetcher.release(0, make_board())
        await task

        assert listener.await_count == 0
        assert controller.snapshot is None
        assert controller.state is ControllerState.IDLE
        assert not controller.polling

    async def test_teardown_during_refresh_keeps_snapshot_ready(self):
        fetcher = GatedFetcher()
        controller = await loaded_controller(fetcher)

        task = asyncio.create_task(controller.refresh())
        await settle()
        assert controller.state is ControllerState.LOADING
        await controller.aclose()

        fetcher.release(1, make_board(name="late"))
        await task

        assert controller.state is ControllerState.READY
        assert controller.snapshot.name == "initial"

    async def test_listener_failure_does_not_stop_polling(self):
        fetcher = InstantFetcher()
        listener = AsyncMock(side_effect=RuntimeError("telegram down"))
        controller = PollingController(fetcher, interval=0.01, listener=listener)

        await controller.search("NDLS")

        assert controller.state is ControllerState.READY
        assert controller.polling

        await asyncio.sleep(0.05)
        assert fetcher.count >= 2
        assert listener.await_count == fetcher.count
        await controller.aclose()

    async def test_failure_after_teardown_is_ignored(self):
        fetcher = GatedFetcher()
        listener = AsyncMock()
        controller = PollingController(fetcher, interval=3600, listener=listener)

        task = asyncio.create_task(controller.search("NDLS"))
        await settle()
        await controller.aclose()
        fetcher.fail(0, RuntimeError("late"))
        await task

        assert listener.await_count == 0
        assert controller.error is None

    async def test_background_refresh_runs_on_interval(self):
        fetcher = InstantFetcher()
        states = []

        async def listener(controller):
            states.append(controller.state)

        async with PollingController(fetcher, interval=0.01, listener=listener) as controller:
            await controller.search("HWH")
            await asyncio.sleep(0.1)

        assert fetcher.count >= 3
        assert set(states) == {ControllerState.READY}
        assert controller.closed
        assert not controller.polling

        count = fetcher.count
        await asyncio.sleep(0.05)
        assert fetcher.count == count

    async def test_closed_controller_rejects_calls(self):
        controller = PollingController(InstantFetcher())
        await controller.aclose()
        with pytest.raises(RuntimeError):
            await controller.search("NDLS")
