from __future__ import annotations

import asyncio
import contextlib
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

import structlog

from .models import StationInfo
from .providers import require_station_code

logger = structlog.get_logger()

DEFAULT_REFRESH_INTERVAL = 60.0


class ControllerState(str, Enum):
    IDLE = "IDLE"
    LOADING = "LOADING"
    READY = "READY"
    ERROR = "ERROR"


class Fetcher(Protocol):
    async def fetch(self, station_code: str) -> StationInfo: ...


Listener = Callable[["PollingController"], Awaitable[None]]


class PollingController:
    """Keeps one station's snapshot fresh.

    Every fetch gets a sequence number; a result is applied only when its
    number is above the last applied one and the controller is still open.
    Switching station raises that floor so responses for the previous
    station are dropped.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        interval: float = DEFAULT_REFRESH_INTERVAL,
        listener: Optional[Listener] = None,
    ) -> None:
        self._fetcher = fetcher
        self._interval = interval
        self._listener = listener

        self.state = ControllerState.IDLE
        self.station_code: Optional[str] = None
        self.snapshot: Optional[StationInfo] = None
        self.error: Optional[BaseException] = None

        self._sequence = 0
        self._applied_sequence = 0
        self._timer: Optional[asyncio.Task[None]] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def polling(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def search(self, station_code: str) -> None:
        """Switch to a station, load it and start background polling."""

        code = require_station_code(station_code)
        self._ensure_open()

        if code != self.station_code:
            await self._stop_timer()
            self.station_code = code
            self.snapshot = None
            self.error = None
            self._applied_sequence = self._sequence

        await self.refresh()
        if not self._closed and not self.polling:
            self._timer = asyncio.create_task(self._poll_forever(), name=f"poll-{code}")

    async def refresh(self, *, silent: bool = False) -> None:
        """Fetch a fresh snapshot; background refreshes stay ``silent``."""

        self._ensure_open()
        if self.station_code is None:
            raise RuntimeError("No station selected; call search() first")

        self._sequence += 1
        sequence = self._sequence
        code = self.station_code
        if not silent:
            self.state = ControllerState.LOADING

        try:
            snapshot = await self._fetcher.fetch(code)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not self._accepts(sequence):
                return
            logger.error("station_refresh_failed", station=code, sequence=sequence, error=repr(exc))
            self.state = ControllerState.ERROR
            self.error = exc
            await self._notify()
            return

        if not self._accepts(sequence):
            logger.debug("stale_snapshot_discarded", station=code, sequence=sequence)
            return

        self._applied_sequence = sequence
        self.snapshot = snapshot
        self.error = None
        self.state = ControllerState.READY
        await self._notify()

    async def aclose(self) -> None:
        """Stop polling; results still in flight are ignored."""

        if self._closed:
            return
        self._closed = True
        if self.state is ControllerState.LOADING:
            self.state = ControllerState.READY if self.snapshot is not None else ControllerState.IDLE
        await self._stop_timer()
        logger.debug("controller_closed", station=self.station_code)

    async def __aenter__(self) -> "PollingController":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def _accepts(self, sequence: int) -> bool:
        return not self._closed and sequence > self._applied_sequence

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Polling controller is closed")

    async def _notify(self) -> None:
        if self._listener is None:
            return
        try:
            await self._listener(self)
        except Exception:
            logger.exception("listener_failed", station=self.station_code, state=self.state.value)

    async def _poll_forever(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.refresh(silent=True)
            except Exception:
                logger.exception("background_refresh_failed", station=self.station_code)

    async def _stop_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is None or timer is asyncio.current_task():
            return
        timer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await timer
