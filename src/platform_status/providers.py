from __future__ import annotations

import dataclasses
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, Sequence

import httpx
import structlog

from .config import PlatformApiSettings
from .models import StationInfo
from .platform_api import PlatformApiClient, PlatformApiError
from .synthetic import SyntheticSource

logger = structlog.get_logger()

TransportError = (PlatformApiError, httpx.HTTPError)

_STATION_CODE = re.compile(r"^[A-Z0-9]{2,7}$")


class InvalidStationCode(ValueError):
    """Raised when a station code is blank or malformed."""


class StationSource(Protocol):
    name: str

    async def get_station_status(self, station_code: str) -> StationInfo: ...


@dataclass(frozen=True)
class RemoteSource:
    client: PlatformApiClient
    name: str = "Live"

    async def get_station_status(self, station_code: str) -> StationInfo:
        station = await self.client.get_station_status(station_code, source_name=self.name)
        try:
            crowd_level = await self.client.get_crowd_level(station_code)
        except TransportError as exc:
            logger.info("crowd_level_unavailable", station=station_code, error=str(exc))
            return station
        return dataclasses.replace(station, crowd_level=crowd_level)


class AllSourcesFailed(RuntimeError):
    def __init__(self, messages: Sequence[str]) -> None:
        self.messages = list(messages)
        super().__init__("; ".join(messages) or "No station data sources configured")


def normalize_station_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def is_valid_station_code(code: Optional[str]) -> bool:
    """Check user input before handing it to the fetcher."""

    return bool(_STATION_CODE.match(normalize_station_code(code)))


def require_station_code(code: Optional[str]) -> str:
    station_code = normalize_station_code(code)
    if not _STATION_CODE.match(station_code):
        raise InvalidStationCode("Please enter a valid station code")
    return station_code


async def fetch_with_fallback(
    sources: Iterable[StationSource],
    station_code: str,
) -> tuple[StationInfo, str, List[str]]:
    errors: List[str] = []

    for source in sources:
        try:
            station = await source.get_station_status(station_code)
        except PlatformApiError as exc:
            errors.append(f"{source.name}: {exc}")
        except httpx.HTTPError as exc:
            errors.append(f"{source.name}: network error {exc!r}")
        else:
            if errors:
                logger.warning(
                    "station_source_fallback",
                    station=station_code,
                    source=source.name,
                    errors=errors,
                )
            return station, source.name, errors

        logger.warning("station_source_failed", station=station_code, error=errors[-1])

    raise AllSourcesFailed(errors)


class StationStatusFetcher:
    """Produce a snapshot for a station from the first source that answers."""

    def __init__(self, sources: Sequence[StationSource]) -> None:
        self._sources = list(sources)

    @property
    def sources(self) -> Sequence[StationSource]:
        return tuple(self._sources)

    async def fetch(self, station_code: str) -> StationInfo:
        code = require_station_code(station_code)
        station, source_name, _ = await fetch_with_fallback(self._sources, code)
        logger.debug("station_status_fetched", station=code, source=source_name, trains=len(station.trains))
        return station


def resolve_sources(
    api_settings: Optional[PlatformApiSettings],
    *,
    synthetic: Optional[SyntheticSource] = None,
) -> list[StationSource]:
    """Live source first when configured, synthetic data always last."""

    sources: list[StationSource] = []
    if api_settings:
        sources.append(RemoteSource(client=PlatformApiClient(api_settings)))
    else:
        logger.warning("platform_api_not_configured", fallback=SyntheticSource.name)
    sources.append(synthetic or SyntheticSource())
    return sources
