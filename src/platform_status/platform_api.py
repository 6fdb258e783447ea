from __future__ import annotations

from typing import Any, Optional
from urllib.parse import quote

import httpx

from .config import PlatformApiSettings
from .models import StationInfo


class PlatformApiError(RuntimeError):
    """Raised when the platform status service returns an unusable response."""


class PlatformApiClient:
    """Async client for the live station platform status service."""

    def __init__(
        self,
        settings: PlatformApiSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.timeout,
            headers={"Accept": "application/json"},
            follow_redirects=True,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "PlatformApiClient":  # pragma: no cover - convenience
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # pragma: no cover - convenience
        await self.close()

    async def get_station_status(self, station_code: str, *, source_name: str = "") -> StationInfo:
        """Return the live platform board for a station."""

        response = await self._client.get(
            "/api/stations/platform-status", params={"code": station_code}
        )
        payload = await self._json_or_error(response, f"requesting platform status for {station_code}")

        try:
            station = StationInfo.from_payload(payload, source_name=source_name)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise PlatformApiError(
                f"Platform status service returned a malformed board for {station_code}: {exc!r}"
            ) from exc

        if station.code != station_code:
            raise PlatformApiError(
                f"Platform status service answered for {station.code} instead of {station_code}"
            )
        return station

    async def get_crowd_level(self, station_code: str) -> int:
        path = f"/api/stations/{quote(station_code, safe='')}/crowd-level"
        response = await self._client.get(path)
        payload = await self._json_or_error(response, f"requesting crowd level for {station_code}")

        level = payload.get("crowdLevel")
        if not isinstance(level, (int, float)) or not 0 <= level <= 100:
            raise PlatformApiError(f"Invalid crowd level for {station_code}: {level!r}")
        return int(level)

    async def _json_or_error(self, response: httpx.Response, action: str) -> dict[str, Any]:
        if response.status_code >= 300:
            raise PlatformApiError(
                f"Platform status error {response.status_code} while {action}: {response.text[:200]}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            snippet = response.text[:200] or "<empty body>"
            content_type = response.headers.get("content-type", "unknown")
            raise PlatformApiError(
                "Platform status service returned a non-JSON response while "
                f"{action} (status {response.status_code}, content-type {content_type}): {snippet}"
            ) from exc

        if not isinstance(payload, dict):
            raise PlatformApiError(f"Unexpected JSON document while {action}: {type(payload).__name__}")
        return payload


def create_platform_client(settings: PlatformApiSettings) -> PlatformApiClient:
    """Factory helper to create a platform status client."""

    return PlatformApiClient(settings)
