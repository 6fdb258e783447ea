from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Self


@dataclass(frozen=True)
class PlatformApiSettings:
    """Location and timeout of the live platform status service."""

    base_url: str
    timeout: float = 10.0

    @classmethod
    def from_env_optional(cls) -> Optional[Self]:
        base_url = os.environ.get("PLATFORM_API_BASE_URL")
        if not base_url:
            return None

        timeout = float(os.environ.get("PLATFORM_API_TIMEOUT", cls.timeout))
        return cls(base_url=base_url, timeout=timeout)


@dataclass(frozen=True)
class BotSettings:
    """Configuration options for the Telegram bot."""

    telegram_token: str
    platform_api: Optional[PlatformApiSettings]
    refresh_interval: float = 60.0
    default_station_code: str = "NDLS"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Self:
        """Create settings object from environment variables."""

        try:
            telegram_token = os.environ["TELEGRAM_BOT_TOKEN"]
        except KeyError as exc:  # pragma: no cover - trivial
            missing = exc.args[0]
            raise RuntimeError(
                f"Missing Telegram credential in environment: {missing}"
            ) from None

        interval = float(os.environ.get("REFRESH_INTERVAL_SECONDS", cls.refresh_interval))
        if interval <= 0:
            raise RuntimeError("REFRESH_INTERVAL_SECONDS must be positive.")

        return cls(
            telegram_token=telegram_token,
            platform_api=PlatformApiSettings.from_env_optional(),
            refresh_interval=interval,
            default_station_code=os.environ.get("DEFAULT_STATION_CODE", cls.default_station_code).upper(),
            log_level=os.environ.get("LOG_LEVEL", cls.log_level).upper(),
        )
