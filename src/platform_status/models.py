from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Sequence

CANCELLED_PLATFORM = "--"

_TIME_OF_DAY = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")


class TrainStatus(str, Enum):
    ON_TIME = "ON_TIME"
    DELAYED = "DELAYED"
    ARRIVED = "ARRIVED"
    DEPARTED = "DEPARTED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class TrainPlatformInfo:
    """One train's state at a station."""

    train_number: str
    train_name: str
    expected_arrival: str
    expected_departure: str
    platform: str
    status: TrainStatus
    source: str
    destination: str
    delay_minutes: Optional[int] = None
    next_station: Optional[str] = None
    next_station_arrival: Optional[str] = None

    def __post_init__(self) -> None:
        for label, value in (
            ("expected_arrival", self.expected_arrival),
            ("expected_departure", self.expected_departure),
        ):
            if not _TIME_OF_DAY.match(value):
                raise ValueError(f"{label} must be HH:MM, got {value!r}")

        delayed = self.status is TrainStatus.DELAYED
        if delayed != (self.delay_minutes is not None):
            raise ValueError(
                f"Train {self.train_number}: delay_minutes must be set only for DELAYED trains"
            )

        departed = self.status is TrainStatus.DEPARTED
        has_next = self.next_station is not None and self.next_station_arrival is not None
        has_any_next = self.next_station is not None or self.next_station_arrival is not None
        if departed != has_next or (has_any_next and not has_next):
            raise ValueError(
                f"Train {self.train_number}: next station details must be set only for DEPARTED trains"
            )
        if self.next_station_arrival is not None and not _TIME_OF_DAY.match(self.next_station_arrival):
            raise ValueError(f"next_station_arrival must be HH:MM, got {self.next_station_arrival!r}")

        cancelled = self.status is TrainStatus.CANCELLED
        if cancelled != (self.platform == CANCELLED_PLATFORM):
            raise ValueError(
                f"Train {self.train_number}: platform {CANCELLED_PLATFORM!r} is reserved for CANCELLED trains"
            )

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "TrainPlatformInfo":
        delay = data.get("delayMinutes")
        return cls(
            train_number=str(data["trainNumber"]),
            train_name=data["trainName"],
            expected_arrival=data["expectedArrival"],
            expected_departure=data["expectedDeparture"],
            platform=str(data["platform"]),
            status=TrainStatus(data["status"]),
            source=data["source"],
            destination=data["destination"],
            delay_minutes=int(delay) if delay is not None else None,
            next_station=data.get("nextStation"),
            next_station_arrival=data.get("nextStationArrival"),
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "trainNumber": self.train_number,
            "trainName": self.train_name,
            "expectedArrival": self.expected_arrival,
            "expectedDeparture": self.expected_departure,
            "platform": self.platform,
            "status": self.status.value,
            "source": self.source,
            "destination": self.destination,
        }
        if self.delay_minutes is not None:
            payload["delayMinutes"] = self.delay_minutes
        if self.next_station is not None:
            payload["nextStation"] = self.next_station
            payload["nextStationArrival"] = self.next_station_arrival
        return payload


@dataclass(frozen=True)
class StationInfo:
    """Immutable snapshot of one station's platform board."""

    code: str
    name: str
    city: str
    trains: tuple[TrainPlatformInfo, ...]
    last_updated: dt.datetime
    crowd_level: Optional[int] = None
    source_name: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if self.code != self.code.upper():
            raise ValueError(f"Station code must be uppercase, got {self.code!r}")

        arrivals = [train.expected_arrival for train in self.trains]
        if arrivals != sorted(arrivals):
            raise ValueError(f"Trains at {self.code} are not ordered by expected arrival")

        numbers = [train.train_number for train in self.trains]
        if len(set(numbers)) != len(numbers):
            raise ValueError(f"Duplicate train numbers at {self.code}")

        if self.crowd_level is not None and not 0 <= self.crowd_level <= 100:
            raise ValueError(f"crowd_level must be within 0-100, got {self.crowd_level}")

    @classmethod
    def build(
        cls,
        code: str,
        name: str,
        city: str,
        trains: Sequence[TrainPlatformInfo],
        *,
        last_updated: dt.datetime | None = None,
        crowd_level: Optional[int] = None,
        source_name: str = "",
    ) -> "StationInfo":
        """Create a snapshot, ordering the trains by expected arrival."""

        ordered = tuple(sorted(trains, key=lambda train: train.expected_arrival))
        return cls(
            code=code.upper(),
            name=name,
            city=city,
            trains=ordered,
            last_updated=last_updated or dt.datetime.now(dt.timezone.utc),
            crowd_level=crowd_level,
            source_name=source_name,
        )

    @classmethod
    def from_payload(cls, data: dict[str, Any], *, source_name: str = "") -> "StationInfo":
        trains = [TrainPlatformInfo.from_payload(item) for item in data.get("trains") or []]
        return cls.build(
            code=data["code"],
            name=data["name"],
            city=data.get("city") or "Unknown",
            trains=trains,
            last_updated=parse_timestamp(data.get("lastUpdated")),
            source_name=source_name,
        )

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "code": self.code,
            "name": self.name,
            "city": self.city,
            "trains": [train.to_payload() for train in self.trains],
            "lastUpdated": self.last_updated.isoformat(),
        }
        if self.crowd_level is not None:
            payload["crowdLevel"] = self.crowd_level
        return payload


def parse_timestamp(value: Any) -> dt.datetime:
    """Decode an ISO-8601 timestamp into an aware datetime (UTC when unzoned)."""

    if value is None:
        return dt.datetime.now(dt.timezone.utc)
    if isinstance(value, dt.datetime):
        parsed = value
    else:
        parsed = dt.datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed
