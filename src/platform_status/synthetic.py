from __future__ import annotations

import datetime as dt
import random
from dataclasses import dataclass
from typing import Mapping, Optional

from .classifier import classify_status
from .models import CANCELLED_PLATFORM, StationInfo, TrainPlatformInfo, TrainStatus


@dataclass(frozen=True)
class StationIdentity:
    name: str
    city: str


KNOWN_STATIONS: Mapping[str, StationIdentity] = {
    "NDLS": StationIdentity("New Delhi Railway Station", "New Delhi"),
    "MMCT": StationIdentity("Mumbai Central", "Mumbai"),
    "HWH": StationIdentity("Howrah Junction", "Kolkata"),
    "MAS": StationIdentity("Chennai Central", "Chennai"),
    "PNBE": StationIdentity("Patna Junction", "Patna"),
}

TRAIN_NAMES = (
    "Rajdhani Express",
    "Shatabdi Express",
    "Duronto Express",
    "Garib Rath",
    "Jan Shatabdi",
    "Sampark Kranti",
    "Vande Bharat",
    "Double Decker",
    "Intercity Express",
    "Humsafar Express",
)

CITIES = (
    "Delhi",
    "Mumbai",
    "Chennai",
    "Kolkata",
    "Bengaluru",
    "Hyderabad",
    "Ahmedabad",
    "Pune",
    "Jaipur",
    "Lucknow",
    "Kanpur",
    "Nagpur",
    "Bhopal",
    "Patna",
    "Kochi",
    "Guwahati",
    "Chandigarh",
)

PLATFORMS = ("1", "2", "3", "4", "5", "6", "7", "8")

MIN_TRAINS, MAX_TRAINS = 5, 10
DELAY_PROBABILITY = 0.4
CANCELLATION_PROBABILITY = 0.05
NEXT_STOP_TRAVEL = dt.timedelta(hours=1)


def lookup_station(code: str, known: Mapping[str, StationIdentity] = KNOWN_STATIONS) -> StationIdentity:
    return known.get(code) or StationIdentity(name=f"{code} Station", city="Unknown")


def generate_roster(
    code: str,
    *,
    rng: Optional[random.Random] = None,
    now: Optional[dt.datetime] = None,
    known: Mapping[str, StationIdentity] = KNOWN_STATIONS,
) -> StationInfo:
    """Synthesize a plausible platform board for a station.

    Used only when no live feed answers; the result satisfies the same
    invariants as live snapshots.
    """

    rng = rng or random.Random()
    now = now or dt.datetime.now()
    station_code = code.upper()
    station = lookup_station(station_code, known)

    other_cities = [city for city in CITIES if city != station.city]
    used_numbers: set[str] = set()
    trains: list[TrainPlatformInfo] = []

    for _ in range(rng.randint(MIN_TRAINS, MAX_TRAINS)):
        arrival_offset = rng.randint(-30, 90)
        departure_offset = arrival_offset + rng.randint(5, 25)
        delay = rng.randint(5, 60) if rng.random() < DELAY_PROBABILITY else 0
        cancelled = rng.random() < CANCELLATION_PROBABILITY
        status = classify_status(arrival_offset, departure_offset, delay, cancelled=cancelled)

        arrival = now + dt.timedelta(minutes=arrival_offset)
        departure = now + dt.timedelta(minutes=departure_offset)

        next_station = next_arrival = None
        if status is TrainStatus.DEPARTED:
            next_station = rng.choice(other_cities)
            next_arrival = _clock(departure + NEXT_STOP_TRAVEL)

        trains.append(
            TrainPlatformInfo(
                train_number=_train_number(rng, used_numbers),
                train_name=rng.choice(TRAIN_NAMES),
                expected_arrival=_clock(arrival),
                expected_departure=_clock(departure),
                platform=CANCELLED_PLATFORM if status is TrainStatus.CANCELLED else rng.choice(PLATFORMS),
                status=status,
                # Destination is drawn independently of the source, so the two may match.
                source=rng.choice(other_cities),
                destination=rng.choice(other_cities),
                delay_minutes=delay if status is TrainStatus.DELAYED else None,
                next_station=next_station,
                next_station_arrival=next_arrival,
            )
        )

    return StationInfo.build(
        station_code,
        station.name,
        station.city,
        trains,
        crowd_level=rng.randint(0, 99),
        source_name=SyntheticSource.name,
    )


class SyntheticSource:
    """Stand-in data source that never fails."""

    name = "Estimated"

    def __init__(
        self,
        *,
        seed: Optional[int] = None,
        known: Mapping[str, StationIdentity] = KNOWN_STATIONS,
    ) -> None:
        self._seed = seed
        self._known = known
        self._streams: dict[str, random.Random] = {}

    async def get_station_status(self, station_code: str) -> StationInfo:
        return generate_roster(station_code, rng=self._stream(station_code), known=self._known)

    def _stream(self, station_code: str) -> random.Random:
        """One random stream per station, seeded from the station code."""

        code = station_code.upper()
        if code not in self._streams:
            seed = None if self._seed is None else f"{self._seed}:{code}"
            self._streams[code] = random.Random(seed)
        return self._streams[code]


def _train_number(rng: random.Random, used: set[str]) -> str:
    while True:
        number = str(rng.randint(10000, 99999))
        if number not in used:
            used.add(number)
            return number


def _clock(moment: dt.datetime) -> str:
    return moment.strftime("%H:%M")
