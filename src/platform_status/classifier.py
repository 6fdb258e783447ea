from __future__ import annotations

from typing import Optional

from .models import TrainStatus

_STATUS_LABELS = {
    TrainStatus.ON_TIME: "On Time",
    TrainStatus.ARRIVED: "Arrived",
    TrainStatus.DEPARTED: "Departed",
    TrainStatus.CANCELLED: "Cancelled",
}

OVERCROWDED_LEVEL = 80


def classify_status(
    arrival_offset: int,
    departure_offset: int,
    delay_minutes: int = 0,
    *,
    cancelled: bool = False,
) -> TrainStatus:
    """Derive a train's status from its timing relative to now.

    Offsets are signed minutes from the current time. ``cancelled`` only
    applies to trains that would otherwise be on time.
    """

    if delay_minutes > 0:
        return TrainStatus.DELAYED
    if arrival_offset < 0 and departure_offset > 0:
        return TrainStatus.ARRIVED
    if departure_offset < 0:
        return TrainStatus.DEPARTED
    return TrainStatus.CANCELLED if cancelled else TrainStatus.ON_TIME


def status_label(status: TrainStatus, delay_minutes: Optional[int] = None) -> str:
    if status is TrainStatus.DELAYED:
        return f"Delayed by {delay_minutes or 0} mins"
    return _STATUS_LABELS[status]


def crowd_label(level: int) -> str:
    if level < 30:
        return "Low"
    if level < 70:
        return "Moderate"
    return "High"


def is_overcrowded(level: int) -> bool:
    return level > OVERCROWDED_LEVEL
