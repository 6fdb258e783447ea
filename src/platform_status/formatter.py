from __future__ import annotations

import datetime as dt

from .classifier import crowd_label, is_overcrowded, status_label
from .models import StationInfo, TrainPlatformInfo, TrainStatus
from .synthetic import SyntheticSource


def format_station_board(station: StationInfo, *, tz: dt.tzinfo | None = None) -> str:
    """Render a text summary of a station snapshot for Telegram."""

    lines = [_format_header(station, tz)]
    crowd = _format_crowd(station)
    if crowd:
        lines.append(crowd)

    if not station.trains:
        lines.append("No trains scheduled at this station right now.")
        return "\n\n".join(lines)

    lines.extend(_format_train(train) for train in station.trains)
    return "\n\n".join(lines)


def _format_header(station: StationInfo, tz: dt.tzinfo | None) -> str:
    updated = station.last_updated.astimezone(tz).strftime("%H:%M:%S")
    header = f"{station.name} ({station.code}), {station.city}\nLast updated: {updated}"
    if station.source_name == SyntheticSource.name:
        header += "\nShowing estimated data."
    return header


def _format_crowd(station: StationInfo) -> str:
    if station.crowd_level is None:
        return ""
    text = f"Platform crowd level: {crowd_label(station.crowd_level)} ({station.crowd_level}%)"
    if is_overcrowded(station.crowd_level):
        text += "\nPlatform is very crowded. Please be cautious."
    return text


def _format_train(train: TrainPlatformInfo) -> str:
    lines = [
        f"{train.train_number} {train.train_name}",
        f"{train.source} ➜ {train.destination}",
        f"Arr {train.expected_arrival} · Dep {train.expected_departure} · Platform {train.platform}",
        status_label(train.status, train.delay_minutes),
    ]
    if train.status is TrainStatus.DEPARTED:
        lines.append(f"Next: {train.next_station} ({train.next_station_arrival})")
    return "\n".join(lines)
