"""Shared record types and column names.

Every stage passes ``pandas`` frames around; the column names below are the
only ones the pipeline reads or writes so device and track identity stay
separate from ingestion onwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import pandas as pd

DEVICE = "device_id"
TRACK = "track_id"
TIME = "timestamp"
LON = "longitude"
LAT = "latitude"
X = "x"
Y = "y"
ZONE = "zone_id"
DT = "dt"
GRID_TIME = "grid_time"
INTERPOLATED = "interpolated"
STEP = "step"
ANGLE = "angle"
STATE = "state"
EVENT = "event_id"

RAW_COLUMNS = [DEVICE, TIME, LON, LAT]

SUMMARY_COLUMNS = [
    "device",
    EVENT,
    "start_time",
    "end_time",
    "event_duration",
    "year",
    "month",
    "weekday",
    "center_x",
    "center_y",
    "event_type",
    "UTMzone",
    LON,
    LAT,
]


class BehaviouralState(str, Enum):
    """Labels produced by the behavioural state model."""

    STATIONARY = "Stationary"
    FLOAT = "Float"
    ARS = "ARS"
    EXPLORATORY_FLIGHT = "Exploratory Flight"
    TRANSIT = "Transit"
    TRAWLER = "Trawler"
    SHRIMP_BOAT = "Shrimp-boat"

    @classmethod
    def values(cls) -> set[str]:
        return {member.value for member in cls}


@dataclass(frozen=True)
class Fix:
    """A single parsed GPS fix before projection."""

    device_id: str
    timestamp: pd.Timestamp
    longitude: float
    latitude: float


def as_datetime(values) -> pd.Series:
    """Coerce timestamps to one resolution so time-keyed merges line up."""

    return pd.to_datetime(values).astype("datetime64[ns]")
