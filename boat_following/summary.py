"""Event summaries, geocoding and metadata joins.

Reduces every accepted event to one row (time span, centroid, dominant boat
type, calendar fields), places the centroid back on the globe in the event's
own UTM zone, and joins per-device metadata and yearly tracking effort.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from pyproj import Geod

from .models import DEVICE, EVENT, LAT, LON, STATE, SUMMARY_COLUMNS, TIME, X, Y, ZONE, BehaviouralState
from .preparation import zone_transformer

_GEOD = Geod(ellps="WGS84")

DEFAULT_COMPETING_TYPES = (BehaviouralState.TRAWLER.value, BehaviouralState.SHRIMP_BOAT.value)


def dominant_type(
    states: pd.Series,
    competing_types: Sequence[str] = DEFAULT_COMPETING_TYPES,
    default_type: str = BehaviouralState.TRAWLER.value,
) -> str:
    """Majority vote between the two competing boat types; ties go to ``default_type``."""

    first, second = competing_types
    counts = states.value_counts()
    n_first = int(counts.get(first, 0))
    n_second = int(counts.get(second, 0))
    if n_first > n_second:
        return first
    if n_second > n_first:
        return second
    return default_type


def summarize_events(
    events: pd.DataFrame,
    competing_types: Sequence[str] = DEFAULT_COMPETING_TYPES,
    default_type: str = BehaviouralState.TRAWLER.value,
) -> pd.DataFrame:
    """Return one summary row per accepted event."""

    core_columns = [col for col in SUMMARY_COLUMNS if col not in (LON, LAT)]
    accepted = events[events[EVENT].notna()]
    if accepted.empty:
        return pd.DataFrame(columns=core_columns)

    rows: List[Dict[str, object]] = []
    for (device, event_id), event in accepted.groupby([DEVICE, EVENT], sort=True):
        start = event[TIME].min()
        end = event[TIME].max()
        rows.append(
            {
                "device": device,
                EVENT: int(event_id),
                "start_time": start,
                "end_time": end,
                "event_duration": (end - start).total_seconds() / 60.0,
                "year": start.year,
                "month": start.month,
                "weekday": start.day_name(),
                "center_x": float(event[X].mean(skipna=True)),
                "center_y": float(event[Y].mean(skipna=True)),
                "event_type": dominant_type(event[STATE], competing_types, default_type),
                "UTMzone": int(event[ZONE].mode().iloc[0]),
            }
        )

    summary = pd.DataFrame(rows, columns=core_columns)
    logging.info("Summarised %d events", len(summary))
    return summary


def geocode_events(summary: pd.DataFrame, hemisphere: str = "north") -> pd.DataFrame:
    """Add ``longitude``/``latitude`` of each centroid using the event's zone."""

    summary = summary.copy()
    summary[LON] = np.nan
    summary[LAT] = np.nan
    for zone, idx in summary.groupby("UTMzone").groups.items():
        transformer = zone_transformer(int(zone), hemisphere, inverse=True)
        lon, lat = transformer.transform(
            summary.loc[idx, "center_x"].to_numpy(dtype=float),
            summary.loc[idx, "center_y"].to_numpy(dtype=float),
        )
        summary.loc[idx, LON] = lon
        summary.loc[idx, LAT] = lat
    return summary


def yearly_effort(points: pd.DataFrame) -> pd.DataFrame:
    """Distinct tracking days per device and year."""

    if points.empty:
        return pd.DataFrame(columns=[DEVICE, "year", "effort_days"])
    days = pd.DataFrame({DEVICE: points[DEVICE].to_numpy(), "day": pd.to_datetime(points[TIME]).dt.normalize()})
    days["year"] = days["day"].dt.year
    effort = days.groupby([DEVICE, "year"])["day"].nunique().rename("effort_days").reset_index()
    return effort


def join_metadata(
    summary: pd.DataFrame,
    metadata: Optional[pd.DataFrame] = None,
    effort: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """Left-join device metadata and yearly effort onto the event summary.

    ``metadata`` holds one row per ``device_id`` with optional ``sex`` and
    ``colony_longitude``/``colony_latitude`` columns; the colony distance is
    the geodesic distance from the colony to the event centroid.
    """

    result = summary.copy()
    if metadata is not None and not metadata.empty:
        meta = metadata.drop_duplicates(DEVICE).copy()
        meta[DEVICE] = meta[DEVICE].astype(str)
        result["device"] = result["device"].astype(str)
        result = result.merge(meta, how="left", left_on="device", right_on=DEVICE).drop(columns=[DEVICE])

        if {"colony_longitude", "colony_latitude"}.issubset(result.columns) and not result.empty:
            _, _, distance = _GEOD.inv(
                result["colony_longitude"].to_numpy(dtype=float),
                result["colony_latitude"].to_numpy(dtype=float),
                result[LON].to_numpy(dtype=float),
                result[LAT].to_numpy(dtype=float),
            )
            result["colony_distance_km"] = np.asarray(distance, dtype=float) / 1000.0
            result = result.drop(columns=["colony_longitude", "colony_latitude"])

    if effort is not None and not effort.empty:
        yearly = effort.copy()
        yearly[DEVICE] = yearly[DEVICE].astype(str)
        result["device"] = result["device"].astype(str)
        result = result.merge(
            yearly, how="left", left_on=["device", "year"], right_on=[DEVICE, "year"]
        ).drop(columns=[DEVICE])

    return result
