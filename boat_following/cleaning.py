"""Track cleaning based on duration and point-count rules.

A track is kept or dropped as a whole; there is no partial retention.
"""

from __future__ import annotations

import logging
from typing import List

import pandas as pd

from .errors import InsufficientDataError
from .models import DEVICE, DT, TIME, TRACK


def add_time_deltas(df: pd.DataFrame) -> pd.DataFrame:
    """Add ``dt``, the seconds since the previous point of the same track."""

    df = df.sort_values([TRACK, TIME], kind="mergesort").reset_index(drop=True)
    df[DT] = df.groupby(TRACK)[TIME].diff().dt.total_seconds()
    return df


def check_track(track: pd.DataFrame, min_duration_min: float = 30.0, min_points: int = 4) -> None:
    """Raise :class:`InsufficientDataError` when a track is too short."""

    duration_min = (track[TIME].max() - track[TIME].min()).total_seconds() / 60.0
    if duration_min < min_duration_min:
        raise InsufficientDataError(f"duration {duration_min:.1f} min < {min_duration_min} min")
    if len(track) < min_points:
        raise InsufficientDataError(f"{len(track)} points < {min_points}")


def clean_tracks(df: pd.DataFrame, min_duration_min: float = 30.0, min_points: int = 4) -> pd.DataFrame:
    """Drop every track failing the minimum duration or point count."""

    if df.empty:
        return df.assign(**{DT: pd.Series(dtype=float)})

    df = add_time_deltas(df)
    kept: List[pd.DataFrame] = []
    for track_id, track in df.groupby(TRACK, sort=True):
        try:
            check_track(track, min_duration_min=min_duration_min, min_points=min_points)
        except InsufficientDataError as exc:
            device = track[DEVICE].iloc[0] if DEVICE in track else "?"
            logging.info("Dropping track %s of device %s: %s", track_id, device, exc)
            continue
        kept.append(track)

    if not kept:
        logging.warning("No tracks survived cleaning")
        return df.iloc[0:0]

    cleaned = pd.concat(kept, ignore_index=True)
    logging.info("Kept %d of %d tracks after cleaning", len(kept), df[TRACK].nunique())
    return cleaned
