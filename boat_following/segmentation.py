"""Event segmentation of labelled points based on a temporal gap rule.

Boat-relevant points are grouped into candidate events whenever consecutive
members are no more than the gap apart. Each event then absorbs every point
(boat-relevant or not) that lies within its time span, and sparse events are
discarded.
"""

from __future__ import annotations

import logging
from typing import Iterable

import numpy as np
import pandas as pd

from .config import DEFAULT_BOAT_STATES
from .models import EVENT, STATE, TIME


def assign_candidate_ids(times: pd.Series, gap_min: float = 30.0) -> np.ndarray:
    """Number runs of time-ordered instants, starting a new run after each long gap.

    The first instant always opens run 1.
    """

    gaps = pd.Series(times).reset_index(drop=True).diff()
    starts_new = gaps > pd.Timedelta(minutes=gap_min)
    return starts_new.cumsum().to_numpy(dtype=int) + 1


def segment_events(
    labeled: pd.DataFrame,
    boat_states: Iterable[str] = DEFAULT_BOAT_STATES,
    gap_min: float = 30.0,
    min_points: int = 6,
) -> pd.DataFrame:
    """Add an ``event_id`` column (nullable) to a device's labelled points."""

    df = labeled.sort_values(TIME, kind="mergesort").reset_index(drop=True)
    event_ids = pd.Series(pd.NA, index=df.index, dtype="Int64")

    boat_mask = df[STATE].isin(list(boat_states))
    if not boat_mask.any():
        df[EVENT] = event_ids
        return df

    boat = df.loc[boat_mask, [TIME]].copy()
    boat[EVENT] = assign_candidate_ids(boat[TIME], gap_min=gap_min)
    spans = boat.groupby(EVENT)[TIME].agg(["min", "max"])
    members = boat.groupby(EVENT).size()

    kept = members[members >= min_points].index
    dropped = len(members) - len(kept)
    if dropped:
        logging.info("Dropped %d candidate events with fewer than %d boat-relevant points", dropped, min_points)

    for event_id in kept:
        start, end = spans.loc[event_id, "min"], spans.loc[event_id, "max"]
        event_ids[df[TIME].between(start, end, inclusive="both")] = int(event_id)

    df[EVENT] = event_ids
    logging.info("Segmented %d candidate events from %d boat-relevant points", len(kept), int(boat_mask.sum()))
    return df
