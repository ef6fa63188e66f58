"""Trajectory-shape validation of candidate events.

A candidate is a genuine boat-following event when the distance travelled
clearly exceeds the perimeter of the convex hull of its positions: circling or
station-keeping around a vessel meanders, a transit does not.
"""

from __future__ import annotations

import logging

import numpy as np
import pandas as pd
from shapely.geometry import MultiPoint

from .errors import ShapeUndefinedError
from .models import EVENT, TIME, X, Y

HULL_RATIO = 1.3


def _coordinates(event: pd.DataFrame) -> np.ndarray:
    ordered = event.sort_values(TIME, kind="mergesort")
    xy = ordered[[X, Y]].to_numpy(dtype=float)
    return xy[~np.isnan(xy).any(axis=1)]


def path_length(xy: np.ndarray) -> float:
    """Sum of Euclidean distances between consecutive positions."""

    if len(xy) < 2:
        return 0.0
    return float(np.hypot(*np.diff(xy, axis=0).T).sum())


def hull_perimeter(xy: np.ndarray) -> float:
    """Boundary length of the convex hull of the positions.

    Collinear positions give a degenerate hull whose length is that of the
    segment spanning them.
    """

    if len(xy) < 3:
        raise ShapeUndefinedError(f"convex hull needs at least 3 points, got {len(xy)}")
    return float(MultiPoint([tuple(p) for p in xy]).convex_hull.length)


def is_boat_following(event: pd.DataFrame, ratio: float = HULL_RATIO) -> bool:
    """Return ``True`` when the event path meanders enough relative to its hull."""

    xy = _coordinates(event)
    try:
        perimeter = hull_perimeter(xy)
    except ShapeUndefinedError as exc:
        logging.debug("Rejecting event: %s", exc)
        return False
    return path_length(xy) > ratio * perimeter


def filter_events(segmented: pd.DataFrame, ratio: float = HULL_RATIO) -> pd.DataFrame:
    """Unassign every candidate event rejected by the shape rule."""

    df = segmented.copy()
    df[EVENT] = df[EVENT].astype("Int64")
    candidates = df[df[EVENT].notna()].groupby(EVENT)
    rejected = [event_id for event_id, event in candidates if not is_boat_following(event, ratio=ratio)]

    if rejected:
        df.loc[df[EVENT].isin(rejected), EVENT] = pd.NA
    logging.info("Shape check accepted %d of %d candidate events", candidates.ngroups - len(rejected), candidates.ngroups)
    return df
