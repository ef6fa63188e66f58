"""Step-length and turning-angle features for the behavioural state model.

Both features are computed per resampled track on the ellipsoid, so steps
that cross a UTM zone boundary stay exact.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from pyproj import Geod

from .models import ANGLE, GRID_TIME, LAT, LON, STEP, TRACK

_GEOD = Geod(ellps="WGS84")


def wrap_angle(radians: np.ndarray) -> np.ndarray:
    """Wrap angles into (-pi, pi]."""

    wrapped = np.mod(radians + np.pi, 2 * np.pi) - np.pi
    return np.where(wrapped == -np.pi, np.pi, wrapped)


def _track_features(track: pd.DataFrame) -> pd.DataFrame:
    lon = track[LON].to_numpy(dtype=float)
    lat = track[LAT].to_numpy(dtype=float)
    step = np.full(len(track), np.nan)
    angle = np.full(len(track), np.nan)
    if len(track) >= 2:
        azimuth, _, distance = _GEOD.inv(lon[:-1], lat[:-1], lon[1:], lat[1:])
        step[1:] = distance
        bearing = np.radians(np.asarray(azimuth, dtype=float))
        # A zero-length step has no heading, so the turn around it is unknown.
        bearing[np.asarray(distance) == 0] = np.nan
        angle[2:] = wrap_angle(np.diff(bearing))
    return track.assign(**{STEP: step, ANGLE: angle})


def add_movement_features(resampled: pd.DataFrame) -> pd.DataFrame:
    """Add ``step`` (metres) and ``angle`` (radians) columns per track."""

    if resampled.empty:
        return resampled.assign(**{STEP: pd.Series(dtype=float), ANGLE: pd.Series(dtype=float)})

    parts = [
        _track_features(track.sort_values(GRID_TIME, kind="mergesort"))
        for _, track in resampled.groupby(TRACK, sort=True)
    ]
    return pd.concat(parts).sort_values([GRID_TIME, TRACK], kind="mergesort").reset_index(drop=True)
