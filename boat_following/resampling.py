"""Resampling of cleaned tracks onto a fixed time grid.

Every grid instant takes the nearest real fix when one lies within the match
tolerance; the remaining instants of a device are interpolated in a single
batch and handed back to the track whose original fixes are nearest in time.
"""

from __future__ import annotations

import logging
from typing import List, Protocol, Tuple

import numpy as np
import pandas as pd
from scipy.interpolate import PchipInterpolator

from .errors import InterpolationFailure
from .models import DEVICE, DT, GRID_TIME, INTERPOLATED, LAT, LON, TIME, TRACK, X, Y, ZONE, as_datetime
from .preparation import project_points

RESAMPLED_COLUMNS = [DEVICE, TRACK, GRID_TIME, TIME, LON, LAT, X, Y, ZONE, INTERPOLATED]

_ROW = "_row"


class Interpolator(Protocol):
    """Movement model predicting positions at instants without a fix."""

    def interpolate(self, points: pd.DataFrame, missing_times: pd.DatetimeIndex) -> pd.DataFrame:
        """Return ``timestamp``, ``longitude`` and ``latitude`` for each missing instant."""
        ...


def _seconds(values) -> np.ndarray:
    """Seconds since the epoch for an array of naive timestamps."""

    index = pd.DatetimeIndex(values)
    return np.asarray((index - pd.Timestamp(0)) / pd.Timedelta(seconds=1), dtype=float)


class TimeInterpolator:
    """Interpolate longitude and latitude over time from the device's fixes."""

    def __init__(self, method: str = "linear") -> None:
        if method not in {"linear", "pchip"}:
            raise ValueError(f"Unsupported interpolation method: {method}")
        self.method = method

    def interpolate(self, points: pd.DataFrame, missing_times: pd.DatetimeIndex) -> pd.DataFrame:
        ordered = points.sort_values(TIME).drop_duplicates(TIME)
        if len(ordered) < 2:
            raise ValueError("At least two fixes are required to interpolate.")

        t = _seconds(ordered[TIME])
        target = _seconds(missing_times)
        result = {TIME: as_datetime(pd.Series(missing_times)).to_numpy()}
        for col in (LON, LAT):
            values = ordered[col].to_numpy(dtype=float)
            if self.method == "pchip":
                result[col] = PchipInterpolator(t, values)(target)
            else:
                result[col] = np.interp(target, t, values)
        return pd.DataFrame(result)


def time_grid(start: pd.Timestamp, end: pd.Timestamp, step_sec: float = 300.0) -> pd.DatetimeIndex:
    """Closed grid from ``start`` up to ``end`` with a fixed step."""

    grid = pd.date_range(start=start, end=end, freq=pd.Timedelta(seconds=step_sec))
    return pd.DatetimeIndex(as_datetime(grid))


def match_grid(
    track: pd.DataFrame,
    grid: pd.DatetimeIndex,
    tolerance_sec: float = 90.0,
) -> Tuple[pd.DataFrame, pd.DatetimeIndex]:
    """Pair grid instants with the nearest fix of the track.

    Returns the matched fixes (one row per matched grid instant, tagged with
    ``grid_time``) and the grid instants left without a fix.
    """

    ordered = track.sort_values(TIME, kind="mergesort").reset_index(drop=True)
    ordered[TIME] = as_datetime(ordered[TIME])
    keys = pd.DataFrame({TIME: ordered[TIME], _ROW: np.arange(len(ordered))})
    slots = pd.DataFrame({GRID_TIME: grid})

    paired = pd.merge_asof(
        slots,
        keys,
        left_on=GRID_TIME,
        right_on=TIME,
        direction="nearest",
        tolerance=pd.Timedelta(seconds=tolerance_sec),
    )

    hit = paired[_ROW].notna().to_numpy()
    rows = paired.loc[hit, _ROW].astype(int).to_numpy()
    matched = ordered.iloc[rows].copy()
    matched[GRID_TIME] = paired.loc[hit, GRID_TIME].to_numpy()
    matched[INTERPOLATED] = False
    missing = pd.DatetimeIndex(paired.loc[~hit, GRID_TIME])
    return matched.reset_index(drop=True), missing


def assign_nearest_track(predicted: pd.DataFrame, points: pd.DataFrame) -> pd.DataFrame:
    """Give every predicted point the track of the nearest-in-time original fix."""

    predicted = predicted.drop(columns=[TRACK], errors="ignore").sort_values(TIME, kind="mergesort").reset_index(drop=True)
    predicted[TIME] = as_datetime(predicted[TIME])
    lookup = points[[TIME, TRACK]].sort_values(TIME, kind="mergesort").reset_index(drop=True)
    lookup[TIME] = as_datetime(lookup[TIME])
    return pd.merge_asof(predicted, lookup, on=TIME, direction="nearest")


def resample_device(
    points: pd.DataFrame,
    interpolator: Interpolator,
    step_sec: float = 300.0,
    tolerance_sec: float = 90.0,
    hemisphere: str = "north",
) -> pd.DataFrame:
    """Resample every track of one device onto the fixed grid.

    Raises :class:`InterpolationFailure` when the interpolator cannot fill the
    device's unmatched instants.
    """

    if points.empty:
        return pd.DataFrame(columns=RESAMPLED_COLUMNS)

    device_id = points[DEVICE].iloc[0]
    matched_parts: List[pd.DataFrame] = []
    missing_parts: List[pd.DatetimeIndex] = []
    for _, track in points.groupby(TRACK, sort=True):
        grid = time_grid(track[TIME].min(), track[TIME].max(), step_sec=step_sec)
        matched, missing = match_grid(track, grid, tolerance_sec=tolerance_sec)
        matched_parts.append(matched)
        missing_parts.append(missing)

    matched_all = pd.concat(matched_parts, ignore_index=True)
    missing_all = pd.DatetimeIndex(as_datetime(np.concatenate([m.to_numpy() for m in missing_parts])))
    missing_all = missing_all.unique().sort_values()

    if len(missing_all) == 0:
        logging.info("Device %s: all %d grid slots matched real fixes", device_id, len(matched_all))
        return _finalise(matched_all)

    try:
        predicted = interpolator.interpolate(points, missing_all)
    except Exception as exc:
        raise InterpolationFailure(f"interpolation failed for device {device_id}: {exc}") from exc

    if predicted is None or predicted.empty:
        raise InterpolationFailure(f"interpolation returned no points for device {device_id}")

    predicted = predicted.dropna(subset=[TIME, LON, LAT]).copy()
    predicted[TIME] = as_datetime(predicted[TIME])
    predicted = project_points(predicted, hemisphere=hemisphere)
    predicted = assign_nearest_track(predicted, points)
    predicted[DEVICE] = device_id
    predicted[GRID_TIME] = predicted[TIME]
    predicted[INTERPOLATED] = True

    logging.info(
        "Device %s: %d grid slots matched, %d interpolated",
        device_id,
        len(matched_all),
        len(predicted),
    )
    return _finalise(pd.concat([matched_all, predicted], ignore_index=True))


def _finalise(resampled: pd.DataFrame) -> pd.DataFrame:
    resampled = resampled.drop(columns=[DT], errors="ignore")
    resampled = resampled.sort_values([GRID_TIME, TRACK], kind="mergesort").reset_index(drop=True)
    return resampled[RESAMPLED_COLUMNS]
