"""Raw fix parsing, UTM projection, at-sea filtering and track splitting.

Rows are parsed one at a time so a bad timestamp only costs its own row.
Projection is grouped by UTM zone because one transformer cannot span
zones, and tracks are cut wherever at-sea points stop being consecutive in
the time-ordered stream.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Mapping, Optional

import numpy as np
import pandas as pd
import shapely
from pyproj import Transformer
from shapely.geometry.base import BaseGeometry

from .errors import MalformedRowError, ProjectionError
from .io import load_geometry
from .models import DEVICE, LAT, LON, RAW_COLUMNS, TIME, TRACK, X, Y, ZONE, Fix, as_datetime

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_row(row: Mapping[str, Any]) -> Fix:
    """Turn one raw row into a :class:`Fix`, raising on malformed input."""

    raw_time = row.get(TIME)
    if raw_time is None or pd.isna(raw_time):
        raise MalformedRowError("missing timestamp")
    try:
        timestamp = pd.Timestamp(datetime.strptime(str(raw_time).strip(), TIMESTAMP_FORMAT))
    except ValueError as exc:
        raise MalformedRowError(f"unparsable timestamp {raw_time!r}") from exc

    try:
        longitude = float(row.get(LON))
        latitude = float(row.get(LAT))
    except (TypeError, ValueError) as exc:
        raise MalformedRowError("unparsable coordinates") from exc
    if np.isnan(longitude) or np.isnan(latitude):
        raise MalformedRowError("missing coordinates")

    return Fix(device_id=str(row.get(DEVICE)), timestamp=timestamp, longitude=longitude, latitude=latitude)


def parse_rows(raw: pd.DataFrame) -> pd.DataFrame:
    """Parse every raw row, dropping (and counting) the malformed ones."""

    fixes: List[Fix] = []
    dropped = 0
    for row in raw.to_dict(orient="records"):
        try:
            fixes.append(parse_row(row))
        except MalformedRowError as exc:
            dropped += 1
            logging.debug("Dropping row %s: %s", row, exc)

    if dropped:
        logging.warning("Dropped %d of %d rows with missing or malformed values", dropped, len(raw))
    if not fixes:
        return pd.DataFrame(columns=RAW_COLUMNS)
    parsed = pd.DataFrame([asdict(fix) for fix in fixes], columns=RAW_COLUMNS)
    parsed[TIME] = as_datetime(parsed[TIME])
    return parsed


def utm_zone(longitude: float) -> int:
    """Return the UTM zone index of a longitude."""

    return int(np.floor(longitude / 6.0)) + 31


def utm_crs(zone: int, hemisphere: str = "north") -> str:
    """Return the EPSG code of a WGS84 UTM zone."""

    if not 1 <= int(zone) <= 60:
        raise ProjectionError(f"UTM zone {zone} is outside 1..60")
    base = 32600 if hemisphere == "north" else 32700
    return f"EPSG:{base + int(zone)}"


@lru_cache(maxsize=None)
def zone_transformer(zone: int, hemisphere: str = "north", inverse: bool = False) -> Transformer:
    """Return a cached lon/lat <-> UTM transformer for one zone."""

    crs = utm_crs(zone, hemisphere)
    if inverse:
        return Transformer.from_crs(crs, "EPSG:4326", always_xy=True)
    return Transformer.from_crs("EPSG:4326", crs, always_xy=True)


def project_points(df: pd.DataFrame, hemisphere: str = "north") -> pd.DataFrame:
    """Add planar ``x``/``y`` and ``zone_id`` columns, projecting zone by zone.

    Points whose longitude maps to no valid zone are dropped.
    """

    df = df.copy()
    df[ZONE] = (np.floor(df[LON].to_numpy(dtype=float) / 6.0) + 31).astype(int) if len(df) else pd.Series(dtype=int)
    df[X] = np.nan
    df[Y] = np.nan

    invalid = np.zeros(len(df), dtype=bool)
    for zone, idx in df.groupby(ZONE).groups.items():
        try:
            transformer = zone_transformer(int(zone), hemisphere)
        except ProjectionError as exc:
            logging.warning("Dropping %d points: %s", len(idx), exc)
            invalid[df.index.get_indexer(idx)] = True
            continue
        x, y = transformer.transform(df.loc[idx, LON].to_numpy(), df.loc[idx, LAT].to_numpy())
        df.loc[idx, X] = x
        df.loc[idx, Y] = y

    return df[~invalid]


class WaterMask:
    """Point-in-polygon test against land, with lakes counted as open water."""

    def __init__(self, land: Optional[BaseGeometry] = None, lakes: Optional[BaseGeometry] = None) -> None:
        self.land = land
        self.lakes = lakes
        for geometry in (land, lakes):
            if geometry is not None:
                shapely.prepare(geometry)

    @classmethod
    def from_files(cls, land_path: Optional[str | Path], lakes_path: Optional[str | Path] = None) -> "WaterMask":
        return cls(land=load_geometry(land_path), lakes=load_geometry(lakes_path))

    def at_sea(self, longitude, latitude) -> np.ndarray:
        """Return ``True`` for every point that is not on land."""

        longitude = np.asarray(longitude, dtype=float)
        latitude = np.asarray(latitude, dtype=float)
        if self.land is None:
            return np.ones(len(longitude), dtype=bool)

        on_land = shapely.contains_xy(self.land, longitude, latitude)
        if self.lakes is not None:
            on_land &= ~shapely.contains_xy(self.lakes, longitude, latitude)
        return ~on_land


def split_tracks(df: pd.DataFrame, at_sea: np.ndarray) -> pd.DataFrame:
    """Keep at-sea rows and number the unbroken index runs as tracks."""

    index = np.flatnonzero(at_sea)
    kept = df.iloc[index].copy()
    # The first kept row always differs from the sentinel by more than one.
    kept[TRACK] = np.cumsum(np.diff(index, prepend=-2) != 1).astype(int)
    return kept.reset_index(drop=True)


def prepare_device(
    raw: pd.DataFrame,
    water_mask: Optional[WaterMask] = None,
    hemisphere: str = "north",
) -> pd.DataFrame:
    """Parse, project and split one device's raw rows into tracks."""

    fixes = parse_rows(raw)
    if fixes.empty:
        return fixes.assign(**{X: [], Y: [], ZONE: [], TRACK: []})

    fixes = fixes.sort_values(TIME, kind="mergesort").reset_index(drop=True)
    projected = project_points(fixes, hemisphere=hemisphere).reset_index(drop=True)

    mask = water_mask.at_sea(projected[LON], projected[LAT]) if water_mask else np.ones(len(projected), dtype=bool)
    on_land = int((~mask).sum())
    if on_land:
        logging.info("Discarded %d points over land", on_land)

    tracks = split_tracks(projected, mask)
    logging.info("Prepared %d points in %d tracks", len(tracks), tracks[TRACK].nunique())
    return tracks
