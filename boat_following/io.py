"""Input/output helpers for the boat-following pipeline.

Covers per-device CSV loading, required-column checks, land/lake polygon
loading with geopandas, CSV saving, and the input/output diff used to re-run
failed devices.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

import geopandas as gpd
import pandas as pd
import shapely
from shapely.geometry.base import BaseGeometry

from .models import DEVICE, LAT, LON, RAW_COLUMNS, TIME

WGS84 = "EPSG:4326"


def ensure_required_columns(df: pd.DataFrame, required: Iterable[str] = RAW_COLUMNS) -> pd.DataFrame:
    """Validate that the DataFrame contains the required columns."""

    missing = [col for col in required if col not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")
    return df


def read_device_csv(path: str | Path) -> pd.DataFrame:
    """Read one device's raw fixes, leaving timestamps as text for row parsing."""

    path = Path(path)
    logging.info("Reading %s", path)
    df = pd.read_csv(path, dtype={DEVICE: str, TIME: str}, low_memory=False)
    df = ensure_required_columns(df)
    df[LON] = pd.to_numeric(df[LON], errors="coerce")
    df[LAT] = pd.to_numeric(df[LAT], errors="coerce")
    return df


def read_processed_csv(path: str | Path, parse_dates: Iterable[str] = (TIME,)) -> pd.DataFrame:
    """Read a CSV written by an earlier pipeline stage."""

    path = Path(path)
    cols = pd.read_csv(path, nrows=0).columns
    to_parse = [col for col in parse_dates if col in cols]
    missing = [col for col in parse_dates if col not in cols]
    if missing:
        logging.warning("Skipping parse_dates %s not present in %s", missing, path)
    return pd.read_csv(path, parse_dates=to_parse, dtype={DEVICE: str}, low_memory=False)


def save_dataframe(df: pd.DataFrame, path: str | Path) -> None:
    """Persist a DataFrame to CSV."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    logging.info("Saved %d rows to %s", len(df), path)


def load_geometry(path: Optional[str | Path]) -> Optional[BaseGeometry]:
    """Load a polygon layer (GeoJSON, shapefile, ...) and merge it into one lon/lat geometry."""

    if path is None:
        return None
    path = Path(path)
    layer = gpd.read_file(path)
    if layer.crs is not None and not layer.crs.equals(WGS84):
        layer = layer.to_crs(WGS84)

    geometries = layer.geometry.dropna()
    if geometries.empty:
        logging.warning("No geometries found in %s", path)
        return None
    merged = shapely.union_all(geometries.to_numpy())
    logging.info("Loaded %d polygons from %s", len(geometries), path)
    return merged


def list_device_files(directory: str | Path) -> List[Path]:
    """Return the per-device CSV files of a directory in a deterministic order."""

    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Input directory does not exist: {directory}")
    return sorted(directory.glob("*.csv"))


def pending_devices(input_dir: str | Path, output_dir: str | Path) -> List[Path]:
    """Return input files without a matching output file.

    Devices that failed in a previous run have no output, so re-running the
    batch on this list alone completes it.
    """

    output_dir = Path(output_dir)
    done = {path.stem for path in output_dir.glob("*.csv")} if output_dir.is_dir() else set()
    pending = [path for path in list_device_files(input_dir) if path.stem not in done]
    logging.info("%d device files pending in %s", len(pending), input_dir)
    return pending


def read_metadata(path: Optional[str | Path]) -> Optional[pd.DataFrame]:
    """Read the per-device metadata table (sex, colony coordinates)."""

    if path is None:
        return None
    metadata = pd.read_csv(path, dtype={DEVICE: str})
    return ensure_required_columns(metadata, [DEVICE])
