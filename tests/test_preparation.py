import numpy as np
import pandas as pd
import pytest
from shapely.geometry import box

from boat_following.errors import MalformedRowError, ProjectionError
from boat_following.models import TRACK, ZONE
from boat_following.preparation import (
    WaterMask,
    parse_row,
    parse_rows,
    prepare_device,
    project_points,
    split_tracks,
    utm_crs,
    utm_zone,
)


def _raw(rows):
    return pd.DataFrame(rows, columns=["device_id", "timestamp", "longitude", "latitude"])


def test_parse_row_valid():
    fix = parse_row({"device_id": "317", "timestamp": "2019-03-04 10:00:00", "longitude": 3.1, "latitude": 43.2})
    assert fix.device_id == "317"
    assert fix.timestamp == pd.Timestamp("2019-03-04 10:00:00")
    assert fix.longitude == 3.1


def test_parse_row_rejects_bad_timestamp():
    with pytest.raises(MalformedRowError):
        parse_row({"device_id": "317", "timestamp": "04/03/2019 10h", "longitude": 3.1, "latitude": 43.2})


def test_parse_row_rejects_missing_coordinates():
    with pytest.raises(MalformedRowError):
        parse_row({"device_id": "317", "timestamp": "2019-03-04 10:00:00", "longitude": np.nan, "latitude": 43.2})


def test_parse_rows_drops_only_malformed_rows():
    raw = _raw(
        [
            ["317", "2019-03-04 10:00:00", 3.1, 43.2],
            ["317", "not a time", 3.1, 43.2],
            ["317", None, 3.1, 43.2],
            ["317", "2019-03-04 10:05:00", 3.2, 43.3],
        ]
    )
    parsed = parse_rows(raw)
    assert len(parsed) == 2
    assert pd.api.types.is_datetime64_any_dtype(parsed["timestamp"])


def test_utm_zone_and_crs():
    assert utm_zone(-180.0) == 1
    assert utm_zone(-0.5) == 30
    assert utm_zone(3.0) == 31
    assert utm_crs(31) == "EPSG:32631"
    assert utm_crs(21, "south") == "EPSG:32721"
    with pytest.raises(ProjectionError):
        utm_crs(61)


def test_project_points_per_zone_and_drops_invalid():
    df = pd.DataFrame({"longitude": [-0.1, 0.1, 180.0], "latitude": [43.0, 43.0, 43.0]})
    projected = project_points(df)
    assert projected[ZONE].tolist() == [30, 31]
    assert np.isfinite(projected["x"]).all()
    # Each point sits near the edge of its own zone, far from the central meridian.
    assert projected["x"].iloc[0] > 700_000
    assert projected["x"].iloc[1] < 300_000


def test_water_mask_keeps_sea_and_lakes():
    mask = WaterMask(land=box(0, 0, 1, 1), lakes=box(0.4, 0.4, 0.6, 0.6))
    at_sea = mask.at_sea([0.2, 0.5, 2.0], [0.2, 0.5, 2.0])
    assert at_sea.tolist() == [False, True, True]


def test_water_mask_without_land_keeps_everything():
    assert WaterMask().at_sea([0.2, 5.0], [0.2, 5.0]).all()


def test_split_tracks_breaks_on_non_consecutive_index():
    df = pd.DataFrame({"v": range(8)})
    mask = np.array([True, True, False, True, True, False, False, True])
    tracks = split_tracks(df, mask)
    assert tracks["v"].tolist() == [0, 1, 3, 4, 7]
    assert tracks[TRACK].tolist() == [1, 1, 2, 2, 3]


def test_prepare_device_splits_on_land_but_not_on_bad_rows():
    raw = _raw(
        [
            ["317", "2019-03-04 10:00:00", 3.10, 43.0],
            ["317", "2019-03-04 10:05:00", 3.11, 43.0],
            ["317", "garbage", 3.12, 43.0],
            ["317", "2019-03-04 10:10:00", 3.12, 43.0],
            ["317", "2019-03-04 10:15:00", 3.50, 43.5],
            ["317", "2019-03-04 10:20:00", 3.13, 43.0],
        ]
    )
    land = box(3.4, 43.4, 3.6, 43.6)
    tracks = prepare_device(raw, water_mask=WaterMask(land=land))
    assert len(tracks) == 4
    assert tracks[TRACK].tolist() == [1, 1, 1, 2]
    assert (tracks[ZONE] == 31).all()
