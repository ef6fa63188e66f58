import pandas as pd
import pytest

from boat_following.cleaning import add_time_deltas, check_track, clean_tracks
from boat_following.errors import InsufficientDataError


def _track(track_id, minutes):
    start = pd.Timestamp("2019-03-04 10:00:00")
    return pd.DataFrame(
        {
            "device_id": "317",
            "track_id": track_id,
            "timestamp": [start + pd.Timedelta(minutes=m) for m in minutes],
        }
    )


def test_time_deltas_first_point_is_null():
    df = add_time_deltas(pd.concat([_track(1, [0, 5, 15]), _track(2, [60, 62])]))
    assert df["dt"].isna().sum() == 2
    assert df.loc[df["track_id"] == 1, "dt"].tolist()[1:] == [300.0, 600.0]


def test_check_track_rules():
    check_track(_track(1, [0, 10, 20, 30]))
    with pytest.raises(InsufficientDataError):
        check_track(_track(1, [0, 5, 10, 15, 20, 25]))
    with pytest.raises(InsufficientDataError):
        check_track(_track(1, [0, 30, 60]))


def test_clean_tracks_never_keeps_short_tracks():
    df = pd.concat(
        [
            _track(1, [0, 5, 10, 15, 20, 25]),
            _track(2, [100, 115, 130, 145]),
            _track(3, [300, 330, 360]),
        ]
    )
    cleaned = clean_tracks(df)
    assert cleaned["track_id"].unique().tolist() == [2]
    for _, track in cleaned.groupby("track_id"):
        assert (track["timestamp"].max() - track["timestamp"].min()) >= pd.Timedelta(minutes=30)
        assert len(track) >= 4


def test_clean_tracks_all_dropped_returns_empty():
    assert clean_tracks(_track(1, [0, 1])).empty
