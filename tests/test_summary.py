import numpy as np
import pandas as pd
import pytest

from boat_following.preparation import zone_transformer
from boat_following.summary import (
    dominant_type,
    geocode_events,
    join_metadata,
    summarize_events,
    yearly_effort,
)

START = pd.Timestamp("2019-03-04 10:00:00")


def _events(states, event_id=1, device="317", x0=500_000.0):
    n = len(states)
    return pd.DataFrame(
        {
            "device_id": device,
            "timestamp": [START + pd.Timedelta(minutes=5 * i) for i in range(n)],
            "x": x0 + np.arange(n) * 100.0,
            "y": 4_760_000.0 + np.arange(n) * 50.0,
            "zone_id": 31,
            "state": states,
            "event_id": pd.array([event_id] * n, dtype="Int64"),
        }
    )


def test_dominant_type_majority_and_tie():
    assert dominant_type(pd.Series(["Trawler", "Shrimp-boat", "Shrimp-boat"])) == "Shrimp-boat"
    assert dominant_type(pd.Series(["Trawler", "Shrimp-boat", "ARS"])) == "Trawler"
    assert dominant_type(pd.Series(["ARS"])) == "Trawler"


def test_summary_fields():
    events = _events(["Shrimp-boat"] * 4 + ["Trawler"] * 2 + ["ARS"])
    summary = summarize_events(events)
    row = summary.iloc[0]
    assert len(summary) == 1
    assert row["device"] == "317"
    assert row["start_time"] == START
    assert row["end_time"] == START + pd.Timedelta(minutes=30)
    assert row["event_duration"] == pytest.approx(30.0)
    assert (row["year"], row["month"], row["weekday"]) == (2019, 3, "Monday")
    assert row["event_type"] == "Shrimp-boat"
    assert row["UTMzone"] == 31


def test_centroid_matches_member_points():
    events = _events(["Trawler"] * 8)
    events.loc[3, ["x", "y"]] = np.nan
    summary = summarize_events(events)
    members = events[events["event_id"] == 1]
    assert summary["center_x"].iloc[0] == pytest.approx(members["x"].mean())
    assert summary["center_y"].iloc[0] == pytest.approx(members["y"].mean())


def test_unassigned_points_are_ignored():
    events = pd.concat([_events(["Trawler"] * 6), _events(["Transit"] * 3, event_id=pd.NA)], ignore_index=True)
    summary = summarize_events(events)
    assert summary["event_id"].tolist() == [1]


def test_geocode_uses_event_zone():
    x, y = zone_transformer(31, "north").transform(3.2, 43.1)
    summary = pd.DataFrame({"center_x": [x], "center_y": [y], "UTMzone": [31]})
    geocoded = geocode_events(summary)
    assert geocoded["longitude"].iloc[0] == pytest.approx(3.2, abs=1e-6)
    assert geocoded["latitude"].iloc[0] == pytest.approx(43.1, abs=1e-6)


def test_yearly_effort_counts_distinct_days():
    points = pd.DataFrame(
        {
            "device_id": ["317", "317", "317", "42"],
            "timestamp": pd.to_datetime(
                ["2019-03-04 10:00", "2019-03-04 18:00", "2019-03-05 01:00", "2020-01-01 00:00"]
            ),
        }
    )
    effort = yearly_effort(points)
    assert effort.set_index(["device_id", "year"])["effort_days"].to_dict() == {("317", 2019): 2, ("42", 2020): 1}


def test_join_metadata_adds_sex_distance_and_effort():
    summary = pd.DataFrame(
        {"device": ["317"], "event_id": [1], "year": [2019], "longitude": [3.2], "latitude": [43.1]}
    )
    metadata = pd.DataFrame(
        {"device_id": ["317"], "sex": ["F"], "colony_longitude": [3.2], "colony_latitude": [42.1]}
    )
    effort = pd.DataFrame({"device_id": ["317"], "year": [2019], "effort_days": [12]})
    joined = join_metadata(summary, metadata, effort)
    assert joined["sex"].iloc[0] == "F"
    assert joined["colony_distance_km"].iloc[0] == pytest.approx(111.1, abs=0.5)
    assert joined["effort_days"].iloc[0] == 12
    assert "device_id" not in joined.columns
