import pandas as pd
import pytest

from boat_following.classification import PrecomputedStateClassifier, label_points
from boat_following.errors import ClassificationError
from boat_following.models import BehaviouralState

START = pd.Timestamp("2019-03-04 10:00:00")


def _points(n=4):
    return pd.DataFrame(
        {"device_id": "317", "timestamp": [START + pd.Timedelta(minutes=5 * i) for i in range(n)]}
    )


class Fixed:
    def __init__(self, labels):
        self.labels = labels

    def classify(self, points):
        return self.labels


def test_label_points_attaches_states():
    labeled = label_points(_points(3), Fixed(["Trawler", BehaviouralState.ARS, "Transit"]))
    assert labeled["state"].tolist() == ["Trawler", "ARS", "Transit"]


def test_label_points_rejects_wrong_length():
    with pytest.raises(ClassificationError):
        label_points(_points(3), Fixed(["Trawler"]))


def test_label_points_rejects_unknown_state():
    with pytest.raises(ClassificationError):
        label_points(_points(2), Fixed(["Trawler", "Dolphin"]))


def test_precomputed_classifier_aligns_by_time(tmp_path):
    states = pd.DataFrame(
        {
            "timestamp": [START + pd.Timedelta(minutes=5 * i, seconds=10) for i in range(4)],
            "state": ["Transit", "Trawler", "Trawler", "Float"],
        }
    )
    states.iloc[::-1].to_csv(tmp_path / "317.csv", index=False)
    classifier = PrecomputedStateClassifier(tmp_path)
    assert list(classifier.classify(_points(4))) == ["Transit", "Trawler", "Trawler", "Float"]


def test_precomputed_classifier_requires_labels_for_every_point(tmp_path):
    pd.DataFrame({"timestamp": [START], "state": ["Transit"]}).to_csv(tmp_path / "317.csv", index=False)
    with pytest.raises(ValueError):
        PrecomputedStateClassifier(tmp_path).classify(_points(3))


def test_precomputed_classifier_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        PrecomputedStateClassifier(tmp_path).classify(_points(2))


def test_label_points_wraps_classifier_failures(tmp_path):
    with pytest.raises(ClassificationError, match="device 317"):
        label_points(_points(2), PrecomputedStateClassifier(tmp_path))
