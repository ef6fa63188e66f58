"""Behavioural state labelling.

The state model itself is fitted outside this package; the pipeline only
relies on the narrow :class:`StateClassifier` contract and validates what the
model hands back.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol, Sequence

import pandas as pd

from .errors import ClassificationError
from .io import read_processed_csv
from .models import DEVICE, STATE, TIME, BehaviouralState, as_datetime


class StateClassifier(Protocol):
    """Assign one behavioural state per resampled point."""

    def classify(self, points: pd.DataFrame) -> Sequence[str]:
        ...


def label_points(points: pd.DataFrame, classifier: StateClassifier) -> pd.DataFrame:
    """Attach the classifier's labels as a ``state`` column.

    Raises :class:`ClassificationError` when the classifier fails or its
    labels do not fit the points.
    """

    device_id = points[DEVICE].iloc[0] if DEVICE in points and len(points) else "?"
    try:
        labels = list(classifier.classify(points))
    except Exception as exc:
        raise ClassificationError(f"state classification failed for device {device_id}: {exc}") from exc
    if len(labels) != len(points):
        raise ClassificationError(f"Classifier returned {len(labels)} labels for {len(points)} points.")

    labels = [label.value if isinstance(label, BehaviouralState) else label for label in labels]
    unknown = sorted({str(label) for label in labels} - BehaviouralState.values())
    if unknown:
        raise ClassificationError(f"Classifier returned unknown states: {unknown}")

    labeled = points.copy()
    labeled[STATE] = labels
    counts = labeled[STATE].value_counts().to_dict()
    logging.info("Labelled %d points: %s", len(labeled), counts)
    return labeled


class PrecomputedStateClassifier:
    """Read states decoded by an external model fit from per-device CSV files.

    Each ``<device>.csv`` in ``states_dir`` holds ``timestamp`` and ``state``
    columns; labels are aligned to the points by nearest timestamp within
    ``tolerance_sec``.
    """

    def __init__(self, states_dir: str | Path, tolerance_sec: float = 90.0) -> None:
        self.states_dir = Path(states_dir)
        self.tolerance_sec = tolerance_sec

    def classify(self, points: pd.DataFrame) -> Sequence[str]:
        if points.empty:
            return []
        device_id = points[DEVICE].iloc[0]
        path = self.states_dir / f"{device_id}.csv"
        if not path.exists():
            raise FileNotFoundError(f"No decoded states for device {device_id} at {path}")

        states = read_processed_csv(path)[[TIME, STATE]].dropna(subset=[TIME])
        states[TIME] = as_datetime(states[TIME])
        states = states.sort_values(TIME, kind="mergesort")

        keyed = pd.DataFrame({TIME: as_datetime(points[TIME]).to_numpy(), "_order": range(len(points))})
        aligned = pd.merge_asof(
            keyed.sort_values(TIME, kind="mergesort"),
            states,
            on=TIME,
            direction="nearest",
            tolerance=pd.Timedelta(seconds=self.tolerance_sec),
        ).sort_values("_order")

        missing = int(aligned[STATE].isna().sum())
        if missing:
            raise ValueError(f"{missing} points of device {device_id} have no decoded state in {path}")
        return aligned[STATE].tolist()
