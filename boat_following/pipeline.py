"""High-level orchestration of the boat-following event pipeline.

Each device file is processed end to end by a pure per-device function; the
batch driver maps it over the input directory, writes one output per device
and concatenates the per-device event summaries at the end. A device whose
interpolation or state classification fails is logged and skipped, and is
picked up again on the next run because its output file is missing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import pandas as pd

from .classification import PrecomputedStateClassifier, StateClassifier, label_points
from .cleaning import clean_tracks
from .config import PipelineSettings
from .errors import ClassificationError, InterpolationFailure
from .features import add_movement_features
from .io import (
    list_device_files,
    pending_devices,
    read_device_csv,
    read_metadata,
    read_processed_csv,
    save_dataframe,
)
from .models import DEVICE, EVENT, GRID_TIME, SUMMARY_COLUMNS, TIME
from .preparation import WaterMask, prepare_device
from .resampling import Interpolator, TimeInterpolator, resample_device
from .segmentation import segment_events
from .shape import filter_events
from .summary import geocode_events, join_metadata, summarize_events, yearly_effort


@dataclass
class DeviceResult:
    """Outputs of one device run."""

    device_id: str
    resampled: pd.DataFrame
    labeled: pd.DataFrame
    summary: pd.DataFrame


def resample_points(
    raw: pd.DataFrame,
    settings: PipelineSettings,
    interpolator: Interpolator,
    water_mask: Optional[WaterMask] = None,
) -> pd.DataFrame:
    """Prepare, clean, resample and featurise one device's raw rows."""

    tracks = prepare_device(raw, water_mask=water_mask, hemisphere=settings.hemisphere)
    cleaned = clean_tracks(tracks, min_duration_min=settings.min_duration_min, min_points=settings.min_points)
    resampled = resample_device(
        cleaned,
        interpolator,
        step_sec=settings.step_sec,
        tolerance_sec=settings.match_tolerance_sec,
        hemisphere=settings.hemisphere,
    )
    return add_movement_features(resampled)


def detect_events(labeled: pd.DataFrame, settings: PipelineSettings) -> pd.DataFrame:
    """Segment labelled points into events and keep those passing the shape rule."""

    segmented = segment_events(
        labeled,
        boat_states=settings.boat_states,
        gap_min=settings.event_gap_min,
        min_points=settings.min_event_points,
    )
    return filter_events(segmented, ratio=settings.hull_ratio)


def summarize_device(events: pd.DataFrame, settings: PipelineSettings) -> pd.DataFrame:
    summary = summarize_events(events, settings.competing_types, settings.default_type)
    return geocode_events(summary, hemisphere=settings.hemisphere)


def process_device(
    raw: pd.DataFrame,
    settings: PipelineSettings,
    interpolator: Interpolator,
    classifier: StateClassifier,
    water_mask: Optional[WaterMask] = None,
) -> DeviceResult:
    """Run every stage for one device; raises :class:`InterpolationFailure`."""

    device_id = str(raw[DEVICE].dropna().iloc[0]) if raw[DEVICE].notna().any() else "unknown"
    resampled = resample_points(raw, settings, interpolator, water_mask=water_mask)
    if resampled.empty:
        logging.warning("Device %s has no analysable tracks", device_id)
        empty = resampled.assign(**{EVENT: pd.Series(dtype="Int64")})
        return DeviceResult(device_id, resampled, empty, pd.DataFrame(columns=SUMMARY_COLUMNS))

    labeled = label_points(resampled, classifier)
    events = detect_events(labeled, settings)
    return DeviceResult(device_id, resampled, events, summarize_device(events, settings))


class BoatFollowingPipeline:
    """Coordinate the batch over a directory of per-device CSV files."""

    def __init__(
        self,
        settings: PipelineSettings,
        classifier: Optional[StateClassifier] = None,
        interpolator: Optional[Interpolator] = None,
        water_mask: Optional[WaterMask] = None,
    ) -> None:
        self.settings = settings
        self.interpolator = interpolator or TimeInterpolator(settings.interpolation_method)
        if classifier is None and settings.states_dir is not None:
            classifier = PrecomputedStateClassifier(settings.states_dir, settings.label_tolerance_sec)
        self.classifier = classifier
        self.water_mask = water_mask or WaterMask.from_files(settings.land_path, settings.lakes_path)

    @property
    def resampled_dir(self) -> Path:
        return self.settings.output_dir / "resampled"

    @property
    def labeled_dir(self) -> Path:
        return self.settings.output_dir / "labeled"

    @property
    def events_path(self) -> Path:
        return self.settings.output_dir / "events.csv"

    def _inputs(self, output_dir: Path, resume: bool) -> List[Path]:
        if resume:
            return pending_devices(self.settings.input_dir, output_dir)
        return list_device_files(self.settings.input_dir)

    def _require_classifier(self) -> StateClassifier:
        if self.classifier is None:
            raise ValueError("A state classifier is required; set classification.states_dir in the config.")
        return self.classifier

    def resample(self, resume: bool = True) -> List[Path]:
        """Write one resampled, featurised CSV per device for the state model."""

        written: List[Path] = []
        for path in self._inputs(self.resampled_dir, resume):
            try:
                resampled = resample_points(read_device_csv(path), self.settings, self.interpolator, self.water_mask)
            except InterpolationFailure as exc:
                logging.error("Skipping %s: %s", path.name, exc)
                continue
            out_path = self.resampled_dir / path.name
            save_dataframe(resampled, out_path)
            written.append(out_path)
        logging.info("Resampled %d device files", len(written))
        return written

    def detect(self, resume: bool = True) -> pd.DataFrame:
        """Label previously resampled devices, detect events and write the event table."""

        classifier = self._require_classifier()
        done = {path.stem for path in self.labeled_dir.glob("*.csv")} if resume and self.labeled_dir.is_dir() else set()
        for path in sorted(self.resampled_dir.glob("*.csv")):
            if path.stem in done:
                continue
            resampled = read_processed_csv(path, parse_dates=[TIME, GRID_TIME])
            if resampled.empty:
                events = resampled.assign(**{EVENT: pd.Series(dtype="Int64")})
            else:
                try:
                    labeled = label_points(resampled, classifier)
                except ClassificationError as exc:
                    logging.error("Skipping %s: %s", path.name, exc)
                    continue
                events = detect_events(labeled, self.settings)
            self._save_labeled(events, path.stem)
        return self.collect_events()

    def run(self, resume: bool = True) -> pd.DataFrame:
        """Process every pending device end to end and write the event table."""

        classifier = self._require_classifier()
        for path in self._inputs(self.labeled_dir, resume):
            try:
                result = process_device(
                    read_device_csv(path),
                    self.settings,
                    self.interpolator,
                    classifier,
                    water_mask=self.water_mask,
                )
            except (InterpolationFailure, ClassificationError) as exc:
                logging.error("Skipping %s: %s", path.name, exc)
                continue
            save_dataframe(result.resampled, self.resampled_dir / path.name)
            self._save_labeled(result.labeled, path.stem)
        return self.collect_events()

    def _save_labeled(self, events: pd.DataFrame, stem: str) -> None:
        save_dataframe(events, self.labeled_dir / f"{stem}.csv")
        if self.settings.save_plots and not events.empty:
            from .plots import plot_device_events

            plot_device_events(events, self.settings.output_dir / "figures" / f"{stem}.png")

    def collect_events(self) -> pd.DataFrame:
        """Summarise every labelled device file into the consolidated event table."""

        summaries: List[pd.DataFrame] = []
        efforts: List[pd.DataFrame] = []
        for path in sorted(self.labeled_dir.glob("*.csv")):
            events = read_processed_csv(path, parse_dates=[TIME, GRID_TIME])
            if events.empty:
                continue
            summaries.append(summarize_device(events, self.settings))
            efforts.append(yearly_effort(events))

        non_empty = [summary for summary in summaries if not summary.empty]
        summary = pd.concat(non_empty, ignore_index=True) if non_empty else pd.DataFrame(columns=SUMMARY_COLUMNS)
        effort = pd.concat(efforts, ignore_index=True) if efforts else None
        summary = join_metadata(summary, read_metadata(self.settings.metadata_path), effort)

        save_dataframe(summary, self.events_path)
        logging.info("Event table holds %d events from %d devices", len(summary), len(summaries))
        return summary
