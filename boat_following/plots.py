"""Optional plotting utilities for debugging.

Provides simple matplotlib helpers to inspect a device's labelled track and
the events detected on it in planar coordinates.
"""

from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import pandas as pd

from .models import DEVICE, EVENT, STATE, TIME, X, Y


def plot_device_events(df: pd.DataFrame, output_path: Path) -> None:
    """Plot the labelled track coloured by state, with accepted events outlined."""

    if df.empty:
        return

    ordered = df.sort_values(TIME)
    fig, ax = plt.subplots(figsize=(7, 7))
    ax.plot(ordered[X], ordered[Y], "-", color="lightgrey", linewidth=0.8, zorder=1)
    for state, group in ordered.groupby(STATE):
        ax.scatter(group[X], group[Y], s=6, label=str(state), zorder=2)

    if EVENT in ordered.columns:
        for event_id, event in ordered[ordered[EVENT].notna()].groupby(EVENT):
            ax.plot(event[X], event[Y], "-", color="black", linewidth=1.2, zorder=3)
            ax.annotate(f"event {int(event_id)}", (event[X].mean(), event[Y].mean()), fontsize=8)

    ax.set_xlabel("X UTM (m)")
    ax.set_ylabel("Y UTM (m)")
    ax.set_title(f"Device {ordered[DEVICE].iloc[0]}")
    ax.legend(loc="best", fontsize=8)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
