"""CLI entry point for the boat-following event pipeline.

Orchestrates resampling, state labelling, event detection and the
consolidated event table, reading every threshold and location from the YAML
config.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Dict, List, Optional

from boat_following.config import load_config, settings_from_config
from boat_following.io import pending_devices
from boat_following.pipeline import BoatFollowingPipeline

COMMANDS = ("resample", "detect", "run", "pending")


def configure_logging(log_cfg: Dict[str, object]) -> None:
    """Configure root logger with both file and console handlers."""

    log_dir = Path(log_cfg.get("dir", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    filename = log_cfg.get("filename", "boat_following.log")
    log_path = log_dir / filename
    level_name = str(log_cfg.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s - %(levelname)s - %(message)s"
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(fmt))
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(logging.Formatter(fmt))

    root.addHandler(file_handler)
    root.addHandler(stream_handler)
    root.info("Logging to %s (level=%s)", log_path, level_name)


def main(config_path: str = "config/boat_following.yaml", command: str = "run", resume: bool = True) -> None:
    cfg = load_config(config_path)
    configure_logging(cfg.get("logging", {}) or {})
    settings = settings_from_config(cfg)
    logging.info("Command: %s (resume=%s)", command, resume)

    pipeline = BoatFollowingPipeline(settings)
    if command == "pending":
        for path in pending_devices(settings.input_dir, pipeline.labeled_dir):
            print(path.name)
        return
    if command == "resample":
        pipeline.resample(resume=resume)
        return
    if command == "detect":
        pipeline.detect(resume=resume)
        return
    pipeline.run(resume=resume)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seabird boat-following event pipeline.")
    parser.add_argument(
        "command",
        nargs="?",
        default="run",
        choices=COMMANDS,
        help="Stage to run (default: run).",
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config/boat_following.yaml",
        help="Path to YAML config file.",
    )
    parser.add_argument(
        "--no-resume",
        action="store_true",
        help="Reprocess every device instead of only those without outputs.",
    )
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    main(args.config, args.command, resume=not args.no_resume)
