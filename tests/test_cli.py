import logging

import yaml

import cli


def test_parse_args_defaults_to_resumable_run():
    args = cli.parse_args([])
    assert args.command == "run"
    assert args.config == "config/boat_following.yaml"
    assert args.no_resume is False


def test_parse_args_accepts_stage_and_no_resume():
    args = cli.parse_args(["resample", "-c", "other.yaml", "--no-resume"])
    assert args.command == "resample"
    assert args.config == "other.yaml"
    assert args.no_resume is True


def test_pending_lists_devices_without_labelled_output(tmp_path, capsys):
    raw_dir = tmp_path / "raw"
    labeled_dir = tmp_path / "out" / "labeled"
    raw_dir.mkdir()
    labeled_dir.mkdir(parents=True)
    for name in ("101.csv", "102.csv"):
        (raw_dir / name).write_text("device_id,timestamp,longitude,latitude\n")
    (labeled_dir / "101.csv").write_text("device_id\n")

    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.safe_dump(
            {
                "input": {"dir": str(raw_dir)},
                "output": {"dir": str(tmp_path / "out")},
                "logging": {"dir": str(tmp_path / "logs"), "level": "WARNING"},
            }
        )
    )

    try:
        cli.main(str(config_path), "pending")
    finally:
        root = logging.getLogger()
        for handler in list(root.handlers):
            handler.close()
            root.removeHandler(handler)

    assert capsys.readouterr().out.splitlines() == ["102.csv"]
    assert (tmp_path / "logs" / "boat_following.log").exists()
