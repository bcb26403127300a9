"""
Tests for the command-line interface.
"""

import json

import pytest

from equity_hysteresis.cli import (
    EXIT_FAILURES,
    EXIT_FINGERPRINT_MISMATCH,
    EXIT_INPUT_ERROR,
    EXIT_OK,
    main,
)
from equity_hysteresis.config import params_fingerprint
from equity_hysteresis.types import HysteresisParams, MonitorConfig


@pytest.fixture
def config_path(tmp_path):
    """Write a config whose artifacts live under tmp_path."""
    config = MonitorConfig(
        state_path=str(tmp_path / "state.json"),
        log_directory=str(tmp_path / "transitions"),
        artifact_directory=str(tmp_path),
    )
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config.to_dict()), encoding="utf-8")
    return str(path)


def write_feed(tmp_path, records):
    path = tmp_path / "feed.json"
    path.write_text(json.dumps(records), encoding="utf-8")
    return str(path)


class TestCommands:
    """Tests for the subcommands."""

    def test_no_command(self, capsys):
        assert main([]) == EXIT_FAILURES

    def test_init(self, tmp_path):
        target = tmp_path / "hysteresis_config.json"

        assert main(["init", "--path", str(target)]) == EXIT_OK
        assert json.loads(target.read_text(encoding="utf-8"))["parameters"]["T_exit"] == 0.65

    def test_process_then_roster(self, tmp_path, config_path, capsys):
        feed = write_feed(tmp_path, [
            {"unit": "A", "ratio": 0.49, "ts": "2024-05-01T00:00:00Z"},
            {"unit": "B", "ratio": 0.70, "ts": "2024-05-01T00:00:00Z"},
        ])

        assert main(["--config", config_path, "process", feed, "--json"]) == EXIT_OK
        processed = json.loads(capsys.readouterr().out)
        assert processed["processed"] == 2
        assert processed["transitions"][0]["type"] == "ENTER"

        assert main(["--config", config_path, "roster", "--json"]) == EXIT_OK
        roster = json.loads(capsys.readouterr().out)
        assert roster["total"] == 1
        assert roster["units"][0]["unit"] == "A"

    def test_simulate(self, tmp_path, config_path, capsys):
        output = tmp_path / "reports" / "scenarios.json"

        assert main(["--config", config_path, "simulate", "--output", str(output)]) == EXIT_OK
        assert "Scenarios: 15/15 passed" in capsys.readouterr().out
        assert json.loads(output.read_text(encoding="utf-8"))["summary"]["scenarios_pass"] == 15

    def test_simulate_failures_exit_nonzero(self, tmp_path, capsys):
        config = MonitorConfig(
            params=HysteresisParams(consecutive_required_standard=5),
            state_path=str(tmp_path / "state.json"),
            log_directory=str(tmp_path / "transitions"),
        )
        path = tmp_path / "strict.json"
        path.write_text(json.dumps(config.to_dict()), encoding="utf-8")

        assert main(["--config", str(path), "simulate"]) == EXIT_FAILURES

    def test_boundary(self, config_path, capsys):
        assert main(["--config", config_path, "boundary", "--json"]) == EXIT_OK
        assert json.loads(capsys.readouterr().out)["summary"]["fail"] == 0

    def test_metrics(self, config_path, capsys):
        assert main(["--config", config_path, "metrics", "--json"]) == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["transitions"]["ENTER"] == 11
        assert data["unit_tests"]["fail"] == 0

    def test_runtime(self, config_path, capsys):
        args = ["--config", config_path, "runtime", "--sequence", "0.49,0.70", "--json"]

        assert main(args) == EXIT_OK
        assert json.loads(capsys.readouterr().out)["final_state"] == "CLEARED"

    def test_fingerprint(self, config_path, capsys):
        digest = params_fingerprint(HysteresisParams())

        assert main(["--config", config_path, "fingerprint", "--expect", digest]) == EXIT_OK
        assert capsys.readouterr().out.strip() == digest

        assert main(["--config", config_path, "fingerprint", "--expect", "0" * 64]) == EXIT_FINGERPRINT_MISMATCH

    def test_status(self, config_path, capsys):
        assert main(["--config", config_path, "status"]) == EXIT_OK
        assert json.loads(capsys.readouterr().out)["units_tracked"] == 0


class TestErrors:
    """Tests for error exit codes."""

    def test_missing_config(self, tmp_path, capsys):
        assert main(["--config", str(tmp_path / "missing.json"), "status"]) == EXIT_INPUT_ERROR
        assert "Error loading configuration" in capsys.readouterr().err

    def test_invalid_params(self, tmp_path, capsys):
        document = HysteresisParams().to_dict()
        document["T_exit"] = 0.1
        path = tmp_path / "bad.json"
        path.write_text(json.dumps(document), encoding="utf-8")

        assert main(["--config", str(path), "status"]) == EXIT_INPUT_ERROR

    def test_missing_feed(self, tmp_path, config_path, capsys):
        assert main(["--config", config_path, "process", str(tmp_path / "none.json")]) == EXIT_INPUT_ERROR

    def test_malformed_feed_record(self, tmp_path, config_path, capsys):
        feed = write_feed(tmp_path, [{"unit": "A", "ratio": 0.49}])

        assert main(["--config", config_path, "process", feed]) == EXIT_INPUT_ERROR

    def test_non_finite_ratio(self, tmp_path, config_path, capsys):
        feed = tmp_path / "feed.json"
        feed.write_text('[{"unit": "A", "ratio": NaN, "ts": "2024-05-01T00:00:00"}]', encoding="utf-8")

        assert main(["--config", config_path, "process", str(feed)]) == EXIT_INPUT_ERROR

    def test_explain_unknown_unit(self, config_path, capsys):
        assert main(["--config", config_path, "explain", "ghost"]) == EXIT_INPUT_ERROR

    def test_epoch_timestamp_in_feed(self, tmp_path, config_path, capsys):
        feed = write_feed(tmp_path, [{"unit": "A", "ratio": 0.40, "ts": 1714521600}])

        assert main(["--config", config_path, "process", feed]) == EXIT_INPUT_ERROR
        assert not (tmp_path / "state.json").exists()

    def test_state_entry_not_an_object(self, tmp_path, config_path, capsys):
        (tmp_path / "state.json").write_text(json.dumps({"A": ["ACTIVE"]}), encoding="utf-8")

        assert main(["--config", config_path, "roster"]) == EXIT_INPUT_ERROR
