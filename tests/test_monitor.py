"""
Tests for the state store and the HysteresisMonitor.
"""

import json

from datetime import datetime, timedelta

import pytest

from equity_hysteresis.logging import TransitionLogger
from equity_hysteresis.monitor import HysteresisMonitor
from equity_hysteresis.state_store import StateStore
from equity_hysteresis.types import (
    EngineState,
    HysteresisParams,
    MonitorConfig,
    Snapshot,
    UnitClassification,
    UnitState,
)


T0 = datetime(2024, 5, 1, 12, 0, 0)


def make_config(tmp_path, params=None):
    """Helper to create a config rooted in tmp_path."""
    return MonitorConfig(
        params=params or HysteresisParams(),
        state_path=str(tmp_path / "state.json"),
        log_directory=str(tmp_path / "transitions"),
        artifact_directory=str(tmp_path),
    )


def make_feed(unit, ratios, start=T0):
    return [
        Snapshot(unit=unit, ratio=r, ts=start + timedelta(hours=i))
        for i, r in enumerate(ratios)
    ]


class TestStateStore:
    """Tests for persisted per-unit state."""

    def test_missing_file_is_empty(self, tmp_path):
        assert StateStore(str(tmp_path / "state.json")).load() == {}

    def test_save_and_load(self, tmp_path):
        store = StateStore(str(tmp_path / "nested" / "state.json"))
        states = {
            "U-1": UnitClassification(
                unit="U-1",
                engine_state=EngineState(state=UnitState.CLEARED, cooldown_left=2),
                last_ratio=0.66,
                last_ts=T0,
            ),
            "U-2": UnitClassification(unit="U-2"),
        }

        store.save(states)

        assert store.load() == states

    def test_document_layout(self, tmp_path):
        store = StateStore(str(tmp_path / "state.json"))
        store.save({
            "U-1": UnitClassification(
                unit="U-1",
                engine_state=EngineState(state=UnitState.CANDIDATE, consecutive=2),
                last_ratio=0.58,
                last_ts=T0,
            ),
        })

        data = json.loads(store.path.read_text(encoding="utf-8"))

        assert data == {
            "U-1": {
                "state": "CANDIDATE",
                "consecutive": 2,
                "cooldown_left": 0,
                "stall_consec": 0,
                "last_ratio": 0.58,
                "last_ts": T0.isoformat(),
            }
        }

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{oops", encoding="utf-8")

        with pytest.raises(ValueError):
            StateStore(str(path)).load()

    @pytest.mark.parametrize("entry", [["ACTIVE"], "ACTIVE", 3, None])
    def test_unit_entry_not_an_object(self, tmp_path, entry):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"A": entry}), encoding="utf-8")

        with pytest.raises(ValueError, match="must be a JSON object"):
            StateStore(str(path)).load()

    def test_malformed_unit_state(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"A": {"state": "ACTIVE", "last_ts": 1714521600}}), encoding="utf-8")

        with pytest.raises(ValueError, match="malformed unit state"):
            StateStore(str(path)).load()

    def test_clear(self, tmp_path):
        store = StateStore(str(tmp_path / "state.json"))
        store.save({})

        assert store.clear()
        assert not store.clear()


class TestHysteresisMonitor:
    """Tests for the orchestrator."""

    def test_process_persists_state_across_feeds(self, tmp_path):
        monitor = HysteresisMonitor(make_config(tmp_path))

        first = monitor.process(make_feed("U-1", [0.58, 0.59]))
        assert first.states["U-1"].state == UnitState.CANDIDATE

        second = monitor.process(make_feed("U-1", [0.59], start=T0 + timedelta(days=1)))
        assert second.states["U-1"].state == UnitState.ACTIVE
        assert StateStore(str(tmp_path / "state.json")).load()["U-1"].state == UnitState.ACTIVE

    def test_process_logs_transitions(self, tmp_path):
        monitor = HysteresisMonitor(make_config(tmp_path))

        monitor.process(make_feed("A", [0.49, 0.66]) + make_feed("B", [0.45]))

        counts = monitor.logged_transition_counts()
        assert counts["ENTER"] == 2
        assert counts["EXIT"] == 1
        assert monitor.logged_transition_counts(unit="B")["ENTER"] == 1

    def test_failed_log_write_keeps_carried_state(self, tmp_path, monkeypatch):
        monitor = HysteresisMonitor(make_config(tmp_path))
        monitor.process(make_feed("A", [0.58]))

        def fail(self, records):
            raise OSError("disk full")

        monkeypatch.setattr(TransitionLogger, "log_many", fail)
        with pytest.raises(OSError):
            monitor.process(make_feed("A", [0.49], start=T0 + timedelta(days=1)))

        carried = StateStore(str(tmp_path / "state.json")).load()["A"]
        assert carried.state == UnitState.CANDIDATE
        assert carried.last_ts == T0

    def test_roster(self, tmp_path):
        monitor = HysteresisMonitor(make_config(tmp_path))
        monitor.process(
            make_feed("B", [0.49])
            + make_feed("A", [0.48, 0.58, 0.58, 0.58, 0.58])
            + make_feed("C", [0.70])
        )

        roster = monitor.roster().to_dict()

        assert roster["total"] == 2
        assert [u["unit"] for u in roster["units"]] == ["A", "B"]
        assert roster["units"][0]["state"] == "STALLED"

    def test_explain(self, tmp_path):
        monitor = HysteresisMonitor(make_config(tmp_path))
        monitor.process(make_feed("U-9", [0.49]))

        assert "U-9" in monitor.explain("U-9")
        with pytest.raises(KeyError):
            monitor.explain("U-404")

    def test_reports(self, tmp_path):
        monitor = HysteresisMonitor(make_config(tmp_path))

        assert monitor.simulate().summary.all_passed
        assert monitor.boundary_checks().passed
        metrics = monitor.metrics()
        assert metrics.unit_tests["fail"] == 0
        assert monitor.metrics(include_boundary=False).unit_tests is None
        assert monitor.runtime(sequence=[0.49, 0.70]).final_state == UnitState.CLEARED

    def test_status(self, tmp_path):
        monitor = HysteresisMonitor(make_config(tmp_path))
        monitor.process(make_feed("A", [0.49]) + make_feed("B", [0.55]))

        status = monitor.get_status()

        assert status["params_version"] == "v1"
        assert status["units_tracked"] == 2
        assert status["under_served"] == 1
        assert status["units_by_state"]["CANDIDATE"] == 1
        assert status["logged_transitions"] == 1
