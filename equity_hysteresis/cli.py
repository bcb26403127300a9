"""
Command-line interface for Equity Hysteresis.

Process snapshot feeds, print the under-served roster, and run the
scenario, boundary, metrics and runtime reports.
"""

import argparse
import json
import logging
import sys

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from .config import create_default_config_file, load_config, params_fingerprint, verify_fingerprint
from .monitor import HysteresisMonitor
from .simulation import uniform_sequence_factory
from .types import ConfigurationError, Snapshot, TransitionRecord

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_INPUT_ERROR = 2
EXIT_FINGERPRINT_MISMATCH = 5

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="equity-hysteresis",
        description="Equity Hysteresis - Under-served unit classification with hysteresis",
    )
    parser.add_argument("--config", "-c", help="Path to JSON configuration file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at INFO level")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init command
    init_parser = subparsers.add_parser("init", help="Create default configuration file")
    init_parser.add_argument("--path", help="Where to write the file")

    # process command
    process_parser = subparsers.add_parser("process", help="Apply a snapshot feed")
    process_parser.add_argument("feed", help="JSON file with a list of {unit, ratio, ts}")
    process_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # roster command
    roster_parser = subparsers.add_parser("roster", help="Show under-served units")
    roster_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # explain command
    explain_parser = subparsers.add_parser("explain", help="Explain a unit's carried state")
    explain_parser.add_argument("unit", help="Unit identifier")

    # simulate command
    simulate_parser = subparsers.add_parser("simulate", help="Run the scenario table")
    simulate_parser.add_argument("--json", action="store_true", help="Output as JSON")
    simulate_parser.add_argument("--output", "-o", help="Also write the JSON report here")

    # boundary command
    boundary_parser = subparsers.add_parser("boundary", help="Run the boundary checks")
    boundary_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # metrics command
    metrics_parser = subparsers.add_parser("metrics", help="Aggregate transition metrics")
    metrics_parser.add_argument("--json", action="store_true", help="Output as JSON")
    metrics_parser.add_argument(
        "--no-boundary", action="store_true", help="Skip the boundary-check summary"
    )
    metrics_parser.add_argument(
        "--from-log", action="store_true", help="Count transitions from the persisted log"
    )

    # runtime command
    runtime_parser = subparsers.add_parser("runtime", help="Run a single sequence")
    runtime_parser.add_argument("--sequence", help="Comma-separated ratios to run")
    runtime_parser.add_argument("--length", type=int, default=40, help="Generated sequence length")
    runtime_parser.add_argument("--seed", type=int, help="Seed for the generated sequence")
    runtime_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # fingerprint command
    fingerprint_parser = subparsers.add_parser("fingerprint", help="Print or verify the parameter hash")
    fingerprint_parser.add_argument("--expect", help="Expected SHA256; exit 5 on mismatch")

    # status command
    subparsers.add_parser("status", help="Show system status")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format=LOG_FORMAT,
    )

    if not args.command:
        parser.print_help()
        return EXIT_FAILURES

    if args.command == "init":
        create_default_config_file(args.path or args.config or "./hysteresis_config.json")
        return EXIT_OK

    # Load monitor
    try:
        monitor = HysteresisMonitor(load_config(args.config))
    except ConfigurationError as e:
        print(f"Error loading configuration: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    try:
        return _dispatch(monitor, args)
    except (ValueError, KeyError, TypeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INPUT_ERROR


def _dispatch(monitor: HysteresisMonitor, args: argparse.Namespace) -> int:
    if args.command == "process":
        snapshots = _load_feed(Path(args.feed))
        result = monitor.process(snapshots)

        if args.json:
            _print_json({
                "processed": result.processed,
                "units": len(result.states),
                "transitions": [r.to_dict() for r in result.records],
            })
        else:
            print(f"Processed {result.processed} snapshots; units={len(result.states)}")
            for record in result.records:
                reason = f" ({record.event.reason.value})" if record.event.reason else ""
                print(f"  {record.unit} @ {_fmt_ts(record)} | {record.type.value}{reason} | ratio={record.ratio}")

    elif args.command == "roster":
        roster = monitor.roster()
        if args.json:
            _print_json(roster.to_dict())
        else:
            print(f"Under-served units: {roster.total}")
            for c in roster.units:
                print(f"  {c.unit} | {c.state.value} | last_ratio={c.last_ratio}")

    elif args.command == "explain":
        print(monitor.explain(args.unit))

    elif args.command == "simulate":
        report = monitor.simulate()
        document = report.to_dict()
        if args.output:
            _write_json(Path(args.output), document)

        if args.json:
            _print_json(document)
        else:
            summary = report.summary
            for r in report.results:
                status = "PASS" if r.passed else "FAIL"
                print(f"  {r.scenario.id} {status} | {r.final_state.value} | {r.scenario.description}")
                for mismatch in r.mismatches:
                    print(f"      {mismatch}")
            print(f"Scenarios: {summary.scenarios_pass}/{summary.scenarios_total} passed")
            print(f"Churn ratio: {summary.churn_ratio}")
            print(f"Detection delay (avg snapshots): {summary.detection_delay_avg_snapshots}")
            print(f"Illegal transitions: {summary.illegal_transitions_total}")

        if not report.summary.all_passed or report.summary.illegal_transitions_total:
            return EXIT_FAILURES

    elif args.command == "boundary":
        boundary = monitor.boundary_checks()
        if args.json:
            _print_json(boundary.to_dict())
        else:
            for r in boundary.results:
                detail = f" - {r.error}" if r.error else ""
                print(f"  {r.check_id} {r.status.value} | {r.description}{detail}")
            print(
                f"Boundary checks: {boundary.pass_count} pass, {boundary.fail_count} fail, "
                f"{boundary.not_applicable_count} not applicable"
            )

        if not boundary.passed:
            return EXIT_FAILURES

    elif args.command == "metrics":
        if args.from_log:
            counts = monitor.logged_transition_counts()
            if args.json:
                _print_json({"transitions": counts})
            else:
                for name, count in counts.items():
                    print(f"  {name}: {count}")
        else:
            metrics = monitor.metrics(include_boundary=not args.no_boundary)
            if args.json:
                _print_json(metrics.to_dict())
            else:
                print(f"Sequences: {metrics.scenario_count}")
                print(f"Transitions: {metrics.transitions}")
                print(f"Final states: {metrics.final_state_distribution}")
                print(f"Time in state: {metrics.time_in_state_snapshots}")
                if metrics.unit_tests is not None:
                    print(f"Boundary checks: {metrics.unit_tests}")

    elif args.command == "runtime":
        sequence = _parse_sequence(args.sequence) if args.sequence else None
        factory = uniform_sequence_factory(length=args.length, seed=args.seed)
        runtime = monitor.runtime(sequence=sequence, sequence_factory=factory)
        if args.json:
            _print_json(runtime.to_dict())
        else:
            print(f"Snapshots: {runtime.total_snapshots}")
            print(f"Final state: {runtime.final_state.value}")
            print(f"Enters: {runtime.enters}  Reenters: {runtime.reenters}  Exits: {runtime.exits}")
            for state, share in runtime.state_distribution.items():
                print(f"  {state:<10} {runtime.state_durations[state]:>4}  ({share:.1%})")

    elif args.command == "fingerprint":
        digest = params_fingerprint(monitor.params)
        print(digest)
        if args.expect and not verify_fingerprint(monitor.params, args.expect):
            print(f"Fingerprint mismatch: expected {args.expect}", file=sys.stderr)
            return EXIT_FINGERPRINT_MISMATCH

    elif args.command == "status":
        _print_json(monitor.get_status())

    return EXIT_OK


def _load_feed(path: Path) -> list[Snapshot]:
    """
    Read a snapshot feed.

    Raises:
        ValueError: If the file is missing or not a JSON list of records
    """
    if not path.exists():
        raise ValueError(f"feed file not found: {path}")
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"invalid JSON in feed {path}: {e}") from e

    if not isinstance(data, list):
        raise ValueError(f"feed {path} must be a JSON list of snapshots")
    return [Snapshot.from_dict(item) for item in data]


def _parse_sequence(text: str) -> list[float]:
    return [float(part) for part in text.split(",") if part.strip()]


def _fmt_ts(record: TransitionRecord) -> str:
    return record.ts.isoformat() if record.ts else "-"


def _print_json(document: dict[str, Any]) -> None:
    print(json.dumps(document, indent=2))


def _write_json(path: Path, document: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2)


if __name__ == "__main__":
    sys.exit(main())
