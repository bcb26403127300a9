"""
Example: Feeding daily equity ratios through Equity Hysteresis.

This example demonstrates:
1. Configuring the monitor
2. Processing a feed day by day with carried state
3. Reading the under-served roster
4. Explaining a single unit
"""

import random
import shutil
from datetime import datetime, timedelta

# Add parent to path for running without install
import sys
sys.path.insert(0, "..")

from equity_hysteresis.monitor import HysteresisMonitor
from equity_hysteresis.types import HysteresisParams, MonitorConfig, Snapshot


UNITS = {
    # unit: (mean ratio, daily noise)
    "north": (0.72, 0.03),
    "south": (0.47, 0.02),
    "east": (0.58, 0.02),
    "west": (0.61, 0.05),
}


def daily_feed(day: datetime) -> list[Snapshot]:
    """One snapshot per unit for the given day."""
    return [
        Snapshot(unit=unit, ratio=round(random.gauss(mean, noise), 3), ts=day)
        for unit, (mean, noise) in UNITS.items()
    ]


def main():
    random.seed(42)

    config = MonitorConfig(
        params=HysteresisParams(),
        state_path="./demo_artifacts/hysteresis-state.json",
        log_directory="./demo_artifacts/transitions",
        artifact_directory="./demo_artifacts",
    )
    monitor = HysteresisMonitor(config)

    print("=== Processing Feeds ===")
    start = datetime(2024, 5, 1)
    for offset in range(10):
        day = start + timedelta(days=offset)
        result = monitor.process(daily_feed(day))
        for record in result.records:
            reason = f" ({record.event.reason.value})" if record.event.reason else ""
            print(f"  {day:%Y-%m-%d} {record.unit:<6} {record.type.value}{reason} at {record.ratio}")

    print("\n=== Under-served Roster ===")
    roster = monitor.roster()
    print(f"Total: {roster.total}")
    for c in roster.units:
        print(f"  {c.unit:<6} {c.state.value:<8} last_ratio={c.last_ratio}")

    print("\n=== Explanation ===")
    print(monitor.explain("east"))

    print("\n=== Status ===")
    for key, value in monitor.get_status().items():
        print(f"  {key}: {value}")

    # Cleanup
    shutil.rmtree("./demo_artifacts", ignore_errors=True)


if __name__ == "__main__":
    main()
