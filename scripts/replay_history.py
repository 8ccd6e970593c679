#!/usr/bin/env python3
"""Replay historical era statistics and estimate unbonding durations per era."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from rich import box
from rich.console import Console
from rich.table import Table

from unbonding import config
from unbonding import history_replay

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%H:%M:%S",
)


def parse_args() -> argparse.Namespace:
    env_params = config.load_network_parameters()
    env_stake = config.load_stake_inputs()
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--input",
        type=Path,
        required=True,
        help="CSV with era,total_stake,unbonded_amount columns.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=config.OUT_DIR / "unbonding_estimates.csv",
        help="Where to write the per-era estimates (default: out/unbonding_estimates.csv).",
    )
    parser.add_argument(
        "--lowest-third-ratio",
        type=float,
        default=env_stake.lowest_third_ratio,
        help=f"Lowest-third share of total stake (default: {env_stake.lowest_third_ratio}).",
    )
    parser.add_argument(
        "--bonding-duration",
        type=int,
        default=env_params.bonding_duration,
        help=f"Window length in eras (default: {env_params.bonding_duration}).",
    )
    parser.add_argument(
        "--min-unbonding-eras",
        type=int,
        default=env_params.min_unbonding_eras,
        help=f"Minimum wait in eras (default: {env_params.min_unbonding_eras}).",
    )
    parser.add_argument(
        "--min-slashable-share",
        type=float,
        default=env_params.min_slashable_share,
        help=f"Share of lowest-third stake kept slashable (default: {env_params.min_slashable_share}).",
    )
    return parser.parse_args()


def _summary_table(summary: dict[str, float | None]) -> Table:
    table = Table(title="Unbonding Estimate Summary", box=box.SIMPLE_HEAVY, header_style="bold blue")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    for key, value in summary.items():
        table.add_row(key, "--" if value is None else f"{value:,.2f}")
    return table


def main() -> None:
    args = parse_args()
    params = config.NetworkParameters(
        bonding_duration=args.bonding_duration,
        min_unbonding_eras=args.min_unbonding_eras,
        min_slashable_share=args.min_slashable_share,
    )
    history = history_replay.load_history_csv(args.input)
    estimates = history_replay.estimate_history(history, params, args.lowest_third_ratio)
    history_replay.write_frame(estimates, args.output)

    console = Console()
    console.print(_summary_table(history_replay.summarize_estimates(estimates, params)))
    console.print(f"[replay] Wrote {len(estimates)} rows to {args.output}")


if __name__ == "__main__":
    main()
