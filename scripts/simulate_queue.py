#!/usr/bin/env python3
"""Drive an unbonding queue session through a list of actions and print the result.

Actions are applied in order:

    add:AMOUNT              open an unbonding request in the current era
    rebond:ID:AMOUNT        rebond part (or all) of a pending chunk
    withdraw:ID             withdraw a chunk the evaluator clears
    advance:N               move the era window forward by N eras
    stake:TOTAL:RATIO       set the total stake estimate and lowest-third ratio

Example:
    scripts/simulate_queue.py add:10000 advance:1 withdraw:1 advance:1 withdraw:1
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

import pandas as pd
from rich import box
from rich.console import Console
from rich.table import Table

from unbonding import config
from unbonding.errors import UnbondingError
from unbonding.formatting import format_amount, format_eras
from unbonding.session import UnbondingSession

LOGGER = logging.getLogger("simulate_queue")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    env_params = config.load_network_parameters()
    env_stake = config.load_stake_inputs()
    parser = argparse.ArgumentParser(
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("actions", nargs="*", help="Actions to apply, in order.")
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
    parser.add_argument(
        "--eras-per-day",
        type=float,
        default=env_params.eras_per_day,
        help=f"Eras per day, for display (default: {env_params.eras_per_day}).",
    )
    parser.add_argument(
        "--total-stake",
        type=float,
        default=env_stake.total_stake_estimate,
        help=f"Total stake estimate (default: {env_stake.total_stake_estimate:,.0f}).",
    )
    parser.add_argument(
        "--lowest-third-ratio",
        type=float,
        default=env_stake.lowest_third_ratio,
        help=f"Lowest-third share of total stake (default: {env_stake.lowest_third_ratio}).",
    )
    parser.add_argument(
        "--start-era",
        type=int,
        help="Era the session starts at (default: bonding duration - 1).",
    )
    parser.add_argument(
        "--probe-amount",
        type=float,
        default=10_000,
        help="Amount used for the new-request estimate (default: 10000).",
    )
    parser.add_argument(
        "--window-rows",
        type=int,
        default=10,
        help="Number of newest eras to print (default: 10).",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def apply_action(session: UnbondingSession, action: str) -> str:
    """Apply one ``name:arg[:arg]`` action and describe what happened."""
    name, _, rest = action.partition(":")
    args = rest.split(":") if rest else []
    if name == "add" and len(args) == 1:
        chunk_id = session.add_request(float(args[0]))
        return f"created chunk {chunk_id} at era {session.current_era}"
    if name == "rebond" and len(args) == 2:
        result = session.rebond(int(args[0]), float(args[1]))
        state = "removed" if result.removed else f"{format_amount(result.remaining)} left"
        return f"rebonded {format_amount(result.rebonded)} from chunk {result.chunk_id} ({state})"
    if name == "withdraw" and len(args) == 1:
        chunk = session.withdraw(int(args[0]))
        return f"withdrew chunk {chunk.id} ({format_amount(chunk.amount)})"
    if name == "advance" and len(args) == 1:
        evicted = session.advance_era(int(args[0]))
        return f"advanced to era {session.current_era} ({len(evicted)} eras evicted)"
    if name == "stake" and len(args) == 2:
        session.set_stake_inputs(float(args[0]), float(args[1]))
        return f"lowest-third stake now {format_amount(session.stake_inputs.lowest_third_stake)}"
    raise ValueError(f"Unrecognised action: {action}")


def _window_table(session: UnbondingSession, rows: int) -> Table:
    table = Table(title="Era Window", box=box.SIMPLE_HEAVY, header_style="bold blue")
    table.add_column("Era", justify="right")
    table.add_column("Lowest third", justify="right")
    table.add_column("Unbonding", justify="right")
    table.add_column("Threshold", justify="right")
    table.add_column("Utilization", justify="right")
    for row in session.window_frame().head(rows).itertuples():
        utilization = "--" if pd.isna(row.utilization_pct) else f"{row.utilization_pct:.4f}%"
        era = f"[bold]{row.era}[/]" if row.is_current else str(row.era)
        table.add_row(
            era,
            format_amount(row.lowest_third_stake),
            format_amount(row.total_unbond_in_era),
            format_amount(row.threshold),
            utilization,
        )
    return table


def _chunk_table(session: UnbondingSession) -> Table:
    params = session.params
    table = Table(title="Unlock Chunks", box=box.SIMPLE_HEAVY, header_style="bold blue")
    table.add_column("Id", justify="right")
    table.add_column("Amount", justify="right")
    table.add_column("Start era", justify="right")
    table.add_column("Status")
    table.add_column("Decision")
    table.add_column("Estimate")
    for row in session.chunk_frame().itertuples():
        style = "green" if row.eligible else "yellow"
        table.add_row(
            str(row.id),
            format_amount(row.amount),
            str(row.start_era),
            row.status,
            f"[{style}]{row.reason}[/]",
            format_eras(int(row.estimate_eras), params),
        )
    return table


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    console = Console()
    try:
        params = config.NetworkParameters(
            bonding_duration=args.bonding_duration,
            min_unbonding_eras=args.min_unbonding_eras,
            min_slashable_share=args.min_slashable_share,
            eras_per_day=args.eras_per_day,
        )
        stake = config.StakeInputs(
            total_stake_estimate=args.total_stake,
            lowest_third_ratio=args.lowest_third_ratio,
        )
    except ValueError as exc:
        console.print(f"[red]Invalid configuration: {exc}[/]")
        return 2

    session = UnbondingSession(params, stake, start_era=args.start_era)
    failures = 0
    for action in args.actions:
        try:
            console.print(f"[dim]{action}[/] -> {apply_action(session, action)}")
        except (UnbondingError, ValueError) as exc:
            failures += 1
            LOGGER.warning("Action %s failed: %s", action, exc)
            console.print(f"[red]{action} failed: {exc}[/]")

    capacity = session.current_capacity()
    utilization = "--" if capacity.utilization_pct is None else f"{capacity.utilization_pct:.4f}%"
    console.print(
        f"Era {capacity.era} (advanced {session.eras_advanced}): "
        f"{format_amount(capacity.total_unbond)} of {format_amount(capacity.threshold)} "
        f"unlock capacity used ({utilization})"
    )
    console.print(_window_table(session, args.window_rows))
    console.print(_chunk_table(session))
    probe = session.estimate_new(args.probe_amount)
    console.print(
        f"A new request of {format_amount(args.probe_amount)} would take "
        f"{format_eras(probe, params)}"
    )
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
