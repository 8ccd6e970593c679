"""Replay of historical era statistics through the unbonding time estimate.

Input is a series of ``(era, total_stake, unbonded_amount)`` records, one per
era. For every record with at least ``bonding_duration`` earlier records, the
backward window scan runs over the ``bonding_duration`` records ending at it:
the cumulative unbonded amount from each look-back record up to the current
one is compared with the look-back record's threshold
(``(1 - min_slashable_share) * lowest_third_ratio * total_stake``). Records
with too little history get no estimate.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from . import queue_constants as const
from .config import NetworkParameters
from .withdrawal import scan_window

LOGGER = logging.getLogger(__name__)

REQUIRED_COLUMNS = ("era", "total_stake", "unbonded_amount")


def _require_columns(df: pd.DataFrame) -> None:
    missing = [column for column in REQUIRED_COLUMNS if column not in df.columns]
    if missing:
        raise ValueError(f"History data missing required column(s): {', '.join(missing)}")


def clean_history(df: pd.DataFrame) -> pd.DataFrame:
    """Coerce types, drop unusable rows and order the series by era.

    Rows with missing or negative values, or a fractional era, are dropped
    (with a warning). When an
    era appears more than once the last row wins.
    """
    _require_columns(df)
    result = df.copy()
    for column in REQUIRED_COLUMNS:
        result[column] = pd.to_numeric(result[column], errors="coerce")

    values = result[list(REQUIRED_COLUMNS)]
    invalid = (
        values.isna().any(axis=1)
        | (values < 0).any(axis=1)
        | (result["era"] % 1 != 0)
    )
    if invalid.any():
        LOGGER.warning(
            "Dropping %s history rows with missing, negative or non-integral values",
            int(invalid.sum()),
        )
        result = result[~invalid].copy()

    before = len(result)
    result = result.drop_duplicates(subset="era", keep="last").copy()
    if len(result) < before:
        LOGGER.warning("Dropped %s duplicate era rows (kept the last)", before - len(result))

    result["era"] = result["era"].astype(int)
    return result.sort_values("era").reset_index(drop=True)


def load_history_csv(path: Path) -> pd.DataFrame:
    """Read and clean an ``era,total_stake,unbonded_amount`` CSV file."""
    df = pd.read_csv(path)
    LOGGER.info("Loaded %s history rows from %s", len(df), path)
    return clean_history(df)


def estimate_history(
    df: pd.DataFrame,
    params: NetworkParameters,
    lowest_third_ratio: float = const.DEFAULT_LOWEST_THIRD_RATIO,
) -> pd.DataFrame:
    """Attach a duration estimate to each record with enough history.

    Returns:
        Copy of the cleaned series with columns added:
        - lowest_third_stake: ratio * total_stake
        - threshold: unlockable share of the lowest-third stake
        - eras_passed: look-back records that passed before the first failure
        - blocking_era: era of the first failing look-back record
        - estimated_eras: duration estimate (<NA> without enough history)
    """
    if not const.MIN_LOWEST_THIRD_RATIO <= lowest_third_ratio <= const.MAX_LOWEST_THIRD_RATIO:
        raise ValueError(
            f"lowest_third_ratio must be in [{const.MIN_LOWEST_THIRD_RATIO}, "
            f"{const.MAX_LOWEST_THIRD_RATIO}], got {lowest_third_ratio}"
        )
    result = clean_history(df)
    result["lowest_third_stake"] = result["total_stake"] * lowest_third_ratio
    result["threshold"] = result["lowest_third_stake"] * params.max_unlock_fraction

    eras = result["era"].tolist()
    unbonded = result["unbonded_amount"].tolist()
    thresholds = result["threshold"].tolist()
    window = params.bonding_duration

    eras_passed: list[int | None] = []
    blocking_eras: list[int | None] = []
    estimates: list[int | None] = []
    for position in range(len(result)):
        if position < window:
            eras_passed.append(None)
            blocking_eras.append(None)
            estimates.append(None)
            continue
        scan = scan_window(
            position,
            window,
            lambda pos: unbonded[pos],
            lambda pos: thresholds[pos],
        )
        passed = scan.eras_passed if scan.blocked else window
        eras_passed.append(scan.eras_passed)
        blocking_eras.append(eras[scan.blocking_era] if scan.blocked else None)
        estimates.append(max(window - passed, params.min_unbonding_eras))

    result["eras_passed"] = pd.array(eras_passed, dtype="Int64")
    result["blocking_era"] = pd.array(blocking_eras, dtype="Int64")
    result["estimated_eras"] = pd.array(estimates, dtype="Int64")
    LOGGER.info(
        "Estimated %s of %s records (%s lacked %s eras of history)",
        int(result["estimated_eras"].notna().sum()),
        len(result),
        min(len(result), window),
        window,
    )
    return result


def summarize_estimates(df: pd.DataFrame, params: NetworkParameters) -> dict[str, float | None]:
    """Summary statistics over the ``estimated_eras`` column."""
    if "estimated_eras" not in df.columns:
        raise ValueError("DataFrame missing required column: estimated_eras")
    estimates = df["estimated_eras"].dropna().astype(float)
    if estimates.empty:
        return {
            "records": float(len(df)),
            "estimated": 0.0,
            "mean_eras": None,
            "median_eras": None,
            "max_eras": None,
            "share_at_minimum": None,
        }
    return {
        "records": float(len(df)),
        "estimated": float(len(estimates)),
        "mean_eras": float(estimates.mean()),
        "median_eras": float(estimates.median()),
        "max_eras": float(estimates.max()),
        "share_at_minimum": float((estimates == params.min_unbonding_eras).mean()),
    }


def write_frame(df: pd.DataFrame, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
