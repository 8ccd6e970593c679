"""Withdrawal eligibility and unbonding-time estimation.

Both decisions share one backward scan over the era window. Starting at the
current era and stepping back one era at a time, the scan keeps a running sum
of unbonding that started between the look-back era and the current era and
compares it with the look-back era's threshold:

    lookback_era = current_era - k + 1        for k = 1 .. bonding_duration
    cumulative   = sum(unbonded[lookback_era .. current_era])
    blocked      = cumulative > threshold(lookback_era)

A total exactly at the threshold passes. For a chunk's own start era the
era total is capped at ``previous_unbonded_snapshot + amount``, so requests
created later in the same era are never counted against an earlier one.

Everything here is a pure function of its arguments; nothing is cached and
nothing is mutated.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .config import NetworkParameters
from .era_ledger import EraLedger
from .errors import InvalidAmountError
from .unlock_chunks import UnlockChunk

EraAmount = Callable[[int], float]


class WithdrawalReason(Enum):
    MIN_WAIT_NOT_MET = "min_wait_not_met"
    OUTSIDE_WINDOW = "outside_window"
    THRESHOLD_EXCEEDED = "threshold_exceeded"
    ALL_CHECKS_PASSED = "all_checks_passed"


@dataclass(frozen=True)
class WithdrawalDecision:
    eligible: bool
    reason: WithdrawalReason
    eras_remaining: int | None = None
    blocking_era: int | None = None

    @property
    def message(self) -> str:
        if self.reason is WithdrawalReason.MIN_WAIT_NOT_MET:
            return f"Minimum wait not met ({self.eras_remaining} eras remaining)"
        if self.reason is WithdrawalReason.THRESHOLD_EXCEEDED:
            return f"Threshold exceeded in era {self.blocking_era}"
        if self.reason is WithdrawalReason.OUTSIDE_WINDOW:
            return "Start era is outside the tracked window"
        return "All checks passed"


@dataclass(frozen=True)
class WindowScan:
    """Outcome of one backward scan.

    Attributes:
        eras_passed: Look-back eras that passed before the first failure
        blocking_era: First failing look-back era, None if every era passed
        cumulative_unbond: Running total at the point the scan stopped
    """

    eras_passed: int
    blocking_era: int | None
    cumulative_unbond: float

    @property
    def blocked(self) -> bool:
        return self.blocking_era is not None


def scan_window(
    current_era: int,
    bonding_duration: int,
    unbonded_in: EraAmount,
    threshold_for: EraAmount,
    *,
    floor_era: int | None = None,
) -> WindowScan:
    """Run the backward cumulative scan, stopping early below ``floor_era``.

    The running sum is carried across iterations, so the scan is linear in
    the window length.
    """
    cumulative: float = 0
    passed = 0
    for k in range(1, bonding_duration + 1):
        lookback_era = current_era - k + 1
        if floor_era is not None and lookback_era < floor_era:
            break
        cumulative += unbonded_in(lookback_era)
        if cumulative > threshold_for(lookback_era):
            return WindowScan(
                eras_passed=passed,
                blocking_era=lookback_era,
                cumulative_unbond=cumulative,
            )
        passed += 1
    return WindowScan(eras_passed=passed, blocking_era=None, cumulative_unbond=cumulative)


def _chunk_unbonded_in(chunk: UnlockChunk, ledger: EraLedger) -> EraAmount:
    def unbonded_in(era: int) -> float:
        total = ledger.total_unbond_in(era)
        if era == chunk.start_era:
            return min(total, chunk.previous_unbonded_snapshot + chunk.amount)
        return total

    return unbonded_in


def _duration(params: NetworkParameters, eras_passed: int, start_era: int, current_era: int) -> int:
    return max(
        params.bonding_duration - eras_passed,
        params.min_unbonding_eras,
        start_era + params.min_unbonding_eras - current_era,
    )


def evaluate_withdrawal(
    chunk: UnlockChunk,
    ledger: EraLedger,
    params: NetworkParameters,
    current_era: int | None = None,
) -> WithdrawalDecision:
    """Decide whether ``chunk`` may be withdrawn at ``current_era``.

    Checks, in order: the minimum wait, whether the start era has aged out of
    the window (then eligible, since its history is no longer tracked), and
    the backward threshold scan from the current era down to the start era.
    """
    era = ledger.current_era if current_era is None else current_era
    release_era = chunk.start_era + params.min_unbonding_eras
    if era < release_era:
        return WithdrawalDecision(
            eligible=False,
            reason=WithdrawalReason.MIN_WAIT_NOT_MET,
            eras_remaining=release_era - era,
        )

    if chunk.start_era < params.window_floor(era):
        return WithdrawalDecision(eligible=True, reason=WithdrawalReason.OUTSIDE_WINDOW)

    scan = scan_window(
        era,
        params.bonding_duration,
        _chunk_unbonded_in(chunk, ledger),
        ledger.threshold_for,
        floor_era=chunk.start_era,
    )
    if scan.blocked:
        return WithdrawalDecision(
            eligible=False,
            reason=WithdrawalReason.THRESHOLD_EXCEEDED,
            eras_remaining=max(0, _duration(params, scan.eras_passed, chunk.start_era, era)),
            blocking_era=scan.blocking_era,
        )
    return WithdrawalDecision(eligible=True, reason=WithdrawalReason.ALL_CHECKS_PASSED)


def estimate_chunk_wait(
    chunk: UnlockChunk,
    ledger: EraLedger,
    params: NetworkParameters,
    current_era: int | None = None,
) -> int:
    """Estimated unbonding duration, in eras, for an existing chunk.

    Never below ``min_unbonding_eras``. A scan without failures counts as the
    whole window passing.
    """
    era = ledger.current_era if current_era is None else current_era
    if chunk.start_era < params.window_floor(era):
        return params.min_unbonding_eras

    scan = scan_window(
        era,
        params.bonding_duration,
        _chunk_unbonded_in(chunk, ledger),
        ledger.threshold_for,
        floor_era=chunk.start_era,
    )
    eras_passed = scan.eras_passed if scan.blocked else params.bonding_duration
    return _duration(params, eras_passed, chunk.start_era, era)


def estimate_new_request_wait(
    amount: float,
    ledger: EraLedger,
    params: NetworkParameters,
    current_era: int | None = None,
) -> int:
    """Estimated unbonding duration for a request of ``amount`` made now.

    The candidate amount is added provisionally to the current era's total;
    the ledger itself is left untouched.
    """
    if not math.isfinite(amount) or amount < 0:
        raise InvalidAmountError(f"Amount must be finite and non-negative, got {amount}")
    era = ledger.current_era if current_era is None else current_era

    def unbonded_in(lookback_era: int) -> float:
        total = ledger.total_unbond_in(lookback_era)
        return total + amount if lookback_era == era else total

    scan = scan_window(
        era,
        params.bonding_duration,
        unbonded_in,
        ledger.threshold_for,
        floor_era=era,
    )
    if not scan.blocked:
        return params.min_unbonding_eras
    return _duration(params, scan.eras_passed, era, era)
