from __future__ import annotations

import pytest

from unbonding import withdrawal
from unbonding.config import NetworkParameters
from unbonding.era_ledger import EraLedger, advance_window
from unbonding.errors import InvalidAmountError
from unbonding.processors import create_request
from unbonding.unlock_chunks import ChunkStore
from unbonding.withdrawal import WithdrawalReason

PARAMS = NetworkParameters(bonding_duration=28, min_unbonding_eras=2, min_slashable_share=0.5)
REFERENCE_LOWEST_THIRD = 229_600_000  # threshold 114.8M
ROUND_LOWEST_THIRD = 200_000_000  # threshold 100M


def _ledger(lowest_third: float = REFERENCE_LOWEST_THIRD) -> EraLedger:
    return EraLedger(PARAMS, current_era=27, default_lowest_third=lowest_third)


def _advance(ledger: EraLedger, eras: int) -> None:
    advance_window(ledger, eras, default_lowest_third=ledger.lowest_third_in(ledger.current_era))


# ---------------------------------------------------------------------------
# scan_window
# ---------------------------------------------------------------------------


def test_scan_window_sums_backwards_until_first_failure():
    unbonded = {4: 1, 3: 1, 2: 5, 1: 100}
    thresholds = {4: 10, 3: 10, 2: 6, 1: 1_000}

    scan = withdrawal.scan_window(4, 4, unbonded.__getitem__, thresholds.__getitem__)

    # Cumulative totals: 1, 2, 7 (> 6 at era 2)
    assert scan.blocked
    assert scan.blocking_era == 2
    assert scan.eras_passed == 2
    assert scan.cumulative_unbond == 7


def test_scan_window_stops_at_floor_era():
    unbonded = {4: 1, 3: 1, 2: 500}
    thresholds = {4: 10, 3: 10, 2: 6}

    scan = withdrawal.scan_window(
        4, 3, unbonded.__getitem__, thresholds.__getitem__, floor_era=3
    )

    assert not scan.blocked
    assert scan.eras_passed == 2
    assert scan.cumulative_unbond == 2


def test_scan_window_limits_lookback_to_bonding_duration():
    unbonded = {5: 0, 4: 0, 3: 0, 2: 0}
    thresholds = {5: 0, 4: 0, 3: 0}

    scan = withdrawal.scan_window(5, 3, unbonded.__getitem__, thresholds.__getitem__)

    assert scan.eras_passed == 3
    assert not scan.blocked


# ---------------------------------------------------------------------------
# evaluate_withdrawal
# ---------------------------------------------------------------------------


def test_reference_scenario_single_small_chunk():
    ledger = _ledger()
    store = ChunkStore()
    chunk = create_request(ledger, store, 10_000)
    assert chunk.start_era == 27

    _advance(ledger, 1)
    at_28 = withdrawal.evaluate_withdrawal(chunk, ledger, PARAMS, current_era=28)
    assert at_28.eligible is False
    assert at_28.reason is WithdrawalReason.MIN_WAIT_NOT_MET
    assert at_28.eras_remaining == 1

    _advance(ledger, 1)
    at_29 = withdrawal.evaluate_withdrawal(chunk, ledger, PARAMS, current_era=29)
    assert at_29.eligible is True
    assert at_29.reason is WithdrawalReason.ALL_CHECKS_PASSED
    assert at_29.eras_remaining is None


def test_min_wait_reports_remaining_eras_at_creation():
    ledger = _ledger()
    chunk = create_request(ledger, ChunkStore(), 10_000)

    decision = withdrawal.evaluate_withdrawal(chunk, ledger, PARAMS)

    assert decision.eligible is False
    assert decision.reason is WithdrawalReason.MIN_WAIT_NOT_MET
    assert decision.eras_remaining == 2
    assert "Minimum wait" in decision.message


def test_total_exactly_at_threshold_passes():
    ledger = _ledger(ROUND_LOWEST_THIRD)
    chunk = create_request(ledger, ChunkStore(), 100_000_000)
    _advance(ledger, 2)

    decision = withdrawal.evaluate_withdrawal(chunk, ledger, PARAMS)

    assert decision.eligible is True


def test_total_one_unit_over_threshold_blocks():
    ledger = _ledger(ROUND_LOWEST_THIRD)
    chunk = create_request(ledger, ChunkStore(), 100_000_001)
    _advance(ledger, 2)

    decision = withdrawal.evaluate_withdrawal(chunk, ledger, PARAMS)

    assert decision.eligible is False
    assert decision.reason is WithdrawalReason.THRESHOLD_EXCEEDED
    assert decision.blocking_era == 27
    # Eras 29 and 28 passed: max(0, 28 - 2, 2, 27 + 2 - 29)
    assert decision.eras_remaining == 26
    assert decision.message == "Threshold exceeded in era 27"


def test_same_era_chunks_are_capped_by_their_snapshot():
    ledger = _ledger(ROUND_LOWEST_THIRD)
    store = ChunkStore()
    first = create_request(ledger, store, 60_000_000)
    second = create_request(ledger, store, 60_000_000)
    assert ledger.total_unbond_in(27) == 120_000_000
    assert first.previous_unbonded_snapshot == 0
    assert second.previous_unbonded_snapshot == 60_000_000
    _advance(ledger, 2)

    first_decision = withdrawal.evaluate_withdrawal(first, ledger, PARAMS)
    second_decision = withdrawal.evaluate_withdrawal(second, ledger, PARAMS)

    # min(120M, 0 + 60M) = 60M <= 100M
    assert first_decision.eligible is True
    # min(120M, 60M + 60M) = 120M > 100M
    assert second_decision.eligible is False
    assert second_decision.blocking_era == 27


@pytest.mark.parametrize("amounts", [(30_000_000, 80_000_000), (80_000_000, 30_000_000)])
def test_earlier_same_era_chunk_unaffected_by_later_request(amounts):
    ledger = _ledger(ROUND_LOWEST_THIRD)
    store = ChunkStore()
    earlier = create_request(ledger, store, amounts[0])
    _advance(ledger, 2)
    before = withdrawal.evaluate_withdrawal(earlier, ledger, PARAMS)

    # A later request in era 27 is only possible before advancing, so rebuild
    ledger = _ledger(ROUND_LOWEST_THIRD)
    store = ChunkStore()
    earlier = create_request(ledger, store, amounts[0])
    later = create_request(ledger, store, amounts[1])
    _advance(ledger, 2)

    assert withdrawal.evaluate_withdrawal(earlier, ledger, PARAMS) == before
    assert before.eligible is True
    assert withdrawal.evaluate_withdrawal(later, ledger, PARAMS).eligible is False


def test_later_era_violation_blocks_older_chunk():
    ledger = _ledger()
    store = ChunkStore()
    chunk = create_request(ledger, store, 10_000)
    _advance(ledger, 1)
    create_request(ledger, store, 150_000_000)
    _advance(ledger, 1)

    decision = withdrawal.evaluate_withdrawal(chunk, ledger, PARAMS)

    # Era 29 passes, era 28 alone exceeds 114.8M
    assert decision.eligible is False
    assert decision.blocking_era == 28
    assert decision.eras_remaining == 27


def test_chunk_older_than_window_is_always_eligible():
    ledger = _ledger()
    store = ChunkStore()
    chunk = create_request(ledger, store, 10_000)
    _advance(ledger, 1)
    create_request(ledger, store, 500_000_000)
    _advance(ledger, 27)
    assert ledger.floor_era == 28
    assert ledger.total_unbond_in(28) == 500_000_000

    decision = withdrawal.evaluate_withdrawal(chunk, ledger, PARAMS)

    assert decision.eligible is True
    assert decision.reason is WithdrawalReason.OUTSIDE_WINDOW
    assert withdrawal.estimate_chunk_wait(chunk, ledger, PARAMS) == PARAMS.min_unbonding_eras


def test_evaluation_does_not_mutate_chunk_or_ledger():
    ledger = _ledger(ROUND_LOWEST_THIRD)
    chunk = create_request(ledger, ChunkStore(), 100_000_001)
    _advance(ledger, 2)
    records = ledger.records()
    amount, status = chunk.amount, chunk.status

    withdrawal.evaluate_withdrawal(chunk, ledger, PARAMS)
    withdrawal.estimate_chunk_wait(chunk, ledger, PARAMS)
    withdrawal.estimate_new_request_wait(1_000, ledger, PARAMS)

    assert ledger.records() == records
    assert (chunk.amount, chunk.status) == (amount, status)


# ---------------------------------------------------------------------------
# Estimates
# ---------------------------------------------------------------------------


def test_estimate_for_unconstrained_chunk_is_min_wait():
    ledger = _ledger()
    chunk = create_request(ledger, ChunkStore(), 10_000)

    assert withdrawal.estimate_chunk_wait(chunk, ledger, PARAMS) == 2
    _advance(ledger, 2)
    assert withdrawal.estimate_chunk_wait(chunk, ledger, PARAMS) == 2


def test_estimate_counts_passing_eras_before_failure():
    ledger = _ledger(ROUND_LOWEST_THIRD)
    chunk = create_request(ledger, ChunkStore(), 100_000_001)

    # Fails immediately at era 27: 28 - 0
    assert withdrawal.estimate_chunk_wait(chunk, ledger, PARAMS) == 28
    _advance(ledger, 2)
    # Eras 29 and 28 pass first: 28 - 2
    assert withdrawal.estimate_chunk_wait(chunk, ledger, PARAMS) == 26


def test_estimate_never_below_min_wait():
    ledger = _ledger(ROUND_LOWEST_THIRD)
    store = ChunkStore()
    chunks = [create_request(ledger, store, amount) for amount in (1, 50_000_000, 70_000_000)]
    for _ in range(30):
        for chunk in chunks:
            assert withdrawal.estimate_chunk_wait(chunk, ledger, PARAMS) >= PARAMS.min_unbonding_eras
        _advance(ledger, 1)


def test_estimate_new_request_without_pressure_is_min_wait():
    ledger = _ledger()

    assert withdrawal.estimate_new_request_wait(10_000, ledger, PARAMS) == 2
    assert withdrawal.estimate_new_request_wait(0, ledger, PARAMS) == 2


def test_estimate_new_request_includes_existing_era_total():
    ledger = _ledger()
    ledger.record_unbond(27, 100_000_000)

    # 100M + 14.8M == 114.8M threshold: passes
    assert withdrawal.estimate_new_request_wait(14_800_000, ledger, PARAMS) == 2
    # One unit more fails at the current era with nothing passed
    assert withdrawal.estimate_new_request_wait(14_800_001, ledger, PARAMS) == 28
    assert ledger.total_unbond_in(27) == 100_000_000


def test_estimate_new_request_rejects_negative_amount():
    with pytest.raises(InvalidAmountError):
        withdrawal.estimate_new_request_wait(-1, _ledger(), PARAMS)


@pytest.mark.parametrize("amount", [float("nan"), float("inf")])
def test_estimate_new_request_rejects_non_finite_amount(amount):
    with pytest.raises(InvalidAmountError, match="finite"):
        withdrawal.estimate_new_request_wait(amount, _ledger(), PARAMS)
