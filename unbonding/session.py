"""Simulation session: the public surface of the unbonding queue.

A session owns one era ledger, one chunk store and the active parameters.
Every operation runs under a single re-entrant lock, so writers never
interleave against the same ledger and readers always see a consistent
window. Decisions are recomputed on every call; nothing derived is cached.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

import pandas as pd

from . import queue_constants as const
from .config import NetworkParameters, StakeInputs
from .era_ledger import EraLedger, EraRecord, advance_window
from .errors import WithdrawalBlockedError
from .processors import RebondResult, create_request, rebond
from .unlock_chunks import ChunkStatus, ChunkStore, UnlockChunk
from .withdrawal import (
    WithdrawalDecision,
    estimate_chunk_wait,
    estimate_new_request_wait,
    evaluate_withdrawal,
)

LOGGER = logging.getLogger(__name__)

CHUNK_COLUMNS = [
    "id",
    "amount",
    "start_era",
    "previous_unbonded_snapshot",
    "status",
    "eligible",
    "reason",
    "eras_remaining",
    "estimate_eras",
]


@dataclass(frozen=True)
class EraCapacity:
    era: int
    threshold: float
    total_unbond: float
    utilization_pct: float | None


class UnbondingSession:
    def __init__(
        self,
        params: NetworkParameters | None = None,
        stake_inputs: StakeInputs | None = None,
        start_era: int | None = None,
    ) -> None:
        self._params = params or NetworkParameters()
        self._stake_inputs = stake_inputs or StakeInputs()
        era = self._params.bonding_duration - 1 if start_era is None else start_era
        self._ledger = EraLedger(self._params, era, self._stake_inputs.lowest_third_stake)
        self._store = ChunkStore()
        self._eras_advanced = 0
        self._lock = threading.RLock()

    @classmethod
    def reference(cls) -> "UnbondingSession":
        """Session seeded with the reference network (28-era window at era 27).

        The stake inputs carry the reference lowest-third stake directly
        (ratio 1.0) rather than 800M x 0.287, whose float product need not be
        exactly 229.6M, so the reference thresholds come out whole.
        """
        return cls(
            NetworkParameters(),
            StakeInputs(
                total_stake_estimate=const.DEFAULT_LOWEST_THIRD_STAKE,
                lowest_third_ratio=1.0,
            ),
            start_era=const.SESSION_START_ERA,
        )

    @property
    def params(self) -> NetworkParameters:
        return self._params

    @property
    def stake_inputs(self) -> StakeInputs:
        return self._stake_inputs

    @property
    def ledger(self) -> EraLedger:
        return self._ledger

    @property
    def current_era(self) -> int:
        return self._ledger.current_era

    @property
    def eras_advanced(self) -> int:
        return self._eras_advanced

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(self, params: NetworkParameters) -> None:
        """Replace network parameters; decisions pick them up on the next call."""
        with self._lock:
            evicted = self._ledger.reconfigure(params, self._stake_inputs.lowest_third_stake)
            self._params = params
            LOGGER.info(
                "Configured bonding_duration=%s min_unbonding_eras=%s min_slashable_share=%s "
                "(evicted %s eras)",
                params.bonding_duration,
                params.min_unbonding_eras,
                params.min_slashable_share,
                len(evicted),
            )

    def set_stake_inputs(self, total_stake_estimate: float, lowest_third_ratio: float) -> None:
        """Re-derive every tracked era's lowest-third stake as ratio * total."""
        inputs = StakeInputs(
            total_stake_estimate=total_stake_estimate,
            lowest_third_ratio=lowest_third_ratio,
        )
        with self._lock:
            self._stake_inputs = inputs
            self._ledger.set_lowest_third_all(inputs.lowest_third_stake)
            LOGGER.info(
                "Lowest-third stake set to %s (%s x %s) for %s eras",
                inputs.lowest_third_stake,
                lowest_third_ratio,
                total_stake_estimate,
                len(self._ledger),
            )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_request(self, amount: float) -> int:
        """Open a request in the session's current era and return its chunk id."""
        with self._lock:
            return create_request(self._ledger, self._store, amount).id

    def rebond(self, chunk_id: int, amount: float) -> RebondResult:
        with self._lock:
            return rebond(self._ledger, self._store, chunk_id, amount)

    def advance_era(self, n: int) -> list[int]:
        with self._lock:
            evicted = advance_window(self._ledger, n, self._stake_inputs.lowest_third_stake)
            self._eras_advanced += n
            return evicted

    def withdraw(self, chunk_id: int) -> UnlockChunk:
        """Release a chunk's principal once the evaluator clears it."""
        with self._lock:
            chunk = self._store.get_pending(chunk_id)
            decision = evaluate_withdrawal(chunk, self._ledger, self._params)
            if not decision.eligible:
                raise WithdrawalBlockedError(chunk_id, decision)
            chunk.status = ChunkStatus.WITHDRAWN
            LOGGER.debug("Withdrew chunk %s (%s) at era %s", chunk_id, chunk.amount, self.current_era)
            return chunk

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    def evaluate(self, chunk_id: int) -> WithdrawalDecision:
        with self._lock:
            chunk = self._store.get(chunk_id)
            return evaluate_withdrawal(chunk, self._ledger, self._params)

    def estimate(self, chunk_id: int) -> int:
        with self._lock:
            chunk = self._store.get(chunk_id)
            return estimate_chunk_wait(chunk, self._ledger, self._params)

    def estimate_new(self, amount: float) -> int:
        with self._lock:
            return estimate_new_request_wait(amount, self._ledger, self._params)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def chunk(self, chunk_id: int) -> UnlockChunk:
        with self._lock:
            return self._store.get(chunk_id)

    def chunks(self) -> list[UnlockChunk]:
        with self._lock:
            return list(self._store)

    def pending_chunks(self) -> list[UnlockChunk]:
        with self._lock:
            return self._store.pending()

    def list_era_window(self) -> tuple[EraRecord, ...]:
        with self._lock:
            return self._ledger.records()

    def current_capacity(self) -> EraCapacity:
        with self._lock:
            era = self.current_era
            threshold = self._ledger.threshold_for(era)
            total = self._ledger.total_unbond_in(era)
            return EraCapacity(
                era=era,
                threshold=threshold,
                total_unbond=total,
                utilization_pct=total / threshold * 100 if threshold else None,
            )

    def window_frame(self) -> pd.DataFrame:
        with self._lock:
            return self._ledger.to_frame()

    def chunk_frame(self) -> pd.DataFrame:
        """One row per chunk with its live decision and estimate."""
        with self._lock:
            rows = []
            for chunk in self._store:
                decision = evaluate_withdrawal(chunk, self._ledger, self._params)
                rows.append(
                    {
                        "id": chunk.id,
                        "amount": chunk.amount,
                        "start_era": chunk.start_era,
                        "previous_unbonded_snapshot": chunk.previous_unbonded_snapshot,
                        "status": chunk.status.value,
                        "eligible": decision.eligible,
                        "reason": decision.message,
                        "eras_remaining": decision.eras_remaining,
                        "estimate_eras": estimate_chunk_wait(chunk, self._ledger, self._params),
                    }
                )
            return pd.DataFrame(rows, columns=CHUNK_COLUMNS)
