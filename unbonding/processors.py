"""Request creation and rebonding: the only writers of ledger and chunk store."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from .era_ledger import EraLedger
from .errors import InvalidAmountError
from .unlock_chunks import ChunkStore, UnlockChunk

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RebondResult:
    """Summary of one rebond.

    Attributes:
        chunk_id: Chunk that was rebonded
        rebonded: Principal actually returned to stake
        remaining: Principal still unbonding (0 once the chunk is removed)
        removed: True when the chunk was fully rebonded and dropped from the store
        ledger_updated: False when the chunk's start era had aged out of the window
    """

    chunk_id: int
    rebonded: float
    remaining: float
    removed: bool
    ledger_updated: bool


def create_request(
    ledger: EraLedger,
    store: ChunkStore,
    amount: float,
    current_era: int | None = None,
) -> UnlockChunk:
    """Open an unbonding request in the current era."""
    if not math.isfinite(amount) or amount <= 0:
        raise InvalidAmountError(f"Unbonding amount must be positive and finite, got {amount}")
    era = ledger.current_era if current_era is None else current_era

    previous = ledger.total_unbond_in(era)
    ledger.record_unbond(era, amount)
    chunk = store.create(amount=amount, start_era=era, previous_unbonded_snapshot=previous)
    LOGGER.debug(
        "Created chunk %s: %s unbonding from era %s (era total before: %s)",
        chunk.id,
        amount,
        era,
        previous,
    )
    return chunk


def rebond(
    ledger: EraLedger,
    store: ChunkStore,
    chunk_id: int,
    requested_amount: float,
) -> RebondResult:
    """Return up to ``requested_amount`` of a pending chunk to stake."""
    chunk = store.get_pending(chunk_id)
    if not math.isfinite(requested_amount) or requested_amount <= 0:
        raise InvalidAmountError(f"Rebond amount must be positive and finite, got {requested_amount}")

    actual = min(requested_amount, chunk.amount)
    ledger_updated = chunk.start_era in ledger
    if ledger_updated:
        ledger.record_unbond(chunk.start_era, -actual)
    else:
        LOGGER.debug(
            "Chunk %s start era %s aged out of the window; ledger left unchanged",
            chunk_id,
            chunk.start_era,
        )

    chunk.amount -= actual
    removed = chunk.amount <= 0
    if removed:
        store.remove(chunk_id)
    LOGGER.debug("Rebonded %s from chunk %s (removed=%s)", actual, chunk_id, removed)
    return RebondResult(
        chunk_id=chunk_id,
        rebonded=actual,
        remaining=max(0, chunk.amount),
        removed=removed,
        ledger_updated=ledger_updated,
    )
