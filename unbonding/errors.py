"""Exceptions raised by the unbonding queue core."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .withdrawal import WithdrawalDecision


class UnbondingError(Exception):
    """Base class for all errors reported by the unbonding queue."""


class InvalidAmountError(UnbondingError, ValueError):
    """Raised when a request or rebond amount is not strictly positive."""


class InvalidAdvanceError(UnbondingError, ValueError):
    """Raised when the era window is advanced by a non-positive count."""


class ChunkNotFoundError(UnbondingError, KeyError):
    """Raised when an operation references an unknown or non-pending chunk."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message instead.
        return str(self.args[0]) if self.args else ""


class OutOfWindowError(UnbondingError, KeyError):
    """Raised on a direct write to an era outside the tracked window."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class WithdrawalBlockedError(UnbondingError):
    """Raised when withdrawing a chunk that the evaluator does not clear."""

    def __init__(self, chunk_id: int, decision: "WithdrawalDecision") -> None:
        super().__init__(f"Chunk {chunk_id} cannot be withdrawn yet: {decision.message}")
        self.chunk_id = chunk_id
        self.decision = decision
