"""In-flight unbonding requests and the store that owns them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from .errors import ChunkNotFoundError


class ChunkStatus(Enum):
    """Lifecycle state of an unlock chunk."""

    PENDING = "pending"
    WITHDRAWN = "withdrawn"


@dataclass
class UnlockChunk:
    """One unbonding request.

    ``start_era`` and ``previous_unbonded_snapshot`` are fixed at creation;
    only ``amount`` (via rebond) and ``status`` (via withdrawal) change.

    Attributes:
        id: Unique identifier, never reused within a store
        amount: Remaining principal still unbonding
        start_era: Era the request was created in
        previous_unbonded_snapshot: Era unbonding total before this request was added
        status: Pending until the principal is withdrawn
    """

    id: int
    amount: float
    start_era: int
    previous_unbonded_snapshot: float
    status: ChunkStatus = ChunkStatus.PENDING

    @property
    def is_pending(self) -> bool:
        return self.status is ChunkStatus.PENDING


class ChunkStore:
    """Chunks keyed by id, in creation order. Ids start at 1."""

    def __init__(self) -> None:
        self._chunks: dict[int, UnlockChunk] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._chunks)

    def __iter__(self) -> Iterator[UnlockChunk]:
        return iter(list(self._chunks.values()))

    def __contains__(self, chunk_id: object) -> bool:
        return chunk_id in self._chunks

    def create(self, amount: float, start_era: int, previous_unbonded_snapshot: float) -> UnlockChunk:
        chunk = UnlockChunk(
            id=self._next_id,
            amount=amount,
            start_era=start_era,
            previous_unbonded_snapshot=previous_unbonded_snapshot,
        )
        self._chunks[chunk.id] = chunk
        self._next_id += 1
        return chunk

    def get(self, chunk_id: int) -> UnlockChunk:
        try:
            return self._chunks[chunk_id]
        except KeyError:
            raise ChunkNotFoundError(f"Unknown chunk id {chunk_id}") from None

    def get_pending(self, chunk_id: int) -> UnlockChunk:
        chunk = self.get(chunk_id)
        if not chunk.is_pending:
            raise ChunkNotFoundError(f"Chunk {chunk_id} is not pending ({chunk.status.value})")
        return chunk

    def remove(self, chunk_id: int) -> UnlockChunk:
        chunk = self.get(chunk_id)
        del self._chunks[chunk_id]
        return chunk

    def pending(self) -> list[UnlockChunk]:
        return [chunk for chunk in self._chunks.values() if chunk.is_pending]
