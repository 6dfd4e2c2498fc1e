"""Work queue of transaction chunks for one settlement run.

The queue owns the amounts of all chunks. Its invariant: the sum of every
chunk amount, whatever the chunk state, equals the amount the queue was built
for. ``split`` only moves value between chunks; it never creates or drops any.
"""

from __future__ import annotations

import math
from decimal import ROUND_FLOOR, Decimal
from typing import Iterator, Optional

from .entities import TransactionChunk


def plan_chunk_amounts(total: Decimal, limit: Decimal) -> list[Decimal]:
    """Split ``total`` into ``ceil(total / limit)`` amounts of at most ``limit``.

    Pure function, no network interaction.

    >>> plan_chunk_amounts(Decimal("60000"), Decimal("25000"))
    [Decimal('25000'), Decimal('25000'), Decimal('10000')]
    """
    if total <= 0:
        raise ValueError("Total amount must be positive")
    if limit <= 0:
        raise ValueError("Per-transaction limit must be positive")

    count = math.ceil(total / limit)
    amounts: list[Decimal] = []
    remaining = total
    for _ in range(count):
        amount = min(remaining, limit)
        amounts.append(amount)
        remaining -= amount
    return amounts


def halve_amount(amount: Decimal) -> tuple[Decimal, Decimal]:
    """Return ``(kept, freed)`` where ``kept`` is ``amount // 2`` and ``kept + freed == amount``."""
    kept = (amount / 2).to_integral_value(rounding=ROUND_FLOOR)
    return kept, amount - kept


class ChunkQueue:
    """Ordered sequence of chunks consumed strictly front to back."""

    def __init__(self, chunks: list[TransactionChunk], total: Decimal) -> None:
        self._chunks = chunks
        self._total = total

    @classmethod
    def build(cls, total: Decimal, limit: Decimal) -> "ChunkQueue":
        chunks = [
            TransactionChunk(sequence_number=index, amount=amount)
            for index, amount in enumerate(plan_chunk_amounts(total, limit), start=1)
        ]
        return cls(chunks, total)

    def __iter__(self) -> Iterator[TransactionChunk]:
        return iter(self._chunks)

    def __len__(self) -> int:
        return len(self._chunks)

    @property
    def total(self) -> Decimal:
        return self._total

    @property
    def amounts(self) -> list[Decimal]:
        return [chunk.amount for chunk in self._chunks]

    def next_pending(self) -> Optional[TransactionChunk]:
        """Return the first pending chunk, or None when the queue is drained."""
        for chunk in self._chunks:
            if chunk.state == "pending":
                return chunk
        return None

    def has_pending(self) -> bool:
        return self.next_pending() is not None

    def settled_amount(self) -> Decimal:
        return sum(
            (c.amount for c in self._chunks if c.state == "settled"), Decimal("0")
        )

    def outstanding_amount(self) -> Decimal:
        return sum(
            (c.amount for c in self._chunks if c.state != "settled"), Decimal("0")
        )

    def split(self, chunk: TransactionChunk) -> Decimal:
        """Halve ``chunk`` and push the freed remainder further down the queue.

        The remainder is added to the chunk right after ``chunk`` or, when
        ``chunk`` is last, appended as a new chunk. Returns the freed amount.
        """
        position = self._position_of(chunk)
        kept, freed = halve_amount(chunk.amount)
        if kept <= 0:
            raise ValueError(f"Chunk {chunk.sequence_number} is too small to split")

        chunk.amount = kept
        if position + 1 < len(self._chunks):
            self._chunks[position + 1].amount += freed
        else:
            self._chunks.append(
                TransactionChunk(sequence_number=len(self._chunks) + 1, amount=freed)
            )
        return freed

    def _position_of(self, chunk: TransactionChunk) -> int:
        for index, candidate in enumerate(self._chunks):
            if candidate is chunk:
                return index
        raise ValueError(f"Chunk {chunk.sequence_number} is not part of this queue")
