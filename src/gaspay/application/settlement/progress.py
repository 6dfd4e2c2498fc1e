"""Live progress of a settlement run, decoupled from orchestrator internals."""

from __future__ import annotations

import logging
from typing import Callable

from ...domain.settlement.chunk_queue import ChunkQueue
from ...domain.settlement.entities import SettlementLedger, TransactionChunk
from .dtos import ProgressSnapshotDTO

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ProgressSnapshotDTO], None]


class ProgressReporter:
    """Holds the latest immutable snapshot and notifies subscribers on change.

    Reading is side-effect free and safe at any frequency. Only the
    orchestrator calls the update methods.
    """

    def __init__(self) -> None:
        self._snapshot = ProgressSnapshotDTO()
        self._listeners: list[ProgressListener] = []

    def snapshot(self) -> ProgressSnapshotDTO:
        return self._snapshot

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def started(self, queue: ChunkQueue) -> None:
        self._publish(
            status="running",
            current_sequence=None,
            total_chunks=len(queue),
            current_amount=None,
            requested_amount=queue.total,
            settled_amount=queue.settled_amount(),
            awaiting_checkout=False,
            outcome=None,
            message=None,
        )

    def chunk_started(self, chunk: TransactionChunk, queue: ChunkQueue) -> None:
        self._publish(
            current_sequence=chunk.sequence_number,
            current_amount=chunk.amount,
            total_chunks=len(queue),
            awaiting_checkout=False,
        )

    def awaiting_checkout(self, awaiting: bool) -> None:
        self._publish(awaiting_checkout=awaiting)

    def chunk_split(self, chunk: TransactionChunk, queue: ChunkQueue) -> None:
        self._publish(
            current_amount=chunk.amount,
            total_chunks=len(queue),
            awaiting_checkout=False,
        )

    def chunk_settled(self, queue: ChunkQueue) -> None:
        self._publish(settled_amount=queue.settled_amount(), awaiting_checkout=False)

    def finished(self, ledger: SettlementLedger) -> None:
        self._publish(
            status="completed",
            settled_amount=ledger.total_settled,
            awaiting_checkout=False,
            outcome=ledger.outcome,
            message=ledger.message,
        )

    def _publish(self, **changes: object) -> None:
        self._snapshot = self._snapshot.model_copy(update=changes)
        for listener in list(self._listeners):
            try:
                listener(self._snapshot)
            except Exception:
                logger.exception("Progress listener raised; continuing settlement")
