"""Use cases for settling a payment as a sequence of gateway transactions."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, NoReturn, Optional

from prometheus_client import Counter

from ....domain.errors import (
    AmountLimitExceededError,
    SettlementError,
    UserCancelledError,
    VerificationFailedError,
)
from ....domain.settlement.chunk_queue import ChunkQueue
from ....domain.settlement.entities import (
    CompletedTransaction,
    PaymentRequest,
    SettlementLedger,
    TransactionChunk,
    UnreconciledPayment,
)
from ....domain.shared import CheckoutGatewayProtocol, PaymentBackendProtocol
from ..checkout_options import build_checkout_options
from ..dtos import (
    CheckoutResultDTO,
    CreateOrderRequestDTO,
    SettlementResultDTO,
    VerifyPaymentRequestDTO,
)
from ..progress import ProgressReporter
from .failure_classifier import FailureClassifier, FailureStage, describe_failure
from .settlement_validators import validate_payment_amounts, validate_settlement_limits

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

settlement_runs_total = Counter(
    "settlement_runs_total",
    "Settlement runs finished, by terminal outcome",
    ["outcome"],
)

settlement_chunk_attempts_total = Counter(
    "settlement_chunk_attempts_total",
    "Chunk attempts, by result",
    ["result"],
)

DEFAULT_SAFE_LIMIT = Decimal("25000")
DEFAULT_RETRY_FLOOR = Decimal("1000")
DEFAULT_PACING_DELAY = 1.0


class SettlementOrchestrator:
    """Drives a payment request to completion one chunk at a time.

    Chunks are attempted strictly in queue order and never concurrently. A
    chunk the gateway rejects as too large is halved and retried, with the
    freed amount pushed onto the next chunk. Settled chunks are real charges
    and are never rolled back when a later chunk fails.
    """

    def __init__(
        self,
        backend: PaymentBackendProtocol,
        checkout: CheckoutGatewayProtocol,
        *,
        safe_limit: Decimal = DEFAULT_SAFE_LIMIT,
        retry_floor: Decimal = DEFAULT_RETRY_FLOOR,
        pacing_delay: float = DEFAULT_PACING_DELAY,
        merchant_name: str = "GASCo",
        default_currency: str = "INR",
        classifier: Optional[FailureClassifier] = None,
        progress: Optional[ProgressReporter] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        validate_settlement_limits(safe_limit, retry_floor)
        self.backend = backend
        self.checkout = checkout
        self.safe_limit = safe_limit
        self.retry_floor = retry_floor
        self.pacing_delay = pacing_delay
        self.merchant_name = merchant_name
        self.default_currency = default_currency
        self.classifier = classifier or FailureClassifier()
        self.progress = progress or ProgressReporter()
        self._sleep = sleep

        self.queue: Optional[ChunkQueue] = None
        self.ledger: Optional[SettlementLedger] = None

    def build_queue(self, request: PaymentRequest) -> ChunkQueue:
        """Validate ``request`` and materialise its initial chunk queue.

        Raises:
            PaymentValidationError: If the request amounts are invalid.
        """
        payable = validate_payment_amounts(
            request.amount, request.custom_amount, request.total_due
        )
        return ChunkQueue.build(payable, self.safe_limit)

    async def settle(self, request: PaymentRequest) -> SettlementResultDTO:
        """Settle ``request`` in full or raise the terminal ``SettlementError``.

        The raised error carries the ledger and the amount settled before the
        run halted.
        """
        queue = self.build_queue(request)
        ledger = SettlementLedger(requested_amount=queue.total)
        self.queue = queue
        self.ledger = ledger
        self.progress.started(queue)
        logger.info(
            "Settling %s in %d chunk(s) of at most %s",
            queue.total,
            len(queue),
            self.safe_limit,
        )

        while True:
            chunk = queue.next_pending()
            if chunk is None:
                break

            self.progress.chunk_started(chunk, queue)
            try:
                transaction = await self._settle_chunk(request, chunk, ledger)
            except AmountLimitExceededError as exc:
                if not self._can_split(chunk):
                    chunk.fail()
                    settlement_chunk_attempts_total.labels(result="failed").inc()
                    self._halt(
                        ledger,
                        AmountLimitExceededError(
                            f"Transaction of {chunk.amount} was rejected for exceeding "
                            "the gateway limit. The gateway limit for this account is "
                            "unusually low; please contact support.",
                            raw=exc.raw,
                        ),
                        cause=exc,
                    )
                chunk.requeue()
                freed = queue.split(chunk)
                settlement_chunk_attempts_total.labels(result="split").inc()
                logger.warning(
                    "Chunk %d rejected as over the gateway limit; retrying with %s "
                    "and moving %s down the queue",
                    chunk.sequence_number,
                    chunk.amount,
                    freed,
                )
                self.progress.chunk_split(chunk, queue)
                await self._sleep(self.pacing_delay)
                continue
            except SettlementError as exc:
                if chunk.state == "in_flight":
                    chunk.fail()
                settlement_chunk_attempts_total.labels(result="failed").inc()
                self._halt(ledger, exc)

            chunk.settle()
            ledger.record(transaction)
            settlement_chunk_attempts_total.labels(result="settled").inc()
            self.progress.chunk_settled(queue)
            logger.info(
                "Chunk %d settled for %s (%s of %s)",
                chunk.sequence_number,
                chunk.amount,
                ledger.total_settled,
                queue.total,
            )
            if queue.has_pending():
                await self._sleep(self.pacing_delay)

        ledger.close("all_settled")
        settlement_runs_total.labels(outcome="all_settled").inc()
        self.progress.finished(ledger)
        return SettlementResultDTO(
            total_settled=ledger.total_settled,
            transaction_count=len(ledger.transactions),
            last_transaction=ledger.last_transaction,
            ledger=ledger,
        )

    def _can_split(self, chunk: TransactionChunk) -> bool:
        return chunk.amount > self.retry_floor and chunk.amount >= 2

    def _halt(
        self,
        ledger: SettlementLedger,
        error: SettlementError,
        *,
        cause: Optional[BaseException] = None,
    ) -> NoReturn:
        outcome = "user_cancelled" if isinstance(error, UserCancelledError) else "hard_failure"
        ledger.close(outcome, error.message)
        error.attach_ledger(ledger)
        settlement_runs_total.labels(outcome=outcome).inc()
        self.progress.finished(ledger)
        if outcome == "user_cancelled":
            logger.info(
                "Settlement cancelled by user after settling %s of %s",
                ledger.total_settled,
                ledger.requested_amount,
            )
        else:
            logger.warning(
                "Settlement halted (%s) after settling %s of %s: %s",
                type(error).__name__,
                ledger.total_settled,
                ledger.requested_amount,
                error.message,
            )
        if cause is not None:
            raise error from cause
        raise error

    def _raise_classified(self, raw: Any, stage: FailureStage) -> NoReturn:
        failure = self.classifier.classify(raw, stage=stage)
        if failure is raw or not isinstance(raw, BaseException):
            raise failure
        raise failure from raw

    async def _settle_chunk(
        self,
        request: PaymentRequest,
        chunk: TransactionChunk,
        ledger: SettlementLedger,
    ) -> CompletedTransaction:
        chunk.start()

        # 1) Gateway order for the current chunk amount
        try:
            order = await self.backend.create_order(
                CreateOrderRequestDTO(amount=chunk.amount, description=request.description)
            )
            options = build_checkout_options(
                order,
                merchant_name=self.merchant_name,
                description=request.description,
                default_currency=self.default_currency,
                prefill=request.prefill,
                notes={
                    **request.notes,
                    "chunk": str(chunk.sequence_number),
                    "amount": str(chunk.amount),
                },
            )
        except Exception as exc:
            self._raise_classified(exc, "order")

        # 2) Checkout, suspended until the payer finishes with it
        try:
            session = await self.checkout.create_checkout_session(options)
            self.progress.awaiting_checkout(True)
            result = await self.checkout.open_checkout_session(session)
        except Exception as exc:
            self._raise_classified(exc, "checkout")
        finally:
            self.progress.awaiting_checkout(False)

        if result.status == "cancelled":
            raise UserCancelledError("Payment cancelled")
        if result.status == "failed":
            self._raise_classified(result.error or {}, "checkout")

        # 3) Backend verification of the gateway signature
        return await self._verify(request, chunk, result, ledger)

    async def _verify(
        self,
        request: PaymentRequest,
        chunk: TransactionChunk,
        result: CheckoutResultDTO,
        ledger: SettlementLedger,
    ) -> CompletedTransaction:
        # CheckoutResultDTO guarantees all three ids on success.
        dto = VerifyPaymentRequestDTO(
            order_id=result.external_order_id or "",
            payment_id=result.external_payment_id or "",
            signature=result.external_signature or "",
            amount=chunk.amount,
            total_due=request.total_due,
            description=request.description,
        )
        try:
            verification = await self.backend.verify_payment(dto)
            if not verification.success:
                raise VerificationFailedError(
                    describe_failure(
                        verification.error or {}, "Payment verification failed"
                    ),
                    raw=verification.error,
                )
        except Exception as exc:
            failure = self.classifier.classify(exc, stage="verify")
            # TODO: feed unreconciled_payments to a reconciliation job that
            # replays verification by external payment id.
            ledger.record_unreconciled(
                UnreconciledPayment(
                    sequence_number=chunk.sequence_number,
                    amount=chunk.amount,
                    external_order_id=dto.order_id,
                    external_payment_id=dto.payment_id,
                    external_signature=dto.signature,
                    reason=failure.message,
                )
            )
            logger.error(
                "Payment %s for order %s (%s) was charged but not verified: %s",
                dto.payment_id,
                dto.order_id,
                chunk.amount,
                failure.message,
            )
            if failure is exc:
                raise
            raise failure from exc

        return CompletedTransaction(
            sequence_number=chunk.sequence_number,
            amount=chunk.amount,
            external_order_id=dto.order_id,
            external_payment_id=dto.payment_id,
            external_signature=dto.signature,
            metadata=verification.metadata,
        )
