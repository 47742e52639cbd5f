"""
Payment Service - delivery audit events and cash-on-delivery settlement.

payment_event and order_status_history are append-only. The only purchase
mutation is COD settlement, which runs under a row lock and commits the
event, the purchase update and the history entry together.
"""

import time
import uuid
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lazla_api.db.models import OrderStatusHistory, PaymentEvent, Purchase, utc_now
from lazla_api.exceptions import NotFoundError, WriteVerificationError
from lazla_api.models.api import DeliveryEventType, PaymentStatus
from lazla_api.models.domain import CodCollectionIntent, DeliveryAttemptIntent, PaymentEventData
from lazla_api.observability.logging import get_logger
from lazla_api.observability.metrics import metrics
from lazla_api.observability.tracing import add_span_attributes, get_tracer, set_span_error

logger = get_logger(__name__)
tracer = get_tracer(__name__)

PAYMENT_METHOD_COD = "cod"
SETTLED_EVENT_STATUS = "paid"
SETTLED_ORDER_STATUS = "confirmed"


def generate_txn_id() -> str:
    """Transaction id for a settlement recorded without an external reference."""
    return f"COD-{uuid.uuid4()}"


def format_amount(amount: Decimal | None) -> str | None:
    """Exact fixed-point text of an amount, never exponent notation."""
    return format(amount, "f") if amount is not None else None


class PaymentService:
    """Delivery event ledger over a single database session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def record_delivery_attempt(self, intent: DeliveryAttemptIntent) -> PaymentEventData:
        """
        Append a delivery event without touching the purchase.

        Raises:
            NotFoundError: Purchase doesn't exist
        """
        event = PaymentEvent(
            purchase_id=intent.purchase_id,
            event_type=intent.event_type.value,
            event_status=intent.event_status,
            payment_method=PAYMENT_METHOD_COD,
            txn_id=None,
            event_metadata={
                "driverId": intent.driver_id,
                "note": intent.note,
                "photoUrl": intent.photo_url,
                "collectedAmount": format_amount(intent.collected_amount),
            },
        )
        self.session.add(event)
        try:
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning("delivery_event_rejected", purchase_id=intent.purchase_id)
            raise NotFoundError("purchase", "purchase not found") from e

        metrics.record_payment_event(intent.event_type.value)
        logger.info(
            "delivery_event_recorded",
            purchase_id=intent.purchase_id,
            event_id=event.id,
            event_type=intent.event_type.value,
        )
        return self._event_to_domain(event)

    async def confirm_cod_collected(self, intent: CodCollectionIntent) -> PaymentEventData:
        """
        Settle a purchase paid in cash at the door.

        This operation requires:
        1. Row-level locking of the purchase (SELECT FOR UPDATE)
        2. A cod_collected payment event
        3. Purchase update (paid, paid_at, payment_txn_id)
        4. An order status history entry
        5. One commit for all of the above; any failure rolls everything back

        An already-paid purchase is settled again: a new audit event is
        written and paid_at/payment_txn_id move to this settlement.

        Raises:
            NotFoundError: Purchase doesn't exist
            WriteVerificationError: Event missing after insert
        """
        start = time.perf_counter()
        already_paid = False
        with tracer.start_as_current_span(
            "cod_settlement", record_exception=False, set_status_on_exception=False
        ) as span:
            add_span_attributes(
                span, purchase_id=intent.purchase_id, performed_by=intent.performed_by
            )
            try:
                purchase = await self._lock_purchase_for_update(intent.purchase_id)
                if purchase is None:
                    raise NotFoundError("purchase", "purchase not found")

                already_paid = purchase.payment_status == PaymentStatus.PAID.value
                txn_id = intent.txn_id or generate_txn_id()

                event = PaymentEvent(
                    purchase_id=purchase.id,
                    event_type=DeliveryEventType.COD_COLLECTED.value,
                    event_status=SETTLED_EVENT_STATUS,
                    payment_method=PAYMENT_METHOD_COD,
                    txn_id=txn_id,
                    event_metadata={
                        "driverId": intent.driver_id,
                        "collectedAmount": format_amount(intent.collected_amount),
                        "note": intent.note,
                    },
                )
                self.session.add(event)
                await self.session.flush()

                verified_event = await self.session.get(PaymentEvent, event.id)
                if verified_event is None:
                    raise WriteVerificationError(
                        f"Payment event {event.id} not found after insert"
                    )

                now = utc_now()
                purchase.payment_status = PaymentStatus.PAID.value
                purchase.paid_at = now
                purchase.payment_txn_id = txn_id
                purchase.updated_at = now

                self.session.add(
                    OrderStatusHistory(
                        order_id=purchase.id,
                        changed_by=intent.performed_by,
                        status=SETTLED_ORDER_STATUS,
                        note=f"COD collected: {format_amount(intent.collected_amount)}",
                    )
                )
                await self.session.flush()
                await self.session.commit()
            except Exception as e:
                await self.session.rollback()
                set_span_error(span, e)
                metrics.record_cod_settlement(False, already_paid, time.perf_counter() - start)
                logger.warning(
                    "cod_settlement_failed",
                    purchase_id=intent.purchase_id,
                    error_type=type(e).__name__,
                )
                raise

            add_span_attributes(span, txn_id=txn_id, already_paid=already_paid)

        metrics.record_cod_settlement(True, already_paid, time.perf_counter() - start)
        metrics.record_payment_event(DeliveryEventType.COD_COLLECTED.value)
        logger.info(
            "cod_collected",
            purchase_id=intent.purchase_id,
            event_id=verified_event.id,
            txn_id=txn_id,
            already_paid=already_paid,
            performed_by=intent.performed_by,
        )
        return self._event_to_domain(verified_event)

    async def get_events_for_purchase(self, purchase_id: int) -> list[PaymentEventData]:
        """Events of one purchase, oldest first."""
        stmt = (
            select(PaymentEvent)
            .where(PaymentEvent.purchase_id == purchase_id)
            .order_by(PaymentEvent.created_at.asc(), PaymentEvent.id.asc())
        )
        result = await self.session.execute(stmt)
        return [self._event_to_domain(row) for row in result.scalars().all()]

    async def list_events(self, page: int, limit: int) -> tuple[list[PaymentEventData], int]:
        """
        Page through all events, newest first.

        Returns:
            (events on the page, total event count)
        """
        total_result = await self.session.execute(
            select(func.count()).select_from(PaymentEvent)
        )
        total = total_result.scalar_one()

        stmt = (
            select(PaymentEvent)
            .order_by(PaymentEvent.created_at.desc(), PaymentEvent.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [self._event_to_domain(row) for row in result.scalars().all()], total

    # ========================================================================
    # Private Helper Methods
    # ========================================================================

    async def _lock_purchase_for_update(self, purchase_id: int) -> Purchase | None:
        """Lock purchase row for update (SELECT FOR UPDATE)."""
        stmt = select(Purchase).where(Purchase.id == purchase_id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    def _event_to_domain(self, event: PaymentEvent) -> PaymentEventData:
        """Convert ORM payment event to domain model."""
        return PaymentEventData(
            event_id=event.id,
            purchase_id=event.purchase_id,
            event_type=event.event_type,
            event_status=event.event_status,
            payment_method=event.payment_method,
            txn_id=event.txn_id,
            metadata=event.event_metadata,
            created_at=event.created_at,
        )
