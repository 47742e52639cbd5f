"""
Tests for PaymentService.

Covers delivery events, COD settlement atomicity and event listings.
"""

import re
from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from lazla_api.db.models import OrderStatusHistory, PaymentEvent, Purchase
from lazla_api.exceptions import NotFoundError, WriteVerificationError
from lazla_api.models.api import DeliveryEventType, PaymentStatus
from lazla_api.models.domain import CodCollectionIntent, DeliveryAttemptIntent
from lazla_api.services.payments import PaymentService, format_amount, generate_txn_id

from conftest import make_result

TXN_PATTERN = re.compile(
    r"^COD-[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$"
)


def create_mock_purchase(
    purchase_id: int = 10, payment_status: str = PaymentStatus.UNPAID.value
) -> MagicMock:
    purchase = MagicMock(spec=Purchase)
    purchase.id = purchase_id
    purchase.payment_status = payment_status
    purchase.paid_at = None
    purchase.payment_txn_id = None
    return purchase


def create_mock_event(event_id: int = 1, purchase_id: int = 10, **overrides) -> MagicMock:
    event = MagicMock(spec=PaymentEvent)
    event.id = event_id
    event.purchase_id = purchase_id
    event.event_type = DeliveryEventType.COD_COLLECTED.value
    event.event_status = "paid"
    event.payment_method = "cod"
    event.txn_id = "COD-x"
    event.event_metadata = {"driverId": 3}
    event.created_at = datetime.now(UTC)
    for key, value in overrides.items():
        setattr(event, key, value)
    return event


def _cod_intent(**overrides) -> CodCollectionIntent:
    values = {
        "purchase_id": 10,
        "collected_amount": Decimal("250.50"),
        "driver_id": 3,
        "note": "paid in cash",
        "txn_id": None,
        "performed_by": 7,
    }
    values.update(overrides)
    return CodCollectionIntent(**values)


def _added(db_session: AsyncMock, cls: type) -> list:
    return [c.args[0] for c in db_session.add.call_args_list if isinstance(c.args[0], cls)]


@pytest.fixture
def settle_session(db_session: AsyncMock) -> AsyncMock:
    """Session whose lock query returns an unpaid purchase and whose write verifies."""
    purchase = create_mock_purchase()
    db_session.execute = AsyncMock(return_value=make_result(scalar=purchase))
    db_session.purchase = purchase

    async def get(model, ident):
        return _added(db_session, PaymentEvent)[-1]

    db_session.get = AsyncMock(side_effect=get)
    return db_session


class TestGenerateTxnId:
    def test_format(self):
        assert TXN_PATTERN.match(generate_txn_id())

    def test_unique(self):
        assert generate_txn_id() != generate_txn_id()


class TestFormatAmount:
    @pytest.mark.parametrize(
        "amount,expected",
        [
            (Decimal("250.50"), "250.50"),
            (Decimal("1E+3"), "1000"),
            (Decimal("0.000001"), "0.000001"),
            (None, None),
        ],
    )
    def test_fixed_point_text(self, amount, expected):
        assert format_amount(amount) == expected


class TestDomainIntents:
    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            _cod_intent(collected_amount=Decimal("-1"))

    def test_attempt_cannot_be_cod_collected(self):
        with pytest.raises(ValueError):
            DeliveryAttemptIntent(
                purchase_id=1,
                event_type=DeliveryEventType.COD_COLLECTED,
                event_status=None,
                driver_id=None,
                note=None,
                photo_url=None,
                collected_amount=None,
            )


class TestRecordDeliveryAttempt:
    """Tests for record_delivery_attempt."""

    async def test_appends_event_only(self, db_session: AsyncMock):
        service = PaymentService(db_session)
        intent = DeliveryAttemptIntent(
            purchase_id=10,
            event_type=DeliveryEventType.DELIVERY_FAILED,
            event_status="customer_absent",
            driver_id=3,
            note="nobody home",
            photo_url="https://cdn.example/p.jpg",
            collected_amount=None,
        )

        event = await service.record_delivery_attempt(intent)

        assert event.event_type == "delivery_failed"
        assert event.txn_id is None
        assert event.metadata == {
            "driverId": 3,
            "note": "nobody home",
            "photoUrl": "https://cdn.example/p.jpg",
            "collectedAmount": None,
        }
        assert len(_added(db_session, PaymentEvent)) == 1
        assert _added(db_session, Purchase) == []
        assert _added(db_session, OrderStatusHistory) == []
        db_session.commit.assert_awaited_once()

    async def test_amount_stored_as_exact_text(self, db_session: AsyncMock):
        service = PaymentService(db_session)
        intent = DeliveryAttemptIntent(
            purchase_id=10,
            event_type=DeliveryEventType.COD_PARTIAL,
            event_status=None,
            driver_id=None,
            note=None,
            photo_url=None,
            collected_amount=Decimal("99.5"),
        )
        event = await service.record_delivery_attempt(intent)
        assert event.metadata["collectedAmount"] == "99.5"

    async def test_unknown_purchase(self, db_session: AsyncMock):
        db_session.flush = AsyncMock(
            side_effect=IntegrityError("INSERT", {}, Exception("fk_purchase"))
        )
        service = PaymentService(db_session)
        intent = DeliveryAttemptIntent(
            purchase_id=404,
            event_type=DeliveryEventType.DELIVERY_ATTEMPT,
            event_status=None,
            driver_id=None,
            note=None,
            photo_url=None,
            collected_amount=None,
        )
        with pytest.raises(NotFoundError):
            await service.record_delivery_attempt(intent)
        db_session.rollback.assert_awaited_once()
        db_session.commit.assert_not_awaited()


class TestConfirmCodCollected:
    """Tests for confirm_cod_collected."""

    async def test_locks_purchase_row(self, settle_session: AsyncMock):
        service = PaymentService(settle_session)
        await service.confirm_cod_collected(_cod_intent())

        stmt = settle_session.execute.call_args_list[0].args[0]
        assert stmt._for_update_arg is not None

    async def test_settles_purchase(self, settle_session: AsyncMock):
        service = PaymentService(settle_session)
        event = await service.confirm_cod_collected(_cod_intent())

        purchase = settle_session.purchase
        assert purchase.payment_status == PaymentStatus.PAID.value
        assert purchase.paid_at is not None
        assert purchase.payment_txn_id == event.txn_id
        assert TXN_PATTERN.match(event.txn_id)

    async def test_event_fields(self, settle_session: AsyncMock):
        service = PaymentService(settle_session)
        event = await service.confirm_cod_collected(_cod_intent())

        assert event.event_type == DeliveryEventType.COD_COLLECTED.value
        assert event.event_status == "paid"
        assert event.payment_method == "cod"
        assert event.metadata == {
            "driverId": 3,
            "collectedAmount": "250.50",
            "note": "paid in cash",
        }

    async def test_history_entry(self, settle_session: AsyncMock):
        service = PaymentService(settle_session)
        await service.confirm_cod_collected(_cod_intent())

        (history,) = _added(settle_session, OrderStatusHistory)
        assert history.order_id == 10
        assert history.changed_by == 7
        assert history.status == "confirmed"
        assert history.note == "COD collected: 250.50"

    async def test_large_amount_kept_exact(self, settle_session: AsyncMock):
        """Amounts beyond float precision reach the audit row digit for digit."""
        amount = Decimal("12345678901234567.89")
        service = PaymentService(settle_session)

        event = await service.confirm_cod_collected(_cod_intent(collected_amount=amount))

        assert event.metadata["collectedAmount"] == "12345678901234567.89"
        (history,) = _added(settle_session, OrderStatusHistory)
        assert history.note == "COD collected: 12345678901234567.89"

    async def test_single_commit(self, settle_session: AsyncMock):
        service = PaymentService(settle_session)
        await service.confirm_cod_collected(_cod_intent())
        settle_session.commit.assert_awaited_once()
        settle_session.rollback.assert_not_awaited()

    async def test_supplied_txn_id_used(self, settle_session: AsyncMock):
        service = PaymentService(settle_session)
        event = await service.confirm_cod_collected(_cod_intent(txn_id="RCPT-001"))
        assert event.txn_id == "RCPT-001"
        assert settle_session.purchase.payment_txn_id == "RCPT-001"

    async def test_already_paid_settles_again(self, settle_session: AsyncMock):
        """A second collection writes a new event and moves the txn id."""
        settle_session.purchase.payment_status = PaymentStatus.PAID.value
        settle_session.purchase.payment_txn_id = "COD-old"
        service = PaymentService(settle_session)

        event = await service.confirm_cod_collected(_cod_intent())

        assert settle_session.purchase.payment_txn_id == event.txn_id
        assert event.txn_id != "COD-old"
        assert len(_added(settle_session, PaymentEvent)) == 1

    async def test_missing_purchase(self, db_session: AsyncMock):
        service = PaymentService(db_session)
        with pytest.raises(NotFoundError):
            await service.confirm_cod_collected(_cod_intent(purchase_id=404))
        db_session.rollback.assert_awaited_once()
        db_session.add.assert_not_called()

    async def test_write_verification_failure_rolls_back(self, settle_session: AsyncMock):
        settle_session.get = AsyncMock(return_value=None)
        service = PaymentService(settle_session)
        with pytest.raises(WriteVerificationError):
            await service.confirm_cod_collected(_cod_intent())
        settle_session.rollback.assert_awaited_once()
        settle_session.commit.assert_not_awaited()

    async def test_commit_failure_rolls_back(self, settle_session: AsyncMock):
        """Nothing is half-applied when the commit fails."""
        settle_session.commit = AsyncMock(
            side_effect=OperationalError("COMMIT", {}, Exception("connection lost"))
        )
        service = PaymentService(settle_session)
        with pytest.raises(OperationalError):
            await service.confirm_cod_collected(_cod_intent())
        settle_session.rollback.assert_awaited_once()


class TestListings:
    """Tests for event queries."""

    async def test_events_for_purchase(self, db_session: AsyncMock):
        rows = [create_mock_event(1), create_mock_event(2)]
        db_session.execute = AsyncMock(return_value=make_result(rows=rows))
        service = PaymentService(db_session)

        events = await service.get_events_for_purchase(10)

        assert [e.event_id for e in events] == [1, 2]
        stmt = str(db_session.execute.call_args.args[0])
        assert "ORDER BY payment_event.created_at ASC" in stmt

    async def test_events_for_purchase_empty(self, db_session: AsyncMock):
        service = PaymentService(db_session)
        assert await service.get_events_for_purchase(10) == []

    async def test_list_events_paginates(self, db_session: AsyncMock):
        rows = [create_mock_event(5)]
        db_session.execute = AsyncMock(
            side_effect=[make_result(count=51), make_result(rows=rows)]
        )
        service = PaymentService(db_session)

        events, total = await service.list_events(page=2, limit=50)

        assert total == 51
        assert [e.event_id for e in events] == [5]
        stmt = db_session.execute.call_args_list[1].args[0]
        assert stmt._offset == 50
        assert stmt._limit == 50
        assert "DESC" in str(stmt)
