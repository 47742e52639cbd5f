"""
Delivery Routes - payment event ledger and COD settlement.

All endpoints require a staff access token. Roles are not checked here.
"""

from fastapi import APIRouter, Depends, Query, status

from lazla_api.api.dependencies import (
    AuthenticatedPrincipal,
    get_current_staff,
    get_payment_read_service,
    get_payment_service,
)
from lazla_api.api.errors import to_http_exception
from lazla_api.exceptions import LazlaError
from lazla_api.models.api import (
    CollectResponse,
    ConfirmCodRequest,
    DeliveryEventType,
    PaymentEventPage,
    PaymentEventResponse,
    RecordDeliveryAttemptRequest,
)
from lazla_api.models.domain import CodCollectionIntent, DeliveryAttemptIntent, PaymentEventData
from lazla_api.services.payments import PaymentService

router = APIRouter(prefix="/api/delivery", tags=["delivery"])

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def event_response(event: PaymentEventData) -> PaymentEventResponse:
    return PaymentEventResponse(
        id=event.event_id,
        purchase_id=event.purchase_id,
        event_type=DeliveryEventType(event.event_type),
        event_status=event.event_status,
        payment_method=event.payment_method,
        txn_id=event.txn_id,
        metadata=event.metadata,
        created_at=event.created_at,
    )


@router.post(
    "/{purchase_id}/attempt",
    response_model=PaymentEventResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_delivery_attempt(
    purchase_id: int,
    request: RecordDeliveryAttemptRequest,
    caller: AuthenticatedPrincipal = Depends(get_current_staff),
    service: PaymentService = Depends(get_payment_service),
) -> PaymentEventResponse:
    """Append a delivery event (attempt, failure, note...). Never settles payment."""
    intent = DeliveryAttemptIntent(
        purchase_id=purchase_id,
        event_type=request.event_type,
        event_status=request.event_status,
        driver_id=request.driver_id,
        note=request.note,
        photo_url=request.photo_url,
        collected_amount=request.collected_amount,
    )
    try:
        event = await service.record_delivery_attempt(intent)
    except LazlaError as exc:
        raise to_http_exception(exc) from exc
    return event_response(event)


@router.post("/{purchase_id}/collect", response_model=CollectResponse)
async def confirm_cod_collected(
    purchase_id: int,
    request: ConfirmCodRequest,
    caller: AuthenticatedPrincipal = Depends(get_current_staff),
    service: PaymentService = Depends(get_payment_service),
) -> CollectResponse:
    """
    Settle a cash-on-delivery purchase.

    Marks the purchase paid and records the event and status history in one
    transaction. The calling staff member is recorded as the status changer.
    """
    intent = CodCollectionIntent(
        purchase_id=purchase_id,
        collected_amount=request.collected_amount,
        driver_id=request.driver_id,
        note=request.note,
        txn_id=request.txn_id,
        performed_by=caller.account_id,
    )
    try:
        event = await service.confirm_cod_collected(intent)
    except LazlaError as exc:
        raise to_http_exception(exc) from exc
    return CollectResponse(event=event_response(event))


@router.get("/purchase/{purchase_id}", response_model=list[PaymentEventResponse])
async def get_events_for_purchase(
    purchase_id: int,
    caller: AuthenticatedPrincipal = Depends(get_current_staff),
    service: PaymentService = Depends(get_payment_read_service),
) -> list[PaymentEventResponse]:
    events = await service.get_events_for_purchase(purchase_id)
    return [event_response(event) for event in events]


@router.get("/admin", response_model=PaymentEventPage)
async def list_delivery_events(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    caller: AuthenticatedPrincipal = Depends(get_current_staff),
    service: PaymentService = Depends(get_payment_read_service),
) -> PaymentEventPage:
    """All events across purchases, newest first."""
    events, total = await service.list_events(page, limit)
    return PaymentEventPage(
        items=[event_response(event) for event in events],
        page=page,
        limit=limit,
        total=total,
    )
