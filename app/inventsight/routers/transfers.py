from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Header, Query

from app.inventsight.core.deps import get_current_actor, get_transfer_service
from app.inventsight.core.error_catalog import ValidationError
from app.inventsight.core.scope import Actor
from app.inventsight.repos.transfers import TransferQueryFilters
from app.inventsight.schemas.transfers import (
    ApproveAndSendRequest,
    CancelRequest,
    ConfirmReceiptRequest,
    LocationType,
    MarkReadyRequest,
    PaginationInfo,
    RejectRequest,
    StartDeliveryRequest,
    TransferCreateRequest,
    TransferEnvelope,
    TransferPageResponse,
    TransferPriority,
    TransferRequest,
    TransferStatus,
    TransferSummaryResponse,
    parse_status,
)
from app.inventsight.services.transfer_permissions import available_actions
from app.inventsight.services.transfers import TransferRequestService


router = APIRouter()


def _expected_version(if_match: str | None) -> int | None:
    if if_match is None:
        return None
    raw = if_match.strip().removeprefix("W/").strip('"')
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError.for_field("If-Match", "If-Match must carry an integer version", value=if_match) from exc


def _envelope(actor: Actor, transfer: TransferRequest) -> TransferEnvelope:
    return TransferEnvelope(transfer=transfer, available_actions=available_actions(actor, transfer))


def _filters(
    status: str | None,
    priority: TransferPriority | None,
    location_id: str | None,
    location_type: LocationType | None,
    from_date: datetime | None,
    to_date: datetime | None,
    search: str | None,
) -> TransferQueryFilters:
    parsed_status = None
    if status:
        parsed_status = parse_status(status)
        if parsed_status is TransferStatus.UNKNOWN:
            raise ValidationError.for_field("status", "unknown transfer status", value=status)
    return TransferQueryFilters(
        status=parsed_status,
        priority=priority,
        location_id=location_id or None,
        location_type=location_type,
        from_date=from_date,
        to_date=to_date,
        search=search or None,
    )


@router.get("/transfer-requests", response_model=TransferPageResponse)
def list_transfer_requests(
    status: str | None = None,
    priority: TransferPriority | None = None,
    location_id: str | None = Query(None, alias="locationId"),
    location_type: LocationType | None = Query(None, alias="locationType"),
    from_date: datetime | None = Query(None, alias="fromDate"),
    to_date: datetime | None = Query(None, alias="toDate"),
    search: str | None = None,
    my_locations_only: bool = Query(False, alias="myLocationsOnly"),
    page: int = Query(0, ge=0),
    size: int | None = Query(None, ge=1),
    actor: Actor = Depends(get_current_actor),
    service: TransferRequestService = Depends(get_transfer_service),
):
    filters = _filters(status, priority, location_id, location_type, from_date, to_date, search)
    result = service.list(actor, filters, page=page, size=size, my_locations_only=my_locations_only)
    return TransferPageResponse(
        requests=[_envelope(actor, transfer) for transfer in result.requests],
        pagination=PaginationInfo(
            current_page=result.page,
            total_pages=result.total_pages,
            total_elements=result.total,
            page_size=result.size,
            has_next=result.has_next,
            has_previous=result.has_previous,
        ),
    )


@router.post(
    "/transfer-requests",
    response_model=TransferEnvelope,
    status_code=201,
)
def create_transfer_request(
    payload: TransferCreateRequest,
    actor: Actor = Depends(get_current_actor),
    service: TransferRequestService = Depends(get_transfer_service),
):
    return _envelope(actor, service.create(actor, payload))


# Declared ahead of "/{transfer_id}" so "summary" is not taken for an id.
@router.get("/transfer-requests/summary", response_model=TransferSummaryResponse)
def transfer_requests_summary(
    status: str | None = None,
    priority: TransferPriority | None = None,
    location_id: str | None = Query(None, alias="locationId"),
    location_type: LocationType | None = Query(None, alias="locationType"),
    from_date: datetime | None = Query(None, alias="fromDate"),
    to_date: datetime | None = Query(None, alias="toDate"),
    search: str | None = None,
    my_locations_only: bool = Query(False, alias="myLocationsOnly"),
    actor: Actor = Depends(get_current_actor),
    service: TransferRequestService = Depends(get_transfer_service),
):
    filters = _filters(status, priority, location_id, location_type, from_date, to_date, search)
    return service.summary(actor, filters, my_locations_only=my_locations_only)


@router.get("/transfer-requests/{transfer_id}", response_model=TransferEnvelope)
def get_transfer_request(
    transfer_id: str,
    actor: Actor = Depends(get_current_actor),
    service: TransferRequestService = Depends(get_transfer_service),
):
    return _envelope(actor, service.get(transfer_id))


@router.post("/transfer-requests/{transfer_id}/send", response_model=TransferEnvelope)
def approve_and_send(
    transfer_id: str,
    payload: ApproveAndSendRequest,
    if_match: str | None = Header(None, alias="If-Match"),
    actor: Actor = Depends(get_current_actor),
    service: TransferRequestService = Depends(get_transfer_service),
):
    transfer = service.approve_and_send(actor, transfer_id, payload, expected_version=_expected_version(if_match))
    return _envelope(actor, transfer)


@router.post("/transfer-requests/{transfer_id}/reject", response_model=TransferEnvelope)
def reject(
    transfer_id: str,
    payload: RejectRequest,
    if_match: str | None = Header(None, alias="If-Match"),
    actor: Actor = Depends(get_current_actor),
    service: TransferRequestService = Depends(get_transfer_service),
):
    transfer = service.reject(actor, transfer_id, payload, expected_version=_expected_version(if_match))
    return _envelope(actor, transfer)


@router.post("/transfer-requests/{transfer_id}/ready", response_model=TransferEnvelope)
def mark_ready(
    transfer_id: str,
    payload: MarkReadyRequest,
    if_match: str | None = Header(None, alias="If-Match"),
    actor: Actor = Depends(get_current_actor),
    service: TransferRequestService = Depends(get_transfer_service),
):
    transfer = service.mark_ready(actor, transfer_id, payload, expected_version=_expected_version(if_match))
    return _envelope(actor, transfer)


@router.post(
    "/transfer-requests/{transfer_id}/deliver-start",
    response_model=TransferEnvelope,
)
def start_delivery(
    transfer_id: str,
    payload: StartDeliveryRequest | None = None,
    if_match: str | None = Header(None, alias="If-Match"),
    actor: Actor = Depends(get_current_actor),
    service: TransferRequestService = Depends(get_transfer_service),
):
    transfer = service.start_delivery(actor, transfer_id, payload, expected_version=_expected_version(if_match))
    return _envelope(actor, transfer)


@router.post(
    "/transfer-requests/{transfer_id}/delivered",
    response_model=TransferEnvelope,
)
def mark_delivered(
    transfer_id: str,
    if_match: str | None = Header(None, alias="If-Match"),
    actor: Actor = Depends(get_current_actor),
    service: TransferRequestService = Depends(get_transfer_service),
):
    transfer = service.mark_delivered(actor, transfer_id, expected_version=_expected_version(if_match))
    return _envelope(actor, transfer)


@router.post("/transfer-requests/{transfer_id}/receive", response_model=TransferEnvelope)
def confirm_receipt(
    transfer_id: str,
    payload: ConfirmReceiptRequest,
    if_match: str | None = Header(None, alias="If-Match"),
    actor: Actor = Depends(get_current_actor),
    service: TransferRequestService = Depends(get_transfer_service),
):
    transfer = service.confirm_receipt(actor, transfer_id, payload, expected_version=_expected_version(if_match))
    return _envelope(actor, transfer)


@router.post(
    "/transfer-requests/{transfer_id}/complete",
    response_model=TransferEnvelope,
)
def complete(
    transfer_id: str,
    if_match: str | None = Header(None, alias="If-Match"),
    actor: Actor = Depends(get_current_actor),
    service: TransferRequestService = Depends(get_transfer_service),
):
    transfer = service.complete(actor, transfer_id, expected_version=_expected_version(if_match))
    return _envelope(actor, transfer)


@router.post("/transfer-requests/{transfer_id}/cancel", response_model=TransferEnvelope)
def cancel(
    transfer_id: str,
    payload: CancelRequest,
    if_match: str | None = Header(None, alias="If-Match"),
    actor: Actor = Depends(get_current_actor),
    service: TransferRequestService = Depends(get_transfer_service),
):
    transfer = service.cancel(actor, transfer_id, payload, expected_version=_expected_version(if_match))
    return _envelope(actor, transfer)
