from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Iterable

from app.inventsight.core.config import settings
from app.inventsight.core.error_catalog import AppError, ConflictVersion, InvalidTransition, NotFound, ValidationError
from app.inventsight.core.logging import log_json
from app.inventsight.core.metrics import metrics
from app.inventsight.core.scope import Actor
from app.inventsight.repos.transfers import TransferQueryFilters, TransferRepository
from app.inventsight.schemas.transfers import (
    ApproveAndSendRequest,
    CancelRequest,
    CarrierInfo,
    ConfirmReceiptRequest,
    MarkReadyRequest,
    RejectRequest,
    StartDeliveryRequest,
    TimelineEntry,
    TransferCreateRequest,
    TransferEvent,
    TransferRequest,
    TransferSummaryResponse,
)
from app.inventsight.services.transfer_permissions import authorize
from app.inventsight.services.transfer_quantities import (
    InventoryDelta,
    reconcile_receipt,
    validate_approved_quantity,
    validate_requested_quantity,
)
from app.inventsight.services.transfer_state_machine import (
    INITIAL_STATUS,
    Transition,
    require_transition,
    resolve_target,
)
from app.inventsight.services.transfer_summary import summarize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionRecord:
    transfer: TransferRequest
    event: TransferEvent
    actor: Actor
    inventory_delta: InventoryDelta | None = None


TransitionListener = Callable[[TransitionRecord], None]


def log_transition(record: TransitionRecord) -> None:
    log_json(
        logger,
        {
            "event": "transfer_transition",
            "transfer_id": record.transfer.id,
            "transition": record.event.value,
            "status": record.transfer.status.value,
            "version": record.transfer.version,
            "actor_id": record.actor.id,
            "inventory_delta": record.inventory_delta.as_dict() if record.inventory_delta else None,
        },
    )


DEFAULT_LISTENERS: tuple[TransitionListener, ...] = (log_transition,)


@dataclass(frozen=True)
class TransferPage:
    requests: list[TransferRequest]
    page: int
    size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 0


@dataclass(frozen=True)
class _Outcome:
    changes: dict
    delta: InventoryDelta | None = None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _require_text(value: str | None, field: str, *, min_length: int = 1) -> str:
    text = _clean(value)
    if text is None:
        raise ValidationError.for_field(field, f"{field} is required")
    if len(text) < min_length:
        raise ValidationError.for_field(
            field,
            f"{field} must be at least {min_length} characters",
            min_length=min_length,
            length=len(text),
        )
    return text


class TransferRequestService:
    """Sole writer of transfer requests.

    Every mutation runs the same pipeline: load, check the actor's
    capability, check the transition is legal from the current status,
    validate the payload, then persist behind the version guard and append
    one timeline entry. Listeners run only after the commit.
    """

    def __init__(
        self,
        repo: TransferRepository,
        *,
        clock: Callable[[], datetime] = datetime.utcnow,
        listeners: Iterable[TransitionListener] = DEFAULT_LISTENERS,
    ):
        self.repo = repo
        self.clock = clock
        self.listeners = tuple(listeners)

    # Queries

    def get(self, transfer_id: str) -> TransferRequest:
        transfer = self.repo.get(transfer_id)
        if transfer is None:
            raise NotFound(details={"transfer_id": transfer_id})
        return transfer

    def _scope(self, actor: Actor, filters: TransferQueryFilters, my_locations_only: bool) -> TransferQueryFilters:
        if not my_locations_only:
            return filters
        return replace(filters, visible_to_user_id=actor.id, visible_locations=actor.locations)

    def list(
        self,
        actor: Actor,
        filters: TransferQueryFilters | None = None,
        *,
        page: int = 0,
        size: int | None = None,
        my_locations_only: bool = False,
    ) -> TransferPage:
        page = max(page, 0)
        size = size or settings.TRANSFERS_DEFAULT_PAGE_SIZE
        size = min(max(size, 1), settings.TRANSFERS_MAX_PAGE_SIZE)
        scoped = self._scope(actor, filters or TransferQueryFilters(), my_locations_only)
        rows, total = self.repo.list_page(scoped, page=page, size=size)
        return TransferPage(requests=rows, page=page, size=size, total=total)

    def summary(
        self,
        actor: Actor,
        filters: TransferQueryFilters | None = None,
        *,
        my_locations_only: bool = False,
    ) -> TransferSummaryResponse:
        scoped = self._scope(actor, filters or TransferQueryFilters(), my_locations_only)
        return summarize(self.repo.list_all(scoped), top_n=settings.TRANSFERS_SUMMARY_TOP_N)

    # Commands

    def create(self, actor: Actor, payload: TransferCreateRequest) -> TransferRequest:
        try:
            if payload.from_location.key == payload.to_location.key:
                raise ValidationError.for_field("toLocation", "fromLocation and toLocation must differ")
            requested = validate_requested_quantity(payload.requested_quantity)
            reason = _require_text(payload.reason, "reason")
            _require_text(payload.item.product_id, "item.productId")

            now = self.clock()
            transfer = TransferRequest(
                id=str(uuid.uuid4()),
                from_location=payload.from_location,
                to_location=payload.to_location,
                item=payload.item,
                requested_quantity=requested,
                status=INITIAL_STATUS,
                priority=payload.priority,
                reason=reason,
                notes=_clean(payload.notes),
                requested_by=actor.ref(),
                timeline=[
                    TimelineEntry(event=TransferEvent.CREATE, actor_id=actor.id, actor_name=actor.name, timestamp=now)
                ],
                version=1,
                created_at=now,
                updated_at=now,
            )
            self.repo.add(transfer)
        except AppError as exc:
            metrics.record_transition(event=TransferEvent.CREATE.value, result=exc.error.code)
            raise
        metrics.record_transition(event=TransferEvent.CREATE.value, result="OK")
        self._notify(TransitionRecord(transfer=transfer, event=TransferEvent.CREATE, actor=actor))
        return transfer

    def approve_and_send(
        self,
        actor: Actor,
        transfer_id: str,
        payload: ApproveAndSendRequest,
        *,
        expected_version: int | None = None,
    ) -> TransferRequest:
        def apply(transfer: TransferRequest, transition: Transition) -> _Outcome:
            approved = validate_approved_quantity(transfer.requested_quantity, payload.approved_quantity)
            carrier_name = _require_text(payload.carrier_name, "carrierName")
            return _Outcome(
                changes={
                    "status": resolve_target(transition),
                    "approved_quantity": approved,
                    "carrier": CarrierInfo(
                        name=carrier_name,
                        phone=_clean(payload.carrier_phone),
                        vehicle=_clean(payload.carrier_vehicle),
                        user_id=_clean(payload.carrier_user_id),
                    ),
                    "approval_notes": _clean(payload.approval_notes),
                }
            )

        return self._transition(actor, transfer_id, TransferEvent.APPROVE, apply, expected_version)

    def reject(
        self,
        actor: Actor,
        transfer_id: str,
        payload: RejectRequest,
        *,
        expected_version: int | None = None,
    ) -> TransferRequest:
        def apply(transfer: TransferRequest, transition: Transition) -> _Outcome:
            reason = _require_text(
                payload.reason,
                "reason",
                min_length=settings.TRANSFER_REJECTION_REASON_MIN_LENGTH,
            )
            return _Outcome(changes={"status": resolve_target(transition), "rejection_reason": reason})

        return self._transition(actor, transfer_id, TransferEvent.REJECT, apply, expected_version)

    def cancel(
        self,
        actor: Actor,
        transfer_id: str,
        payload: CancelRequest,
        *,
        expected_version: int | None = None,
    ) -> TransferRequest:
        def apply(transfer: TransferRequest, transition: Transition) -> _Outcome:
            reason = _require_text(payload.reason, "reason")
            return _Outcome(changes={"status": resolve_target(transition), "cancellation_reason": reason})

        return self._transition(actor, transfer_id, TransferEvent.CANCEL, apply, expected_version)

    def mark_ready(
        self,
        actor: Actor,
        transfer_id: str,
        payload: MarkReadyRequest,
        *,
        expected_version: int | None = None,
    ) -> TransferRequest:
        def apply(transfer: TransferRequest, transition: Transition) -> _Outcome:
            packed_by = _require_text(payload.packed_by, "packedBy")
            changes = {"status": resolve_target(transition), "packed_by": packed_by}
            notes = _clean(payload.notes)
            if notes:
                changes["notes"] = notes
            return _Outcome(changes=changes)

        return self._transition(actor, transfer_id, TransferEvent.MARK_READY, apply, expected_version)

    def start_delivery(
        self,
        actor: Actor,
        transfer_id: str,
        payload: StartDeliveryRequest | None = None,
        *,
        expected_version: int | None = None,
    ) -> TransferRequest:
        payload = payload or StartDeliveryRequest()

        def apply(transfer: TransferRequest, transition: Transition) -> _Outcome:
            if transfer.carrier is None:
                raise ValidationError.for_field("carrier", "a carrier must be assigned before delivery starts")
            return _Outcome(
                changes={
                    "status": resolve_target(transition),
                    "estimated_delivery_at": payload.estimated_delivery_at,
                }
            )

        return self._transition(actor, transfer_id, TransferEvent.START_DELIVERY, apply, expected_version)

    def mark_delivered(
        self,
        actor: Actor,
        transfer_id: str,
        *,
        expected_version: int | None = None,
    ) -> TransferRequest:
        def apply(transfer: TransferRequest, transition: Transition) -> _Outcome:
            return _Outcome(changes={"status": resolve_target(transition)})

        return self._transition(actor, transfer_id, TransferEvent.MARK_DELIVERED, apply, expected_version)

    def confirm_receipt(
        self,
        actor: Actor,
        transfer_id: str,
        payload: ConfirmReceiptRequest,
        *,
        expected_version: int | None = None,
    ) -> TransferRequest:
        def apply(transfer: TransferRequest, transition: Transition) -> _Outcome:
            receipt = reconcile_receipt(
                transfer.approved_quantity,
                payload.received_quantity,
                payload.damaged_quantity,
            )
            receiver_name = _require_text(payload.receiver_name, "receiverName")
            return _Outcome(
                changes={
                    "status": resolve_target(transition, receipt),
                    "received_quantity": receipt.received_quantity,
                    "damaged_quantity": receipt.damaged_quantity,
                    "receiver_name": receiver_name,
                    "receipt_notes": _clean(payload.receipt_notes),
                },
                delta=receipt.delta,
            )

        return self._transition(actor, transfer_id, TransferEvent.CONFIRM_RECEIPT, apply, expected_version)

    def complete(
        self,
        actor: Actor,
        transfer_id: str,
        *,
        expected_version: int | None = None,
    ) -> TransferRequest:
        def apply(transfer: TransferRequest, transition: Transition) -> _Outcome:
            return _Outcome(changes={"status": resolve_target(transition)})

        return self._transition(actor, transfer_id, TransferEvent.COMPLETE, apply, expected_version)

    # Pipeline

    def _transition(
        self,
        actor: Actor,
        transfer_id: str,
        event: TransferEvent,
        apply: Callable[[TransferRequest, Transition], _Outcome],
        expected_version: int | None,
    ) -> TransferRequest:
        try:
            transfer = self.get(transfer_id)
            authorize(actor, transfer, event)
            transition = require_transition(transfer, event)
            outcome = apply(transfer, transition)
            # A stale client version only matters once the command would otherwise succeed.
            if expected_version is not None and expected_version != transfer.version:
                raise ConflictVersion(
                    details={
                        "transfer_id": transfer.id,
                        "expected_version": expected_version,
                        "current_version": transfer.version,
                    }
                )
            updated = self._commit(actor, transfer, event, outcome.changes)
        except AppError as exc:
            metrics.record_transition(event=event.value, result=exc.error.code)
            raise
        metrics.record_transition(event=event.value, result="OK")
        self._notify(TransitionRecord(transfer=updated, event=event, actor=actor, inventory_delta=outcome.delta))
        return updated

    def _commit(self, actor: Actor, transfer: TransferRequest, event: TransferEvent, changes: dict) -> TransferRequest:
        if transfer.has_event(event):
            raise InvalidTransition(details={"event": event.value, "status": transfer.status.value})
        now = self.clock()
        last = transfer.last_event_at()
        if last is not None and now < last:
            now = last
        entry = TimelineEntry(event=event, actor_id=actor.id, actor_name=actor.name, timestamp=now)
        updated = transfer.model_copy(
            update={
                **changes,
                "timeline": [*transfer.timeline, entry],
                "version": transfer.version + 1,
                "updated_at": now,
            }
        )
        self.repo.update(updated, expected_version=transfer.version, appended=entry)
        return updated

    def _notify(self, record: TransitionRecord) -> None:
        for listener in self.listeners:
            try:
                listener(record)
            except Exception:
                logger.exception(
                    "Transfer transition listener failed",
                    extra={"transfer_id": record.transfer.id, "transition": record.event.value},
                )
