"""Who may perform which transfer action.

Every predicate here is pure: it looks only at the actor and the transfer it
is handed. ``can_*`` answers the full question (actor capability *and*
current status) and drives ``available_actions``. ``authorize`` answers only
the actor half and is what the service calls first, so that a caller without
the capability gets ``PermissionDenied`` even when the status is also wrong.
"""
from __future__ import annotations

from typing import Callable

from app.inventsight.core.error_catalog import PermissionDenied
from app.inventsight.core.scope import Actor
from app.inventsight.schemas.transfers import TransferEvent, TransferRequest
from app.inventsight.services.transfer_state_machine import is_allowed


def _is_requester(actor: Actor, transfer: TransferRequest) -> bool:
    return actor.id == transfer.requested_by.id


def _is_source_staff(actor: Actor, transfer: TransferRequest) -> bool:
    return actor.works_at(transfer.from_location)


def _is_destination_staff(actor: Actor, transfer: TransferRequest) -> bool:
    return actor.works_at(transfer.to_location)


def _is_assigned_carrier(actor: Actor, transfer: TransferRequest) -> bool:
    carrier = transfer.carrier
    return bool(carrier and carrier.user_id and carrier.user_id == actor.id)


def _gm_plus(actor: Actor, _transfer: TransferRequest) -> bool:
    return actor.is_gm_plus


def _can_deliver(actor: Actor, transfer: TransferRequest) -> bool:
    return _is_source_staff(actor, transfer) or _is_assigned_carrier(actor, transfer)


def _can_close(actor: Actor, _transfer: TransferRequest) -> bool:
    return actor.is_system or actor.is_gm_plus


_CAPABILITIES: dict[TransferEvent, Callable[[Actor, TransferRequest], bool]] = {
    TransferEvent.APPROVE: _gm_plus,
    TransferEvent.REJECT: _gm_plus,
    TransferEvent.CANCEL: _is_requester,
    TransferEvent.MARK_READY: _is_source_staff,
    TransferEvent.START_DELIVERY: _is_source_staff,
    TransferEvent.MARK_DELIVERED: _can_deliver,
    TransferEvent.CONFIRM_RECEIPT: _is_destination_staff,
    TransferEvent.COMPLETE: _can_close,
}

# Action names as the mobile client expects them in ``availableActions``.
ACTION_NAMES: dict[TransferEvent, str] = {
    TransferEvent.APPROVE: "approve",
    TransferEvent.REJECT: "reject",
    TransferEvent.CANCEL: "cancel",
    TransferEvent.MARK_READY: "markReady",
    TransferEvent.START_DELIVERY: "startDelivery",
    TransferEvent.MARK_DELIVERED: "markDelivered",
    TransferEvent.CONFIRM_RECEIPT: "receive",
    TransferEvent.COMPLETE: "complete",
}


def has_capability(actor: Actor, transfer: TransferRequest, event: TransferEvent) -> bool:
    check = _CAPABILITIES.get(event)
    return bool(check and check(actor, transfer))


def can_perform(actor: Actor, transfer: TransferRequest, event: TransferEvent) -> bool:
    return is_allowed(transfer.status, event) and has_capability(actor, transfer, event)


def can_approve(actor: Actor, transfer: TransferRequest) -> bool:
    return can_perform(actor, transfer, TransferEvent.APPROVE)


def can_reject(actor: Actor, transfer: TransferRequest) -> bool:
    return can_perform(actor, transfer, TransferEvent.REJECT)


def can_cancel(actor: Actor, transfer: TransferRequest) -> bool:
    return can_perform(actor, transfer, TransferEvent.CANCEL)


def can_mark_ready(actor: Actor, transfer: TransferRequest) -> bool:
    return can_perform(actor, transfer, TransferEvent.MARK_READY)


def can_start_delivery(actor: Actor, transfer: TransferRequest) -> bool:
    return can_perform(actor, transfer, TransferEvent.START_DELIVERY)


def can_mark_delivered(actor: Actor, transfer: TransferRequest) -> bool:
    return can_perform(actor, transfer, TransferEvent.MARK_DELIVERED)


def can_receive(actor: Actor, transfer: TransferRequest) -> bool:
    return can_perform(actor, transfer, TransferEvent.CONFIRM_RECEIPT)


def can_complete(actor: Actor, transfer: TransferRequest) -> bool:
    return can_perform(actor, transfer, TransferEvent.COMPLETE)


def can_view(actor: Actor, transfer: TransferRequest) -> bool:
    if actor.is_gm_plus or actor.is_system:
        return True
    return (
        _is_requester(actor, transfer)
        or _is_source_staff(actor, transfer)
        or _is_destination_staff(actor, transfer)
    )


def authorize(actor: Actor, transfer: TransferRequest, event: TransferEvent) -> None:
    if not has_capability(actor, transfer, event):
        raise PermissionDenied(
            details={
                "action": ACTION_NAMES.get(event, event.value),
                "role": actor.role,
                "transfer_id": transfer.id,
            }
        )


def available_actions(actor: Actor, transfer: TransferRequest) -> list[str]:
    return [name for event, name in ACTION_NAMES.items() if can_perform(actor, transfer, event)]
