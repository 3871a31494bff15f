from __future__ import annotations

from dataclasses import dataclass

from app.inventsight.core.error_catalog import InvalidTransition
from app.inventsight.schemas.transfers import (
    TERMINAL_STATUSES,
    TransferEvent,
    TransferRequest,
    TransferStatus,
)
from app.inventsight.services.transfer_quantities import ReceiptReconciliation


@dataclass(frozen=True)
class Transition:
    event: TransferEvent
    sources: frozenset[TransferStatus]
    # None when the destination depends on the payload (receipt).
    target: TransferStatus | None


TRANSITIONS: dict[TransferEvent, Transition] = {
    transition.event: transition
    for transition in (
        Transition(TransferEvent.APPROVE, frozenset({TransferStatus.PENDING}), TransferStatus.APPROVED),
        Transition(TransferEvent.REJECT, frozenset({TransferStatus.PENDING}), TransferStatus.REJECTED),
        Transition(TransferEvent.CANCEL, frozenset({TransferStatus.PENDING}), TransferStatus.CANCELLED),
        Transition(TransferEvent.MARK_READY, frozenset({TransferStatus.APPROVED}), TransferStatus.READY),
        Transition(TransferEvent.START_DELIVERY, frozenset({TransferStatus.READY}), TransferStatus.IN_TRANSIT),
        Transition(TransferEvent.MARK_DELIVERED, frozenset({TransferStatus.IN_TRANSIT}), TransferStatus.DELIVERED),
        Transition(TransferEvent.CONFIRM_RECEIPT, frozenset({TransferStatus.DELIVERED}), None),
        Transition(
            TransferEvent.COMPLETE,
            frozenset({TransferStatus.RECEIVED, TransferStatus.PARTIALLY_RECEIVED}),
            TransferStatus.COMPLETED,
        ),
    )
}

INITIAL_STATUS = TransferStatus.PENDING


def is_terminal(status: TransferStatus) -> bool:
    return status in TERMINAL_STATUSES


def source_states(event: TransferEvent) -> frozenset[TransferStatus]:
    transition = TRANSITIONS.get(event)
    return transition.sources if transition else frozenset()


def is_allowed(status: TransferStatus, event: TransferEvent) -> bool:
    return status in source_states(event)


def allowed_events(status: TransferStatus) -> list[TransferEvent]:
    return [event for event, transition in TRANSITIONS.items() if status in transition.sources]


def require_transition(transfer: TransferRequest, event: TransferEvent) -> Transition:
    transition = TRANSITIONS.get(event)
    if transition is None or transfer.status not in transition.sources:
        raise InvalidTransition(
            details={
                "event": event.value,
                "status": transfer.status.value,
                "allowed_from": sorted(status.value for status in source_states(event)),
            }
        )
    return transition


def resolve_target(transition: Transition, receipt: ReceiptReconciliation | None = None) -> TransferStatus:
    if transition.target is not None:
        return transition.target
    if receipt is None:
        raise ValueError(f"{transition.event.value} needs a receipt reconciliation to pick its target")
    return receipt.status
