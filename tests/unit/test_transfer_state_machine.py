import pytest

from app.inventsight.core.error_catalog import InvalidTransition
from app.inventsight.schemas.transfers import TransferEvent, TransferStatus, parse_status
from app.inventsight.services.transfer_quantities import reconcile_receipt
from app.inventsight.services.transfer_state_machine import (
    TRANSITIONS,
    allowed_events,
    is_allowed,
    is_terminal,
    require_transition,
    resolve_target,
)
from tests.transfer_helpers import make_transfer


def test_pending_allows_only_decision_events():
    assert set(allowed_events(TransferStatus.PENDING)) == {
        TransferEvent.APPROVE,
        TransferEvent.REJECT,
        TransferEvent.CANCEL,
    }


def test_forward_path_is_linear():
    assert allowed_events(TransferStatus.APPROVED) == [TransferEvent.MARK_READY]
    assert allowed_events(TransferStatus.READY) == [TransferEvent.START_DELIVERY]
    assert allowed_events(TransferStatus.IN_TRANSIT) == [TransferEvent.MARK_DELIVERED]
    assert allowed_events(TransferStatus.DELIVERED) == [TransferEvent.CONFIRM_RECEIPT]
    assert allowed_events(TransferStatus.RECEIVED) == [TransferEvent.COMPLETE]
    assert allowed_events(TransferStatus.PARTIALLY_RECEIVED) == [TransferEvent.COMPLETE]


@pytest.mark.parametrize(
    "status",
    [TransferStatus.COMPLETED, TransferStatus.REJECTED, TransferStatus.CANCELLED],
)
def test_terminal_statuses_have_no_outgoing_events(status):
    assert is_terminal(status)
    assert allowed_events(status) == []


def test_unknown_status_allows_nothing():
    assert allowed_events(TransferStatus.UNKNOWN) == []
    assert not is_terminal(TransferStatus.UNKNOWN)


def test_cancel_after_approval_is_invalid():
    transfer = make_transfer("APPROVED")

    with pytest.raises(InvalidTransition) as exc_info:
        require_transition(transfer, TransferEvent.CANCEL)

    assert exc_info.value.details == {
        "event": "CANCEL",
        "status": "APPROVED",
        "allowed_from": ["PENDING"],
    }


def test_require_transition_returns_table_entry():
    transfer = make_transfer("READY")

    transition = require_transition(transfer, TransferEvent.START_DELIVERY)

    assert transition is TRANSITIONS[TransferEvent.START_DELIVERY]
    assert resolve_target(transition) == TransferStatus.IN_TRANSIT


def test_receipt_target_depends_on_reconciliation():
    transition = TRANSITIONS[TransferEvent.CONFIRM_RECEIPT]

    assert resolve_target(transition, reconcile_receipt(8, 8, 0)) == TransferStatus.RECEIVED
    assert resolve_target(transition, reconcile_receipt(8, 7, 0)) == TransferStatus.PARTIALLY_RECEIVED
    with pytest.raises(ValueError):
        resolve_target(transition)


def test_create_is_not_a_transition():
    assert not is_allowed(TransferStatus.PENDING, TransferEvent.CREATE)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("PENDING", TransferStatus.PENDING),
        ("in_transit", TransferStatus.IN_TRANSIT),
        (" Partially_Received ", TransferStatus.PARTIALLY_RECEIVED),
        ("ON_HOLD", TransferStatus.UNKNOWN),
        (None, TransferStatus.UNKNOWN),
        (3, TransferStatus.UNKNOWN),
    ],
)
def test_parse_status(raw, expected):
    assert parse_status(raw) == expected
