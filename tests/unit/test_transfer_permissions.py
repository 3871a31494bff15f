import pytest

from app.inventsight.core.error_catalog import PermissionDenied
from app.inventsight.core.scope import Actor, is_gm_plus
from app.inventsight.schemas.transfers import TransferEvent
from app.inventsight.services.transfer_permissions import (
    authorize,
    available_actions,
    can_approve,
    can_cancel,
    can_complete,
    can_mark_delivered,
    can_mark_ready,
    can_receive,
    can_reject,
    can_start_delivery,
    can_view,
)
from tests.transfer_helpers import (
    CARRIER,
    DESTINATION_STAFF,
    GM,
    OUTSIDER,
    REQUESTER,
    SOURCE_STAFF,
    SYSTEM,
    make_transfer,
)


@pytest.mark.parametrize("role", ["OWNER", "general_manager", "Ceo", "FOUNDER", " admin "])
def test_gm_plus_roles_are_case_insensitive(role):
    assert is_gm_plus(role)


@pytest.mark.parametrize("role", [None, "", "MANAGER", "STAFF", "SYSTEM"])
def test_other_roles_are_not_gm_plus(role):
    assert not is_gm_plus(role)


def test_only_gm_plus_decides_pending_requests():
    transfer = make_transfer("PENDING")

    assert can_approve(GM, transfer)
    assert can_reject(GM, transfer)
    for actor in (REQUESTER, SOURCE_STAFF, DESTINATION_STAFF, CARRIER):
        assert not can_approve(actor, transfer)
        assert not can_reject(actor, transfer)


@pytest.mark.parametrize("status", ["PENDING", "APPROVED", "DELIVERED", "COMPLETED"])
def test_location_staff_approval_is_denied_in_any_status(status):
    transfer = make_transfer(status)

    with pytest.raises(PermissionDenied) as exc_info:
        authorize(SOURCE_STAFF, transfer, TransferEvent.APPROVE)

    assert exc_info.value.details["action"] == "approve"


def test_only_requester_cancels():
    transfer = make_transfer("PENDING")

    assert can_cancel(REQUESTER, transfer)
    assert not can_cancel(GM, transfer)
    assert not can_cancel(REQUESTER, make_transfer("APPROVED"))
    with pytest.raises(PermissionDenied):
        authorize(GM, transfer, TransferEvent.CANCEL)


def test_source_staff_moves_goods_out():
    assert can_mark_ready(SOURCE_STAFF, make_transfer("APPROVED"))
    assert can_start_delivery(SOURCE_STAFF, make_transfer("READY"))
    assert not can_mark_ready(DESTINATION_STAFF, make_transfer("APPROVED"))
    assert not can_start_delivery(GM, make_transfer("READY"))


def test_assigned_carrier_may_mark_delivered():
    transfer = make_transfer("IN_TRANSIT")

    assert can_mark_delivered(CARRIER, transfer)
    assert can_mark_delivered(SOURCE_STAFF, transfer)
    assert not can_mark_delivered(DESTINATION_STAFF, transfer)

    unassigned = make_transfer("IN_TRANSIT", carrier={"name": "FastMove"})
    assert not can_mark_delivered(CARRIER, unassigned)


def test_destination_staff_receives():
    transfer = make_transfer("DELIVERED")

    assert can_receive(DESTINATION_STAFF, transfer)
    assert not can_receive(SOURCE_STAFF, transfer)
    assert not can_receive(GM, transfer)


def test_completion_by_gm_plus_or_system():
    transfer = make_transfer("PARTIALLY_RECEIVED")

    assert can_complete(GM, transfer)
    assert can_complete(SYSTEM, transfer)
    assert not can_complete(DESTINATION_STAFF, transfer)
    assert not can_complete(GM, make_transfer("DELIVERED"))


def test_available_actions_follow_predicates():
    assert available_actions(GM, make_transfer("PENDING")) == ["approve", "reject"]
    assert available_actions(REQUESTER, make_transfer("PENDING")) == ["cancel"]
    assert available_actions(SOURCE_STAFF, make_transfer("APPROVED")) == ["markReady"]
    assert available_actions(CARRIER, make_transfer("IN_TRANSIT")) == ["markDelivered"]
    assert available_actions(DESTINATION_STAFF, make_transfer("DELIVERED")) == ["receive"]
    assert available_actions(GM, make_transfer("RECEIVED")) == ["complete"]
    assert available_actions(GM, make_transfer("COMPLETED")) == []
    assert available_actions(GM, make_transfer("SOMETHING_NEW")) == []


def test_view_scope():
    transfer = make_transfer("PENDING")

    assert can_view(GM, transfer)
    assert can_view(REQUESTER, transfer)
    assert can_view(SOURCE_STAFF, transfer)
    assert can_view(DESTINATION_STAFF, transfer)
    assert not can_view(OUTSIDER, transfer)


def test_actor_rejects_malformed_location_claims():
    with pytest.raises(ValueError):
        Actor.build(id="u-1", name="Broken", locations=["st-1"])
