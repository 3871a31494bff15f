from __future__ import annotations

from datetime import datetime

from app.inventsight.core.scope import Actor
from app.inventsight.core.security import create_access_token
from app.inventsight.schemas.transfers import (
    ApproveAndSendRequest,
    ConfirmReceiptRequest,
    MarkReadyRequest,
    TransferCreateRequest,
    TransferRequest,
)

SOURCE = "WAREHOUSE:wh-1"
DESTINATION = "STORE:st-1"

REQUESTER = Actor.build(id="u-requester", name="Rita Requester", role="SALES", locations=[DESTINATION])
GM = Actor.build(id="u-gm", name="Gina Manager", role="GENERAL_MANAGER")
SOURCE_STAFF = Actor.build(id="u-source", name="Sam Source", role="STAFF", locations=[SOURCE])
DESTINATION_STAFF = Actor.build(id="u-dest", name="Dora Destination", role="STAFF", locations=[DESTINATION])
CARRIER = Actor.build(id="u-carrier", name="Carl Carrier", role="DRIVER")
OUTSIDER = Actor.build(id="u-outsider", name="Otto Outsider", role="STAFF", locations=["STORE:st-9"])
SYSTEM = Actor.system()


def create_body(**overrides) -> dict:
    body = {
        "fromLocation": {"type": "WAREHOUSE", "id": "wh-1", "name": "Main Warehouse"},
        "toLocation": {"type": "STORE", "id": "st-1", "name": "Downtown Store"},
        "item": {"productId": "p-1", "sku": "SKU-1", "name": "Blue Jacket"},
        "requestedQuantity": 10,
        "priority": "HIGH",
        "reason": "Restock for weekend sale",
    }
    body.update(overrides)
    return body


def create_payload(**overrides) -> TransferCreateRequest:
    return TransferCreateRequest.model_validate(create_body(**overrides))


def approve_payload(approved: int | None = 8, **overrides) -> ApproveAndSendRequest:
    values = {"approved_quantity": approved, "carrier_name": "FastMove", "carrier_user_id": CARRIER.id}
    values.update(overrides)
    return ApproveAndSendRequest(**values)


def receipt_payload(received: int | None = 8, damaged: int | None = 0, **overrides) -> ConfirmReceiptRequest:
    values = {"received_quantity": received, "damaged_quantity": damaged, "receiver_name": "Dora"}
    values.update(overrides)
    return ConfirmReceiptRequest(**values)


def advance_to_delivered(service, transfer_id: str, *, approved: int = 8):
    service.approve_and_send(GM, transfer_id, approve_payload(approved))
    service.mark_ready(SOURCE_STAFF, transfer_id, MarkReadyRequest(packed_by="Sam"))
    service.start_delivery(SOURCE_STAFF, transfer_id)
    return service.mark_delivered(CARRIER, transfer_id)


def token_for(actor: Actor) -> str:
    return create_access_token(
        {
            "sub": actor.id,
            "name": actor.name,
            "role": actor.role,
            "locations": [f"{location_type.value}:{location_id}" for location_type, location_id in actor.locations],
        }
    )


def auth_headers(actor: Actor, *, version: int | None = None) -> dict:
    headers = {"Authorization": f"Bearer {token_for(actor)}"}
    if version is not None:
        headers["If-Match"] = str(version)
    return headers


def make_transfer(status: str = "PENDING", **overrides) -> TransferRequest:
    values = {
        "id": "7b0c1d52-1111-4c4f-9a55-1a2b3c4d5e6f",
        "from_location": {"type": "WAREHOUSE", "id": "wh-1", "name": "Main Warehouse"},
        "to_location": {"type": "STORE", "id": "st-1", "name": "Downtown Store"},
        "item": {"product_id": "p-1", "sku": "SKU-1", "name": "Blue Jacket"},
        "requested_quantity": 10,
        "status": status,
        "reason": "Restock",
        "requested_by": {"id": REQUESTER.id, "name": REQUESTER.name},
        "carrier": {"name": "FastMove", "user_id": CARRIER.id},
        "created_at": datetime(2024, 3, 1, 9, 0, 0),
    }
    values.update(overrides)
    return TransferRequest.model_validate(values)
