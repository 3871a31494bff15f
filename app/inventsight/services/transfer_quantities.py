"""Quantity rules for transfer requests.

Pure calculators: they validate numbers and describe the stock movement a
transition implies, but never touch stock themselves. Applying an
``InventoryDelta`` to the ledger belongs to whoever listens for committed
transitions.
"""
from __future__ import annotations

from dataclasses import dataclass

from app.inventsight.core.config import settings
from app.inventsight.core.error_catalog import QuantityExceeded, ValidationError
from app.inventsight.schemas.transfers import TransferStatus


@dataclass(frozen=True)
class InventoryDelta:
    release_reserved_at_source: int
    credit_stock_at_destination: int

    def as_dict(self) -> dict[str, int]:
        return {
            "releaseReservedAtSource": self.release_reserved_at_source,
            "creditStockAtDestination": self.credit_stock_at_destination,
        }


@dataclass(frozen=True)
class ReceiptReconciliation:
    received_quantity: int
    damaged_quantity: int
    status: TransferStatus
    delta: InventoryDelta


def _require_int(value: int | None, field: str) -> int:
    if value is None:
        raise ValidationError.for_field(field, f"{field} is required")
    return value


def validate_requested_quantity(requested_quantity: int | None) -> int:
    requested = _require_int(requested_quantity, "requestedQuantity")
    if requested <= 0:
        raise ValidationError.for_field(
            "requestedQuantity",
            "requestedQuantity must be greater than 0",
            value=requested,
        )
    if requested > settings.TRANSFERS_MAX_QUANTITY:
        raise ValidationError.for_field(
            "requestedQuantity",
            f"requestedQuantity must be at most {settings.TRANSFERS_MAX_QUANTITY}",
            value=requested,
            max=settings.TRANSFERS_MAX_QUANTITY,
        )
    return requested


def validate_approved_quantity(requested_quantity: int, approved_quantity: int | None) -> int:
    approved = _require_int(approved_quantity, "approvedQuantity")
    if approved <= 0 or approved > requested_quantity:
        raise QuantityExceeded(
            details={
                "field": "approvedQuantity",
                "message": "approvedQuantity must be between 1 and requestedQuantity",
                "value": approved,
                "max": requested_quantity,
            }
        )
    return approved


def receipt_status(approved_quantity: int, received_quantity: int, damaged_quantity: int) -> TransferStatus:
    if received_quantity == approved_quantity and damaged_quantity == 0:
        return TransferStatus.RECEIVED
    return TransferStatus.PARTIALLY_RECEIVED


def reconcile_receipt(
    approved_quantity: int | None,
    received_quantity: int | None,
    damaged_quantity: int | None,
) -> ReceiptReconciliation:
    if approved_quantity is None:
        # An approved transfer always carries a quantity; this is a corrupt record.
        raise ValidationError.for_field("approvedQuantity", "transfer has no approved quantity")
    received = _require_int(received_quantity, "receivedQuantity")
    damaged = _require_int(0 if damaged_quantity is None else damaged_quantity, "damagedQuantity")

    if received <= 0 or received > approved_quantity:
        raise QuantityExceeded(
            details={
                "field": "receivedQuantity",
                "message": "receivedQuantity must be between 1 and approvedQuantity",
                "value": received,
                "max": approved_quantity,
            }
        )
    if damaged < 0 or damaged > received:
        raise QuantityExceeded(
            details={
                "field": "damagedQuantity",
                "message": "damagedQuantity must be between 0 and receivedQuantity",
                "value": damaged,
                "max": received,
            }
        )

    return ReceiptReconciliation(
        received_quantity=received,
        damaged_quantity=damaged,
        status=receipt_status(approved_quantity, received, damaged),
        delta=InventoryDelta(
            release_reserved_at_source=approved_quantity,
            credit_stock_at_destination=received - damaged,
        ),
    )
