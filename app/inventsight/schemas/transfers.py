from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator
from pydantic.alias_generators import to_camel


class TransferStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    READY = "READY"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    RECEIVED = "RECEIVED"
    PARTIALLY_RECEIVED = "PARTIALLY_RECEIVED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"
    # Decode-only: a status string this build does not know about.
    UNKNOWN = "UNKNOWN"


TERMINAL_STATUSES = frozenset({TransferStatus.COMPLETED, TransferStatus.REJECTED, TransferStatus.CANCELLED})


def parse_status(raw: object) -> TransferStatus:
    """Decode a wire/storage status string.

    Matching is case-insensitive. Anything unrecognised becomes
    ``TransferStatus.UNKNOWN`` instead of raising, so newer servers can add
    states without breaking older readers; callers decide whether to log it.
    """
    if isinstance(raw, TransferStatus):
        return raw
    if not isinstance(raw, str):
        return TransferStatus.UNKNOWN
    try:
        return TransferStatus(raw.strip().upper())
    except ValueError:
        return TransferStatus.UNKNOWN


class TransferPriority(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class LocationType(str, Enum):
    STORE = "STORE"
    WAREHOUSE = "WAREHOUSE"


class TransferEvent(str, Enum):
    CREATE = "CREATE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    MARK_READY = "MARK_READY"
    START_DELIVERY = "START_DELIVERY"
    MARK_DELIVERED = "MARK_DELIVERED"
    CONFIRM_RECEIPT = "CONFIRM_RECEIPT"
    COMPLETE = "COMPLETE"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TransferLocation(CamelModel):
    type: LocationType
    id: str
    name: str | None = None
    address: str | None = None

    @property
    def key(self) -> tuple[LocationType, str]:
        return self.type, self.id

    def display_name(self) -> str:
        return self.name or f"{self.type.value}-{self.id}"


class TransferItem(CamelModel):
    product_id: str
    sku: str
    name: str
    image_url: str | None = None


class CarrierInfo(CamelModel):
    name: str
    phone: str | None = None
    vehicle: str | None = None
    user_id: str | None = None


class ActorRef(CamelModel):
    id: str
    name: str


class TimelineEntry(CamelModel):
    event: TransferEvent
    actor_id: str
    actor_name: str
    timestamp: datetime


class TransferRequest(CamelModel):
    id: str
    from_location: TransferLocation
    to_location: TransferLocation
    item: TransferItem
    requested_quantity: int
    approved_quantity: int | None = None
    received_quantity: int | None = None
    damaged_quantity: int | None = None
    status: TransferStatus = TransferStatus.PENDING
    priority: TransferPriority = TransferPriority.MEDIUM
    reason: str
    notes: str | None = None
    requested_by: ActorRef
    carrier: CarrierInfo | None = None
    packed_by: str | None = None
    estimated_delivery_at: datetime | None = None
    receiver_name: str | None = None
    approval_notes: str | None = None
    rejection_reason: str | None = None
    cancellation_reason: str | None = None
    receipt_notes: str | None = None
    timeline: list[TimelineEntry] = []
    version: int = 1
    created_at: datetime
    updated_at: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _decode_status(cls, value):
        return parse_status(value)

    def has_event(self, event: TransferEvent) -> bool:
        return any(entry.event == event for entry in self.timeline)

    def event_at(self, event: TransferEvent) -> datetime | None:
        for entry in self.timeline:
            if entry.event == event:
                return entry.timestamp
        return None

    def last_event_at(self) -> datetime | None:
        if not self.timeline:
            return None
        return self.timeline[-1].timestamp


# Command payloads. Only types are enforced here; range and length rules are
# checked by the service so that permission and status errors take precedence.


class TransferCreateRequest(CamelModel):
    from_location: TransferLocation
    to_location: TransferLocation
    item: TransferItem
    requested_quantity: StrictInt
    priority: TransferPriority = TransferPriority.MEDIUM
    reason: str | None = None
    notes: str | None = None


class ApproveAndSendRequest(CamelModel):
    approved_quantity: StrictInt | None = None
    carrier_name: str | None = None
    carrier_phone: str | None = None
    carrier_vehicle: str | None = None
    carrier_user_id: str | None = None
    approval_notes: str | None = None


class RejectRequest(CamelModel):
    reason: str | None = None


class CancelRequest(CamelModel):
    reason: str | None = None


class MarkReadyRequest(CamelModel):
    packed_by: str | None = None
    notes: str | None = None


class StartDeliveryRequest(CamelModel):
    estimated_delivery_at: datetime | None = None


class ConfirmReceiptRequest(CamelModel):
    received_quantity: StrictInt | None = None
    damaged_quantity: StrictInt | None = 0
    receiver_name: str | None = None
    receipt_notes: str | None = None


class TransferEnvelope(CamelModel):
    transfer: TransferRequest
    available_actions: list[str]


class PaginationInfo(CamelModel):
    current_page: int
    total_pages: int
    total_elements: int
    page_size: int
    has_next: bool
    has_previous: bool


class TransferPageResponse(CamelModel):
    requests: list[TransferEnvelope]
    pagination: PaginationInfo


class TopRequestedItem(CamelModel):
    item_name: str
    sku: str
    count: int


class ActiveRoute(CamelModel):
    from_: str = Field(alias="from")
    to: str
    count: int


class TransferSummaryResponse(CamelModel):
    total_transfers: int
    pending_count: int
    completed_count: int
    in_transit_count: int
    counts_by_status: dict[str, int]
    avg_delivery_time: float
    top_requested_items: list[TopRequestedItem]
    most_active_routes: list[ActiveRoute]
