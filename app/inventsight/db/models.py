import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator, CHAR


class GUID(TypeDecorator):
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            from sqlalchemy.dialects.postgresql import UUID

            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(uuid.UUID(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


class Base(DeclarativeBase):
    pass


class TransferRequestRecord(Base):
    __tablename__ = "transfer_requests"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    from_location_type: Mapped[str] = mapped_column(String(20), nullable=False)
    from_location_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    from_location_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    from_location_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    to_location_type: Mapped[str] = mapped_column(String(20), nullable=False)
    to_location_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    to_location_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    to_location_address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    product_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)
    item_name: Mapped[str] = mapped_column(String(255), nullable=False)
    item_image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    requested_quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    approved_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    received_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    damaged_quantity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(String(50), index=True, nullable=False, default="PENDING")
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default="MEDIUM")
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    requested_by_user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    requested_by_name: Mapped[str] = mapped_column(String(255), nullable=False)
    carrier: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    packed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    estimated_delivery_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    receiver_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    receipt_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    events = relationship(
        "TransferRequestEvent",
        back_populates="transfer_request",
        order_by="TransferRequestEvent.sequence",
    )


class TransferRequestEvent(Base):
    __tablename__ = "transfer_request_events"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    transfer_request_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), ForeignKey("transfer_requests.id"), index=True, nullable=False
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    event: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    transfer_request = relationship("TransferRequestRecord", back_populates="events")

    __table_args__ = (
        UniqueConstraint("transfer_request_id", "event", name="uq_transfer_request_event"),
    )


Index("ix_transfer_requests_created_at", TransferRequestRecord.created_at)
