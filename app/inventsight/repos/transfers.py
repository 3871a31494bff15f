from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError

from app.inventsight.core.error_catalog import ConflictVersion
from app.inventsight.core.logging import log_json
from app.inventsight.db.models import TransferRequestEvent, TransferRequestRecord
from app.inventsight.schemas.transfers import (
    ActorRef,
    CarrierInfo,
    LocationType,
    TimelineEntry,
    TransferEvent,
    TransferItem,
    TransferLocation,
    TransferPriority,
    TransferRequest,
    TransferStatus,
    parse_status,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransferQueryFilters:
    status: TransferStatus | None = None
    priority: TransferPriority | None = None
    location_id: str | None = None
    location_type: LocationType | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    search: str | None = None
    # When set, only transfers requested by this user or touching these locations.
    visible_to_user_id: str | None = None
    visible_locations: frozenset[tuple[LocationType, str]] = field(default_factory=frozenset)


def _as_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _record_values(transfer: TransferRequest) -> dict:
    return {
        "from_location_type": transfer.from_location.type.value,
        "from_location_id": transfer.from_location.id,
        "from_location_name": transfer.from_location.name,
        "from_location_address": transfer.from_location.address,
        "to_location_type": transfer.to_location.type.value,
        "to_location_id": transfer.to_location.id,
        "to_location_name": transfer.to_location.name,
        "to_location_address": transfer.to_location.address,
        "product_id": transfer.item.product_id,
        "sku": transfer.item.sku,
        "item_name": transfer.item.name,
        "item_image_url": transfer.item.image_url,
        "requested_quantity": transfer.requested_quantity,
        "approved_quantity": transfer.approved_quantity,
        "received_quantity": transfer.received_quantity,
        "damaged_quantity": transfer.damaged_quantity,
        "status": transfer.status.value,
        "priority": transfer.priority.value,
        "reason": transfer.reason,
        "notes": transfer.notes,
        "requested_by_user_id": transfer.requested_by.id,
        "requested_by_name": transfer.requested_by.name,
        "carrier": transfer.carrier.model_dump(mode="json") if transfer.carrier else None,
        "packed_by": transfer.packed_by,
        "estimated_delivery_at": transfer.estimated_delivery_at,
        "receiver_name": transfer.receiver_name,
        "approval_notes": transfer.approval_notes,
        "rejection_reason": transfer.rejection_reason,
        "cancellation_reason": transfer.cancellation_reason,
        "receipt_notes": transfer.receipt_notes,
        "version": transfer.version,
        "updated_at": transfer.updated_at,
    }


def _event_row(transfer_id: uuid.UUID, sequence: int, entry: TimelineEntry) -> TransferRequestEvent:
    return TransferRequestEvent(
        transfer_request_id=transfer_id,
        sequence=sequence,
        event=entry.event.value,
        actor_id=entry.actor_id,
        actor_name=entry.actor_name,
        occurred_at=entry.timestamp,
    )


def _to_domain(record: TransferRequestRecord, events: list[TransferRequestEvent]) -> TransferRequest:
    status = parse_status(record.status)
    if status is TransferStatus.UNKNOWN:
        log_json(
            logger,
            {"event": "transfer_status_unknown", "transfer_id": str(record.id), "raw_status": record.status},
            level=logging.WARNING,
        )
    return TransferRequest(
        id=str(record.id),
        from_location=TransferLocation(
            type=LocationType(record.from_location_type),
            id=record.from_location_id,
            name=record.from_location_name,
            address=record.from_location_address,
        ),
        to_location=TransferLocation(
            type=LocationType(record.to_location_type),
            id=record.to_location_id,
            name=record.to_location_name,
            address=record.to_location_address,
        ),
        item=TransferItem(
            product_id=record.product_id,
            sku=record.sku,
            name=record.item_name,
            image_url=record.item_image_url,
        ),
        requested_quantity=record.requested_quantity,
        approved_quantity=record.approved_quantity,
        received_quantity=record.received_quantity,
        damaged_quantity=record.damaged_quantity,
        status=status,
        priority=TransferPriority(record.priority),
        reason=record.reason,
        notes=record.notes,
        requested_by=ActorRef(id=record.requested_by_user_id, name=record.requested_by_name),
        carrier=CarrierInfo.model_validate(record.carrier) if record.carrier else None,
        packed_by=record.packed_by,
        estimated_delivery_at=record.estimated_delivery_at,
        receiver_name=record.receiver_name,
        approval_notes=record.approval_notes,
        rejection_reason=record.rejection_reason,
        cancellation_reason=record.cancellation_reason,
        receipt_notes=record.receipt_notes,
        timeline=[
            TimelineEntry(
                event=TransferEvent(row.event),
                actor_id=row.actor_id,
                actor_name=row.actor_name,
                timestamp=row.occurred_at,
            )
            for row in events
        ],
        version=record.version,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class TransferRepository:
    def __init__(self, db):
        self.db = db

    def _events(self, transfer_ids: list[uuid.UUID]) -> dict[uuid.UUID, list[TransferRequestEvent]]:
        grouped: dict[uuid.UUID, list[TransferRequestEvent]] = {transfer_id: [] for transfer_id in transfer_ids}
        if not transfer_ids:
            return grouped
        rows = (
            self.db.execute(
                select(TransferRequestEvent)
                .where(TransferRequestEvent.transfer_request_id.in_(transfer_ids))
                .order_by(TransferRequestEvent.sequence.asc())
            )
            .scalars()
            .all()
        )
        for row in rows:
            grouped.setdefault(row.transfer_request_id, []).append(row)
        return grouped

    def _hydrate(self, records: list[TransferRequestRecord]) -> list[TransferRequest]:
        events = self._events([record.id for record in records])
        return [_to_domain(record, events.get(record.id, [])) for record in records]

    def get(self, transfer_id: str) -> TransferRequest | None:
        key = _as_uuid(transfer_id)
        if key is None:
            return None
        # Drop identity-map state so the version token reflects the database.
        self.db.expire_all()
        record = (
            self.db.execute(select(TransferRequestRecord).where(TransferRequestRecord.id == key))
            .scalars()
            .first()
        )
        if record is None:
            return None
        return self._hydrate([record])[0]

    def add(self, transfer: TransferRequest) -> None:
        transfer_id = uuid.UUID(transfer.id)
        record = TransferRequestRecord(id=transfer_id, created_at=transfer.created_at, **_record_values(transfer))
        self.db.add(record)
        self.db.flush()
        self.db.add_all(
            [_event_row(transfer_id, sequence, entry) for sequence, entry in enumerate(transfer.timeline)]
        )
        self.db.commit()

    def update(self, transfer: TransferRequest, *, expected_version: int, appended: TimelineEntry) -> None:
        """Write ``transfer`` only if the stored row is still at ``expected_version``.

        The version bump and the new timeline row share one transaction, so a
        writer that loses the race leaves nothing behind.
        """
        transfer_id = uuid.UUID(transfer.id)
        result = self.db.execute(
            update(TransferRequestRecord)
            .where(
                TransferRequestRecord.id == transfer_id,
                TransferRequestRecord.version == expected_version,
            )
            .values(**_record_values(transfer))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            raise ConflictVersion(details={"transfer_id": transfer.id, "expected_version": expected_version})
        self.db.add(_event_row(transfer_id, len(transfer.timeline) - 1, appended))
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictVersion(
                details={"transfer_id": transfer.id, "expected_version": expected_version}
            ) from exc

    def _filtered_query(self, filters: TransferQueryFilters):
        query = select(TransferRequestRecord)
        conditions = []
        if filters.status is not None:
            conditions.append(TransferRequestRecord.status == filters.status.value)
        if filters.priority is not None:
            conditions.append(TransferRequestRecord.priority == filters.priority.value)
        if filters.location_id:
            from_match = TransferRequestRecord.from_location_id == filters.location_id
            to_match = TransferRequestRecord.to_location_id == filters.location_id
            if filters.location_type is not None:
                from_match = and_(from_match, TransferRequestRecord.from_location_type == filters.location_type.value)
                to_match = and_(to_match, TransferRequestRecord.to_location_type == filters.location_type.value)
            conditions.append(or_(from_match, to_match))
        elif filters.location_type is not None:
            conditions.append(
                or_(
                    TransferRequestRecord.from_location_type == filters.location_type.value,
                    TransferRequestRecord.to_location_type == filters.location_type.value,
                )
            )
        if filters.from_date is not None:
            conditions.append(TransferRequestRecord.created_at >= filters.from_date)
        if filters.to_date is not None:
            conditions.append(TransferRequestRecord.created_at <= filters.to_date)
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            matches = [
                TransferRequestRecord.item_name.ilike(pattern),
                TransferRequestRecord.sku.ilike(pattern),
            ]
            search_id = _as_uuid(filters.search.strip())
            if search_id is not None:
                matches.append(TransferRequestRecord.id == search_id)
            conditions.append(or_(*matches))
        if filters.visible_to_user_id is not None:
            visible = [TransferRequestRecord.requested_by_user_id == filters.visible_to_user_id]
            for location_type, location_id in sorted(filters.visible_locations):
                visible.append(
                    and_(
                        TransferRequestRecord.from_location_type == location_type.value,
                        TransferRequestRecord.from_location_id == location_id,
                    )
                )
                visible.append(
                    and_(
                        TransferRequestRecord.to_location_type == location_type.value,
                        TransferRequestRecord.to_location_id == location_id,
                    )
                )
            conditions.append(or_(*visible))
        if conditions:
            query = query.where(*conditions)
        return query

    def list_page(self, filters: TransferQueryFilters, *, page: int, size: int) -> tuple[list[TransferRequest], int]:
        query = self._filtered_query(filters)
        total = self.db.execute(select(func.count()).select_from(query.subquery())).scalar_one()
        records = (
            self.db.execute(
                query.order_by(TransferRequestRecord.created_at.desc(), TransferRequestRecord.id.asc())
                .offset(page * size)
                .limit(size)
            )
            .scalars()
            .all()
        )
        return self._hydrate(list(records)), int(total or 0)

    def list_all(self, filters: TransferQueryFilters) -> list[TransferRequest]:
        records = (
            self.db.execute(self._filtered_query(filters).order_by(TransferRequestRecord.created_at.desc()))
            .scalars()
            .all()
        )
        return self._hydrate(list(records))
