from __future__ import annotations

from collections import Counter
from typing import Iterable

from app.inventsight.schemas.transfers import (
    ActiveRoute,
    TopRequestedItem,
    TransferEvent,
    TransferRequest,
    TransferStatus,
    TransferSummaryResponse,
)


def delivery_hours(transfer: TransferRequest) -> float | None:
    started = transfer.event_at(TransferEvent.START_DELIVERY)
    delivered = transfer.event_at(TransferEvent.MARK_DELIVERED)
    if started is None or delivered is None:
        return None
    return (delivered - started).total_seconds() / 3600


def summarize(transfers: Iterable[TransferRequest], *, top_n: int = 5) -> TransferSummaryResponse:
    rows = list(transfers)
    by_status = Counter(transfer.status.value for transfer in rows)
    durations = [hours for hours in (delivery_hours(transfer) for transfer in rows) if hours is not None]

    items: Counter[tuple[str, str]] = Counter()
    routes: Counter[tuple[str, str]] = Counter()
    for transfer in rows:
        items[(transfer.item.name, transfer.item.sku)] += 1
        routes[(transfer.from_location.display_name(), transfer.to_location.display_name())] += 1

    return TransferSummaryResponse(
        total_transfers=len(rows),
        pending_count=by_status.get(TransferStatus.PENDING.value, 0),
        completed_count=by_status.get(TransferStatus.COMPLETED.value, 0),
        in_transit_count=by_status.get(TransferStatus.IN_TRANSIT.value, 0),
        counts_by_status=dict(sorted(by_status.items())),
        avg_delivery_time=round(sum(durations) / len(durations), 2) if durations else 0.0,
        top_requested_items=[
            TopRequestedItem(item_name=name, sku=sku, count=count)
            for (name, sku), count in items.most_common(top_n)
        ],
        most_active_routes=[
            ActiveRoute(from_=origin, to=destination, count=count)
            for (origin, destination), count in routes.most_common(top_n)
        ],
    )
