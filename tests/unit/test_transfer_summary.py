from datetime import datetime

from app.inventsight.services.transfer_summary import delivery_hours, summarize
from tests.transfer_helpers import make_transfer


def _timeline(shipped: datetime, delivered: datetime):
    return [
        {"event": "CREATE", "actor_id": "u-1", "actor_name": "Rita", "timestamp": datetime(2024, 3, 1, 8, 0)},
        {"event": "START_DELIVERY", "actor_id": "u-s", "actor_name": "Sam", "timestamp": shipped},
        {"event": "MARK_DELIVERED", "actor_id": "u-c", "actor_name": "Carl", "timestamp": delivered},
    ]


def test_delivery_hours_needs_both_stamps():
    assert delivery_hours(make_transfer("PENDING")) is None
    delivered = make_transfer(
        "DELIVERED",
        timeline=_timeline(datetime(2024, 3, 1, 10, 0), datetime(2024, 3, 1, 13, 30)),
    )
    assert delivery_hours(delivered) == 3.5


def test_summary_aggregates():
    transfers = [
        make_transfer("PENDING"),
        make_transfer("PENDING", item={"product_id": "p-2", "sku": "SKU-2", "name": "Red Scarf"}),
        make_transfer(
            "COMPLETED",
            timeline=_timeline(datetime(2024, 3, 1, 10, 0), datetime(2024, 3, 1, 12, 0)),
        ),
        make_transfer(
            "IN_TRANSIT",
            to_location={"type": "STORE", "id": "st-2"},
        ),
        make_transfer(
            "DELIVERED",
            timeline=_timeline(datetime(2024, 3, 1, 10, 0), datetime(2024, 3, 1, 14, 0)),
        ),
    ]

    summary = summarize(transfers, top_n=1)

    assert summary.total_transfers == 5
    assert summary.pending_count == 2
    assert summary.completed_count == 1
    assert summary.in_transit_count == 1
    assert summary.counts_by_status["DELIVERED"] == 1
    assert summary.avg_delivery_time == 3.0
    assert [(item.sku, item.count) for item in summary.top_requested_items] == [("SKU-1", 4)]
    route = summary.most_active_routes[0]
    assert (route.from_, route.to, route.count) == ("Main Warehouse", "Downtown Store", 4)
    assert summary.model_dump(by_alias=True)["mostActiveRoutes"][0]["from"] == "Main Warehouse"


def test_empty_summary():
    summary = summarize([])

    assert summary.total_transfers == 0
    assert summary.avg_delivery_time == 0.0
    assert summary.top_requested_items == []
