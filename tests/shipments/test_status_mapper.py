from decimal import Decimal

import pytest

from domain.order.entity import Order, OrderStatus
from domain.shipment.entity import ShipmentStatus
from domain.shipment.status_mapper import map_provider_status


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("in_review", ShipmentStatus.PENDING),
        ("pending", ShipmentStatus.PENDING),
        ("delivered_approval_pending", ShipmentStatus.PENDING),
        ("delivered", ShipmentStatus.DELIVERED),
        ("partial_delivered", ShipmentStatus.DELIVERED),
        ("cancelled", ShipmentStatus.CANCELLED),
        ("unknown", ShipmentStatus.CANCELLED),
        ("in_transit", ShipmentStatus.IN_TRANSIT),
        ("picked", ShipmentStatus.PICKED_UP),
        ("returned", ShipmentStatus.RETURNED),
        ("hold", ShipmentStatus.UNKNOWN),
    ],
)
def test_steadfast_statuses(raw, expected):
    assert map_provider_status("steadfast", raw) is expected


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Pickup Cancelled", ShipmentStatus.CANCELLED),
        ("Pickup Pending", ShipmentStatus.PENDING),
        ("Picked", ShipmentStatus.PICKED_UP),
        ("Order Accepted", ShipmentStatus.PICKED_UP),
        ("In Transit", ShipmentStatus.IN_TRANSIT),
        ("Delivered", ShipmentStatus.DELIVERED),
        ("Delivery Failed", ShipmentStatus.FAILED),
        ("Return", ShipmentStatus.RETURNED),
    ],
)
def test_pathao_statuses(raw, expected):
    assert map_provider_status("pathao", raw) is expected


def test_unknown_provider_or_empty_status():
    assert map_provider_status("redx", "delivered") is ShipmentStatus.UNKNOWN
    assert map_provider_status("pathao", "") is ShipmentStatus.UNKNOWN


@pytest.mark.parametrize(
    "current,shipment_status,expected",
    [
        (OrderStatus.PROCESSING, "in_transit", OrderStatus.SHIPPED),
        (OrderStatus.DELIVERED, "in_transit", OrderStatus.DELIVERED),
        (OrderStatus.SHIPPED, "delivered", OrderStatus.DELIVERED),
        (OrderStatus.SHIPPED, "returned", OrderStatus.RETURNED),
        (OrderStatus.SHIPPED, "failed", OrderStatus.CONFIRMED),
        (OrderStatus.PENDING, "failed", OrderStatus.PENDING),
        (OrderStatus.SHIPPED, "cancelled", OrderStatus.CONFIRMED),
        (OrderStatus.PROCESSING, "cancelled", OrderStatus.CANCELLED),
        (OrderStatus.CONFIRMED, "pending", OrderStatus.CONFIRMED),
    ],
)
def test_order_status_for_shipment(current, shipment_status, expected):
    order = Order(id="ORD-1", total_amount=Decimal("10"), status=current)
    assert order.status_for_shipment(shipment_status) is expected
