"""
Courier status normalisation.

Couriers push free-form status strings ("Pickup Pending", "partial_delivered",
"In Transit"...). They are reduced to the canonical `ShipmentStatus`
vocabulary by ordered substring rules; the first matching rule wins.
"""
from __future__ import annotations

from typing import Callable

from .entity import ShipmentStatus


def _pathao(status: str) -> ShipmentStatus:
    s = status.lower()
    if "pickup cancelled" in s or "pickup_cancelled" in s:
        return ShipmentStatus.CANCELLED
    if "pending" in s:
        return ShipmentStatus.PENDING
    if ("pick" in s and "cancel" not in s) or "accepted" in s:
        return ShipmentStatus.PICKED_UP
    if "transit" in s or "processing" in s:
        return ShipmentStatus.IN_TRANSIT
    if "delivered" in s:
        return ShipmentStatus.DELIVERED
    if "failed" in s or "unknown" in s:
        return ShipmentStatus.FAILED
    if "cancel" in s:
        return ShipmentStatus.CANCELLED
    if "return" in s:
        return ShipmentStatus.RETURNED
    return ShipmentStatus.UNKNOWN


def _steadfast(status: str) -> ShipmentStatus:
    s = status.lower()
    if "pending" in s or s == "in_review":
        return ShipmentStatus.PENDING
    # also covers partial_delivered
    if "delivered" in s:
        return ShipmentStatus.DELIVERED
    if "cancelled" in s:
        return ShipmentStatus.CANCELLED
    if s == "unknown":
        return ShipmentStatus.CANCELLED
    if "transit" in s:
        return ShipmentStatus.IN_TRANSIT
    if "pick" in s:
        return ShipmentStatus.PICKED_UP
    if "return" in s:
        return ShipmentStatus.RETURNED
    if "fail" in s:
        return ShipmentStatus.FAILED
    return ShipmentStatus.UNKNOWN


_MAPPERS: dict[str, Callable[[str], ShipmentStatus]] = {
    "pathao": _pathao,
    "steadfast": _steadfast,
}


def map_provider_status(provider: str, status: str) -> ShipmentStatus:
    mapper = _MAPPERS.get((provider or "").lower())
    if mapper is None or not status:
        return ShipmentStatus.UNKNOWN
    return mapper(status)
