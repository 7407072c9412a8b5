"""
Shipment tracking: applies courier status pushes to shipments and orders.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from application.dtos.messages import OrderNotification, ShipmentStatusChanged
from core.logging_config import get_logger
from domain.common.exceptions import OrderNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import OrderStatus
from domain.shipment.status_mapper import map_provider_status


logger = get_logger(__name__)

_NOTIFY_ON = {
    OrderStatus.SHIPPED: "order_shipped",
    OrderStatus.DELIVERED: "order_delivered",
}


@dataclass
class ShipmentUpdate:
    result: dict[str, Any]
    notification: Optional[OrderNotification] = None


class ShipmentTracker:

    async def apply(self, uow: AbstractUnitOfWork, message: ShipmentStatusChanged) -> ShipmentUpdate:
        shipment = await uow.shipments.get_by_id(message.shipment_id)
        if shipment is None:
            # deleted between ingestion and processing
            logger.warning("shipment_missing", shipment_id=message.shipment_id, order_id=message.order_id)
            return ShipmentUpdate(result={"skipped": "shipment_not_found", "shipment_id": message.shipment_id})

        provider = message.gateway
        normalized = map_provider_status(provider, message.raw_status)
        previous = shipment.record_status(normalized, message.raw_status, message.payload)
        await uow.shipments.update(shipment)

        result: dict[str, Any] = {
            "shipment_id": shipment.id,
            "consignment_id": message.consignment_id,
            "raw_status": message.raw_status,
            "normalized_status": normalized.value,
            "previous_status": previous,
        }
        if normalized.value == previous:
            return ShipmentUpdate(result=result)

        order = await uow.orders.get_by_id(shipment.order_id)
        if order is None:
            raise OrderNotFoundException(shipment.order_id)
        new_status = order.status_for_shipment(normalized.value)
        result["order_status"] = new_status.value
        if new_status == order.status:
            return ShipmentUpdate(result=result)

        result["previous_order_status"] = order.status.value
        order.change_status(new_status)
        await uow.orders.update(order)
        logger.info(
            "order_status_from_shipment",
            order_id=order.id,
            shipment_id=shipment.id,
            previous_status=result["previous_order_status"],
            new_status=new_status.value,
        )

        notification = None
        notification_type = _NOTIFY_ON.get(new_status)
        if notification_type:
            notification = OrderNotification(
                order_id=order.id,
                customer_email=order.customer_email,
                customer_name=order.customer_name,
                notification_type=notification_type,
                reference=message.natural_key,
                data={"tracking_id": shipment.tracking_id, "provider": provider},
            )
        return ShipmentUpdate(result=result, notification=notification)
