"""Logging implementations of the outbound notification ports.

Delivery channels (email, SMS, chat) plug in behind the same ports; until
one is configured the events land in the structured log.
"""
from __future__ import annotations

from application.dtos.messages import OrderNotification
from application.ports.notifier import LowStockAlertHook, OrderNotifier
from core.logging_config import get_logger
from domain.inventory.entity import LowStockAlert


logger = get_logger(__name__)


class LoggingOrderNotifier(OrderNotifier):
    async def notify(self, notification: OrderNotification) -> None:
        logger.info(
            "order_notification_sent",
            order_id=notification.order_id,
            notification_type=notification.notification_type,
            customer_email=notification.customer_email,
            reference=notification.reference,
        )


class LoggingLowStockHook(LowStockAlertHook):
    async def __call__(self, alert: LowStockAlert) -> None:
        logger.warning(
            "low_stock_notification",
            variant_id=alert.variant_id,
            available=alert.available,
            threshold=alert.threshold,
        )
