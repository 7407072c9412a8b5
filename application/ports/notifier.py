"""
Outbound notification ports (external collaborators).
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.messages import OrderNotification
from domain.inventory.entity import LowStockAlert


@runtime_checkable
class OrderNotifier(Protocol):
    async def notify(self, notification: OrderNotification) -> None: ...


@runtime_checkable
class LowStockAlertHook(Protocol):
    async def __call__(self, alert: LowStockAlert) -> None: ...
