"""
Inventory ledger application service.

Every stock mutation goes through this service and is written as exactly one
InventoryMovement row in the same unit of work as the variant counter update.
The counter update is version-checked; a conflict aborts the unit of work and
the whole operation is retried.
"""
from __future__ import annotations

from typing import Callable, List, Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from application.ports.notifier import LowStockAlertHook
from application.utils.background import BackgroundTaskGroup
from core.logging_config import get_logger
from core.settings import InventorySettings
from domain.common.exceptions import (
    ConcurrencyConflictException,
    DomainValidationException,
    OrderNotFoundException,
    VariantNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.inventory.entity import (
    AlertStatus,
    InventoryMovement,
    LowStockAlert,
    MovementType,
    StockChange,
    Variant,
)
from domain.order.entity import InventoryState, Order


logger = get_logger(__name__)


class InventoryLedger:
    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        *,
        settings: InventorySettings,
        alert_hook: Optional[LowStockAlertHook] = None,
        tasks: Optional[BackgroundTaskGroup] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._settings = settings
        self._alert_hook = alert_hook
        self._tasks = tasks

    def conflict_retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(max(1, self._settings.optimistic_retries)),
            wait=wait_exponential(multiplier=self._settings.optimistic_backoff_seconds, max=1.0),
            retry=retry_if_exception_type(ConcurrencyConflictException),
            reraise=True,
        )

    # ------------------------------------------------------------ public API

    async def adjust(
        self,
        variant_id: str,
        delta: int,
        reason: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> StockChange:
        """Manual adjustment; new stock is max(0, previous + delta)."""
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise DomainValidationException("delta must be an integer", field="delta")
        async for attempt in self.conflict_retrying():
            with attempt:
                async with self._uow_factory() as uow:
                    change, alerts = await self.apply_adjustment(uow, variant_id, delta, reason, actor_id)
                    await uow.commit()
        logger.info(
            "inventory_adjusted",
            variant_id=variant_id,
            delta=delta,
            previous_stock=change.previous_stock,
            new_stock=change.new_stock,
            actor_id=actor_id,
        )
        self.fire_alerts(alerts)
        return change

    async def release(self, order_id: str, reason: str = "order released") -> List[StockChange]:
        """Give back everything an order holds; a no-op once already released."""
        async for attempt in self.conflict_retrying():
            with attempt:
                async with self._uow_factory() as uow:
                    order = await uow.orders.get_by_id(order_id)
                    if order is None:
                        raise OrderNotFoundException(order_id)
                    changes = await self.release_for_order(uow, order, reason)
                    if changes is not None:
                        await uow.orders.update(order)
                    await uow.commit()
        return changes or []

    async def list_alerts(self, status: Optional[AlertStatus] = None, limit: int = 100) -> List[LowStockAlert]:
        async with self._uow_factory() as uow:
            return await uow.alerts.list(status=status, limit=limit)

    async def acknowledge_alert(self, variant_id: str, actor_id: Optional[str] = None) -> Optional[LowStockAlert]:
        async with self._uow_factory() as uow:
            alert = await uow.alerts.get_by_variant(variant_id)
            if alert is None or alert.status is not AlertStatus.ACTIVE:
                return alert
            alert.acknowledge(actor_id)
            await uow.alerts.save(alert)
            await uow.commit()
        logger.info("low_stock_alert_acknowledged", variant_id=variant_id, actor_id=actor_id)
        return alert

    # ------------------------------------------------- inside a caller's UoW

    async def apply_adjustment(
        self,
        uow: AbstractUnitOfWork,
        variant_id: str,
        delta: int,
        reason: Optional[str],
        actor_id: Optional[str],
    ) -> tuple[StockChange, List[LowStockAlert]]:
        variant = await self._load_variant(uow, variant_id)
        change = variant.adjust(delta)
        await self._record(uow, variant, MovementType.ADJUSTED, delta, change, reason=reason, actor_id=actor_id)
        alerts = await self._evaluate_alert(uow, variant, change)
        return change, alerts

    async def commit_sale(self, uow: AbstractUnitOfWork, order: Order) -> List[LowStockAlert]:
        """Turn the order's reservations into permanent deductions."""
        if order.inventory_state is not InventoryState.RESERVED:
            return []
        alerts: List[LowStockAlert] = []
        for item in await uow.orders.list_items(order.id):
            if not item.variant_id:
                continue
            variant = await uow.variants.get_by_id(item.variant_id)
            if variant is None:
                logger.warning("inventory_variant_missing", order_id=order.id, variant_id=item.variant_id)
                continue
            change = variant.commit_sale(item.quantity)
            await self._record(
                uow, variant, MovementType.SOLD, -item.quantity, change,
                reason=f"Sold on order {order.id}", order_id=order.id,
            )
            alerts.extend(await self._evaluate_alert(uow, variant, change))
        order.inventory_state = InventoryState.SOLD
        return alerts

    async def release_for_order(
        self, uow: AbstractUnitOfWork, order: Order, reason: str
    ) -> Optional[List[StockChange]]:
        """Drop reservations, or restock sold items. Returns None when nothing is held."""
        state = order.inventory_state
        if state is InventoryState.RELEASED:
            return None
        changes: List[StockChange] = []
        for item in await uow.orders.list_items(order.id):
            if not item.variant_id:
                continue
            variant = await uow.variants.get_by_id(item.variant_id)
            if variant is None:
                logger.warning("inventory_variant_missing", order_id=order.id, variant_id=item.variant_id)
                continue
            if state is InventoryState.RESERVED:
                change = variant.release_reservation(item.quantity)
                movement_type, quantity = MovementType.RELEASED, -item.quantity
            else:
                change = variant.adjust(item.quantity)
                movement_type, quantity = MovementType.RESTOCKED, item.quantity
            await self._record(
                uow, variant, movement_type, quantity, change,
                reason=f"{reason} (order {order.id})", order_id=order.id,
            )
            await self._evaluate_alert(uow, variant, change)
            changes.append(change)
        order.inventory_state = InventoryState.RELEASED
        logger.info("order_inventory_released", order_id=order.id, previous_state=state.value, lines=len(changes))
        return changes

    def fire_alerts(self, alerts: List[LowStockAlert]) -> None:
        """Hand newly activated alerts to the external hook without awaiting it."""
        if not alerts or self._alert_hook is None:
            return
        for alert in alerts:
            logger.warning(
                "low_stock_alert",
                variant_id=alert.variant_id,
                available=alert.available,
                threshold=alert.threshold,
            )
            if self._tasks is not None:
                self._tasks.spawn(self._alert_hook(alert), name=f"low-stock-{alert.variant_id}")

    # ------------------------------------------------------------- helpers

    async def _load_variant(self, uow: AbstractUnitOfWork, variant_id: str) -> Variant:
        variant = await uow.variants.get_by_id(variant_id)
        if variant is None:
            raise VariantNotFoundException(variant_id)
        return variant

    async def _record(
        self,
        uow: AbstractUnitOfWork,
        variant: Variant,
        movement_type: MovementType,
        quantity: int,
        change: StockChange,
        *,
        reason: Optional[str] = None,
        actor_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> None:
        # counter and movement row always travel together
        await uow.variants.update_stock(variant)
        await uow.movements.add(
            InventoryMovement(
                variant_id=variant.id,
                movement_type=movement_type,
                quantity=quantity,
                previous_stock=change.previous_stock,
                new_stock=change.new_stock,
                reason=reason,
                actor_id=actor_id,
                order_id=order_id,
            )
        )

    async def _evaluate_alert(
        self, uow: AbstractUnitOfWork, variant: Variant, change: StockChange
    ) -> List[LowStockAlert]:
        """Returns the alert when it just became active.

        Only a stock decrease opens or reactivates an alert; any change that
        lifts the variant above its threshold resolves it.
        """
        threshold = (
            variant.low_stock_threshold
            if variant.low_stock_threshold is not None
            else self._settings.default_low_stock_threshold
        )
        if threshold <= 0:
            return []
        existing = await uow.alerts.get_by_variant(variant.id)
        if variant.is_low(self._settings.default_low_stock_threshold):
            if change.new_stock >= change.previous_stock:
                if existing is not None and existing.status is not AlertStatus.RESOLVED:
                    existing.available = variant.available
                    await uow.alerts.save(existing)
                return []
            if existing is None:
                alert = LowStockAlert(variant_id=variant.id, available=variant.available, threshold=threshold)
                await uow.alerts.save(alert)
                return [alert]
            if existing.status is AlertStatus.RESOLVED:
                existing.reactivate(variant.available, threshold)
                await uow.alerts.save(existing)
                return [existing]
            existing.available = variant.available
            await uow.alerts.save(existing)
            return []
        if existing is not None and existing.status is not AlertStatus.RESOLVED:
            existing.available = variant.available
            existing.resolve()
            await uow.alerts.save(existing)
        return []
