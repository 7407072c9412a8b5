"""
Payment event processor - the consumer side of the payment-events queue.

One call applies one queue message inside one unit of work:

1. a consumer idempotency key (`applied:<natural key>`) or an existing
   `processed` row in the durable event log makes the call a no-op;
2. the branch for the message type mutates order, ledger and inventory;
3. a `processed` log row is written in the same transaction;
4. only after commit is the consumer key set and post-commit work
   (low-stock hooks, follow-up notifications) released.

Domain rejections are committed as `failed` log rows and acknowledged.
Anything else propagates so the queue retries the delivery.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, List, Optional

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from application.dtos.messages import (
    OrderNotification,
    QueueMessage,
    ShipmentStatusChanged,
    SSLCommerzPaymentConfirmed,
    SSLCommerzPaymentFailed,
    StripeChargeDisputed,
    StripeChargeRefunded,
    StripePaymentCanceled,
    StripePaymentConfirmed,
    StripePaymentFailed,
)
from application.ports.idempotency import IdempotencyStore, consumer_key
from application.ports.work_queue import WorkQueue
from application.services.inventory_ledger import InventoryLedger
from application.services.shipment_tracker import ShipmentTracker
from core.logging_config import get_logger
from core.settings import InventorySettings
from domain.common.exceptions import (
    BusinessException,
    ConcurrencyConflictException,
    DomainValidationException,
    OrderNotFoundException,
    PaymentRejectedException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.inventory.entity import LowStockAlert
from domain.order.entity import Order, PaymentStatus
from domain.payment.entity import LedgerStatus, OrderPayment, PaymentPlan, PaymentType
from domain.payment.money import to_major_units
from domain.webhook.entity import EventOutcome, WebhookEvent


logger = get_logger(__name__)

# Rejections that no amount of redelivery can change
DOMAIN_REJECTIONS = (PaymentRejectedException, OrderNotFoundException, DomainValidationException)


class ProcessOutcome(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"


@dataclass
class ProcessResult:
    outcome: ProcessOutcome
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class _Applied:
    result: dict[str, Any]
    alerts: List[LowStockAlert] = field(default_factory=list)
    notifications: List[OrderNotification] = field(default_factory=list)


class PaymentEventProcessor:
    def __init__(
        self,
        uow_factory: Callable[[], AbstractUnitOfWork],
        idempotency: IdempotencyStore,
        inventory: InventoryLedger,
        *,
        settings: InventorySettings,
        idempotency_ttl: int = 86400,
        shipments: Optional[ShipmentTracker] = None,
        follow_up: Optional[WorkQueue] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._idempotency = idempotency
        self._inventory = inventory
        self._settings = settings
        self._ttl = idempotency_ttl
        self._shipments = shipments or ShipmentTracker()
        self._follow_up = follow_up

    def bind_follow_up(self, queue: WorkQueue) -> None:
        self._follow_up = queue

    async def process(self, message: QueueMessage, attempt: int = 1) -> ProcessResult:
        natural_key = message.natural_key
        applied_key = consumer_key(natural_key)
        log = logger.bind(event_type=message.type, natural_key=natural_key, order_id=message.order_id, attempt=attempt)

        if await self._idempotency.seen(applied_key):
            log.info("payment_event_duplicate", tier="cache")
            return ProcessResult(ProcessOutcome.DUPLICATE, {"tier": "cache"})

        try:
            applied = await self._apply_with_retry(message, attempt)
        except DOMAIN_REJECTIONS as exc:
            log.warning("payment_event_rejected", code=int(exc.code), reason=exc.message)
            await self.record_failure(message, exc, attempt)
            return ProcessResult(ProcessOutcome.REJECTED, {"code": int(exc.code), "reason": exc.message})

        await self._idempotency.mark(applied_key, "processed", self._ttl)
        if applied is None:
            log.info("payment_event_duplicate", tier="event_log")
            return ProcessResult(ProcessOutcome.DUPLICATE, {"tier": "event_log"})

        self._inventory.fire_alerts(applied.alerts)
        for notification in applied.notifications:
            await self._send_follow_up(notification)
        log.info("payment_event_processed", **_loggable(applied.result))
        return ProcessResult(ProcessOutcome.APPLIED, applied.result)

    async def record_failure(self, message: QueueMessage, error: BaseException | str, attempt: int) -> None:
        """Append a `failed` row for audit; never raises."""
        if isinstance(error, BusinessException):
            payload = {"error": error.message, "code": int(error.code), "error_type": error.error_type}
            if error.details:
                payload["details"] = error.details
        elif isinstance(error, str):
            payload = {"error": error, "error_type": "Error"}
        else:
            payload = {"error": str(error), "error_type": type(error).__name__}
        try:
            async with self._uow_factory() as uow:
                await uow.webhook_events.append(
                    WebhookEvent(
                        natural_key=message.natural_key,
                        gateway=message.gateway,
                        event_type=message.type,
                        order_id=message.order_id,
                        outcome=EventOutcome.FAILED,
                        result=payload,
                        attempt=attempt,
                    )
                )
                await uow.commit()
        except Exception as exc:  # pragma: no cover - audit write is best effort
            logger.error("webhook_event_log_failed", natural_key=message.natural_key, error=str(exc))

    # ------------------------------------------------------------ envelope

    async def _apply_with_retry(self, message: QueueMessage, attempt: int) -> Optional[_Applied]:
        async for retry in AsyncRetrying(
            stop=stop_after_attempt(max(1, self._settings.optimistic_retries)),
            wait=wait_exponential(multiplier=self._settings.optimistic_backoff_seconds, max=1.0),
            retry=retry_if_exception_type(ConcurrencyConflictException),
            reraise=True,
        ):
            with retry:
                async with self._uow_factory() as uow:
                    if await uow.webhook_events.has_processed(message.natural_key):
                        return None
                    applied = await self._dispatch(uow, message)
                    await uow.webhook_events.append(
                        WebhookEvent(
                            natural_key=message.natural_key,
                            gateway=message.gateway,
                            event_type=message.type,
                            order_id=message.order_id,
                            outcome=EventOutcome.PROCESSED,
                            result=applied.result,
                            attempt=attempt,
                        )
                    )
                    await uow.commit()
                return applied
        return None  # pragma: no cover

    async def _dispatch(self, uow: AbstractUnitOfWork, message: QueueMessage) -> _Applied:
        if isinstance(message, (StripePaymentConfirmed, SSLCommerzPaymentConfirmed)):
            return await self._confirmed(uow, message)
        if isinstance(message, (StripePaymentFailed, SSLCommerzPaymentFailed)):
            return await self._failed(uow, message)
        if isinstance(message, StripePaymentCanceled):
            return await self._canceled(uow, message)
        if isinstance(message, StripeChargeRefunded):
            return await self._refunded(uow, message)
        if isinstance(message, StripeChargeDisputed):
            return await self._disputed(message)
        if isinstance(message, ShipmentStatusChanged):
            update = await self._shipments.apply(uow, message)
            notifications = [update.notification] if update.notification else []
            return _Applied(update.result, notifications=notifications)
        raise DomainValidationException(f"Unsupported message type: {message.type}", field="type")

    # ------------------------------------------------------------ branches

    async def _load_order(self, uow: AbstractUnitOfWork, order_id: str) -> Order:
        order = await uow.orders.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        return order

    async def _confirmed(self, uow: AbstractUnitOfWork, message) -> _Applied:
        order = await self._load_order(uow, message.order_id)
        # the one place minor units become ledger amounts
        amount = to_major_units(message.amount, message.currency)
        payment_type = PaymentType(message.payment_type)

        if isinstance(message, StripePaymentConfirmed):
            reference, charge = message.payment_intent_id, message.charge_id
            metadata = {"event_id": message.event_id, **message.metadata}
        else:
            reference, charge = message.val_id, message.bank_tran_id
            metadata = {
                "tran_id": message.tran_id,
                "bank_tran_id": message.bank_tran_id or "",
                "card_type": message.card_type or "",
                "card_brand": message.card_brand or "",
                **message.metadata,
            }

        if await uow.payments.get_by_reference(message.gateway, reference):
            return _Applied({"skipped": "duplicate_payment", "gateway_reference": reference})

        if payment_type is PaymentType.BALANCE and order.payment_status is not PaymentStatus.PARTIAL:
            raise PaymentRejectedException.no_partial_payment(order.id)

        previous_paid = order.paid_amount
        status = order.apply_payment(amount)
        if isinstance(message, StripePaymentConfirmed):
            order.payment_intent_reference = message.payment_intent_id

        await uow.payments.add(
            OrderPayment(
                order_id=order.id,
                gateway=message.gateway,
                payment_type=payment_type,
                status=LedgerStatus.SUCCEEDED,
                amount=amount,
                currency=message.currency.upper(),
                gateway_reference=reference,
                charge_reference=charge,
                metadata=metadata,
            )
        )
        await self._update_plan(uow, order, payment_type, amount)

        alerts: List[LowStockAlert] = []
        if status is PaymentStatus.PAID:
            alerts = await self._inventory.commit_sale(uow, order)
        await uow.orders.update(order)

        notifications = []
        if status is PaymentStatus.PAID:
            notifications.append(
                OrderNotification(
                    order_id=order.id,
                    customer_email=order.customer_email,
                    customer_name=order.customer_name,
                    notification_type="order_confirmed",
                    reference=message.natural_key,
                )
            )
        return _Applied(
            {
                "amount": str(amount),
                "currency": message.currency.upper(),
                "payment_type": payment_type.value,
                "previous_paid_amount": str(previous_paid),
                "paid_amount": str(order.paid_amount),
                "balance_due": str(order.balance_due),
                "payment_status": status.value,
            },
            alerts=alerts,
            notifications=notifications,
        )

    async def _update_plan(
        self, uow: AbstractUnitOfWork, order: Order, payment_type: PaymentType, amount: Decimal
    ) -> None:
        if payment_type is PaymentType.DEPOSIT:
            plan = await uow.payment_plans.get_by_order(order.id)
            if plan is None:
                plan = PaymentPlan(
                    order_id=order.id,
                    total_amount=order.total_amount,
                    deposit_amount=amount,
                    balance_due=order.balance_due,
                )
            plan.record_deposit(amount, order.paid_amount)
            await uow.payment_plans.save(plan)
        elif payment_type is PaymentType.BALANCE:
            plan = await uow.payment_plans.get_by_order(order.id)
            if plan is not None:
                plan.record_balance(order.paid_amount)
                await uow.payment_plans.save(plan)

    async def _failed(self, uow: AbstractUnitOfWork, message) -> _Applied:
        order = await self._load_order(uow, message.order_id)
        if isinstance(message, StripePaymentFailed):
            reference = message.payment_intent_id
            metadata = {
                "event_id": message.event_id,
                "failure_code": message.failure_code or "",
                "failure_message": message.failure_message or "",
            }
            currency = message.currency.upper()
        else:
            reference = message.val_id
            metadata = {"tran_id": message.tran_id, "validation_status": message.status}
            currency = "BDT"
        await uow.payments.add(
            OrderPayment(
                order_id=order.id,
                gateway=message.gateway,
                payment_type=PaymentType.FULL,
                status=LedgerStatus.FAILED,
                amount=Decimal("0"),
                currency=currency,
                gateway_reference=reference,
                metadata=metadata,
            )
        )
        return _Applied({"payment_status": order.payment_status.value, "gateway_reference": reference, **metadata})

    async def _canceled(self, uow: AbstractUnitOfWork, message: StripePaymentCanceled) -> _Applied:
        order = await self._load_order(uow, message.order_id)
        order.cancel_unpaid()
        changes = await self._inventory.release_for_order(uow, order, "payment canceled")
        await uow.orders.update(order)
        return _Applied(
            {
                "order_status": order.status.value,
                "payment_status": order.payment_status.value,
                "released_lines": len(changes or []),
                "cancellation_reason": message.cancellation_reason or "",
            }
        )

    async def _refunded(self, uow: AbstractUnitOfWork, message: StripeChargeRefunded) -> _Applied:
        order = await self._load_order(uow, message.order_id)
        cumulative = to_major_units(message.amount_refunded, message.currency)
        booked = await uow.payments.refunded_total_for_charge(message.gateway, message.charge_id)
        delta = cumulative - booked
        if delta <= 0:
            return _Applied(
                {"skipped": "no_new_refund", "charge_id": message.charge_id, "refunded_total": str(cumulative)}
            )

        full = order.apply_refund(delta)
        await uow.payments.add(
            OrderPayment(
                order_id=order.id,
                gateway=message.gateway,
                payment_type=PaymentType.REFUND,
                status=LedgerStatus.SUCCEEDED,
                amount=delta,
                currency=message.currency.upper(),
                gateway_reference=f"{message.charge_id}:{message.amount_refunded}",
                charge_reference=message.charge_id,
                metadata={"event_id": message.event_id, "payment_intent_id": message.payment_intent_id},
            )
        )
        released = None
        if full:
            released = await self._inventory.release_for_order(uow, order, "payment refunded")
        await uow.orders.update(order)
        return _Applied(
            {
                "refund_amount": str(delta),
                "refunded_total": str(cumulative),
                "paid_amount": str(order.paid_amount),
                "payment_status": order.payment_status.value,
                "full_refund": full,
                "released_lines": len(released or []),
            }
        )

    async def _disputed(self, message: StripeChargeDisputed) -> _Applied:
        amount = to_major_units(message.amount, message.currency)
        logger.warning(
            "payment_dispute_opened",
            order_id=message.order_id,
            dispute_id=message.dispute_id,
            charge_id=message.charge_id,
            amount=str(amount),
            reason=message.reason,
        )
        return _Applied(
            {
                "dispute_id": message.dispute_id,
                "charge_id": message.charge_id or "",
                "amount": str(amount),
                "currency": message.currency.upper(),
                "reason": message.reason or "",
                "action": "manual_review",
            }
        )

    async def _send_follow_up(self, notification: OrderNotification) -> None:
        if self._follow_up is None:
            return
        try:
            await self._follow_up.enqueue(notification)
        except BusinessException as exc:
            logger.error(
                "order_notification_enqueue_failed",
                order_id=notification.order_id,
                notification_type=notification.notification_type,
                error=exc.message,
            )


def _loggable(result: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in result.items() if k not in ("event", "logger", "level")}
