"""
Webhook 事件日志仓储实现
"""
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from domain.common.exceptions import ConcurrencyConflictException
from domain.webhook.entity import EventOutcome, WebhookEvent
from domain.webhook.repository import WebhookEventRepository
from infrastructure.models.webhook_event import WebhookEventModel


class SQLAlchemyWebhookEventRepository(WebhookEventRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: WebhookEventModel) -> WebhookEvent:
        return WebhookEvent(
            id=model.id,
            natural_key=model.natural_key,
            gateway=model.gateway,
            event_type=model.event_type,
            order_id=model.order_id,
            outcome=EventOutcome(model.outcome),
            result=model.result or {},
            attempt=model.attempt,
            created_at=model.created_at,
        )

    async def append(self, event: WebhookEvent) -> WebhookEvent:
        model = WebhookEventModel(
            natural_key=event.natural_key,
            gateway=event.gateway,
            event_type=event.event_type,
            order_id=event.order_id,
            outcome=event.outcome.value,
            attempt=event.attempt,
            result=event.result or None,
            created_at=event.created_at,
        )
        self.session.add(model)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            # another consumer committed the processed row first
            raise ConcurrencyConflictException("WebhookEvent", event.natural_key) from exc
        event.id = model.id
        return event

    async def has_processed(self, natural_key: str) -> bool:
        result = await self.session.execute(
            select(WebhookEventModel.id).where(
                WebhookEventModel.natural_key == natural_key,
                WebhookEventModel.outcome == EventOutcome.PROCESSED.value,
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def list_by_key(self, natural_key: str) -> List[WebhookEvent]:
        result = await self.session.execute(
            select(WebhookEventModel)
            .where(WebhookEventModel.natural_key == natural_key)
            .order_by(WebhookEventModel.id)
        )
        return [self._to_entity(m) for m in result.scalars().all()]
