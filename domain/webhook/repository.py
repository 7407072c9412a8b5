"""
Webhook 事件日志仓储接口
"""
from abc import ABC, abstractmethod
from typing import List

from .entity import WebhookEvent


class WebhookEventRepository(ABC):
    """事件日志仓储（只追加）"""

    @abstractmethod
    async def append(self, event: WebhookEvent) -> WebhookEvent:
        """追加一条日志；同一 natural_key 只允许一条 processed 行"""
        pass

    @abstractmethod
    async def has_processed(self, natural_key: str) -> bool:
        pass

    @abstractmethod
    async def list_by_key(self, natural_key: str) -> List[WebhookEvent]:
        pass
