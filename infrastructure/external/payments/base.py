"""
Shared plumbing for gateway adapters: one lazily created httpx client per
adapter, closed by the container on shutdown.
"""
from __future__ import annotations

from typing import Any, Optional

import httpx

from core.logging_config import get_logger
from core.settings import GatewayTimeouts


logger = get_logger(__name__)


class BaseGatewayClient:
    provider: str = "base"

    def __init__(
        self,
        *,
        timeouts: Optional[GatewayTimeouts] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeouts = timeouts or GatewayTimeouts()
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    @property
    def http(self) -> httpx.AsyncClient:
        if self._http is None:
            t = self._timeouts
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(t.total, connect=t.connect, read=t.read, write=t.write),
                transport=self._transport,
            )
        return self._http

    async def aclose(self) -> None:
        if self._http is not None:
            http, self._http = self._http, None
            await http.aclose()

    def _log(self, event: str, **kwargs: Any) -> None:
        logger.info(event, provider=self.provider, **kwargs)
