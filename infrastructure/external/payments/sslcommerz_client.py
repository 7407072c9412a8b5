"""
SSLCommerz validation adapter (validator API, format=json).

The call runs inside the IPN request, so it gets one attempt under a tight
timeout. Timeouts, transport errors, non-2xx responses and unparseable
bodies all come back as None, which the gate reads as "not yet resolved".
"""
from __future__ import annotations

from typing import Optional

import httpx
from pydantic import ValidationError

from application.dtos.webhooks import SSLCommerzValidation
from core.logging_config import get_logger
from core.settings import GatewayTimeouts, SSLCommerzSettings
from infrastructure.external.payments.base import BaseGatewayClient


logger = get_logger(__name__)

VALIDATION_PATH = "/validator/api/validationserverAPI.php"


class SSLCommerzClient(BaseGatewayClient):
    provider = "sslcommerz"

    def __init__(self, settings: SSLCommerzSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        timeout = settings.validation_timeout_seconds
        super().__init__(
            timeouts=GatewayTimeouts(connect=min(1.0, timeout), read=timeout, write=timeout, total=timeout),
            transport=transport,
        )
        self._settings = settings

    @property
    def validation_url(self) -> str:
        return f"{self._settings.base_url}{VALIDATION_PATH}"

    async def validate(self, val_id: str) -> Optional[SSLCommerzValidation]:
        params = {
            "val_id": val_id,
            "store_id": self._settings.store_id or "",
            "store_passwd": self._settings.store_password or "",
            "format": "json",
            "v": "1",
        }
        try:
            response = await self.http.get(self.validation_url, params=params)
            response.raise_for_status()
            validation = SSLCommerzValidation.model_validate(response.json())
        except httpx.TimeoutException:
            logger.warning("sslcommerz_validation_timeout", val_id=val_id)
            return None
        except httpx.HTTPError as exc:
            logger.warning("sslcommerz_validation_http_error", val_id=val_id, error=str(exc))
            return None
        except (ValueError, ValidationError) as exc:
            logger.warning("sslcommerz_validation_unparseable", val_id=val_id, error=str(exc))
            return None
        self._log("sslcommerz_validation_result", val_id=val_id, status=validation.status, tran_id=validation.tran_id)
        return validation
