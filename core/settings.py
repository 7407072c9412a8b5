"""
Gateway, webhook and queue settings using pydantic-settings v2 with nested env keys.

Loaded once per process (`gateway_settings`) and handed to gates, clients, queues
and processors by the composition root. Components never read this module directly.
"""
from __future__ import annotations

from typing import Literal, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field


class GatewayTimeouts(BaseModel):
    connect: float = 1.0
    read: float = 3.0
    write: float = 3.0
    total: float = 5.0


class WebhookSettings(BaseModel):
    idempotency_ttl_seconds: int = 86400
    ip_allowlist: list[str] | None = None  # Optional IPs/CIDRs allowed to post webhooks


class StripeSettings(BaseModel):
    webhook_secret: Optional[str] = None
    tolerance_seconds: int = 300

    @property
    def configured(self) -> bool:
        return bool(self.webhook_secret)


class SSLCommerzSettings(BaseModel):
    store_id: Optional[str] = None
    store_password: Optional[str] = None
    sandbox: bool = True
    # The validation call runs inside the IPN request; keep it well under the gateway timeout.
    validation_timeout_seconds: float = 4.0

    @property
    def configured(self) -> bool:
        return bool(self.store_id and self.store_password)

    @property
    def base_url(self) -> str:
        if self.sandbox:
            return "https://sandbox.sslcommerz.com"
        return "https://securepay.sslcommerz.com"


class CourierSettings(BaseModel):
    enabled: bool = True
    shared_secret: Optional[str] = None  # Compared against the Authorization bearer token when set


class QueueSettings(BaseModel):
    backend: Literal["celery", "inprocess"] = "inprocess"
    max_attempts: int = 3
    retry_delay_seconds: float = 30.0
    batch_size: int = 10


class InventorySettings(BaseModel):
    default_low_stock_threshold: int = 5
    optimistic_retries: int = 3
    optimistic_backoff_seconds: float = 0.05


class GatewaySettings(BaseSettings):
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    inventory: InventorySettings = Field(default_factory=InventorySettings)

    stripe: StripeSettings = Field(default_factory=StripeSettings)
    sslcommerz: SSLCommerzSettings = Field(default_factory=SSLCommerzSettings)
    steadfast: CourierSettings = Field(default_factory=CourierSettings)
    pathao: CourierSettings = Field(default_factory=CourierSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )


gateway_settings = GatewaySettings()
