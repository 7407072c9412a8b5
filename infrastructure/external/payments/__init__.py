"""
Factory for payment gateway clients.

A gateway whose credentials are missing yields None; its gate then reports
itself unconfigured and the endpoint acknowledges without acting.
"""
from __future__ import annotations

from typing import Optional

from core.settings import GatewaySettings
from .sslcommerz_client import SSLCommerzClient
from .stripe_client import StripeClient


def build_stripe_client(cfg: GatewaySettings) -> Optional[StripeClient]:
    if not cfg.stripe.configured:
        return None
    return StripeClient(cfg.stripe)


def build_sslcommerz_client(cfg: GatewaySettings, **kwargs) -> Optional[SSLCommerzClient]:
    if not cfg.sslcommerz.configured:
        return None
    return SSLCommerzClient(cfg.sslcommerz, **kwargs)


__all__ = ["StripeClient", "SSLCommerzClient", "build_stripe_client", "build_sslcommerz_client"]
