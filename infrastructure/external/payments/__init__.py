"""
Factory for payment gateway clients.
"""
from __future__ import annotations

from typing import Optional

import httpx

from core.config import Settings
from application.ports.payment_gateway import PaymentGateway


def get_payment_gateway(
    settings: Settings,
    provider: Optional[str] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> PaymentGateway:
    name = (provider or settings.PAYMENT_PROVIDER).lower()
    if name == "startbutton":
        from .startbutton_client import StartButtonClient
        return StartButtonClient(
            settings.startbutton,
            settings.http,
            default_currency=settings.DEFAULT_CURRENCY,
            transport=transport,
        )
    if name == "payfac":
        from .payfac_client import PayfacClient
        return PayfacClient(
            settings.payfac,
            settings.http,
            default_currency=settings.DEFAULT_CURRENCY,
            transport=transport,
        )
    raise ValueError(f"Unsupported payment provider: {name}")
