"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional, Protocol, runtime_checkable

from application.dtos.payments import (
    CheckoutSession,
    ProviderCheckout,
    RefundOutcome,
    RefundRequest,
)


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for one payment-service provider.

    ``amount_unit`` states the unit ``initialize_checkout`` expects:
    ``"minor"`` means the caller converts major→minor before calling,
    ``"major"`` means the client converts internally.

    ``initialize_checkout`` and ``get_status`` raise ``PaymentProviderError``
    on a non-2xx answer. ``create_refund`` only raises on transport failure;
    a provider rejection comes back as ``RefundOutcome(success=False)``.
    """

    provider: str
    amount_unit: Literal["minor", "major"]
    success_status: str

    async def initialize_checkout(
        self,
        *,
        email: Optional[str],
        amount: Decimal | int,
        payment_id: str,
        return_url: str,
        cancel_url: str,
        currency: Optional[str],
    ) -> CheckoutSession: ...

    async def get_status(self, reference: str) -> ProviderCheckout: ...

    async def create_refund(self, req: RefundRequest) -> RefundOutcome: ...

    async def aclose(self) -> None: ...
