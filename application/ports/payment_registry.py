"""
Payment registry port: the ticketing platform that owns payment requests.
"""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from application.dtos.payments import PaymentRequest


@runtime_checkable
class PaymentRegistry(Protocol):

    async def get_payment_request(self, payment_request_id: str) -> PaymentRequest:
        """Raise ``PaymentRequestNotFoundException`` on any non-2xx answer."""
        ...

    async def complete_payment_request(self, payment_request_id: str) -> PaymentRequest:
        """Confirm with a fresh reference token; raise ``RegistryError`` on failure."""
        ...

    async def get_transaction_by_id(self, transaction_id: str) -> dict[str, Any]: ...

    async def get_checkout_by_id(self, checkout_id: str) -> dict[str, Any]: ...

    async def aclose(self) -> None: ...
