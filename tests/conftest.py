"""Pytest bootstrap configuration.

Shared stubs for the gateway/registry ports and an explicit Settings object,
so no test depends on process environment.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

import pytest

from application.dtos.payments import (
    CheckoutSession,
    PaymentRequest,
    ProviderCheckout,
    RefundOutcome,
    RefundRequest,
)
from core.config import PayfacSettings, Settings, StartButtonSettings, VivenuSettings
from domain.common.exceptions import PaymentRequestNotFoundException

PAYFAC_HMAC_KEY = "4eab969bd65a39c17c906dfcef1fe69d481716b0845a6c0892284cf9c06e4314"
VIVENU_WEBHOOK_SECRET = "mysecret"


class StubRegistry:
    """In-memory stand-in for the ticketing platform."""

    def __init__(self, requests: Optional[dict[str, dict[str, Any]]] = None) -> None:
        self.requests = requests or {}
        self.transactions: dict[str, dict[str, Any]] = {}
        self.checkouts: dict[str, dict[str, Any]] = {}
        self.complete_calls: list[str] = []

    def add(self, pr_id: str, *, status: str = "NEW", amount: str = "10.00", currency: str = "GHS") -> None:
        self.requests[pr_id] = {
            "_id": pr_id,
            "status": status,
            "amount": amount,
            "currency": currency,
            "customer": {"email": "buyer@example.com"},
            "successReturnUrl": f"https://shop.example/{pr_id}/success",
            "failureReturnUrl": f"https://shop.example/{pr_id}/failure",
        }

    async def get_payment_request(self, payment_request_id: str) -> PaymentRequest:
        if payment_request_id not in self.requests:
            raise PaymentRequestNotFoundException(payment_request_id)
        return PaymentRequest.model_validate(self.requests[payment_request_id])

    async def complete_payment_request(self, payment_request_id: str) -> PaymentRequest:
        self.complete_calls.append(payment_request_id)
        self.requests[payment_request_id]["status"] = "SUCCEEDED"
        return PaymentRequest.model_validate(self.requests[payment_request_id])

    async def get_transaction_by_id(self, transaction_id: str) -> dict[str, Any]:
        return self.transactions[transaction_id]

    async def get_checkout_by_id(self, checkout_id: str) -> dict[str, Any]:
        return self.checkouts[checkout_id]

    async def aclose(self) -> None:
        return None


class StubGateway:
    provider = "startbutton"
    amount_unit = "minor"
    success_status = "successful"

    def __init__(self, *, status: str = "successful", refund_ok: bool = True) -> None:
        self.status = status
        self.refund_ok = refund_ok
        self.initialize_calls: list[dict[str, Any]] = []
        self.status_calls: list[str] = []
        self.refunds: list[RefundRequest] = []

    async def initialize_checkout(self, **kwargs: Any) -> CheckoutSession:
        self.initialize_calls.append(kwargs)
        return CheckoutSession(
            redirect_url=f"https://checkout.example/{kwargs['payment_id']}",
            provider_reference=kwargs["payment_id"],
        )

    async def get_status(self, reference: str) -> ProviderCheckout:
        self.status_calls.append(reference)
        return ProviderCheckout(
            reference=reference,
            provider_transaction_reference=f"txref_{reference}",
            status=self.status,
            amount=Decimal("1000"),
            currency="GHS",
        )

    async def create_refund(self, req: RefundRequest) -> RefundOutcome:
        self.refunds.append(req)
        if self.refund_ok:
            return RefundOutcome.ok({"id": "rf_1"})
        return RefundOutcome.err({"message": "refund window closed"})

    async def aclose(self) -> None:
        return None


@pytest.fixture
def settings() -> Settings:
    return Settings(
        APP_URL="https://gateway.example",
        MERCHANT_NAME="Test Merchant",
        DEFAULT_CURRENCY="GHS",
        vivenu=VivenuSettings(
            base_url="https://vivenu.test",
            api_key="vk_test",
            gateway_secret="gw_secret",
            webhook_secret=VIVENU_WEBHOOK_SECRET,
        ),
        startbutton=StartButtonSettings(
            base_url="https://startbutton.test",
            secret_key="sk_test",
            private_key="pk_test",
        ),
        payfac=PayfacSettings(
            base_url="https://payfac.test",
            api_key="pf_test",
            terminal_id="term_1",
            hmac_key=PAYFAC_HMAC_KEY,
        ),
    )


@pytest.fixture
def registry() -> StubRegistry:
    reg = StubRegistry()
    reg.add("pr_new")
    reg.add("pr_done", status="SUCCEEDED")
    reg.add("pr_failed", status="FAILED")
    return reg


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()
