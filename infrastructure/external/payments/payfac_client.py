"""
Payfac hosted-checkout adapter.

Amount units: ``initialize_checkout`` takes major units and converts to minor
units itself (ISO 4217 exponent, rounded half-up). Refund amounts arrive in
minor units.

Failure contract:
- ``initialize_checkout`` / ``get_status`` raise ``PaymentProviderError`` on a
  non-2xx answer.
- ``create_refund`` raises only on transport failure; a non-2xx answer is
  returned as ``RefundOutcome(success=False, error=<body>)``.

Notifications are signed over an ordered field tuple (see
``PayfacNotification.signature_fields``) with the hex-decoded HMAC key and
delivered base64-encoded in ``hmacSignature``.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

import httpx

from application.dtos.payments import (
    CheckoutSession,
    ProviderCheckout,
    RefundOutcome,
    RefundRequest,
)
from core.config import HttpSettings, PayfacSettings
from domain.payment.money import to_minor_units
from domain.payment.signature import FieldSignatureVerifier
from infrastructure.external.api_clients import APIError, TransportError
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import CheckoutRejectedError, PaymentProviderError


class PayfacClient(BasePaymentClient):
    provider = "payfac"
    amount_unit = "major"

    def __init__(
        self,
        settings: PayfacSettings,
        http: Optional[HttpSettings] = None,
        *,
        default_currency: str = "ISK",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not settings.api_key:
            raise RuntimeError("PAYFAC__API_KEY not configured")
        if not settings.terminal_id:
            raise RuntimeError("PAYFAC__TERMINAL_ID not configured")
        super().__init__(settings.base_url, http, auth_token=settings.api_key, transport=transport)
        self._terminal_id = settings.terminal_id
        self._hmac_key = settings.hmac_key
        self._null_representation = settings.null_representation
        self._default_currency = default_currency
        self.success_status = settings.success_status

    def signature_verifier(self) -> FieldSignatureVerifier:
        if not self._hmac_key:
            raise RuntimeError("PAYFAC__HMAC_KEY not configured")
        return FieldSignatureVerifier(
            secret=self._hmac_key,
            secret_encoding="hex",
            null_representation=self._null_representation,
        )

    async def initialize_checkout(
        self,
        *,
        email: Optional[str],
        amount: Decimal | int,
        payment_id: str,
        return_url: str,
        cancel_url: str,
        currency: Optional[str],
    ) -> CheckoutSession:
        currency = (currency or self._default_currency).upper()
        payload = {
            "terminalId": self._terminal_id,
            "merchantReference": payment_id,
            "amount": to_minor_units(amount, currency),
            "currency": currency,
            "shopperEmail": email,
            "successUrl": return_url,
            "cancelUrl": cancel_url,
        }
        resp = await self._call("POST", "/checkouts", operation="initialize_checkout", json_data=payload)
        body = resp.json()
        redirect_url = body.get("url") if isinstance(body, dict) else None
        if not redirect_url:
            raise CheckoutRejectedError(
                "initialize_checkout returned no checkout URL", provider=self.provider, body=resp.text()
            )
        self._log("checkout_created", reference=payment_id, amount=payload["amount"], currency=currency)
        return CheckoutSession(
            redirect_url=redirect_url,
            provider_reference=str(body.get("checkoutReference") or payment_id),
        )

    async def get_status(self, reference: str) -> ProviderCheckout:
        resp = await self._call(
            "GET",
            "/checkouts",
            operation="get_status",
            params={"terminalId": self._terminal_id, "merchantReference": reference},
        )
        body = resp.json()
        if not isinstance(body, dict) or "status" not in body:
            raise PaymentProviderError("get_status returned no checkout", provider=self.provider, body=resp.text())
        status = str(body["status"])
        self._log("status_fetched", reference=reference, provider_status=status, status=self._map_status(status))
        return ProviderCheckout(
            reference=str(body.get("merchantReference") or reference),
            provider_transaction_reference=body.get("payfacReference"),
            status=status,
            amount=body.get("amount"),
            currency=body.get("currency"),
        )

    async def create_refund(self, req: RefundRequest) -> RefundOutcome:
        payload: dict[str, Any] = {
            "terminalId": self._terminal_id,
            "payfacReference": req.provider_reference,
            "merchantReference": req.merchant_reference,
            "amount": req.amount,
            "currency": req.currency,
        }
        if req.reason:
            payload["reason"] = req.reason
        try:
            resp = await self._request("POST", "/refunds", json_data=payload)
        except TransportError as exc:
            raise PaymentProviderError(str(exc), provider=self.provider) from exc
        except APIError as exc:
            self._log("refund_rejected", reference=req.merchant_reference, status_code=exc.status_code, body=exc.body)
            return RefundOutcome.err(exc.response.data if exc.response and exc.response.data is not None else exc.body)
        body = resp.json()
        self._log("refund_created", reference=req.merchant_reference, amount=req.amount)
        return RefundOutcome.ok(body if isinstance(body, dict) else {"result": body})
