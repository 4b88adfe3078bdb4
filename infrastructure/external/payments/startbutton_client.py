"""
StartButton adapter (hosted checkout over Paystack and other partners).

Amount units: ``initialize_checkout`` takes minor units (the caller converts
from major units) and only rounds to an integer. Refund amounts are minor
units as well.

Failure contract:
- ``initialize_checkout`` raises ``PaymentProviderError`` on a non-2xx answer
  and ``CheckoutRejectedError`` on a body with ``success`` not true.
- ``get_status`` raises on a non-2xx answer only. A 2xx body with ``success``
  not true is reported as a checkout in status ``unsuccessful``.
- ``create_refund`` raises only on transport failure; a provider rejection is
  returned as ``RefundOutcome(success=False, error=<body>)``.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import httpx

from application.dtos.payments import (
    CheckoutSession,
    ProviderCheckout,
    RefundOutcome,
    RefundRequest,
)
from core.config import HttpSettings, StartButtonSettings
from infrastructure.external.api_clients import APIError, TransportError
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import CheckoutRejectedError, PaymentProviderError

UNSUCCESSFUL_STATUS = "unsuccessful"


class StartButtonClient(BasePaymentClient):
    provider = "startbutton"
    amount_unit = "minor"
    success_status = "successful"

    def __init__(
        self,
        settings: StartButtonSettings,
        http: Optional[HttpSettings] = None,
        *,
        default_currency: str = "GHS",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not settings.secret_key:
            raise RuntimeError("STARTBUTTON__SECRET_KEY not configured")
        if not settings.private_key:
            raise RuntimeError("STARTBUTTON__PRIVATE_KEY not configured")
        super().__init__(settings.base_url, http, transport=transport)
        self._secret_key = settings.secret_key
        self._private_key = settings.private_key
        self._partner = settings.partner
        self._default_currency = default_currency

    def _auth(self, key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {key}"}

    @staticmethod
    def _round(amount: Decimal | int) -> int:
        return int(Decimal(str(amount)).quantize(Decimal(1), rounding=ROUND_HALF_UP))

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
        fields = {
            "email": email,
            "amount": self._round(amount),
            "redirectUrl": return_url,
            "reference": payment_id,
            "partner": self._partner,
            "currency": currency or self._default_currency,
            "metadata": {"cancel_action": cancel_url},
        }
        resp = await self._call(
            "POST",
            "/transaction/initialize",
            operation="initialize_checkout",
            json_data=fields,
            headers=self._auth(self._secret_key),
        )
        body = resp.json()
        redirect_url = body.get("data") if isinstance(body, dict) and body.get("success") else None
        if not isinstance(redirect_url, str) or not redirect_url:
            raise CheckoutRejectedError(
                "initialize_checkout returned no checkout URL", provider=self.provider, body=resp.text()
            )
        self._log("checkout_created", reference=payment_id, amount=fields["amount"], currency=fields["currency"])
        return CheckoutSession(redirect_url=redirect_url, provider_reference=payment_id)

    async def get_status(self, reference: str) -> ProviderCheckout:
        resp = await self._call(
            "GET",
            f"/transaction/status/{reference}",
            operation="get_status",
            headers=self._auth(self._private_key),
        )
        body = resp.json()
        if not isinstance(body, dict) or not body.get("success"):
            self._log("status_unsuccessful", reference=reference, body=resp.text())
            return ProviderCheckout(reference=reference, status=UNSUCCESSFUL_STATUS)
        transaction = (body.get("data") or {}).get("transaction") or {}
        if not isinstance(transaction, dict) or "status" not in transaction:
            raise PaymentProviderError("get_status returned no transaction", provider=self.provider, body=resp.text())
        status = str(transaction.get("status"))
        self._log("status_fetched", reference=reference, provider_status=status, status=self._map_status(status))
        return ProviderCheckout(
            reference=reference,
            provider_transaction_reference=transaction.get("transactionReference"),
            status=status,
            amount=transaction.get("amount"),
            currency=transaction.get("currency"),
        )

    async def create_refund(self, req: RefundRequest) -> RefundOutcome:
        data = {"transactionReference": req.provider_reference, "amount": req.amount}
        try:
            resp = await self._request(
                "POST",
                "/transaction/refunds",
                json_data=data,
                headers=self._auth(self._private_key),
            )
        except TransportError as exc:
            raise PaymentProviderError(str(exc), provider=self.provider) from exc
        except APIError as exc:
            self._log("refund_rejected", reference=req.merchant_reference, status_code=exc.status_code, body=exc.body)
            return RefundOutcome.err(exc.response.data if exc.response and exc.response.data is not None else exc.body)

        body = resp.json()
        if isinstance(body, dict) and body.get("success"):
            self._log("refund_created", reference=req.merchant_reference, amount=req.amount)
            return RefundOutcome.ok(body.get("data") if isinstance(body.get("data"), dict) else {"result": body.get("data")})
        return RefundOutcome.err(body)

