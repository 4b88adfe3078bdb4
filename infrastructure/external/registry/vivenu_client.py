"""
Ticketing platform (vivenu) client: the registry that owns payment requests.

Only reads and requests transitions; nothing is cached locally.
"""
from __future__ import annotations

import uuid
from typing import Any, Optional

import httpx

from application.dtos.payments import PaymentRequest
from core.config import HttpSettings, VivenuSettings
from core.logging_config import get_logger
from domain.common.exceptions import PaymentRequestNotFoundException
from infrastructure.external.api_clients import APIError, BaseAPIClient, TransportError
from infrastructure.external.payments.exceptions import RegistryError


logger = get_logger(__name__)


class VivenuRegistryClient(BaseAPIClient):
    def __init__(
        self,
        settings: VivenuSettings,
        http: Optional[HttpSettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not settings.api_key:
            raise RuntimeError("VIVENU__API_KEY not configured")
        http = http or HttpSettings()
        super().__init__(
            base_url=settings.base_url,
            timeout=http.timeout,
            max_retries=http.max_retries,
            retry_delay=http.retry_delay,
            auth_token=settings.api_key,
            transport=transport,
        )
        self._gateway_secret = settings.gateway_secret

    @staticmethod
    def new_reference() -> str:
        return uuid.uuid4().hex

    async def get_payment_request(self, payment_request_id: str) -> PaymentRequest:
        try:
            resp = await self.get(f"/api/payments/requests/{payment_request_id}")
        except TransportError as exc:
            raise RegistryError(str(exc)) from exc
        except APIError as exc:
            logger.error(
                "payment_request_fetch_failed",
                payment_request_id=payment_request_id,
                status_code=exc.status_code,
                body=exc.body,
            )
            raise PaymentRequestNotFoundException(payment_request_id) from exc
        return self._parse_payment_request(resp.json(), payment_request_id)

    async def complete_payment_request(self, payment_request_id: str) -> PaymentRequest:
        body = {"gatewaySecret": self._gateway_secret, "reference": self.new_reference()}
        try:
            resp = await self.post(f"/api/payments/requests/{payment_request_id}/confirm", json_data=body)
        except APIError as exc:
            logger.error(
                "payment_request_complete_failed",
                payment_request_id=payment_request_id,
                status_code=exc.status_code,
                body=exc.body,
            )
            raise RegistryError(
                "Failed to complete payment request",
                status_code=exc.status_code,
                body=exc.body,
                details={"payment_request_id": payment_request_id},
            ) from exc
        return self._parse_payment_request(resp.json(), payment_request_id)

    async def get_transaction_by_id(self, transaction_id: str) -> dict[str, Any]:
        return await self._get_document(f"/api/transactions/{transaction_id}", transaction_id=transaction_id)

    async def get_checkout_by_id(self, checkout_id: str) -> dict[str, Any]:
        return await self._get_document("/api/payments", params={"checkoutId": checkout_id}, checkout_id=checkout_id)

    async def _get_document(self, endpoint: str, params: Optional[dict] = None, **ids: str) -> dict[str, Any]:
        try:
            resp = await self.get(endpoint, params=params)
        except APIError as exc:
            logger.error("registry_fetch_failed", endpoint=endpoint, status_code=exc.status_code, body=exc.body, **ids)
            raise RegistryError(
                "Failed to fetch from ticketing platform",
                status_code=exc.status_code,
                body=exc.body,
                details=dict(ids),
            ) from exc
        data = resp.json()
        if not isinstance(data, dict):
            raise RegistryError("Unexpected response shape", status_code=resp.status_code, body=resp.text(), details=dict(ids))
        return data

    @staticmethod
    def _parse_payment_request(data: Any, payment_request_id: str) -> PaymentRequest:
        try:
            return PaymentRequest.model_validate(data)
        except ValueError as exc:
            raise RegistryError(
                f"Unrecognized payment request shape: {exc}",
                details={"payment_request_id": payment_request_id},
            ) from exc
