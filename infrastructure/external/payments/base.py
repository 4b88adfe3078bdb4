"""
Base payment client implementing shared concerns: http, error mapping, logging.

Concrete providers should subclass and implement provider-specific logic.
"""
from __future__ import annotations

from typing import Any, Literal, Optional

import httpx

from core.config import HttpSettings
from core.logging_config import get_logger
from infrastructure.external.api_clients import APIError, APIResponse, BaseAPIClient, TransportError
from infrastructure.external.payments.exceptions import PaymentProviderError
from shared.codes.payment_codes import PROVIDER_STATUS_TO_INTERNAL


logger = get_logger(__name__)


class BasePaymentClient(BaseAPIClient):
    provider: str = "base"
    amount_unit: Literal["minor", "major"] = "minor"
    success_status: str = "successful"

    def __init__(
        self,
        base_url: str,
        http: Optional[HttpSettings] = None,
        *,
        auth_token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        http = http or HttpSettings()
        super().__init__(
            base_url=base_url,
            timeout=http.timeout,
            max_retries=http.max_retries,
            retry_delay=http.retry_delay,
            headers={"Cache-Control": "no-cache"},
            auth_token=auth_token,
            transport=transport,
        )

    async def _call(self, method: str, endpoint: str, *, operation: str, **kwargs: Any) -> APIResponse:
        """Send a request; any failure becomes ``PaymentProviderError``."""
        try:
            return await self._request(method, endpoint, **kwargs)
        except TransportError as exc:
            logger.error("provider_transport_failed", provider=self.provider, operation=operation, error=str(exc))
            raise PaymentProviderError(str(exc), provider=self.provider) from exc
        except APIError as exc:
            logger.error(
                "provider_request_failed",
                provider=self.provider,
                operation=operation,
                status_code=exc.status_code,
                body=exc.body,
            )
            raise PaymentProviderError(
                f"{operation} failed",
                provider=self.provider,
                status_code=exc.status_code,
                body=exc.body,
            ) from exc

    # Helpers
    def _map_status(self, provider_status: str) -> str:
        mapping = PROVIDER_STATUS_TO_INTERNAL.get(self.provider, {})
        return mapping.get(provider_status, provider_status)

    def _log(self, event: str, **kwargs) -> None:
        logger.info(
            event,
            provider=self.provider,
            **kwargs,
        )
