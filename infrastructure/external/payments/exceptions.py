"""
Exceptions for payment providers and the ticketing platform mapped to unified
BusinessException variants.
"""
from __future__ import annotations

from typing import Optional
from domain.common.exceptions import BusinessException, UpstreamServiceException
from shared.codes.payment_codes import PaymentCode


class PaymentProviderError(UpstreamServiceException):
    def __init__(
        self,
        message: str,
        *,
        provider: str,
        code: int = PaymentCode.PROVIDER_ERROR,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            message,
            code=code,
            error_type="PaymentProviderError",
            status_code=status_code,
            body=body,
            details=full_details,
        )


class RegistryError(UpstreamServiceException):
    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(
            message,
            code=PaymentCode.REGISTRY_ERROR,
            error_type="RegistryError",
            status_code=status_code,
            body=body,
            details=details,
        )


class PaymentSignatureError(BusinessException):
    def __init__(self, message: str, *, provider: str, missing: bool = False, details: Optional[dict] = None):
        full_details = {"provider": provider}
        if details:
            full_details.update(details)
        super().__init__(
            code=PaymentCode.SIGNATURE_MISSING if missing else PaymentCode.SIGNATURE_ERROR,
            message=message,
            error_type="PaymentSignatureError",
            details=full_details,
        )


class CheckoutRejectedError(PaymentProviderError):
    """Provider answered 2xx but refused to open a checkout."""

    def __init__(self, message: str, *, provider: str, body: Optional[str] = None):
        super().__init__(message, provider=provider, code=PaymentCode.CHECKOUT_REJECTED, body=body)
