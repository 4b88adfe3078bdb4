"""Business exceptions raised by the domain, application and infrastructure layers.

``core.exceptions`` maps them to HTTP answers; nothing here imports ``core``.
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode


class BusinessException(Exception):
    """Base for every error that maps to a business code."""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class PaymentRequestNotFoundException(BusinessException):
    def __init__(self, payment_request_id: Optional[str] = None, *, reason: Optional[str] = None):
        details = {}
        if payment_request_id is not None:
            details["payment_request_id"] = payment_request_id
        if reason:
            details["reason"] = reason
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message="Payment request not found",
            error_type="PaymentRequestNotFound",
            details=details or None,
        )


class PaymentAlreadyProcessedException(BusinessException):
    def __init__(self, payment_request_id: str, status: str):
        super().__init__(
            code=PaymentCode.ALREADY_PROCESSED,
            message="Payment request is already processed",
            error_type="PaymentAlreadyProcessed",
            details={"payment_request_id": payment_request_id, "status": status},
        )


class InvalidWebhookException(BusinessException):
    """Webhook payload has an unsupported type or an unrecognized shape."""

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(
            code=PaymentCode.UNSUPPORTED_EVENT,
            message=message,
            error_type="InvalidWebhook",
            details=details,
        )


class UpstreamServiceException(BusinessException):
    """Non-2xx or unreadable answer from a system we depend on."""

    def __init__(
        self,
        message: str,
        *,
        code: int = PaymentCode.PROVIDER_ERROR,
        error_type: str = "UpstreamError",
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        self.status_code = status_code
        self.body = body
        full_details = {"status_code": status_code}
        if details:
            full_details.update(details)
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=full_details,
        )
