"""
Payment DTOs (Pydantic v2) used at application boundaries.

Upstream JSON is parsed into these models up front; unrecognized shapes are
rejected here instead of being probed with optional-field access later.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Generic, Literal, Optional, TypeVar
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.types import condecimal

from shared.codes.payment_codes import PAYFAC_COMPLETION_EVENTS, PAYMENT_REQUEST_NEW

T = TypeVar("T")

RefundReason = Literal["requested_by_customer", "duplicate", "fraudulent", "event_cancelled"]


def _upper_currency(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    u = v.upper()
    if len(u) != 3 or not u.isalpha():
        raise ValueError("currency must be ISO-4217 alpha-3")
    return u


class PaymentRequest(BaseModel):
    """Charge record owned by the ticketing platform (read-only here)."""

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    status: str
    amount: Decimal
    currency: Optional[str] = None
    customer_email: Optional[str] = None
    success_return_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("successReturnUrl", "success_return_url"))
    failure_return_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("failureReturnUrl", "failure_return_url"))

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _flatten_customer(cls, data: Any) -> Any:
        if isinstance(data, dict) and "customer_email" not in data:
            customer = data.get("customer") or {}
            if isinstance(customer, dict) and customer.get("email"):
                data = {**data, "customer_email": customer["email"]}
        return data

    @field_validator("currency")
    @classmethod
    def _validate_currency(cls, v: Optional[str]) -> Optional[str]:
        return _upper_currency(v or None)

    @property
    def is_new(self) -> bool:
        return self.status == PAYMENT_REQUEST_NEW


class CheckoutSession(BaseModel):
    redirect_url: str
    provider_reference: str


class ProviderCheckout(BaseModel):
    reference: str
    provider_transaction_reference: Optional[str] = None
    status: str
    amount: Optional[Decimal] = None
    currency: Optional[str] = None


class RefundRequest(BaseModel):
    merchant_reference: str
    provider_reference: str
    amount: int = Field(gt=0, description="minor units")
    currency: str
    reason: Optional[RefundReason] = None

    @field_validator("currency")
    @classmethod
    def _validate_currency(cls, v: str) -> str:
        return _upper_currency(v)


class Result(BaseModel, Generic[T]):
    """``Ok(value) | Err(error)`` for calls that report business failure as data."""

    success: bool
    data: Optional[T] = None
    error: Optional[Any] = None

    @classmethod
    def ok(cls, data: T) -> "Result[T]":
        return cls(success=True, data=data)

    @classmethod
    def err(cls, error: Any) -> "Result[T]":
        return cls(success=False, error=error)


RefundOutcome = Result[dict[str, Any]]


class RefundWebhookData(BaseModel):
    transaction_id: str = Field(validation_alias=AliasChoices("transactionId", "transaction_id"))
    amount: condecimal(gt=0)  # type: ignore[valid-type]
    currency: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class RefundWebhook(BaseModel):
    """Ticketing platform ``payment.refund`` notification."""

    type: Literal["payment.refund"]
    data: RefundWebhookData

    model_config = ConfigDict(extra="ignore")


class PayfacNotification(BaseModel):
    """Provider notification; signed over an ordered field tuple."""

    event_type: str = Field(validation_alias=AliasChoices("eventType", "event_type"))
    checkout_reference: Optional[str] = Field(default=None, validation_alias=AliasChoices("checkoutReference", "checkout_reference"))
    payfac_reference: Optional[str] = Field(default=None, validation_alias=AliasChoices("payfacReference", "payfac_reference"))
    merchant_reference: str = Field(validation_alias=AliasChoices("merchantReference", "merchant_reference"))
    amount: Optional[str] = None
    currency: Optional[str] = None
    reason: Optional[str] = None
    success: Optional[str] = None
    hmac_signature: Optional[str] = Field(default=None, validation_alias=AliasChoices("hmacSignature", "hmac_signature"))

    model_config = ConfigDict(extra="ignore")

    def signature_fields(self) -> tuple[Optional[str], ...]:
        return (
            self.checkout_reference,
            self.payfac_reference,
            self.merchant_reference,
            self.amount,
            self.currency,
            self.reason,
            self.success,
        )

    @property
    def is_completion_event(self) -> bool:
        return self.event_type in PAYFAC_COMPLETION_EVENTS

    @property
    def is_successful(self) -> bool:
        return self.success == "true"
