"""
Payment specific codes and provider status mapping.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Provider/Network errors (6xxxx)
    PROVIDER_ERROR = 60000
    SIGNATURE_ERROR = 60002
    SIGNATURE_MISSING = 60005
    UNSUPPORTED_EVENT = 60006
    CHECKOUT_REJECTED = 60007

    # Ticketing platform (registry) errors (61xxx)
    REGISTRY_ERROR = 61000
    ALREADY_PROCESSED = 61001


# Payment request statuses as reported by the ticketing platform.
# Labels are opaque: compare, never reinterpret.
PAYMENT_REQUEST_NEW = "NEW"
PAYMENT_REQUEST_SUCCEEDED = "SUCCEEDED"


# Provider→internal status mapping (extend per needs)
PROVIDER_STATUS_TO_INTERNAL = {
    "startbutton": {
        "successful": "succeeded",
        "pending": "pending",
        "initiated": "pending",
        "failed": "failed",
        "abandoned": "failed",
        "reversed": "refunded",
    },
    "payfac": {
        "Completed": "succeeded",
        "Pending": "pending",
        "Created": "pending",
        "Failed": "failed",
        "Cancelled": "failed",
        "Refunded": "refunded",
    },
}

# Webhook event types that carry a completion signal.
PAYFAC_COMPLETION_EVENTS = frozenset({"Authorization", "Capture"})

# Platform webhook type accepted on the refund route.
REFUND_WEBHOOK_TYPE = "payment.refund"
