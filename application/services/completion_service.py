"""
Completion coordinator: the payment request state machine.

A payment request moves ``NEW`` → ``SUCCEEDED`` | ``FAILED`` exactly once on
the ticketing platform. Up to three independent channels may report the
outcome (browser redirect, provider webhook, platform refund webhook); every
path re-reads the request from the platform first and only a request still
in ``NEW`` may trigger ``complete_payment_request``.

There is no local state and no lock. Two signals racing past the ``NEW``
check may both call the platform confirm endpoint; that endpoint is expected
to tolerate a repeated call.

Gateway implementations are provided by infrastructure and must be injected
from the composition root (API), keeping dependencies one-way.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from urllib.parse import urlencode

from application.dtos.payments import (
    PayfacNotification,
    PaymentRequest,
    RefundOutcome,
    RefundRequest,
    RefundWebhook,
)
from application.ports.payment_gateway import PaymentGateway
from application.ports.payment_registry import PaymentRegistry
from core.logging_config import get_logger
from domain.common.exceptions import (
    PaymentAlreadyProcessedException,
    PaymentRequestNotFoundException,
    UpstreamServiceException,
)
from domain.payment.money import to_minor_units
from shared.codes.payment_codes import PAYMENT_REQUEST_SUCCEEDED, PaymentCode


logger = get_logger(__name__)


@dataclass(frozen=True)
class WebhookAck:
    payment_request_id: str
    completed: bool
    ignored: bool = False


@dataclass(frozen=True)
class RefundResolution:
    payment_request_id: str
    outcome: RefundOutcome


class CompletionCoordinator:
    def __init__(
        self,
        gateway: PaymentGateway,
        registry: PaymentRegistry,
        *,
        app_url: str,
        default_currency: Optional[str] = None,
    ) -> None:
        self.gateway = gateway
        self.registry = registry
        self.app_url = app_url.rstrip("/")
        self.default_currency = default_currency

    # URLs handed to the provider
    def callback_url(self, payment_request_id: str) -> str:
        query = urlencode({"paymentRequestId": payment_request_id})
        return f"{self.app_url}/{self.gateway.provider}/callback?{query}"

    def failure_url(self, payment_request_id: str) -> str:
        query = urlencode({"paymentRequestId": payment_request_id})
        return f"{self.app_url}/{self.gateway.provider}/failure?{query}"

    def checkout_currency(self, payment_request: PaymentRequest) -> str:
        currency = payment_request.currency or self.default_currency
        if not currency:
            raise UpstreamServiceException(
                "Payment request currency unknown",
                code=PaymentCode.REGISTRY_ERROR,
                details={"payment_request_id": payment_request.id},
            )
        return currency

    def checkout_amount(self, payment_request: PaymentRequest) -> Decimal | int:
        """Amount in the unit the gateway declares for checkout."""
        if self.gateway.amount_unit == "minor":
            return to_minor_units(payment_request.amount, self.checkout_currency(payment_request))
        return payment_request.amount

    @staticmethod
    def _return_url(payment_request: PaymentRequest, *, success: bool) -> str:
        url = payment_request.success_return_url if success else payment_request.failure_return_url
        if not url:
            raise UpstreamServiceException(
                "Return URL missing",
                code=PaymentCode.REGISTRY_ERROR,
                details={
                    "payment_request_id": payment_request.id,
                    "return_url": "success" if success else "failure",
                },
            )
        return url

    def _terminal_redirect(self, payment_request: PaymentRequest) -> str:
        return self._return_url(payment_request, success=payment_request.status == PAYMENT_REQUEST_SUCCEEDED)

    async def start_checkout(self, payment_request_id: str) -> str:
        """Create a hosted checkout and return the provider redirect URL."""
        payment_request = await self.registry.get_payment_request(payment_request_id)
        if not payment_request.is_new:
            logger.warning(
                "payment_request_already_processed",
                payment_request_id=payment_request_id,
                status=payment_request.status,
            )
            raise PaymentAlreadyProcessedException(payment_request_id, payment_request.status)

        logger.info(
            "payment_request_received",
            payment_request_id=payment_request_id,
            amount=str(payment_request.amount),
            currency=payment_request.currency,
        )
        session = await self.gateway.initialize_checkout(
            email=payment_request.customer_email,
            amount=self.checkout_amount(payment_request),
            payment_id=payment_request_id,
            return_url=self.callback_url(payment_request_id),
            cancel_url=self.failure_url(payment_request_id),
            currency=self.checkout_currency(payment_request),
        )
        logger.info(
            "checkout_initialized",
            payment_request_id=payment_request_id,
            provider=self.gateway.provider,
            provider_reference=session.provider_reference,
        )
        return session.redirect_url

    async def handle_redirect_callback(self, payment_request_id: str) -> str:
        """Browser came back from the provider; return where to send it next."""
        payment_request = await self.registry.get_payment_request(payment_request_id)
        if not payment_request.is_new:
            logger.info(
                "redirect_for_resolved_request",
                payment_request_id=payment_request_id,
                status=payment_request.status,
            )
            return self._terminal_redirect(payment_request)

        checkout = await self.gateway.get_status(payment_request_id)
        if checkout.status != self.gateway.success_status:
            # Platform keeps the request NEW until it expires.
            logger.info(
                "checkout_not_successful",
                payment_request_id=payment_request_id,
                provider=self.gateway.provider,
                provider_status=checkout.status,
            )
            return self._return_url(payment_request, success=False)

        completed = await self.registry.complete_payment_request(payment_request_id)
        logger.info("payment_request_completed", payment_request_id=payment_request_id, channel="redirect")
        return self._return_url(completed if completed.success_return_url else payment_request, success=True)

    async def handle_failure_redirect(self, payment_request_id: str) -> str:
        payment_request = await self.registry.get_payment_request(payment_request_id)
        if not payment_request.is_new:
            return self._terminal_redirect(payment_request)
        logger.info("checkout_cancelled", payment_request_id=payment_request_id, provider=self.gateway.provider)
        return self._return_url(payment_request, success=False)

    async def handle_provider_webhook(self, notification: PayfacNotification) -> WebhookAck:
        """Apply a verified provider notification.

        Non-completion event types and unsuccessful events are acknowledged
        without side effects so the provider stops redelivering.
        """
        payment_request_id = notification.merchant_reference
        if not notification.is_completion_event:
            logger.warning(
                "webhook_event_ignored",
                payment_request_id=payment_request_id,
                event_type=notification.event_type,
            )
            return WebhookAck(payment_request_id, completed=False, ignored=True)

        if not notification.is_successful:
            logger.info(
                "webhook_event_unsuccessful",
                payment_request_id=payment_request_id,
                event_type=notification.event_type,
                reason=notification.reason,
            )
            return WebhookAck(payment_request_id, completed=False)

        payment_request = await self.registry.get_payment_request(payment_request_id)
        if not payment_request.is_new:
            logger.info(
                "webhook_for_resolved_request",
                payment_request_id=payment_request_id,
                status=payment_request.status,
            )
            return WebhookAck(payment_request_id, completed=False)

        await self.registry.complete_payment_request(payment_request_id)
        logger.info(
            "payment_request_completed",
            payment_request_id=payment_request_id,
            channel="webhook",
            event_type=notification.event_type,
        )
        return WebhookAck(payment_request_id, completed=True)

    async def resolve_payment_request_id(self, transaction_id: str) -> str:
        """transaction → checkout → payment request."""
        transaction = await self.registry.get_transaction_by_id(transaction_id)
        checkout_id = transaction.get("checkoutId")
        if not checkout_id:
            raise PaymentRequestNotFoundException(reason=f"transaction {transaction_id} has no checkout")
        checkout = await self.registry.get_checkout_by_id(checkout_id)
        docs = checkout.get("docs")
        first = docs[0] if isinstance(docs, list) and docs else None
        payment_request_id = first.get("paymentRequestId") if isinstance(first, dict) else None
        if not payment_request_id:
            raise PaymentRequestNotFoundException(reason=f"checkout {checkout_id} has no payment request")
        return payment_request_id

    async def handle_refund_webhook(self, webhook: RefundWebhook) -> RefundResolution:
        """Relay a platform refund to the provider.

        Provider rejection is returned in the outcome, not raised.
        """
        payment_request_id = await self.resolve_payment_request_id(webhook.data.transaction_id)
        checkout = await self.gateway.get_status(payment_request_id)
        if not checkout.provider_transaction_reference:
            raise UpstreamServiceException(
                "Provider transaction reference missing",
                details={"provider": self.gateway.provider, "payment_request_id": payment_request_id},
            )

        currency = webhook.data.currency or checkout.currency or self.default_currency
        if not currency:
            raise UpstreamServiceException(
                "Refund currency unknown",
                details={"provider": self.gateway.provider, "payment_request_id": payment_request_id},
            )
        req = RefundRequest(
            merchant_reference=payment_request_id,
            provider_reference=checkout.provider_transaction_reference,
            amount=to_minor_units(webhook.data.amount, currency),
            currency=currency,
            reason="requested_by_customer",
        )
        logger.info(
            "refund_request",
            payment_request_id=payment_request_id,
            provider=self.gateway.provider,
            amount=req.amount,
            currency=req.currency,
        )
        outcome = await self.gateway.create_refund(req)
        if outcome.success:
            logger.info("refund_accepted", payment_request_id=payment_request_id)
        else:
            logger.error("refund_rejected", payment_request_id=payment_request_id, error=outcome.error)
        return RefundResolution(payment_request_id=payment_request_id, outcome=outcome)

    async def aclose(self) -> None:
        for dep in (self.gateway, self.registry):
            close = getattr(dep, "aclose", None)
            if callable(close):
                await close()
