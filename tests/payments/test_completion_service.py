from decimal import Decimal

import pytest

from application.dtos.payments import PayfacNotification, RefundWebhook
from application.services.completion_service import CompletionCoordinator
from domain.common.exceptions import (
    PaymentAlreadyProcessedException,
    PaymentRequestNotFoundException,
    UpstreamServiceException,
)
from conftest import StubGateway


def _coordinator(gateway, registry):
    return CompletionCoordinator(gateway, registry, app_url="https://gateway.example/", default_currency="GHS")


def _notification(event_type="Authorization", success="true", reference="pr_new"):
    return PayfacNotification.model_validate(
        {
            "eventType": event_type,
            "checkoutReference": None,
            "payfacReference": "21135253156",
            "merchantReference": reference,
            "amount": "1000",
            "currency": "GHS",
            "reason": None,
            "success": success,
        }
    )


@pytest.mark.asyncio
async def test_start_checkout_converts_major_to_minor_units(gateway, registry):
    coordinator = _coordinator(gateway, registry)
    url = await coordinator.start_checkout("pr_new")

    assert url == "https://checkout.example/pr_new"
    call = gateway.initialize_calls[0]
    assert call["amount"] == 1000
    assert isinstance(call["amount"], int)
    assert call["currency"] == "GHS"
    assert call["email"] == "buyer@example.com"
    assert call["return_url"] == "https://gateway.example/startbutton/callback?paymentRequestId=pr_new"
    assert call["cancel_url"] == "https://gateway.example/startbutton/failure?paymentRequestId=pr_new"


@pytest.mark.asyncio
async def test_start_checkout_passes_major_units_to_major_unit_gateway(registry):
    gateway = StubGateway()
    gateway.amount_unit = "major"
    await _coordinator(gateway, registry).start_checkout("pr_new")
    assert gateway.initialize_calls[0]["amount"] == Decimal("10.00")


@pytest.mark.asyncio
async def test_start_checkout_rejects_processed_request(gateway, registry):
    with pytest.raises(PaymentAlreadyProcessedException):
        await _coordinator(gateway, registry).start_checkout("pr_done")
    assert gateway.initialize_calls == []


@pytest.mark.asyncio
async def test_redirect_callback_completes_once(gateway, registry):
    coordinator = _coordinator(gateway, registry)

    first = await coordinator.handle_redirect_callback("pr_new")
    second = await coordinator.handle_redirect_callback("pr_new")

    assert first == "https://shop.example/pr_new/success"
    assert second == "https://shop.example/pr_new/success"
    assert registry.complete_calls == ["pr_new"]
    # second signal never reaches the provider
    assert gateway.status_calls == ["pr_new"]


@pytest.mark.asyncio
async def test_redirect_callback_unsuccessful_checkout_goes_to_failure(registry):
    gateway = StubGateway(status="failed")
    url = await _coordinator(gateway, registry).handle_redirect_callback("pr_new")
    assert url == "https://shop.example/pr_new/failure"
    assert registry.complete_calls == []
    assert registry.requests["pr_new"]["status"] == "NEW"


@pytest.mark.asyncio
async def test_redirect_callback_for_failed_request_redirects_to_failure(gateway, registry):
    url = await _coordinator(gateway, registry).handle_redirect_callback("pr_failed")
    assert url == "https://shop.example/pr_failed/failure"
    assert gateway.status_calls == []


@pytest.mark.asyncio
async def test_failure_redirect_does_not_mutate(gateway, registry):
    url = await _coordinator(gateway, registry).handle_failure_redirect("pr_new")
    assert url == "https://shop.example/pr_new/failure"
    assert registry.complete_calls == []


@pytest.mark.asyncio
async def test_unknown_payment_request_is_not_found(gateway, registry):
    with pytest.raises(PaymentRequestNotFoundException):
        await _coordinator(gateway, registry).handle_redirect_callback("missing")


@pytest.mark.asyncio
@pytest.mark.parametrize("event_type", ["Authorization", "Capture"])
async def test_completion_events_complete_exactly_once(gateway, registry, event_type):
    coordinator = _coordinator(gateway, registry)
    ack = await coordinator.handle_provider_webhook(_notification(event_type))
    again = await coordinator.handle_provider_webhook(_notification(event_type))

    assert ack.completed is True
    assert again.completed is False
    assert registry.complete_calls == ["pr_new"]


@pytest.mark.asyncio
@pytest.mark.parametrize("event_type", ["Refund", "Cancellation", "authorization", ""])
async def test_other_event_types_are_acknowledged_without_action(gateway, registry, event_type):
    ack = await _coordinator(gateway, registry).handle_provider_webhook(_notification(event_type))
    assert ack.ignored is True
    assert registry.complete_calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("success", ["false", "True", "TRUE", "1", None])
async def test_success_flag_is_exact_string(gateway, registry, success):
    ack = await _coordinator(gateway, registry).handle_provider_webhook(_notification(success=success))
    assert ack.completed is False
    assert registry.complete_calls == []


@pytest.mark.asyncio
async def test_webhook_after_redirect_completion_is_noop(gateway, registry):
    coordinator = _coordinator(gateway, registry)
    await coordinator.handle_redirect_callback("pr_new")
    ack = await coordinator.handle_provider_webhook(_notification())
    assert ack.completed is False
    assert registry.complete_calls == ["pr_new"]


def _refund_webhook(amount="10.00"):
    return RefundWebhook.model_validate(
        {"type": "payment.refund", "data": {"transactionId": "tx_1", "amount": amount}}
    )


@pytest.mark.asyncio
async def test_refund_resolves_chain_and_converts_amount(gateway, registry):
    registry.transactions["tx_1"] = {"_id": "tx_1", "checkoutId": "co_1"}
    registry.checkouts["co_1"] = {"docs": [{"paymentRequestId": "pr_done"}]}

    resolution = await _coordinator(gateway, registry).handle_refund_webhook(_refund_webhook())

    assert resolution.payment_request_id == "pr_done"
    assert resolution.outcome.success is True
    refund = gateway.refunds[0]
    assert refund.provider_reference == "txref_pr_done"
    assert refund.merchant_reference == "pr_done"
    assert refund.amount == 1000
    assert refund.currency == "GHS"
    assert registry.complete_calls == []


@pytest.mark.asyncio
async def test_refund_with_empty_docs_is_not_found(gateway, registry):
    registry.transactions["tx_1"] = {"checkoutId": "co_1"}
    registry.checkouts["co_1"] = {"docs": []}
    with pytest.raises(PaymentRequestNotFoundException):
        await _coordinator(gateway, registry).handle_refund_webhook(_refund_webhook())
    assert gateway.refunds == []


@pytest.mark.asyncio
async def test_refund_with_missing_checkout_is_not_found(gateway, registry):
    registry.transactions["tx_1"] = {}
    with pytest.raises(PaymentRequestNotFoundException):
        await _coordinator(gateway, registry).resolve_payment_request_id("tx_1")


@pytest.mark.asyncio
async def test_refund_rejection_is_returned_not_raised(registry):
    gateway = StubGateway(refund_ok=False)
    registry.transactions["tx_1"] = {"checkoutId": "co_1"}
    registry.checkouts["co_1"] = {"docs": [{"paymentRequestId": "pr_done"}]}

    resolution = await _coordinator(gateway, registry).handle_refund_webhook(_refund_webhook())

    assert resolution.outcome.success is False
    assert resolution.outcome.error == {"message": "refund window closed"}


@pytest.mark.asyncio
async def test_refund_without_provider_reference_is_upstream_error(registry):
    gateway = StubGateway()

    async def _no_ref(reference):
        checkout = await StubGateway.get_status(gateway, reference)
        return checkout.model_copy(update={"provider_transaction_reference": None})

    gateway.get_status = _no_ref
    registry.transactions["tx_1"] = {"checkoutId": "co_1"}
    registry.checkouts["co_1"] = {"docs": [{"paymentRequestId": "pr_done"}]}
    with pytest.raises(UpstreamServiceException):
        await _coordinator(gateway, registry).handle_refund_webhook(_refund_webhook())


@pytest.mark.asyncio
@pytest.mark.parametrize("docs", [{"paymentRequestId": "pr_done"}, "pr_done", [None]])
async def test_refund_with_malformed_docs_is_not_found(gateway, registry, docs):
    registry.transactions["tx_1"] = {"checkoutId": "co_1"}
    registry.checkouts["co_1"] = {"docs": docs}
    with pytest.raises(PaymentRequestNotFoundException):
        await _coordinator(gateway, registry).handle_refund_webhook(_refund_webhook())
    assert gateway.refunds == []


@pytest.mark.asyncio
async def test_start_checkout_without_currency_uses_default(gateway, registry):
    del registry.requests["pr_new"]["currency"]

    await _coordinator(gateway, registry).start_checkout("pr_new")

    call = gateway.initialize_calls[0]
    assert call["amount"] == 1000
    assert call["currency"] == "GHS"


@pytest.mark.asyncio
async def test_start_checkout_default_currency_drives_minor_units(gateway, registry):
    registry.requests["pr_new"]["currency"] = None
    coordinator = CompletionCoordinator(gateway, registry, app_url="https://gateway.example", default_currency="ISK")

    await coordinator.start_checkout("pr_new")

    call = gateway.initialize_calls[0]
    assert call["amount"] == 10
    assert call["currency"] == "ISK"


@pytest.mark.asyncio
async def test_start_checkout_without_any_currency_is_upstream_error(gateway, registry):
    del registry.requests["pr_new"]["currency"]
    coordinator = CompletionCoordinator(gateway, registry, app_url="https://gateway.example")

    with pytest.raises(UpstreamServiceException):
        await coordinator.start_checkout("pr_new")
    assert gateway.initialize_calls == []


@pytest.mark.asyncio
async def test_failure_redirect_without_return_url_is_upstream_error(gateway, registry):
    registry.requests["pr_new"]["failureReturnUrl"] = None
    with pytest.raises(UpstreamServiceException) as info:
        await _coordinator(gateway, registry).handle_failure_redirect("pr_new")
    assert info.value.message == "Return URL missing"


@pytest.mark.asyncio
async def test_unsuccessful_callback_without_return_url_is_upstream_error(registry):
    del registry.requests["pr_new"]["failureReturnUrl"]
    with pytest.raises(UpstreamServiceException):
        await _coordinator(StubGateway(status="failed"), registry).handle_redirect_callback("pr_new")
    assert registry.complete_calls == []


@pytest.mark.asyncio
async def test_resolved_request_without_success_url_is_upstream_error(gateway, registry):
    del registry.requests["pr_done"]["successReturnUrl"]
    with pytest.raises(UpstreamServiceException):
        await _coordinator(gateway, registry).handle_redirect_callback("pr_done")
    assert registry.complete_calls == []
