import json
from decimal import Decimal

import httpx
import pytest

from application.dtos.payments import RefundRequest
from application.services.completion_service import CompletionCoordinator
from infrastructure.external.payments import get_payment_gateway
from infrastructure.external.payments.exceptions import CheckoutRejectedError, PaymentProviderError
from infrastructure.external.payments.startbutton_client import StartButtonClient


def _client(settings, handler):
    gw = get_payment_gateway(settings, "startbutton", transport=httpx.MockTransport(handler))
    assert isinstance(gw, StartButtonClient)
    return gw


@pytest.mark.asyncio
async def test_initialize_checkout_wire_format(settings):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "data": "https://pay.example/abc"})

    gw = _client(settings, handler)
    session = await gw.initialize_checkout(
        email="buyer@example.com",
        amount=Decimal("1000.4"),
        payment_id="pr_1",
        return_url="https://gateway.example/startbutton/callback?paymentRequestId=pr_1",
        cancel_url="https://gateway.example/startbutton/failure?paymentRequestId=pr_1",
        currency=None,
    )
    await gw.aclose()

    assert session.redirect_url == "https://pay.example/abc"
    assert session.provider_reference == "pr_1"
    assert seen["url"] == "https://startbutton.test/transaction/initialize"
    assert seen["auth"] == "Bearer sk_test"
    assert seen["body"]["amount"] == 1000
    assert seen["body"]["currency"] == "GHS"
    assert seen["body"]["partner"] == "Paystack"
    assert seen["body"]["reference"] == "pr_1"
    assert seen["body"]["metadata"] == {"cancel_action": "https://gateway.example/startbutton/failure?paymentRequestId=pr_1"}


@pytest.mark.asyncio
async def test_initialize_checkout_non_2xx_raises_with_body(settings):
    gw = _client(settings, lambda request: httpx.Response(422, json={"message": "bad currency"}))
    with pytest.raises(PaymentProviderError) as info:
        await gw.initialize_checkout(
            email=None, amount=100, payment_id="pr_1", return_url="r", cancel_url="c", currency="XYZ"
        )
    assert info.value.status_code == 422
    assert "bad currency" in info.value.body


@pytest.mark.asyncio
async def test_initialize_checkout_unsuccessful_body_is_rejection(settings):
    gw = _client(settings, lambda request: httpx.Response(200, json={"success": False, "message": "nope"}))
    with pytest.raises(CheckoutRejectedError):
        await gw.initialize_checkout(
            email=None, amount=100, payment_id="pr_1", return_url="r", cancel_url="c", currency="GHS"
        )


@pytest.mark.asyncio
async def test_get_status_parses_transaction(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/transaction/status/pr_1"
        assert request.headers["authorization"] == "Bearer pk_test"
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": {"transaction": {"status": "successful", "transactionReference": "TX-9", "amount": 1000, "currency": "GHS"}},
            },
        )

    checkout = await _client(settings, handler).get_status("pr_1")
    assert checkout.status == "successful"
    assert checkout.provider_transaction_reference == "TX-9"
    assert checkout.reference == "pr_1"


@pytest.mark.asyncio
async def test_get_status_unsuccessful_body_is_not_an_error(settings):
    gw = _client(settings, lambda request: httpx.Response(200, json={"success": False, "message": "not found"}))
    checkout = await gw.get_status("pr_1")

    assert checkout.status == "unsuccessful"
    assert checkout.status != gw.success_status
    assert checkout.provider_transaction_reference is None


@pytest.mark.asyncio
async def test_get_status_non_2xx_raises(settings):
    gw = _client(settings, lambda request: httpx.Response(503, text="down"))
    with pytest.raises(PaymentProviderError) as info:
        await gw.get_status("pr_1")
    assert info.value.status_code == 503


@pytest.mark.asyncio
async def test_redirect_callback_with_unsuccessful_status_body_goes_to_failure(settings, registry):
    gw = _client(settings, lambda request: httpx.Response(200, json={"success": False}))
    coordinator = CompletionCoordinator(gw, registry, app_url=settings.APP_URL, default_currency="GHS")

    url = await coordinator.handle_redirect_callback("pr_new")

    assert url == "https://shop.example/pr_new/failure"
    assert registry.complete_calls == []


@pytest.mark.asyncio
async def test_create_refund_rejection_returns_error_result(settings):
    gw = _client(settings, lambda request: httpx.Response(400, json={"success": False, "message": "already refunded"}))
    outcome = await gw.create_refund(
        RefundRequest(merchant_reference="pr_1", provider_reference="TX-9", amount=1000, currency="GHS")
    )
    assert outcome.success is False
    assert outcome.error == {"success": False, "message": "already refunded"}


@pytest.mark.asyncio
async def test_create_refund_success(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"transactionReference": "TX-9", "amount": 1000}
        return httpx.Response(200, json={"success": True, "data": {"id": "rf_1"}})

    outcome = await _client(settings, handler).create_refund(
        RefundRequest(merchant_reference="pr_1", provider_reference="TX-9", amount=1000, currency="GHS")
    )
    assert outcome.success is True
    assert outcome.data == {"id": "rf_1"}


@pytest.mark.asyncio
async def test_create_refund_transport_failure_raises(settings):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PaymentProviderError):
        await _client(settings, handler).create_refund(
            RefundRequest(merchant_reference="pr_1", provider_reference="TX-9", amount=1000, currency="GHS")
        )


def test_missing_credentials_fail_at_construction(settings):
    settings.startbutton.secret_key = None
    with pytest.raises(RuntimeError):
        get_payment_gateway(settings, "startbutton")
