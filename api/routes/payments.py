"""
Payments API routes.

Thin adapters: translate inbound redirects and webhooks into coordinator
calls and coordinator results into HTTP responses. No provider wire details
here.
"""
from __future__ import annotations

import json

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError
from starlette import status as http_status

from api.dependencies import (
    ensure_provider,
    get_coordinator,
    get_notification_verifier,
    get_refund_verifier,
)
from application.dtos.payments import PayfacNotification, RefundWebhook
from application.services.completion_service import CompletionCoordinator
from core.logging_config import get_logger
from core.response import success_response
from domain.common.exceptions import InvalidWebhookException
from domain.payment.signature import FieldSignatureVerifier, RawBodySignatureVerifier
from infrastructure.external.payments.exceptions import PaymentSignatureError
from shared.codes.payment_codes import REFUND_WEBHOOK_TYPE


router = APIRouter(tags=["Payments"])
logger = get_logger(__name__)

SIGNATURE_HEADER = "x-vivenu-signature"


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=http_status.HTTP_302_FOUND)


def _load_json(raw_body: bytes) -> dict:
    try:
        payload = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidWebhookException("Body is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise InvalidWebhookException("Body must be a JSON object")
    return payload


@router.get("/pay/callback", summary="Start hosted checkout")
async def pay_callback(
    payment_id: str = Query(alias="paymentId", min_length=1),
    coordinator: CompletionCoordinator = Depends(get_coordinator),
):
    redirect_url = await coordinator.start_checkout(payment_id)
    return _redirect(redirect_url)


@router.get("/{provider}/callback", summary="Provider return (redirect) callback")
async def provider_callback(
    provider_name: str = Depends(ensure_provider),
    payment_request_id: str = Query(alias="paymentRequestId", min_length=1),
    coordinator: CompletionCoordinator = Depends(get_coordinator),
):
    return _redirect(await coordinator.handle_redirect_callback(payment_request_id))


@router.get("/{provider}/failure", summary="Provider cancel/failure landing")
async def provider_failure(
    provider_name: str = Depends(ensure_provider),
    payment_request_id: str = Query(alias="paymentRequestId", min_length=1),
    coordinator: CompletionCoordinator = Depends(get_coordinator),
):
    return _redirect(await coordinator.handle_failure_redirect(payment_request_id))


@router.post("/{provider}/refund", summary="Ticketing platform refund webhook")
async def refund_webhook(
    request: Request,
    provider_name: str = Depends(ensure_provider),
    coordinator: CompletionCoordinator = Depends(get_coordinator),
    verifier: RawBodySignatureVerifier = Depends(get_refund_verifier),
):
    # signature covers the bytes as received, before any parsing
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)
    if not signature:
        logger.warning("webhook_signature_missing", provider=provider_name, route="refund")
        raise PaymentSignatureError(f"Missing {SIGNATURE_HEADER} header", provider="vivenu", missing=True)
    if not verifier.verify(raw_body, signature):
        logger.warning("webhook_signature_invalid", provider=provider_name, route="refund")
        raise PaymentSignatureError("Invalid signature", provider="vivenu")

    payload = _load_json(raw_body)
    if payload.get("type") != REFUND_WEBHOOK_TYPE:
        raise InvalidWebhookException("unsupported type", details={"type": payload.get("type")})
    try:
        webhook = RefundWebhook.model_validate(payload)
    except ValidationError as exc:
        raise InvalidWebhookException("Malformed refund webhook", details={"errors": exc.errors(include_url=False, include_context=False)}) from exc

    resolution = await coordinator.handle_refund_webhook(webhook)
    if not resolution.outcome.success:
        return JSONResponse(
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": resolution.outcome.error},
        )
    return JSONResponse(content={"reference": resolution.payment_request_id})


async def _handle_notification(
    request: Request,
    coordinator: CompletionCoordinator,
    verifier: FieldSignatureVerifier,
):
    payload = _load_json(await request.body())
    try:
        notification = PayfacNotification.model_validate(payload)
    except ValidationError as exc:
        raise InvalidWebhookException("Malformed notification", details={"errors": exc.errors(include_url=False, include_context=False)}) from exc

    provider = coordinator.gateway.provider
    if not notification.hmac_signature:
        logger.warning("webhook_signature_missing", provider=provider, route="webhook")
        raise PaymentSignatureError("Missing hmacSignature", provider=provider, missing=True)
    if not verifier.verify(notification.signature_fields(), notification.hmac_signature):
        logger.warning("webhook_signature_invalid", provider=provider, merchant_reference=notification.merchant_reference)
        raise PaymentSignatureError("Invalid signature", provider=provider)

    ack = await coordinator.handle_provider_webhook(notification)
    return success_response(
        data={
            "reference": ack.payment_request_id,
            "completed": ack.completed,
            "ignored": ack.ignored,
        },
        message="[accepted]",
    )


@router.post("/webhook", summary="Provider notification webhook")
async def provider_webhook(
    request: Request,
    coordinator: CompletionCoordinator = Depends(get_coordinator),
    verifier: FieldSignatureVerifier = Depends(get_notification_verifier),
):
    return await _handle_notification(request, coordinator, verifier)


@router.post("/{provider}/webhook", summary="Provider notification webhook (provider-scoped path)")
async def provider_scoped_webhook(
    request: Request,
    provider_name: str = Depends(ensure_provider),
    coordinator: CompletionCoordinator = Depends(get_coordinator),
    verifier: FieldSignatureVerifier = Depends(get_notification_verifier),
):
    return await _handle_notification(request, coordinator, verifier)
