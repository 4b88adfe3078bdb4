"""
Route dependencies: the coordinator and webhook verifiers built at startup.
"""
from fastapi import HTTPException, Request, status

from application.services.completion_service import CompletionCoordinator
from domain.payment.signature import FieldSignatureVerifier, RawBodySignatureVerifier


def get_coordinator(request: Request) -> CompletionCoordinator:
    return request.app.state.coordinator


def get_refund_verifier(request: Request) -> RawBodySignatureVerifier:
    """Verifier for platform webhooks (hex HMAC over the raw body)."""
    secret = request.app.state.settings.vivenu.webhook_secret
    if not secret:
        raise RuntimeError("VIVENU__WEBHOOK_SECRET not configured")
    return RawBodySignatureVerifier(secret=secret, secret_encoding="raw")


def get_notification_verifier(request: Request) -> FieldSignatureVerifier:
    """Verifier for provider notifications (base64 HMAC over ordered fields)."""
    gateway = request.app.state.coordinator.gateway
    factory = getattr(gateway, "signature_verifier", None)
    if not callable(factory):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Provider '{gateway.provider}' does not send signed notifications",
        )
    return factory()


def ensure_provider(provider: str, request: Request) -> str:
    configured = request.app.state.coordinator.gateway.provider
    if provider.lower() != configured:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown provider: {provider}")
    return configured
