"""
FastAPI application factory.

One deployable service per provider variant; ``PAYMENT_PROVIDER`` selects it.
Run with ``uvicorn main:create_app --factory``.
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import payments as payments_routes
from application.ports.payment_gateway import PaymentGateway
from application.ports.payment_registry import PaymentRegistry
from application.services.completion_service import CompletionCoordinator
from core.config import Settings, get_settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from infrastructure.external.payments import get_payment_gateway
from infrastructure.external.registry.vivenu_client import VivenuRegistryClient


logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    gateway: Optional[PaymentGateway] = None,
    registry: Optional[PaymentRegistry] = None,
) -> FastAPI:
    """Build the app; clients are constructed here from explicit settings."""
    settings = settings or get_settings()
    configure_logging(settings.DEBUG)

    gateway = gateway or get_payment_gateway(settings)
    registry = registry or VivenuRegistryClient(settings.vivenu, settings.http)
    coordinator = CompletionCoordinator(
        gateway,
        registry,
        app_url=settings.APP_URL,
        default_currency=settings.DEFAULT_CURRENCY,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "application_startup",
            provider=gateway.provider,
            app_url=settings.APP_URL,
            environment=settings.ENVIRONMENT,
        )
        yield
        await coordinator.aclose()
        logger.info("application_shutdown", message="Application shutdown")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        description="Payment gateway adapter between vivenu payment requests and hosted checkout providers",
    )
    app.state.settings = settings
    app.state.coordinator = coordinator

    # last added runs first: request id is bound before access logging
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(payments_routes.router)

    @app.get("/", tags=["Root"], response_class=PlainTextResponse)
    async def root():
        return f"API RUNNING FOR MERCHANT => {settings.MERCHANT_NAME}"

    @app.get("/health", tags=["Health"])
    async def health_check():
        return success_response(data={"status": "healthy", "provider": gateway.provider}, message="ok")

    return app


if __name__ == "__main__":
    import os
    import uvicorn

    uvicorn.run(
        "main:create_app",
        factory=True,
        host="0.0.0.0",
        port=int(os.environ.get("PORT", "8080")),
        log_level="debug" if get_settings().DEBUG else "info",
    )
