# guest_messaging/main.py

from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from guest_messaging.config import ALLOWED_ORIGINS
from guest_messaging.context import AppContext, build_context
from guest_messaging.logging_config import setup_logging
from guest_messaging.middleware import RequestIDMiddleware
from guest_messaging.routes.automation import router as automation_router
from guest_messaging.routes.health import router as health_router
from guest_messaging.routes.metrics import router as metrics_router
from guest_messaging.routes.pricing import router as pricing_router
from guest_messaging.routes.threads import router as threads_router
from guest_messaging.routes.webhook import router as webhook_router

# Initialize structured logging
setup_logging()
logger = structlog.get_logger(__name__)


def create_app(context: Optional[AppContext] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        context: Prepared application context; built from config on startup
            when omitted

    Returns:
        FastAPI: Configured application
    """
    app = FastAPI(
        title="Guest Messaging API",
        description="Scheduled guest messaging, threads and channel webhooks",
        version="1.0.0",
    )
    app.state.context = context

    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS if "*" not in ALLOWED_ORIGINS else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router, tags=["Health"])
    app.include_router(metrics_router, tags=["Metrics"])
    app.include_router(automation_router, prefix="/automation", tags=["Automation"])
    app.include_router(threads_router, tags=["Messaging"])
    app.include_router(webhook_router, prefix="/channels", tags=["Webhooks"])
    app.include_router(pricing_router, prefix="/pricing", tags=["Pricing"])

    @app.on_event("startup")
    def startup_event() -> None:
        logger.info("FastAPI application starting up...")
        if app.state.context is None:
            app.state.context = build_context()
        if app.state.context.unread is not None:
            # Prime the unread gauges from durable state
            app.state.context.unread.recompute()
        logger.info("FastAPI application initialized")

    @app.on_event("shutdown")
    def shutdown_event() -> None:
        if context is None and app.state.context is not None:
            app.state.context.close()
        logger.info("FastAPI application stopped")

    return app


app = create_app()
