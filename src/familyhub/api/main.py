# Vault API - FastAPI Backend
#
# REST API for the family calendar's secure information vault.
# Routers: /api/pin (PIN set/verify/PIN-gated fetch) and
# /api/secure-info (save/list masked/delete).

import logging
from typing import List, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..core import EventSeverity, EventType, get_audit_logger, get_settings
from ..core.config import VaultSettings
from ..vault import AccessController
from .pin_routes import router as pin_router
from .secure_info_routes import router as secure_info_router
from .security import initialize_session_token

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000", "http://127.0.0.1:3000",
    "http://localhost:8000", "http://127.0.0.1:8000",
]


def create_app(
    controller: Optional[AccessController] = None,
    settings: Optional[VaultSettings] = None,
    allowed_origins: Optional[List[str]] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        controller: Pre-built AccessController. If None, one is built from
                    settings on the first vault request.
        settings: Vault settings (default: loaded from the environment)
        allowed_origins: CORS origins for the web frontend
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="FamilyHub Vault API",
        description="PIN-gated secure storage for family information",
        version=__version__,
    )
    app.state.access_controller = controller

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or DEFAULT_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    initialize_session_token(settings.session_token)

    app.include_router(pin_router)
    app.include_router(secure_info_router)

    @app.on_event("startup")
    async def startup_event():
        get_audit_logger().log_event(
            event_type=EventType.SYSTEM_START,
            severity=EventSeverity.INFO,
            message="FamilyHub vault API starting",
            details={"backend": settings.backend, "version": __version__},
        )

    @app.on_event("shutdown")
    async def shutdown_event():
        """Close the backend on shutdown."""
        get_audit_logger().log_event(
            event_type=EventType.SYSTEM_STOP,
            severity=EventSeverity.INFO,
            message="FamilyHub vault API shutting down",
        )
        active = app.state.access_controller
        if active is not None:
            active.store.backend.close()

    @app.get("/api/health")
    async def health():
        """Liveness probe (does not touch the vault)."""
        return {"status": "ok", "version": __version__}

    return app


def start_api_server(host: str = "127.0.0.1", port: int = 8000, settings: Optional[VaultSettings] = None):
    """
    Start FastAPI server.

    Args:
        host: Host to bind to (default: localhost only for security)
        port: Port to listen on
        settings: Vault settings (default: loaded from the environment)
    """
    uvicorn.run(create_app(settings=settings), host=host, port=port, log_level="info")
