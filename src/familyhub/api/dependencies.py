"""Shared FastAPI dependencies and error mapping for the vault routes."""

import logging
import threading

from fastapi import HTTPException, Request, status

from ..core.config import get_settings
from ..vault import AccessController, ErrorCode, StoreError, StoreUnavailable

logger = logging.getLogger(__name__)

_controller_lock = threading.Lock()

# HTTP status for each structured failure. Anything not listed is 401.
ERROR_STATUS = {
    ErrorCode.LOCKED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.INVALID_PIN_FORMAT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.SECRET_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.STORE_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for(error_code) -> int:
    return ERROR_STATUS.get(error_code, status.HTTP_401_UNAUTHORIZED)


def store_failure(error: StoreError, action: str) -> HTTPException:
    """HTTPException for a store failure (503 unavailable, 500 otherwise)."""
    logger.error("Failed to %s: %s", action, error)
    if isinstance(error, StoreUnavailable):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Secure storage is unavailable",
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to {action}",
    )


def get_access_controller(request: Request) -> AccessController:
    """The app's AccessController, built from settings on first use."""
    controller = getattr(request.app.state, "access_controller", None)
    if controller is not None:
        return controller

    with _controller_lock:
        controller = getattr(request.app.state, "access_controller", None)
        if controller is None:
            try:
                controller = AccessController.from_settings(get_settings())
            except StoreError as e:
                raise store_failure(e, "open secure storage")
            request.app.state.access_controller = controller
    return controller
