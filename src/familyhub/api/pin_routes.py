# PIN API - set, check and verify the vault PIN
#
#   GET  /api/pin                      -> {hasPin}
#   POST /api/pin  {pin}               -> set or replace the PIN
#   PUT  /api/pin  {pin}               -> verify only
#   PUT  /api/pin  {pin, category, key} -> verify and return one secret
#
# Failed verification: {success: false, error, errorCode, locked,
# attemptsLeft} with 429 when locked, 401 for wrong PIN / no PIN set.

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..core.auth import get_current_user_id
from ..vault import AccessController, InvalidPinFormat, SecretCategory, StoreError
from .dependencies import get_access_controller, status_for, store_failure

router = APIRouter(prefix="/api/pin", tags=["pin"])


# Request Models
class SetPinRequest(BaseModel):
    pin: Optional[str] = None


class VerifyPinRequest(BaseModel):
    pin: Optional[str] = None
    category: Optional[str] = None
    key: Optional[str] = None


def _failure_response(result) -> JSONResponse:
    body: Dict[str, Any] = {
        "success": False,
        "error": result.error,
        "errorCode": result.error_code.value if result.error_code else None,
    }
    if result.locked is not None:
        body["locked"] = result.locked
    if result.attempts_left is not None:
        body["attemptsLeft"] = result.attempts_left
    if result.unlock_time is not None:
        body["unlockTime"] = result.unlock_time.isoformat()
    return JSONResponse(status_code=status_for(result.error_code), content=body)


# Endpoints

@router.get("")
def get_pin_status(
    user_id: str = Depends(get_current_user_id),
    controller: AccessController = Depends(get_access_controller),
):
    """Check whether the user has a PIN set."""
    try:
        return {"hasPin": controller.has_pin(user_id)}
    except StoreError as e:
        raise store_failure(e, "check PIN status")


@router.post("")
def set_pin(
    request: SetPinRequest,
    user_id: str = Depends(get_current_user_id),
    controller: AccessController = Depends(get_access_controller),
):
    """
    Set or replace the user's PIN.

    PIN must be 4-6 digits. Setting a PIN clears any active lockout.
    """
    if not request.pin:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="PIN is required")

    try:
        controller.set_pin(user_id, request.pin)
    except InvalidPinFormat as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StoreError as e:
        raise store_failure(e, "set PIN")

    return {"success": True, "message": "PIN set successfully"}


@router.put("")
def verify_pin(
    request: VerifyPinRequest,
    user_id: str = Depends(get_current_user_id),
    controller: AccessController = Depends(get_access_controller),
):
    """
    Verify the PIN, optionally returning one secret.

    With category and key, this is the only endpoint that returns an
    unmasked secret value.
    """
    if not request.pin:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="PIN is required")

    if request.category and request.key:
        if request.category not in SecretCategory.values():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid category")

        result = controller.get_secret_with_pin(user_id, request.pin, request.category, request.key)
        if not result.success:
            return _failure_response(result)
        return {"success": True, "value": result.value}

    result = controller.verify_pin(user_id, request.pin)
    if not result.valid:
        return _failure_response(result)
    return {"success": True, "message": "PIN verified"}
