# Secure Info API - store and list sensitive family information
#
#   GET    /api/secure-info                      -> masked listing
#   POST   /api/secure-info {category, key, value} -> save
#   DELETE /api/secure-info?category=&key=       -> delete
#
# No endpoint here returns an unmasked value; full values are only
# available through PUT /api/pin with the correct PIN.

import re
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel

from ..core.auth import get_current_user_id
from ..vault import AccessController, SecretCategory, StoreError
from .dependencies import get_access_controller, store_failure

router = APIRouter(prefix="/api/secure-info", tags=["secure-info"])

KEY_PATTERN = re.compile(r"^[a-zA-Z0-9_-]+$")
MAX_KEY_LENGTH = 64


class SaveSecretRequest(BaseModel):
    category: Optional[str] = None
    key: Optional[str] = None
    value: Optional[str] = None


def _validate_category(category: str) -> None:
    if category not in SecretCategory.values():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid category. Must be one of: {', '.join(SecretCategory.values())}",
        )


@router.get("")
def list_secrets(
    user_id: str = Depends(get_current_user_id),
    controller: AccessController = Depends(get_access_controller),
):
    """List the user's stored information (masked values only)."""
    try:
        secrets = controller.store.list_masked(user_id)
    except StoreError as e:
        raise store_failure(e, "fetch secure information")
    return {"secrets": [s.to_dict() for s in secrets]}


@router.post("")
def save_secret(
    request: SaveSecretRequest,
    user_id: str = Depends(get_current_user_id),
    controller: AccessController = Depends(get_access_controller),
):
    """Save a sensitive value under (category, key)."""
    if not request.category or not request.key or not request.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Category, key, and value are required",
        )

    _validate_category(request.category)

    if not KEY_PATTERN.match(request.key) or len(request.key) > MAX_KEY_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                "Key must contain only letters, numbers, underscores, and hyphens "
                f"(max {MAX_KEY_LENGTH} characters)"
            ),
        )

    try:
        controller.store.save(user_id, request.category, request.key, request.value)
    except StoreError as e:
        raise store_failure(e, "save secure information")

    return {"success": True}


@router.delete("")
def delete_secret(
    category: Optional[str] = Query(None),
    key: Optional[str] = Query(None),
    user_id: str = Depends(get_current_user_id),
    controller: AccessController = Depends(get_access_controller),
):
    """Delete a stored value. Deleting a missing value succeeds."""
    if not category or not key:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Category and key are required",
        )

    _validate_category(category)

    try:
        controller.store.delete(user_id, category, key)
    except StoreError as e:
        raise store_failure(e, "delete secure information")

    return {"success": True}
