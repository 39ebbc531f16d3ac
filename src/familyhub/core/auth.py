"""
Core authentication dependency for API routes.

The signed-in user's identity (their email) is established upstream by
the sign-in proxy and forwarded in the X-User-Email header. The vault
keys every secret, PIN and lockout record on that value.
"""

import re
from typing import Optional

from fastapi import Depends, Header, HTTPException

from ..api.security import verify_session_token

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+$")


async def get_current_user_id(
    x_user_email: Optional[str] = Header(None),
    token: str = Depends(verify_session_token),
) -> str:
    """
    Dependency returning the current user id (normalized email).

    Requires a valid session token and a well-formed X-User-Email header.
    """
    if not x_user_email or not x_user_email.strip():
        raise HTTPException(status_code=401, detail="Unauthorized")

    email = x_user_email.strip().lower()
    if not _EMAIL_PATTERN.match(email):
        raise HTTPException(status_code=401, detail="Unauthorized")

    return email
