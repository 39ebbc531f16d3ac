# API Security - Session token for the vault API
#
# A session token is fixed by FAMILYHUB_SESSION_TOKEN or generated at
# startup. Every vault endpoint requires it in the X-Session-Token header;
# the web frontend receives it from the hosting page.

import secrets
from typing import Optional
from fastapi import Header, HTTPException, status

# Global session token (one per backend instance)
_SESSION_TOKEN: Optional[str] = None


def initialize_session_token(token: Optional[str] = None) -> str:
    """
    Set the session token for this backend instance.

    Args:
        token: Fixed token from configuration. If None, a random
               256-bit token is generated.

    Returns:
        The active session token
    """
    global _SESSION_TOKEN
    _SESSION_TOKEN = token or secrets.token_urlsafe(32)
    return _SESSION_TOKEN


async def verify_session_token(x_session_token: str = Header(None)) -> str:
    """
    FastAPI dependency to verify the session token.

    Usage in routes:
        @router.get("/protected", dependencies=[Depends(verify_session_token)])

    Raises:
        HTTPException: 401 if token is missing or invalid,
                       503 if no token has been initialized
    """
    if _SESSION_TOKEN is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session token not initialized"
        )

    if x_session_token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Session-Token header"
        )

    # Constant-time comparison to prevent timing attacks
    if not secrets.compare_digest(x_session_token, _SESSION_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session token"
        )

    return x_session_token
