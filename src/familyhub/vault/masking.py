"""Masked display forms for stored secrets.

These are the only forms a secret takes outside the PIN-gated
retrieval path (listing, AI assistant context, settings screens).
"""

FULL_MASK = "****"
PASSWORD_MASK = "********"


def _last4(value: str) -> str:
    return value[-4:]


def mask_value(key: str, value: str) -> str:
    """Mask a secret value according to what its key name says it is.

    >>> mask_value("ssn", "123-45-6789")
    'XXX-XX-6789'
    >>> mask_value("checking_account", "000123456789")
    '****6789'
    >>> mask_value("nickname", "abcd")
    'a**d'
    """
    lower_key = key.lower()
    value = value or ""

    # SSN: XXX-XX-1234
    if "ssn" in lower_key or "social" in lower_key:
        return f"XXX-XX-{_last4(value)}" if len(value) >= 4 else FULL_MASK

    # Bank accounts: ****1234
    if "account" in lower_key or "routing" in lower_key:
        return f"****{_last4(value)}" if len(value) >= 4 else FULL_MASK

    # Credit cards: ****-****-****-1234
    if "card" in lower_key:
        return f"****-****-****-{_last4(value)}" if len(value) >= 4 else FULL_MASK

    # Passwords/PINs: completely masked
    if "password" in lower_key or "pin" in lower_key:
        return PASSWORD_MASK

    # Default: show first and last char
    if len(value) > 2:
        return f"{value[0]}{'*' * (len(value) - 2)}{value[-1]}"
    return FULL_MASK
