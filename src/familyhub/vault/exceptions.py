"""Vault exception hierarchy.

Store failures are never conflated with "not found": backends return
``None`` for a confirmed missing secret and raise one of these for
anything else.
"""


class VaultError(Exception):
    """Base exception for vault operations."""


class StoreError(VaultError):
    """The backing secret store failed."""


class StoreUnavailable(StoreError):
    """The backing secret store is unreachable or misconfigured."""


class VersionConflict(StoreError):
    """A compare-and-swap write lost to a concurrent writer."""

    def __init__(self, name: str, expected_version):
        self.name = name
        self.expected_version = expected_version
        super().__init__(
            f"Secret {name!r} changed concurrently (expected version {expected_version})"
        )


class InvalidPinFormat(VaultError):
    """PIN is not 4-6 decimal digits."""

    def __init__(self, message: str = "PIN must be 4-6 digits"):
        super().__init__(message)
