# FamilyHub - Main Package
#
# FamilyHub Secure Vault: PIN-gated storage for a family's sensitive
# information (SSNs, account numbers, insurance IDs).
#
# Stored values are only ever shown masked. The full value comes back
# through exactly one path: PIN verification followed by retrieval.

__version__ = "0.3.0"
__author__ = "FamilyHub Team"
__description__ = "PIN-gated secure vault for family information"

from .core import (
    EventType,
    EventSeverity,
    get_audit_logger,
)

__all__ = [
    "__version__",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
]
