"""Application services - audit logging, redaction and API authentication."""

from investment_flow.services.audit_service import AuditService
from investment_flow.services.auth_service import (
    Principal,
    issue_access_token,
    verify_access_token,
)
from investment_flow.services.redaction import redact_details

__all__ = [
    "AuditService",
    "Principal",
    "issue_access_token",
    "redact_details",
    "verify_access_token",
]
