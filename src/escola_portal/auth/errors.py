"""
escola_portal.auth.errors

Error taxonomy for the auth boundary.

Every error carries enough detail for server-side logs; the HTTP layer
(`api.errors`) collapses them into coarse client messages.
"""

from __future__ import annotations


class AuthError(Exception):
    pass


class InvalidCredentials(AuthError):
    """Base for every credential failure; clients only ever see this one."""

    reason = "invalid_credentials"

    def __init__(self, role: str, identifier: str) -> None:
        super().__init__(f"{self.reason}: role={role}")
        self.role = role
        self.identifier = identifier


class PrincipalNotFound(InvalidCredentials):
    reason = "not_found"


class PrincipalInactive(InvalidCredentials):
    reason = "inactive"


class BadSecret(InvalidCredentials):
    reason = "bad_secret"


class SessionExpired(AuthError):
    def __init__(self, sid: str) -> None:
        super().__init__("session expired")
        self.sid = sid


class SessionBackendUnavailable(AuthError):
    def __init__(self, operation: str) -> None:
        super().__init__(f"session backend unavailable during {operation}")
        self.operation = operation


class CrossTenantAccess(AuthError):
    def __init__(self, *, table: str, target: object) -> None:
        super().__init__(f"cross-tenant access to {table}:{target}")
        self.table = table
        self.target = target


class RecordNotFound(AuthError):
    def __init__(self, *, table: str, target: object) -> None:
        super().__init__(f"{table}:{target} not found")
        self.table = table
        self.target = target
