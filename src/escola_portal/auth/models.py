"""
escola_portal.auth.models

Auth domain models.

Responsibilities:
- Define the role set and the three principal variants built by credential checks.
- Define the session identity view read back by guards.
- Define the access context injected into route handlers.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, ClassVar


class Role(enum.StrEnum):
    # Values double as session blob keys and URL path segments.
    admin = "admin"
    manager = "manager"
    guardian = "guardian"


@dataclass(frozen=True, slots=True)
class AdminPrincipal:
    kind: ClassVar[Role] = Role.admin

    id: int
    name: str
    email: str
    tag: str
    active: bool

    def session_fields(self) -> dict[str, Any]:
        return {"name": self.name, "email": self.email, "tag": self.tag, "active": self.active}


@dataclass(frozen=True, slots=True)
class ManagerPrincipal:
    kind: ClassVar[Role] = Role.manager

    id: int
    name: str
    email: str
    branch_id: int

    def session_fields(self) -> dict[str, Any]:
        return {"name": self.name, "email": self.email, "branch_id": self.branch_id}


@dataclass(frozen=True, slots=True)
class GuardianPrincipal:
    kind: ClassVar[Role] = Role.guardian

    id: int
    name: str
    email: str
    student_ids: frozenset[int]

    def session_fields(self) -> dict[str, Any]:
        return {"name": self.name, "email": self.email, "student_ids": sorted(self.student_ids)}


Principal = AdminPrincipal | ManagerPrincipal | GuardianPrincipal


@dataclass(frozen=True, slots=True)
class SessionIdentity:
    """
    One role's entry in the session blob: principal id plus the fields cached at login.
    """

    role: Role
    principal_id: int
    fields: dict[str, Any]

    @property
    def name(self) -> str:
        return str(self.fields.get("name", ""))

    @property
    def email(self) -> str:
        return str(self.fields.get("email", ""))

    @property
    def branch_id(self) -> int | None:
        value = self.fields.get("branch_id")
        return int(value) if value is not None else None

    @property
    def student_ids(self) -> frozenset[int]:
        return frozenset(int(s) for s in self.fields.get("student_ids", []))


@dataclass(frozen=True, slots=True)
class AccessContext:
    """
    The identity a request is served as, after guards and role precedence.
    """

    role: Role
    principal_id: int
    branch_id: int | None = None
    student_ids: frozenset[int] = frozenset()

    @property
    def is_admin(self) -> bool:
        return self.role is Role.admin

    @classmethod
    def from_identity(cls, identity: SessionIdentity) -> AccessContext:
        if identity.role is Role.manager:
            return cls(
                role=identity.role,
                principal_id=identity.principal_id,
                branch_id=identity.branch_id,
            )
        if identity.role is Role.guardian:
            return cls(
                role=identity.role,
                principal_id=identity.principal_id,
                student_ids=identity.student_ids,
            )
        return cls(role=identity.role, principal_id=identity.principal_id)


# --- Module Notes -----------------------------------------------------------
# Branch id and linked student ids come only from the session blob written at login,
# never from request input.
