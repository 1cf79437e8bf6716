"""
escola_portal.auth.scoping

Tenant scoping filter.

Responsibilities:
- Rewrite every query/mutation on branch- or student-scoped tables for the resolved
  access context (manager: own branch; guardian: linked students; admin: unchanged).
- Reject cross-tenant reads and writes with `CrossTenantAccess`, logged as an alert.
- Be the only way route handlers reach scoped data (`scoped_store(...)` dependency).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar

from fastapi import Depends
from sqlalchemy import ColumnElement
from sqlalchemy.ext.asyncio import AsyncSession

from escola_portal.api.deps import db_session
from escola_portal.auth.errors import CrossTenantAccess, RecordNotFound
from escola_portal.auth.models import AccessContext, Role
from escola_portal.auth.routing import require_any
from escola_portal.db.base import Base
from escola_portal.db.models import Branch, Payment, Plan, Student
from escola_portal.db.repositories.records import RecordRepo
from escola_portal.observability.logging import get_logger

log = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Base)


@dataclass(frozen=True, slots=True)
class ScopeRule:
    # Column carrying the owning branch id / the student id; None if not applicable.
    branch_column: str | None
    student_column: str | None


SCOPE_RULES: dict[type[Base], ScopeRule] = {
    Branch: ScopeRule(branch_column="id", student_column=None),
    Student: ScopeRule(branch_column="branch_id", student_column="id"),
    Plan: ScopeRule(branch_column="branch_id", student_column=None),
    Payment: ScopeRule(branch_column="branch_id", student_column="student_id"),
}


def _rule(model: type[Base]) -> ScopeRule:
    try:
        return SCOPE_RULES[model]
    except KeyError:
        raise LookupError(f"{model.__name__} has no scope rule") from None


class ScopedStore:
    def __init__(self, *, records: RecordRepo, access: AccessContext) -> None:
        self._records = records
        self._access = access

    @property
    def access(self) -> AccessContext:
        return self._access

    def _reject(self, model: type[Base], target: object, reason: str) -> CrossTenantAccess:
        log.warning(
            "cross_tenant_access",
            alert=True,
            reason=reason,
            role=self._access.role.value,
            principal_id=self._access.principal_id,
            table=model.__tablename__,
            target=target,
        )
        return CrossTenantAccess(table=model.__tablename__, target=target)

    def predicates(self, model: type[Base]) -> list[ColumnElement[bool]]:
        rule = _rule(model)
        role = self._access.role
        if role is Role.admin:
            return []
        if role is Role.manager:
            if rule.branch_column is None:
                raise self._reject(model, "*", "table_not_branch_scoped")
            return [getattr(model, rule.branch_column) == self._access.branch_id]
        if rule.student_column is None:
            raise self._reject(model, "*", "table_not_student_scoped")
        return [getattr(model, rule.student_column).in_(sorted(self._access.student_ids))]

    def ensure_branch(self, branch_id: int) -> None:
        """
        Path-parameter check: a manager may only address its own branch id.
        """

        if self._access.role is Role.manager and branch_id != self._access.branch_id:
            raise self._reject(Branch, branch_id, "branch_path_parameter")
        if self._access.role is Role.guardian:
            raise self._reject(Branch, branch_id, "branch_path_parameter")

    async def list(self, model: type[ModelT], *where: ColumnElement[bool]) -> list[ModelT]:
        return await self._records.query(model, *where, *self.predicates(model))

    async def get(self, model: type[ModelT], record_id: int) -> ModelT:
        scope = self.predicates(model)
        pk = model.id  # type: ignore[attr-defined]
        row = await self._records.find_one(model, pk == record_id, *scope)
        if row is not None:
            return row
        if scope and await self._records.get(model, record_id) is not None:
            # Exists, but belongs to someone else: same outward result as a miss.
            raise self._reject(model, record_id, "record_outside_scope")
        raise RecordNotFound(table=model.__tablename__, target=record_id)

    def _check_values(
        self, model: type[Base], values: dict[str, Any], *, inserting: bool
    ) -> dict[str, Any]:
        rule = _rule(model)
        checked = {k: v for k, v in values.items() if k != "id"}
        role = self._access.role
        if role is Role.manager:
            if rule.branch_column is None or (rule.branch_column == "id" and inserting):
                raise self._reject(model, "*", "manager_write_outside_branch")
            if rule.branch_column != "id":
                requested = checked.get(rule.branch_column)
                if requested is not None and requested != self._access.branch_id:
                    raise self._reject(model, requested, "branch_id_in_payload")
                checked[rule.branch_column] = self._access.branch_id
        elif role is Role.guardian:
            if rule.student_column is None or (rule.student_column == "id" and inserting):
                raise self._reject(model, "*", "guardian_write_outside_linked_students")
            if rule.student_column != "id":
                requested = checked.get(rule.student_column)
                if inserting and requested is None:
                    raise self._reject(model, "*", "student_id_missing")
                if requested is not None and requested not in self._access.student_ids:
                    raise self._reject(model, requested, "student_id_in_payload")
        return checked

    async def _check_student_branch(self, model: type[Base], values: dict[str, Any]) -> None:
        """
        A manager may only reference students of its own branch.
        """

        rule = _rule(model)
        if self._access.role is not Role.manager or rule.student_column in (None, "id"):
            return
        student_id = values.get(rule.student_column)
        if student_id is None:
            return
        owned = await self._records.find_one(
            Student, Student.id == student_id, Student.branch_id == self._access.branch_id
        )
        if owned is None:
            raise self._reject(model, student_id, "student_outside_branch")

    async def insert(self, model: type[ModelT], values: dict[str, Any]) -> ModelT:
        checked = self._check_values(model, values, inserting=True)
        await self._check_student_branch(model, checked)
        return await self._records.insert(model, checked)

    async def update(self, model: type[ModelT], record_id: int, values: dict[str, Any]) -> ModelT:
        row = await self.get(model, record_id)
        checked = self._check_values(model, values, inserting=False)
        await self._check_student_branch(model, checked)
        return await self._records.update(row, checked)

    async def commit(self) -> None:
        await self._records.commit()


def scoped_store(*allowed: Role):
    """
    Dependency factory: role precedence + guard + tenant scoping in one step.
    """

    access_dep = require_any(*allowed)

    def _dep(
        access: AccessContext = Depends(access_dep),
        session: AsyncSession = Depends(db_session),
    ) -> ScopedStore:
        return ScopedStore(records=RecordRepo(session), access=access)

    return _dep


# --- Module Notes -----------------------------------------------------------
# A model missing from SCOPE_RULES cannot be read through ScopedStore at all, so a new
# table has to declare its tenant columns before any handler can serve it.
