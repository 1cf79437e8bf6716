"""
escola_portal.api.routers.branches

Branch (unit) endpoints.

Responsibilities:
- List branches (admin: all, manager: own).
- Create branches (admin only).
- List a branch's students, honoring the manager path-parameter check.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from starlette.status import HTTP_201_CREATED

from escola_portal.api.routers.students import StudentOut
from escola_portal.auth.models import Role
from escola_portal.auth.scoping import ScopedStore, scoped_store
from escola_portal.db.models import Branch, Student

router = APIRouter(prefix="/v1/branches", tags=["branches"])

_staff = scoped_store(Role.admin, Role.manager)
_admins = scoped_store(Role.admin)


class BranchOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    address: str | None
    phone: str | None
    active: bool


class BranchCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    address: str | None = None
    phone: str | None = Field(default=None, max_length=20)


@router.get("", response_model=list[BranchOut])
async def list_branches(store: ScopedStore = Depends(_staff)) -> list[Branch]:
    return await store.list(Branch)


@router.post("", response_model=BranchOut, status_code=HTTP_201_CREATED)
async def create_branch(body: BranchCreate, store: ScopedStore = Depends(_admins)) -> Branch:
    branch = await store.insert(Branch, body.model_dump(exclude_none=True))
    await store.commit()
    return branch


@router.get("/{branch_id}/students", response_model=list[StudentOut])
async def list_branch_students(
    branch_id: int, store: ScopedStore = Depends(_staff)
) -> list[Student]:
    store.ensure_branch(branch_id)
    return await store.list(Student, Student.branch_id == branch_id)
