"""
escola_portal.api.routers.students

Student endpoints shared by all three roles.

Responsibilities:
- Reads for admin (all branches), manager (own branch) and guardian (linked students).
- Writes for admin and manager only.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from starlette.status import HTTP_201_CREATED

from escola_portal.auth.models import Role
from escola_portal.auth.scoping import ScopedStore, scoped_store
from escola_portal.db.models import Student

router = APIRouter(prefix="/v1/students", tags=["students"])

_readers = scoped_store(Role.admin, Role.manager, Role.guardian)
_writers = scoped_store(Role.admin, Role.manager)


class StudentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str | None
    phone: str | None
    branch_id: int
    guardian_id: int | None
    active: bool


class StudentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    # Required for admins; managers may omit it (forced to their own branch).
    branch_id: int | None = None
    guardian_id: int | None = None


class StudentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    branch_id: int | None = None
    guardian_id: int | None = None
    active: bool | None = None


@router.get("", response_model=list[StudentOut])
async def list_students(store: ScopedStore = Depends(_readers)) -> list[Student]:
    return await store.list(Student)


@router.get("/{student_id}", response_model=StudentOut)
async def get_student(student_id: int, store: ScopedStore = Depends(_readers)) -> Student:
    return await store.get(Student, student_id)


@router.post("", response_model=StudentOut, status_code=HTTP_201_CREATED)
async def create_student(body: StudentCreate, store: ScopedStore = Depends(_writers)) -> Student:
    if store.access.is_admin and body.branch_id is None:
        raise HTTPException(status_code=422, detail="branch_id is required")
    student = await store.insert(Student, body.model_dump(exclude_none=True))
    await store.commit()
    return student


@router.patch("/{student_id}", response_model=StudentOut)
async def update_student(
    student_id: int,
    body: StudentUpdate,
    store: ScopedStore = Depends(_writers),
) -> Student:
    values = body.model_dump(exclude_unset=True)
    # Only guardian_id may be cleared; other nulls mean "leave as is".
    values = {k: v for k, v in values.items() if v is not None or k == "guardian_id"}
    student = await store.update(Student, student_id, values)
    await store.commit()
    return student
