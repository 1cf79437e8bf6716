"""
tests.conftest

Shared fixtures: per-test SQLite database, app with lifespan, in-process HTTP client,
and a small seeded school (two branches, a manager per branch, a guardian with two
linked students, one admin).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from escola_portal.api.app import create_app
from escola_portal.auth.passwords import hash_password
from escola_portal.db.models import Branch, Payment, Plan, Student
from escola_portal.db.repositories.principals import PrincipalRepo
from escola_portal.db.repositories.records import RecordRepo
from escola_portal.settings import Settings

PASSWORD = "s3nha-segura"
ADMIN_EMAIL = "admin@escolafut.com"


@dataclass(frozen=True)
class School:
    branch_b: int
    branch_c: int
    admin_id: int
    inactive_admin_id: int
    manager_b: int
    manager_c: int
    guardian_id: int
    other_guardian_id: int
    s1: int
    s2: int
    s3: int
    s_c: int


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'escola.db'}",
        bcrypt_rounds=4,
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def app(settings: Settings) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings)
    # httpx ASGITransport does not run lifespan events; drive them explicitly.
    async with app.router.lifespan_context(app):
        yield app


@pytest.fixture
def sessionmaker(app: FastAPI) -> async_sessionmaker[AsyncSession]:
    return app.state.sessionmaker


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture
async def school(sessionmaker: async_sessionmaker[AsyncSession]) -> School:
    pw = hash_password(PASSWORD, rounds=4)
    async with sessionmaker() as session:
        records = RecordRepo(session)
        people = PrincipalRepo(session)

        branch_b = await records.insert(Branch, {"name": "Unidade Centro"})
        branch_c = await records.insert(Branch, {"name": "Unidade Norte"})

        admin = await people.create_admin(name="Admin", email=ADMIN_EMAIL, password_hash=pw)
        inactive = await people.create_admin(
            name="Old Admin", email="old@escolafut.com", password_hash=pw, active=False
        )
        manager_b = await people.create_manager(
            name="Gestor Centro",
            email="centro@escolafut.com",
            password_hash=pw,
            branch_id=branch_b.id,
        )
        manager_c = await people.create_manager(
            name="Gestor Norte",
            email="norte@escolafut.com",
            password_hash=pw,
            branch_id=branch_c.id,
        )
        guardian = await people.create_guardian(
            name="Maria", email="maria@example.com", password_hash=pw
        )
        other = await people.create_guardian(
            name="Joana", email="joana@example.com", password_hash=pw
        )

        s1 = await records.insert(
            Student, {"name": "Pedro", "branch_id": branch_b.id, "guardian_id": guardian.id}
        )
        s2 = await records.insert(
            Student, {"name": "Ana", "branch_id": branch_b.id, "guardian_id": guardian.id}
        )
        # Same branch as S1/S2, different guardian.
        s3 = await records.insert(
            Student, {"name": "Lucas", "branch_id": branch_b.id, "guardian_id": other.id}
        )
        s_c = await records.insert(Student, {"name": "Rafa", "branch_id": branch_c.id})

        for branch in (branch_b, branch_c):
            await records.insert(
                Plan, {"name": "Mensal", "monthly_fee": Decimal("150.00"), "branch_id": branch.id}
            )
        for student in (s1, s3, s_c):
            await records.insert(
                Payment,
                {
                    "student_id": student.id,
                    "branch_id": student.branch_id,
                    "amount": Decimal("150.00"),
                    "reference_month": "2024-03",
                    "paid_on": date(2024, 3, 5),
                    "method": "pix",
                },
            )
        await session.commit()

        return School(
            branch_b=branch_b.id,
            branch_c=branch_c.id,
            admin_id=admin.id,
            inactive_admin_id=inactive.id,
            manager_b=manager_b.id,
            manager_c=manager_c.id,
            guardian_id=guardian.id,
            other_guardian_id=other.id,
            s1=s1.id,
            s2=s2.id,
            s3=s3.id,
            s_c=s_c.id,
        )


@pytest.fixture
def login(client: httpx.AsyncClient):
    async def _login(role: str, email: str, secret: str = PASSWORD) -> httpx.Response:
        return await client.post(
            f"/v1/auth/{role}/login", json={"identifier": email, "secret": secret}
        )

    return _login
