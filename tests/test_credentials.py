from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from escola_portal.auth.credentials import CredentialStore, normalize_identifier
from escola_portal.auth.errors import (
    BadSecret,
    InvalidCredentials,
    PrincipalInactive,
    PrincipalNotFound,
)
from escola_portal.auth.models import AdminPrincipal, GuardianPrincipal, ManagerPrincipal, Role
from escola_portal.auth.passwords import dummy_hash, hash_password, verify_password

from conftest import ADMIN_EMAIL, PASSWORD, School


def test_hash_and_verify() -> None:
    h = hash_password("correct horse", rounds=4)
    assert h != "correct horse"
    assert verify_password("correct horse", h)
    assert not verify_password("wrong horse", h)


def test_malformed_stored_hash_never_matches() -> None:
    # Legacy rows held plaintext secrets; they must not authenticate by equality.
    assert not verify_password("123456", "123456")
    assert not verify_password("", "")


def test_dummy_hash_is_a_valid_bcrypt_hash() -> None:
    assert dummy_hash(4).startswith("$2")
    assert not verify_password("anything", dummy_hash(4))


def test_normalize_identifier() -> None:
    assert normalize_identifier("  Admin@EscolaFut.com ") == ADMIN_EMAIL


@pytest.mark.asyncio
async def test_verify_returns_typed_principal_per_role(
    sessionmaker: async_sessionmaker[AsyncSession], school: School
) -> None:
    async with sessionmaker() as session:
        store = CredentialStore(session, rounds=4)

        admin = await store.verify(Role.admin, ADMIN_EMAIL, PASSWORD)
        assert isinstance(admin, AdminPrincipal)
        assert admin.id == school.admin_id
        assert admin.tag == "admin"
        assert admin.active is True

        manager = await store.verify(Role.manager, "CENTRO@escolafut.com", PASSWORD)
        assert isinstance(manager, ManagerPrincipal)
        assert manager.branch_id == school.branch_b

        guardian = await store.verify(Role.guardian, "maria@example.com", PASSWORD)
        assert isinstance(guardian, GuardianPrincipal)
        assert guardian.student_ids == frozenset({school.s1, school.s2})


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("role", "identifier", "secret", "expected"),
    [
        (Role.admin, "nobody@escolafut.com", PASSWORD, PrincipalNotFound),
        (Role.admin, ADMIN_EMAIL, "wrong", BadSecret),
        (Role.admin, "old@escolafut.com", PASSWORD, PrincipalInactive),
        (Role.manager, "nobody@escolafut.com", PASSWORD, PrincipalNotFound),
        (Role.manager, "centro@escolafut.com", "wrong", BadSecret),
        (Role.guardian, "nobody@example.com", PASSWORD, PrincipalNotFound),
        (Role.guardian, "maria@example.com", "wrong", BadSecret),
    ],
)
async def test_failures_are_distinguishable_internally(
    sessionmaker: async_sessionmaker[AsyncSession],
    school: School,
    role: Role,
    identifier: str,
    secret: str,
    expected: type[InvalidCredentials],
) -> None:
    async with sessionmaker() as session:
        with pytest.raises(expected) as exc:
            await CredentialStore(session, rounds=4).verify(role, identifier, secret)
    assert isinstance(exc.value, InvalidCredentials)


@pytest.mark.asyncio
async def test_credentials_are_per_role(
    sessionmaker: async_sessionmaker[AsyncSession], school: School
) -> None:
    # The admin email is not a manager or guardian account.
    async with sessionmaker() as session:
        store = CredentialStore(session, rounds=4)
        with pytest.raises(PrincipalNotFound):
            await store.verify(Role.manager, ADMIN_EMAIL, PASSWORD)
        with pytest.raises(PrincipalNotFound):
            await store.verify(Role.guardian, ADMIN_EMAIL, PASSWORD)
