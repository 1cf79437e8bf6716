"""
escola_portal.api.routers.auth

Login, logout and "who am I" endpoints, one set per role.

Responsibilities:
- `POST /v1/auth/{role}/login` with `{identifier, secret}`.
- `POST /v1/auth/{role}/logout` (that role only) and `POST /v1/auth/logout` (everything).
- `GET /v1/auth/{role}/me` behind the role's guard.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from pydantic import AliasChoices, BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from escola_portal.api.cookies import sync_session_cookie
from escola_portal.api.deps import db_session, session_container, settings_dep
from escola_portal.auth.guards import authenticated_identity, authorize
from escola_portal.auth.models import Role, SessionIdentity
from escola_portal.auth.sessions import SessionContainer
from escola_portal.services.auth_service import AuthService
from escola_portal.settings import Settings

router = APIRouter(prefix="/v1/auth", tags=["auth"])


class LoginRequest(BaseModel):
    # The legacy web client posts {email, senha}.
    identifier: str = Field(
        min_length=1, max_length=255, validation_alias=AliasChoices("identifier", "email")
    )
    secret: str = Field(
        min_length=1, max_length=1024, validation_alias=AliasChoices("secret", "senha")
    )


class PrincipalSummary(BaseModel):
    role: Role
    id: int
    name: str
    email: str
    branch_id: int | None = None
    student_ids: list[int] | None = None

    @classmethod
    def from_identity(cls, identity: SessionIdentity) -> PrincipalSummary:
        return cls(
            role=identity.role,
            id=identity.principal_id,
            name=identity.name,
            email=identity.email,
            branch_id=identity.branch_id if identity.role is Role.manager else None,
            student_ids=(
                sorted(identity.student_ids) if identity.role is Role.guardian else None
            ),
        )


class LogoutResponse(BaseModel):
    ok: bool = True


@router.post("/logout", response_model=LogoutResponse)
async def logout_all(
    response: Response,
    container: SessionContainer = Depends(session_container),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> LogoutResponse:
    await AuthService(session=session, settings=settings).logout_all(container=container)
    sync_session_cookie(response, container, settings)
    return LogoutResponse()


@router.post("/{role}/login", response_model=PrincipalSummary)
async def login(
    role: Role,
    body: LoginRequest,
    response: Response,
    container: SessionContainer = Depends(session_container),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> PrincipalSummary:
    identity = await AuthService(session=session, settings=settings).login(
        role=role, identifier=body.identifier, secret=body.secret, container=container
    )
    sync_session_cookie(response, container, settings)
    return PrincipalSummary.from_identity(identity)


@router.post("/{role}/logout", response_model=LogoutResponse)
async def logout(
    role: Role,
    response: Response,
    container: SessionContainer = Depends(session_container),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> LogoutResponse:
    await AuthService(session=session, settings=settings).logout(role=role, container=container)
    sync_session_cookie(response, container, settings)
    return LogoutResponse()


@router.get("/{role}/me", response_model=PrincipalSummary)
async def whoami(
    role: Role,
    response: Response,
    container: SessionContainer = Depends(session_container),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> PrincipalSummary:
    authorize(role, container)
    if role is Role.guardian:
        await AuthService(session=session, settings=settings).refresh_guardian_links(container)
        sync_session_cookie(response, container, settings)
    # Re-read after the refresh: a guardian removed since login gets the plain 401.
    identity = authenticated_identity(role, container)
    return PrincipalSummary.from_identity(identity)
