"""
escola_portal.api.routers.billing

Financial read endpoints.

Responsibilities:
- List payments for admin (all), manager (own branch) and guardian (linked students).
- List plans for admin and manager.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict

from escola_portal.auth.models import Role
from escola_portal.auth.scoping import ScopedStore, scoped_store
from escola_portal.db.models import Payment, Plan

router = APIRouter(prefix="/v1", tags=["billing"])

_payment_readers = scoped_store(Role.admin, Role.manager, Role.guardian)
_plan_readers = scoped_store(Role.admin, Role.manager)


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    branch_id: int
    amount: Decimal
    reference_month: str
    paid_on: date
    method: str


class PlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    monthly_fee: Decimal
    branch_id: int


@router.get("/payments", response_model=list[PaymentOut])
async def list_payments(
    student_id: int | None = None,
    store: ScopedStore = Depends(_payment_readers),
) -> list[Payment]:
    # The optional filter only narrows further; the scope predicates still apply.
    where = [Payment.student_id == student_id] if student_id is not None else []
    return await store.list(Payment, *where)


@router.get("/plans", response_model=list[PlanOut])
async def list_plans(store: ScopedStore = Depends(_plan_readers)) -> list[Plan]:
    return await store.list(Plan)
