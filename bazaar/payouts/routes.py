import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from bazaar.common.constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from bazaar.common.utils import success_response
from bazaar.db.dependencies import get_session
from bazaar.payouts.models import PayoutApproveIn, PayoutRejectIn, PayoutRequestIn
from bazaar.payouts.services import (approve_payout, cancel_payout, list_all_payouts, list_my_payouts, reject_payout,
                                     request_payout)
from bazaar.schema.full_schema import PayoutStatus, UserRoleName
from bazaar.user.dependencies import Actor, get_actor, require_roles

payouts_router = APIRouter()
payouts_admin_router = APIRouter()

admin_only = require_roles(UserRoleName.ADMIN)


@payouts_router.post("/request")
async def create_payout_request(payload: PayoutRequestIn, actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    payout = await request_payout(session, actor, payload)
    await session.commit()
    return success_response({"payout": payout}, status_code=status.HTTP_201_CREATED,
                            message="Payout request created successfully")


@payouts_router.get("/my-payouts")
async def my_payouts(
    payout_status: Optional[PayoutStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    data = await list_my_payouts(session, actor, payout_status.value if payout_status else None, page, limit)
    return success_response(data)


@payouts_router.put("/{payout_id}/cancel")
async def cancel_request(payout_id: uuid.UUID, actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    payout = await cancel_payout(session, payout_id, actor)
    await session.commit()
    return success_response({"payout": payout}, message="Payout request cancelled successfully")


@payouts_admin_router.get("")
async def all_payouts(
    payout_status: Optional[PayoutStatus] = Query(None, alias="status"),
    user_id: Optional[uuid.UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    actor: Actor = Depends(admin_only),
    session: AsyncSession = Depends(get_session)):

    data = await list_all_payouts(session, payout_status.value if payout_status else None, user_id, page, limit)
    return success_response(data)


@payouts_router.put("/{payout_id}/approve")
async def approve(payout_id: uuid.UUID, payload: Optional[PayoutApproveIn] = None,
    actor: Actor = Depends(admin_only),
    session: AsyncSession = Depends(get_session)):

    reference = payload.transaction_reference if payload else None
    payout = await approve_payout(session, payout_id, actor, reference)
    await session.commit()
    return success_response({"payout": payout}, message="Payout approved and completed successfully")


@payouts_router.put("/{payout_id}/reject")
async def reject(payout_id: uuid.UUID, payload: Optional[PayoutRejectIn] = None,
    actor: Actor = Depends(admin_only),
    session: AsyncSession = Depends(get_session)):

    reason = payload.failure_reason if payload else None
    payout = await reject_payout(session, payout_id, actor, reason)
    await session.commit()
    return success_response({"payout": payout}, message="Payout rejected and amount refunded to wallet")
