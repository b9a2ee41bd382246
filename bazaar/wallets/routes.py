import uuid
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from bazaar.common.constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from bazaar.common.utils import success_response
from bazaar.db.dependencies import get_session
from bazaar.schema.full_schema import RevenueType, TransactionStatus, TransactionType, UserRoleName
from bazaar.user.dependencies import Actor, get_actor, require_roles
from bazaar.wallets.services import list_transactions, wallet_summary, wallet_summary_by_pid

wallets_router = APIRouter()
wallets_admin_router = APIRouter()


@wallets_router.get("/balance")
async def get_balance(actor: Actor = Depends(get_actor), session: AsyncSession = Depends(get_session)):
    data = await wallet_summary(session, actor.user_id)
    # wallet may have been created lazily
    await session.commit()
    return success_response({"wallet": data})


@wallets_router.get("/transactions")
async def get_transactions(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    type: Optional[TransactionType] = Query(None),
    revenue_type: Optional[RevenueType] = Query(None),
    status: Optional[TransactionStatus] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_session)):

    data = await list_transactions(
        session, actor.user_id, page=page, limit=limit,
        transaction_type=type.value if type else None,
        revenue_type=revenue_type.value if revenue_type else None,
        status=status.value if status else None,
        date_from=date_from, date_to=date_to,
    )
    return success_response(data)


@wallets_admin_router.get("/{user_public_id}")
async def get_user_wallet(user_public_id: uuid.UUID,
    actor: Actor = Depends(require_roles(UserRoleName.ADMIN)),
    session: AsyncSession = Depends(get_session)):

    data = await wallet_summary_by_pid(session, user_public_id)
    await session.commit()
    return success_response({"wallet": data})
