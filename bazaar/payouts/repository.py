from typing import Any, Dict, Iterable, List, Sequence, Tuple
from sqlalchemy import and_, func, select, update
from bazaar.common.custom_exceptions import NotFound
from bazaar.common.utils import now
from bazaar.payouts.constants import logger
from bazaar.schema.full_schema import Payout, Users


async def get_payout_by_pid(session, payout_pid) -> Payout:
    stmt = select(Payout).where(Payout.public_id == payout_pid).execution_options(populate_existing=True)
    res = await session.execute(stmt)
    payout = res.scalar_one_or_none()
    if payout is None:
        logger.warning("payout.not_found", extra={"payout_public_id": payout_pid})
        raise NotFound("Payout request not found")
    return payout


async def reload_payout(session, payout_id: int) -> Payout:
    stmt = select(Payout).where(Payout.id == payout_id).execution_options(populate_existing=True)
    res = await session.execute(stmt)
    return res.scalar_one()


async def insert_payout(session, payout: Payout) -> Payout:
    session.add(payout)
    await session.flush()
    return payout


async def move_status(session, payout_id: int, from_statuses: Iterable[str], **values) -> bool:
    """Conditional status change; False when the payout was not in any of from_statuses."""
    stmt = (
        update(Payout)
        .where(and_(Payout.id == payout_id, Payout.status.in_(list(from_statuses))))
        .values(updated_at=now(), **values)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1


async def fetch_payouts(session, conds: List[Any], offset: int, limit: int) -> Tuple[List[Payout], int]:
    count_stmt = select(func.count()).select_from(Payout).where(*conds)
    total = (await session.execute(count_stmt)).scalar_one()

    stmt = (
        select(Payout)
        .where(*conds)
        .order_by(Payout.requested_at.desc(), Payout.id.desc())
        .offset(offset)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    res = await session.execute(stmt)
    return list(res.scalars().all()), int(total)


async def user_public_ids(session, user_ids: Sequence[int]) -> Dict[int, str]:
    if not user_ids:
        return {}
    res = await session.execute(select(Users.id, Users.public_id).where(Users.id.in_(set(user_ids))))
    return {r[0]: str(r[1]) for r in res.all()}
