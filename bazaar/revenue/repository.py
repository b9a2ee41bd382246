import uuid
from typing import Optional, Set
from sqlalchemy import and_, select
from bazaar.config.settings import config_settings
from bazaar.schema.full_schema import SETTLEMENT_REVENUE_TYPES, Users, WalletTransaction


async def settled_revenue_types(session, order_id: int) -> Set[str]:
    """Share categories already credited for an order."""
    stmt = (
        select(WalletTransaction.revenue_type)
        .where(and_(
            WalletTransaction.order_id == order_id,
            WalletTransaction.revenue_type.in_(SETTLEMENT_REVENUE_TYPES),
        ))
    )
    res = await session.execute(stmt)
    return set(res.scalars().all())


async def platform_account_id(session) -> Optional[int]:
    """Internal id of the configured platform account, None if unset or unknown."""
    raw = config_settings.PLATFORM_ACCOUNT_ID
    if not raw:
        return None
    try:
        pid = uuid.UUID(str(raw))
    except ValueError:
        return None
    res = await session.execute(select(Users.id).where(Users.public_id == pid))
    return res.scalar_one_or_none()
