from typing import Optional
from sqlalchemy import select
from bazaar.schema.full_schema import Users


async def identify_user_by_pid(session,user_pid):
    """Returns (id, role) for an active user or None."""
    stmt=select(Users.id,Users.role).where(Users.public_id==user_pid,Users.deleted_at.is_(None))
    res=await session.execute(stmt)
    row=res.first()
    return (row[0], row[1]) if row else None


async def userid_by_public_id(session,user_pid) -> Optional[int]:
    stmt=select(Users.id).where(Users.public_id==user_pid)
    res=await session.execute(stmt)
    user=res.first()
    return user[0] if user else None


async def get_user_by_pid(session,user_pid) -> Optional[Users]:
    res=await session.execute(select(Users).where(Users.public_id==user_pid))
    return res.scalar_one_or_none()
