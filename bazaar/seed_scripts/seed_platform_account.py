
import asyncio
import os
import uuid
from dotenv import load_dotenv
from sqlmodel import select

from bazaar.db.connection import async_session
from bazaar.schema.full_schema import UserRoleName, Users
from bazaar.wallets.repository import get_or_create_wallet
# -------------------------------------------------------------------

load_dotenv()


async def create_platform_account():
    """Creates (or finds) the admin user whose wallet collects platform commission.

    Set PLATFORM_ACCOUNT_ID in .env to the printed public id afterwards.
    """
    email = os.environ.get("PLATFORM_ACCOUNT_EMAIL")
    name = os.environ.get("PLATFORM_ACCOUNT_NAME", "Bazaar Platform")
    configured_pid = os.environ.get("PLATFORM_ACCOUNT_ID")

    if not email:
        raise SystemExit("Set PLATFORM_ACCOUNT_EMAIL environment variable before running")

    async with async_session() as session:
        q = await session.execute(select(Users).where(Users.email == email))
        user = q.scalar_one_or_none()

        if not user:
            user = Users(email=email, name=name, role=UserRoleName.ADMIN.value)
            if configured_pid:
                user.public_id = uuid.UUID(configured_pid)
            session.add(user)
            await session.flush()
            print(f"Created platform user id={user.id} public_id={user.public_id}")
        else:
            if user.role != UserRoleName.ADMIN.value:
                raise SystemExit(f"User {email} exists with role {user.role}, expected admin")
            print(f"Found existing platform user id={user.id} public_id={user.public_id}")

        await get_or_create_wallet(session, user.id)
        await session.commit()

        if configured_pid and uuid.UUID(configured_pid) != user.public_id:
            print(f"WARNING: PLATFORM_ACCOUNT_ID={configured_pid} does not match {user.public_id}")
        print(f"PLATFORM_ACCOUNT_ID={user.public_id}")


if __name__ == "__main__":
    asyncio.run(create_platform_account())
