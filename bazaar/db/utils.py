import hashlib

from sqlalchemy import text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert


def _normalize_db_url(url: str | None) -> str | None:
    # Neon often returns "postgres://..." — asyncpg/SQLAlchemy needs "postgresql+asyncpg://..."
    if not url:
        return None
    if url.startswith("postgres://",):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


def dialect_name(session) -> str:
    return session.get_bind().dialect.name


def upsert_insert(session, model):
    """INSERT construct supporting on_conflict_do_nothing for the bound dialect."""
    if dialect_name(session) == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)


def advisory_lock_key(name: str) -> int:
    h = hashlib.sha256(name.encode()).digest()[:8]
    val = int.from_bytes(h, "big", signed=False)
    # convert to signed 64-bit
    if val > (1 << 63) - 1:
        val = val - (1 << 64)
    return val


async def acquire_xact_lock(session, lock_key: int) -> None:
    """Block until the transaction scoped advisory lock is held.

    Released on commit/rollback. SQLite serializes writers on its own, so
    nothing is taken there.
    """
    if dialect_name(session) != "postgresql":
        return
    await session.execute(text("SELECT pg_advisory_xact_lock(:k)"), {"k": lock_key})
