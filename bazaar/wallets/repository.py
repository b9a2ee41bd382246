from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import and_, func, select, update
from bazaar.common.utils import now
from bazaar.config.settings import config_settings
from bazaar.db.utils import upsert_insert
from bazaar.schema.full_schema import TransactionStatus, TransactionType, Wallet, WalletTransaction


async def get_or_create_wallet(session, user_id: int) -> Wallet:
    ts = now()
    stmt = (
        upsert_insert(session, Wallet)
        .values(user_id=user_id, balance=0, pending_balance=0, total_earnings=0,
                total_withdrawn=0, currency=config_settings.CURRENCY, created_at=ts, updated_at=ts)
        .on_conflict_do_nothing(index_elements=["user_id"])
    )
    await session.execute(stmt)
    return await get_wallet(session, user_id)


async def get_wallet(session, user_id: int) -> Optional[Wallet]:
    stmt = select(Wallet).where(Wallet.user_id == user_id).execution_options(populate_existing=True)
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def increment_balance(session, user_id: int, amount: int) -> Optional[int]:
    """Atomically adds amount to the balance and lifetime earnings, returns the new balance."""
    ts = now()
    stmt = (
        update(Wallet)
        .where(Wallet.user_id == user_id)
        .values(
            balance=Wallet.balance + amount,
            total_earnings=Wallet.total_earnings + amount,
            last_transaction_at=ts,
            updated_at=ts,
        )
        .returning(Wallet.balance)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def decrement_balance(session, user_id: int, amount: int) -> Optional[int]:
    """Atomically takes amount out of the wallet only if balance covers it.

    Returns the new balance, None when the guard rejected the update.
    """
    ts = now()
    stmt = (
        update(Wallet)
        .where(and_(Wallet.user_id == user_id, Wallet.balance >= amount))
        .values(
            balance=Wallet.balance - amount,
            total_withdrawn=Wallet.total_withdrawn + amount,
            last_transaction_at=ts,
            updated_at=ts,
        )
        .returning(Wallet.balance)
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.scalar_one_or_none()


async def insert_transaction(session, **values) -> WalletTransaction:
    txn = WalletTransaction(currency=config_settings.CURRENCY, **values)
    session.add(txn)
    await session.flush()
    return txn


async def update_payout_debit_status(session, payout_id: int, status: str) -> int:
    """Moves the pending debit row paired with a payout to its final status."""
    stmt = (
        update(WalletTransaction)
        .where(and_(
            WalletTransaction.payout_id == payout_id,
            WalletTransaction.transaction_type == TransactionType.DEBIT.value,
            WalletTransaction.status == TransactionStatus.PENDING.value,
        ))
        .values(status=status, updated_at=now())
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount


async def fetch_transactions(session, user_id: int, *, transaction_type: Optional[str] = None,
                             revenue_type: Optional[str] = None, status: Optional[str] = None,
                             date_from: Optional[datetime] = None, date_to: Optional[datetime] = None,
                             offset: int = 0, limit: int = 20) -> Tuple[List[WalletTransaction], int]:
    conds = [WalletTransaction.user_id == user_id]
    if transaction_type:
        conds.append(WalletTransaction.transaction_type == transaction_type)
    if revenue_type:
        conds.append(WalletTransaction.revenue_type == revenue_type)
    if status:
        conds.append(WalletTransaction.status == status)
    if date_from:
        conds.append(WalletTransaction.created_at >= date_from)
    if date_to:
        conds.append(WalletTransaction.created_at <= date_to)

    count_stmt = select(func.count()).select_from(WalletTransaction).where(*conds)
    total = (await session.execute(count_stmt)).scalar_one()

    stmt = (
        select(WalletTransaction)
        .where(*conds)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .offset(offset)
        .limit(limit)
        .execution_options(populate_existing=True)
    )
    res = await session.execute(stmt)
    return list(res.scalars().all()), int(total)
