from datetime import datetime
from typing import Any, Dict, Optional
from bazaar.common.custom_exceptions import InsufficientBalance, InvalidAmount, NotFound
from bazaar.schema.full_schema import TransactionStatus, TransactionType, WalletTransaction
from bazaar.user.repository import userid_by_public_id
from bazaar.wallets.constants import logger
from bazaar.wallets.repository import (decrement_balance, fetch_transactions, get_or_create_wallet,
                                       increment_balance, insert_transaction, update_payout_debit_status)
from bazaar.wallets.utils import transaction_to_dict, wallet_to_dict


def _check_amount(amount: int) -> int:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise InvalidAmount(f"Amount must be a positive whole number, got {amount!r}")
    return amount


async def credit(session, user_id: int, amount: int, description: str, revenue_type: str, *,
                 order_id: Optional[int] = None, payout_id: Optional[int] = None,
                 reference: Optional[str] = None) -> WalletTransaction:
    """Adds amount to the user's available balance and lifetime earnings, records a completed credit row.

    The balance change is a single UPDATE ... RETURNING, so concurrent credits on the
    same wallet never lose updates; before/after snapshots are derived from the
    returned balance.
    """
    _check_amount(amount)

    await get_or_create_wallet(session, user_id)
    balance_after = await increment_balance(session, user_id, amount)

    txn = await insert_transaction(
        session,
        user_id=user_id,
        order_id=order_id,
        payout_id=payout_id,
        transaction_type=TransactionType.CREDIT.value,
        amount=amount,
        revenue_type=revenue_type,
        description=description,
        reference=reference,
        balance_before=balance_after - amount,
        balance_after=balance_after,
        status=TransactionStatus.COMPLETED.value,
    )

    logger.info("wallet.credit", extra={
        "user_id": user_id, "amount": amount, "revenue_type": revenue_type,
        "order_id": order_id, "payout_id": payout_id, "balance_after": balance_after,
    })
    return txn


async def debit(session, user_id: int, amount: int, description: str, revenue_type: str, *,
                order_id: Optional[int] = None, payout_id: Optional[int] = None,
                reference: Optional[str] = None,
                status: str = TransactionStatus.COMPLETED.value) -> WalletTransaction:
    """Takes amount out of the available balance, never letting it go below zero.

    Use status=pending for funds escrowed by an in-flight payout.
    """
    _check_amount(amount)

    wallet = await get_or_create_wallet(session, user_id)
    balance_after = await decrement_balance(session, user_id, amount)

    if balance_after is None:
        logger.warning("wallet.debit.insufficient_balance", extra={
            "user_id": user_id, "amount": amount, "balance": wallet.balance,
        })
        raise InsufficientBalance(details={"requested": amount})

    txn = await insert_transaction(
        session,
        user_id=user_id,
        order_id=order_id,
        payout_id=payout_id,
        transaction_type=TransactionType.DEBIT.value,
        amount=amount,
        revenue_type=revenue_type,
        description=description,
        reference=reference,
        balance_before=balance_after + amount,
        balance_after=balance_after,
        status=status,
    )

    logger.info("wallet.debit", extra={
        "user_id": user_id, "amount": amount, "revenue_type": revenue_type,
        "payout_id": payout_id, "balance_after": balance_after, "status": status,
    })
    return txn


async def set_payout_transaction_status(session, payout_id: int, status: str) -> int:
    updated = await update_payout_debit_status(session, payout_id, status)
    if not updated:
        logger.warning("wallet.payout_txn.not_pending", extra={"payout_id": payout_id, "status": status})
    return updated


async def wallet_summary(session, user_id: int) -> Dict[str, Any]:
    wallet = await get_or_create_wallet(session, user_id)
    return wallet_to_dict(wallet)


async def wallet_summary_by_pid(session, user_public_id) -> Dict[str, Any]:
    user_id = await userid_by_public_id(session, user_public_id)
    if user_id is None:
        raise NotFound("User not found")
    return await wallet_summary(session, user_id)


async def list_transactions(session, user_id: int, *, page: int = 1, limit: int = 20,
                            transaction_type: Optional[str] = None, revenue_type: Optional[str] = None,
                            status: Optional[str] = None, date_from: Optional[datetime] = None,
                            date_to: Optional[datetime] = None) -> Dict[str, Any]:
    rows, total = await fetch_transactions(
        session, user_id,
        transaction_type=transaction_type, revenue_type=revenue_type, status=status,
        date_from=date_from, date_to=date_to,
        offset=(page - 1) * limit, limit=limit,
    )
    return {
        "items": [transaction_to_dict(t) for t in rows],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }
