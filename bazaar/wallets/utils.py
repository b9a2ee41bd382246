from typing import Any, Dict
from bazaar.schema.full_schema import Wallet, WalletTransaction


def _iso(dt):
    return dt.isoformat() if dt else None


def wallet_to_dict(wallet: Wallet) -> Dict[str, Any]:
    return {
        "balance": int(wallet.balance),
        "pending_balance": int(wallet.pending_balance),
        "total_earnings": int(wallet.total_earnings),
        "total_withdrawn": int(wallet.total_withdrawn),
        "currency": wallet.currency,
        "last_transaction_at": _iso(wallet.last_transaction_at),
    }


def transaction_to_dict(txn: WalletTransaction) -> Dict[str, Any]:
    return {
        "public_id": str(txn.public_id),
        "transaction_type": txn.transaction_type,
        "amount": int(txn.amount),
        "currency": txn.currency,
        "revenue_type": txn.revenue_type,
        "description": txn.description,
        "reference": txn.reference,
        "balance_before": int(txn.balance_before),
        "balance_after": int(txn.balance_after),
        "status": txn.status,
        "order_id": txn.order_id,
        "payout_id": txn.payout_id,
        "created_at": _iso(txn.created_at),
    }
