from typing import Any, Dict, Optional
from bazaar.common.utils import epoch_ms, random_code
from bazaar.schema.full_schema import Payout


def generate_payout_number() -> str:
    return f"POUT-{epoch_ms()}-{random_code(8)}"


def generate_settlement_reference() -> str:
    # placeholder until the bank transfer integration reports its own id
    return f"TXN{epoch_ms()}{random_code(6)}"


def _iso(dt):
    return dt.isoformat() if dt else None


def payout_to_dict(payout: Payout, user_public_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "public_id": str(payout.public_id),
        "payout_number": payout.payout_number,
        "user_id": user_public_id,
        "amount": int(payout.amount),
        "currency": payout.currency,
        "payout_method": payout.method,
        "upi_id": payout.upi_id,
        "bank_account_number": payout.bank_account_number,
        "bank_account_name": payout.bank_account_name,
        "bank_ifsc": payout.bank_ifsc,
        "bank_name": payout.bank_name,
        "status": payout.status,
        "requested_at": _iso(payout.requested_at),
        "processed_at": _iso(payout.processed_at),
        "failure_reason": payout.failure_reason,
        "transaction_reference": payout.transaction_reference,
        "notes": payout.notes,
    }
