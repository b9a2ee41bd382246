from typing import Any, Dict, List, Optional
from bazaar.common.custom_exceptions import Forbidden, InvalidTransition, ValidationFailed
from bazaar.common.utils import now
from bazaar.config.settings import config_settings
from bazaar.payouts.constants import DEFAULT_REJECTION_REASON, USER_CANCELLATION_NOTE, logger
from bazaar.payouts.models import PayoutRequestIn
from bazaar.payouts.repository import (fetch_payouts, get_payout_by_pid, insert_payout, move_status, reload_payout,
                                       user_public_ids)
from bazaar.payouts.utils import generate_payout_number, generate_settlement_reference, payout_to_dict
from bazaar.schema.full_schema import (Payout, PayoutMethod, PayoutStatus, RevenueType, TransactionStatus,
                                       UserRoleName)
from bazaar.user.dependencies import Actor
from bazaar.user.repository import userid_by_public_id
from bazaar.wallets.services import credit, debit, set_payout_transaction_status

PAYOUT_ROLES = (UserRoleName.SELLER.value, UserRoleName.COURIER.value)


def _validate_destination(payload: PayoutRequestIn) -> None:
    if payload.payout_method == PayoutMethod.UPI and not payload.upi_id:
        raise ValidationFailed("UPI ID is required for UPI payouts")
    if payload.payout_method == PayoutMethod.BANK_TRANSFER:
        bank_fields = (payload.bank_account_number, payload.bank_account_name, payload.bank_ifsc, payload.bank_name)
        if not all(bank_fields):
            raise ValidationFailed("All bank details are required for bank transfer payouts")


async def _serialize(session, payout: Payout) -> Dict[str, Any]:
    refs = await user_public_ids(session, [payout.user_id])
    return payout_to_dict(payout, refs.get(payout.user_id))


async def request_payout(session, actor: Actor, payload: PayoutRequestIn) -> Dict[str, Any]:
    """Files a withdrawal and escrows the amount out of the wallet in the same transaction."""
    if actor.role not in PAYOUT_ROLES:
        raise Forbidden("Only sellers and couriers can request payouts")

    min_amount = config_settings.MIN_PAYOUT_AMOUNT
    if payload.amount < min_amount:
        raise ValidationFailed(f"Minimum payout amount is {min_amount}", details={"minimum_amount": min_amount})
    _validate_destination(payload)

    payout = await insert_payout(session, Payout(
        payout_number=generate_payout_number(),
        user_id=actor.user_id,
        amount=payload.amount,
        currency=config_settings.CURRENCY,
        method=payload.payout_method.value,
        upi_id=payload.upi_id,
        bank_account_number=payload.bank_account_number,
        bank_account_name=payload.bank_account_name,
        bank_ifsc=payload.bank_ifsc,
        bank_name=payload.bank_name,
    ))

    # raises InsufficientBalance; the caller's rollback drops the payout row with it
    await debit(
        session, actor.user_id, payload.amount, f"Payout request: {payout.payout_number}",
        RevenueType.PAYOUT.value, payout_id=payout.id, reference=payout.payout_number,
        status=TransactionStatus.PENDING.value,
    )

    logger.info("payout.request", extra={
        "payout_number": payout.payout_number, "user_id": actor.user_id, "amount": payload.amount,
        "method": payout.method, "upi_id": payout.upi_id, "bank_account_number": payout.bank_account_number,
    })
    return await _serialize(session, payout)


async def approve_payout(session, payout_pid, actor: Actor,
                         transaction_reference: Optional[str] = None) -> Dict[str, Any]:
    payout = await get_payout_by_pid(session, payout_pid)
    ts = now()

    if not await move_status(session, payout.id, [PayoutStatus.PENDING.value],
                             status=PayoutStatus.PROCESSING.value, processed_by=actor.user_id, processed_at=ts):
        raise InvalidTransition(f"Payout request is {payout.status}, only pending requests can be approved")

    reference = transaction_reference or generate_settlement_reference()
    await move_status(session, payout.id, [PayoutStatus.PROCESSING.value],
                      status=PayoutStatus.COMPLETED.value, processed_at=now(), transaction_reference=reference)

    # funds left the wallet at request time, only the audit row changes here
    await set_payout_transaction_status(session, payout.id, TransactionStatus.COMPLETED.value)

    payout = await reload_payout(session, payout.id)
    logger.info("payout.approve", extra={
        "payout_number": payout.payout_number, "admin_id": actor.user_id, "reference": reference,
    })
    return await _serialize(session, payout)


async def _refund_escrow(session, payout: Payout, description: str) -> None:
    await credit(
        session, payout.user_id, payout.amount, description, RevenueType.PAYOUT.value,
        payout_id=payout.id, reference=f"REFUND-{payout.payout_number}",
    )
    await set_payout_transaction_status(session, payout.id, TransactionStatus.CANCELLED.value)


async def reject_payout(session, payout_pid, actor: Actor, reason: Optional[str] = None) -> Dict[str, Any]:
    payout = await get_payout_by_pid(session, payout_pid)

    # the guarded update is what stops a second reject from refunding twice
    moved = await move_status(
        session, payout.id, [PayoutStatus.PENDING.value, PayoutStatus.PROCESSING.value],
        status=PayoutStatus.FAILED.value, failure_reason=reason or DEFAULT_REJECTION_REASON,
        processed_by=actor.user_id, processed_at=now(),
    )
    if not moved:
        raise InvalidTransition(f"Payout request is {payout.status} and cannot be rejected")

    await _refund_escrow(session, payout, f"Payout rejection refund: {payout.payout_number}")

    payout = await reload_payout(session, payout.id)
    logger.info("payout.reject", extra={
        "payout_number": payout.payout_number, "admin_id": actor.user_id, "reason": payout.failure_reason,
    })
    return await _serialize(session, payout)


async def cancel_payout(session, payout_pid, actor: Actor) -> Dict[str, Any]:
    if actor.role not in PAYOUT_ROLES:
        raise Forbidden("Only sellers and couriers can cancel payouts")

    payout = await get_payout_by_pid(session, payout_pid)
    if payout.user_id != actor.user_id:
        raise Forbidden("You can only cancel your own payout requests")

    if not await move_status(session, payout.id, [PayoutStatus.PENDING.value],
                             status=PayoutStatus.CANCELLED.value, notes=USER_CANCELLATION_NOTE):
        raise InvalidTransition(f"Payout request is {payout.status}, only pending requests can be cancelled")

    await _refund_escrow(session, payout, f"Payout cancellation refund: {payout.payout_number}")

    payout = await reload_payout(session, payout.id)
    logger.info("payout.cancel", extra={"payout_number": payout.payout_number, "user_id": actor.user_id})
    return await _serialize(session, payout)


async def _page(session, conds: List[Any], page: int, limit: int) -> Dict[str, Any]:
    payouts, total = await fetch_payouts(session, conds, offset=(page - 1) * limit, limit=limit)
    refs = await user_public_ids(session, [p.user_id for p in payouts])
    return {
        "items": [payout_to_dict(p, refs.get(p.user_id)) for p in payouts],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }


async def list_my_payouts(session, actor: Actor, status: Optional[str] = None,
                          page: int = 1, limit: int = 20) -> Dict[str, Any]:
    if actor.role not in PAYOUT_ROLES:
        raise Forbidden("Only sellers and couriers have payouts")
    conds = [Payout.user_id == actor.user_id]
    if status:
        conds.append(Payout.status == status)
    return await _page(session, conds, page, limit)


async def list_all_payouts(session, status: Optional[str] = None, user_public_id=None,
                           page: int = 1, limit: int = 20) -> Dict[str, Any]:
    conds = []
    if status:
        conds.append(Payout.status == status)
    if user_public_id is not None:
        user_id = await userid_by_public_id(session, user_public_id)
        # unknown user, nothing can match
        conds.append(Payout.user_id == (user_id if user_id is not None else -1))
    return await _page(session, conds, page, limit)
