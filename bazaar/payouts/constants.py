from bazaar.common.logging_setup import get_logger

logger = get_logger("bazaar.payouts")

DEFAULT_REJECTION_REASON = "Payout request rejected by admin"
USER_CANCELLATION_NOTE = "Cancelled by user"
