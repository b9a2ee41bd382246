from bazaar.common.logging_setup import get_logger

logger = get_logger("bazaar.revenue")

SETTLEMENT_LOCK_NAMESPACE = "order-settlement"

REFERENCE_SUFFIX = {
    "seller_share": "SELLER",
    "courier_share": "COURIER",
    "platform_share": "PLATFORM",
}
