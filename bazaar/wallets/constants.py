from bazaar.common.logging_setup import get_logger

logger = get_logger("bazaar.wallets")
