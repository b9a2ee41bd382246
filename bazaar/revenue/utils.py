from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple, Optional

from bazaar.common.custom_exceptions import ConfigurationError, InvalidAmount
from bazaar.config.settings import config_settings
from bazaar.db.utils import advisory_lock_key
from bazaar.revenue.constants import REFERENCE_SUFFIX, SETTLEMENT_LOCK_NAMESPACE


class RevenueSplit(NamedTuple):
    seller: int
    courier: int
    platform: int
    base: int
    delivery_charge: int

    @property
    def total(self) -> int:
        return self.seller + self.courier + self.platform


def _percent_of(amount: int, percent: int) -> int:
    # half-up, so 0.5 always rounds away from zero like a cashier would
    return int((Decimal(amount) * Decimal(percent) / Decimal(100)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def compute_revenue_split(total: int, delivery_charge: int, has_courier: bool,
                          seller_percent: Optional[int] = None,
                          courier_percent: Optional[int] = None,
                          platform_percent: Optional[int] = None) -> RevenueSplit:
    """Three way split of an order total between seller, courier and platform.

    Percentages apply to the merchandise base (total minus delivery charge). The
    courier also keeps the whole delivery charge. The platform share absorbs the
    rounding residual so the three shares always add up to ``total``; without a
    courier the courier share folds into the platform share.
    """
    seller_percent = config_settings.SELLER_SHARE_PERCENT if seller_percent is None else seller_percent
    courier_percent = config_settings.COURIER_SHARE_PERCENT if courier_percent is None else courier_percent
    platform_percent = config_settings.PLATFORM_SHARE_PERCENT if platform_percent is None else platform_percent

    percents = (seller_percent, courier_percent, platform_percent)
    if any(p < 0 for p in percents) or sum(percents) != 100:
        raise ConfigurationError(f"Revenue split percentages must be non negative and add up to 100, got {percents}")
    if total < 0 or delivery_charge < 0:
        raise InvalidAmount("Order total and delivery charge cannot be negative")

    # a discount can push the total under the delivery charge
    delivery = min(delivery_charge, total)
    base = total - delivery

    seller = _percent_of(base, seller_percent)
    courier = min(_percent_of(base, courier_percent), base - seller)
    platform = base - seller - courier
    courier += delivery

    if not has_courier:
        platform += courier
        courier = 0

    return RevenueSplit(seller=seller, courier=courier, platform=platform, base=base, delivery_charge=delivery)


def settlement_lock_key(order_id: int) -> int:
    return advisory_lock_key(f"{SETTLEMENT_LOCK_NAMESPACE}:{order_id}")


def settlement_reference(order_number: str, revenue_type: str) -> str:
    return f"REV-{order_number}-{REFERENCE_SUFFIX[revenue_type]}"
