"""Price table and fee split arithmetic.

Fee structure (all configurable via settings):

1. **Base price**: fixed JMD amount per lawn size. A customer may offer more,
   never less. The offer (or the base price) becomes ``final_price``.

2. **Platform fee / provider payout**: ``final_price`` is split 30/70.
   Providers with ``dispute_threshold`` or more disputes filed against them
   in the calendar month of completion receive 60% instead.

The fee is rounded to the cent and the payout is the remainder, so
``platform_fee + provider_payout == final_price`` always holds.
Autopay jobs round the fee to the whole dollar.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from lawnconnect.config import settings
from lawnconnect.models.job import LawnSize

LAWN_SIZE_PRICES: dict[LawnSize, Decimal] = {
    LawnSize.SMALL: Decimal("7000.00"),
    LawnSize.MEDIUM: Decimal("8000.00"),
    LawnSize.LARGE: Decimal("12000.00"),
    LawnSize.XLARGE: Decimal("18000.00"),
}

MINIMUM_PRICE = min(LAWN_SIZE_PRICES.values())

CENT = Decimal("0.01")
WHOLE = Decimal("1")


@dataclass
class FeeSplit:
    """How a job's final price divides between the platform and the provider."""
    final_price: Decimal
    platform_fee: Decimal
    provider_payout: Decimal
    payout_percent: Decimal

    def to_dict(self) -> dict:
        return {
            "final_price": str(self.final_price),
            "platform_fee": str(self.platform_fee),
            "provider_payout": str(self.provider_payout),
            "payout_percent": str(self.payout_percent),
        }


def base_price_for(lawn_size: LawnSize | None) -> Decimal:
    """Base price for a lawn size. Unknown sizes are priced at the minimum."""
    if lawn_size is None:
        return MINIMUM_PRICE
    return LAWN_SIZE_PRICES[lawn_size]


def payout_percent_for(dispute_count: int) -> Decimal:
    if dispute_count >= settings.dispute_threshold:
        return settings.disputed_payout_percent
    return settings.provider_payout_percent


def split_price(
    final_price: Decimal,
    payout_percent: Decimal | None = None,
    quantum: Decimal = CENT,
) -> FeeSplit:
    """Split final_price into platform fee and provider payout."""
    if payout_percent is None:
        payout_percent = settings.provider_payout_percent
    price = Decimal(final_price).quantize(CENT)
    fee = (price * (Decimal("1") - payout_percent)).quantize(quantum, rounding=ROUND_HALF_UP)
    return FeeSplit(
        final_price=price,
        platform_fee=fee.quantize(CENT),
        provider_payout=price - fee,
        payout_percent=payout_percent,
    )


def split_for_completion(final_price: Decimal, dispute_count: int) -> FeeSplit:
    """Dispute-sensitive split applied when a job is completed."""
    return split_price(final_price, payout_percent_for(dispute_count))


def split_for_autopay(base_price: Decimal) -> FeeSplit:
    """Autopay split: platform fee rounded to the whole dollar."""
    return split_price(base_price, Decimal("1") - settings.platform_fee_percent, quantum=WHOLE)


def get_price_schedule() -> dict:
    """Return the current price and fee schedule for display."""
    return {
        "currency": "JMD",
        "lawn_size_prices": {size.value: str(price) for size, price in LAWN_SIZE_PRICES.items()},
        "minimum_price": str(MINIMUM_PRICE),
        "platform_fee_percent": str(settings.platform_fee_percent * 100),
        "provider_payout_percent": str(settings.provider_payout_percent * 100),
        "disputed_payout_percent": str(settings.disputed_payout_percent * 100),
        "dispute_threshold": settings.dispute_threshold,
        "note": "Customers may offer more than the base price, never less. "
                f"Providers with {settings.dispute_threshold} or more disputes in a calendar "
                "month receive the reduced payout rate on completions that month.",
    }
