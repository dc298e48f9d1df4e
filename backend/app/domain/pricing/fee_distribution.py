"""
Multi-merchant fee distribution.

Splits one order's delivery fee across the merchants of a multi-merchant cart
for display on receipts. This is the customer-facing split only; the driver
commission always applies to the order fee as a whole.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Sequence

from backend.app.core.exceptions import ValidationError
from backend.app.domain.pricing.types import to_decimal

PROPORTIONAL = "proportional"
EQUAL = "equal"
METHODS = (PROPORTIONAL, EQUAL)


@dataclass(frozen=True)
class MerchantShareInput:
    merchant_id: str
    subtotal: Decimal


@dataclass(frozen=True)
class MerchantShare:
    merchant_id: str
    subtotal: Decimal
    fee: Decimal
    percentage: Decimal


def _largest_remainder(total_cents: int, weights: Sequence[Decimal]) -> List[int]:
    """Integer allocation of total_cents by weight; sums exactly to total_cents."""
    weight_sum = sum(weights)
    exact = [Decimal(total_cents) * w / weight_sum for w in weights]
    floors = [int(x) for x in exact]
    leftover = total_cents - sum(floors)
    # Earlier merchants win ties
    order = sorted(range(len(weights)), key=lambda i: (-(exact[i] - floors[i]), i))
    for i in order[:leftover]:
        floors[i] += 1
    return floors


def distribute_fee(total_fee, merchants: Sequence[MerchantShareInput], method: str = PROPORTIONAL) -> List[MerchantShare]:
    """
    Distribute total_fee across merchants.

    Raises:
        ValidationError: Unknown method, no merchants, negative amounts, or
            zero total subtotal with the proportional method.
    """
    if method not in METHODS:
        raise ValidationError("method", f"must be one of {', '.join(METHODS)}", method)
    if not merchants:
        raise ValidationError("merchants", "at least one merchant is required")

    fee = to_decimal(total_fee, "total_fee")
    if fee < 0:
        raise ValidationError("total_fee", "must be >= 0", total_fee)
    total_cents = int((fee * 100).to_integral_value())
    if Decimal(total_cents) != fee * 100:
        raise ValidationError("total_fee", "must be expressed in whole cents", total_fee)

    subtotals = []
    for merchant in merchants:
        subtotal = to_decimal(merchant.subtotal, "subtotal")
        if subtotal < 0:
            raise ValidationError("subtotal", f"must be >= 0 for merchant {merchant.merchant_id}", merchant.subtotal)
        subtotals.append(subtotal)

    if method == EQUAL:
        weights = [Decimal(1)] * len(merchants)
    else:
        if sum(subtotals) == 0:
            raise ValidationError("merchants", "proportional distribution needs a positive total subtotal")
        weights = subtotals

    cents = _largest_remainder(total_cents, weights)

    shares = []
    for merchant, subtotal, share_cents in zip(merchants, subtotals, cents):
        share_fee = Decimal(share_cents) / 100
        percentage = (Decimal(share_cents) * 100 / total_cents).quantize(Decimal("0.01")) if total_cents else Decimal("0.00")
        shares.append(MerchantShare(
            merchant_id=merchant.merchant_id,
            subtotal=subtotal,
            fee=share_fee.quantize(Decimal("0.01")),
            percentage=percentage,
        ))
    return shares
