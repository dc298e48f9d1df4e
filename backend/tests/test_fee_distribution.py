"""
Multi-merchant fee distribution tests.
"""

import pytest
from decimal import Decimal

from backend.app.core.exceptions import ValidationError
from backend.app.domain.pricing.fee_distribution import (
    EQUAL, PROPORTIONAL, MerchantShareInput, distribute_fee,
)


def merchants(*subtotals):
    return [MerchantShareInput(merchant_id=f"m{i + 1}", subtotal=Decimal(s)) for i, s in enumerate(subtotals)]


def test_proportional_split():
    shares = distribute_fee(Decimal("6.00"), merchants("10", "20"))

    assert [share.fee for share in shares] == [Decimal("2.00"), Decimal("4.00")]
    assert [share.percentage for share in shares] == [Decimal("33.33"), Decimal("66.67")]


def test_equal_split_gives_leftover_cent_to_first():
    shares = distribute_fee(Decimal("10.00"), merchants("5", "50", "500"), method=EQUAL)

    assert [share.fee for share in shares] == [Decimal("3.34"), Decimal("3.33"), Decimal("3.33")]


def test_shares_always_sum_to_total():
    carts = [("1", "1", "1"), ("9.99", "0.01"), ("3", "7", "11", "13"), ("0", "5")]
    for cart in carts:
        for cents in (0, 1, 2, 99, 100, 101, 1549, 9999):
            total = Decimal(cents) / 100
            for method in (PROPORTIONAL, EQUAL):
                shares = distribute_fee(total, merchants(*cart), method=method)
                assert sum(share.fee for share in shares) == total


def test_zero_subtotal_merchant_gets_nothing_proportionally():
    shares = distribute_fee(Decimal("5.00"), merchants("0", "12"))
    assert [share.fee for share in shares] == [Decimal("0.00"), Decimal("5.00")]


def test_zero_fee():
    shares = distribute_fee(Decimal("0"), merchants("10", "20"))
    assert all(share.fee == 0 and share.percentage == 0 for share in shares)


@pytest.mark.parametrize("field,kwargs", [
    ("method", dict(total_fee="5.00", merchants=merchants("1"), method="random")),
    ("merchants", dict(total_fee="5.00", merchants=[])),
    ("merchants", dict(total_fee="5.00", merchants=merchants("0", "0"))),
    ("total_fee", dict(total_fee="-1", merchants=merchants("1"))),
    ("total_fee", dict(total_fee="1.005", merchants=merchants("1"))),
    ("subtotal", dict(total_fee="1.00", merchants=merchants("-3"))),
])
def test_invalid_distribution(field, kwargs):
    with pytest.raises(ValidationError) as exc_info:
        distribute_fee(**kwargs)
    assert exc_info.value.field == field
