from decimal import Decimal

import pytest

from kamkunji.utils.formatting_utils import FormattingUtils


@pytest.mark.parametrize("amount,expected", [
    (1234, "KSh 1,234"),
    ("1234.56", "KSh 1,235"),
    (Decimal("999.49"), "KSh 999"),
    (0, "KSh 0"),
    (1500000, "KSh 1,500,000"),
])
def test_format_ksh(amount, expected):
    assert FormattingUtils.format_ksh(amount) == expected


def test_whole_shillings_round_half_up():
    assert FormattingUtils.to_whole_shillings("0.5") == 1
    assert FormattingUtils.to_whole_shillings(Decimal("2.49")) == 2
    assert FormattingUtils.to_whole_shillings("1499.50") == 1500


@pytest.mark.parametrize("bad", ["abc", "", None, True, float("nan")])
def test_to_decimal_rejects_garbage(bad):
    with pytest.raises(ValueError):
        FormattingUtils.to_decimal(bad)


def test_compact_formatting():
    assert FormattingUtils.format_ksh_compact(1500) == "KSh. 1,500"
    assert FormattingUtils.format_ksh_compact(2500000, compact=True) == "KSh. 2.5M"
    assert FormattingUtils.format_ksh_compact(4200, compact=True) == "KSh. 4.2K"
    assert FormattingUtils.format_ksh_compact("1500.5", show_decimals=True) == "KSh. 1,500.50"
    assert FormattingUtils.format_ksh_compact(1500, show_symbol=False) == "1,500"


def test_parse_ksh():
    assert FormattingUtils.parse_ksh("KSh. 1,500") == Decimal("1500")
    assert FormattingUtils.parse_ksh("KSh 2,499.99") == Decimal("2499.99")
    assert FormattingUtils.parse_ksh("free") is None
    assert FormattingUtils.parse_ksh(1500) is None


def test_price_helpers():
    assert FormattingUtils.format_discount(2000, 1500) == "25% OFF"
    assert FormattingUtils.format_price_range(100, 100) == "KSh. 100"
    assert FormattingUtils.format_price_range(100, 250) == "KSh. 100 - KSh. 250"
    assert FormattingUtils.is_within_budget("750", 500, 1000)
    assert not FormattingUtils.is_within_budget(1001, 500, 1000)
    assert FormattingUtils.get_price_tier(999) == "Budget"
    assert FormattingUtils.get_price_tier(19999) == "Mid-range"
    assert FormattingUtils.get_price_tier(250000) == "Luxury"


def test_money_renders_two_places():
    assert FormattingUtils.money("1500") == 1500.0
    assert FormattingUtils.money(Decimal("12.345")) == 12.35
    assert FormattingUtils.money(None) is None
