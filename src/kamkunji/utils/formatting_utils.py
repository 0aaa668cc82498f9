from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union
import re

Number = Union[int, float, Decimal, str]


class FormattingUtils:
    """
    Kenyan shilling formatting helpers for API responses and emails

    Features:
    - Whole-shilling display with thousands separators
    - Compact (K/M) display for listings
    - Price ranges, discounts and price tiers
    - Parsing of formatted prices back to numbers
    """

    SYMBOL = "KSh"
    LEGACY_SYMBOL = "KSh."

    # Upper bounds (exclusive) for each price tier, in shillings
    PRICE_TIERS = (
        (1000, "Budget"),
        (5000, "Affordable"),
        (20000, "Mid-range"),
        (100000, "Premium"),
    )
    TOP_TIER = "Luxury"

    _WHOLE = Decimal("1")
    _TENTH = Decimal("0.1")
    _CENT = Decimal("0.01")

    @classmethod
    def to_decimal(cls, amount: Number) -> Decimal:
        """Coerce int/float/Decimal/numeric string to Decimal, or raise ValueError"""
        if isinstance(amount, bool):
            raise ValueError(f"Invalid amount: {amount!r}")
        if isinstance(amount, Decimal):
            value = amount
        else:
            try:
                value = Decimal(str(amount).strip())
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid amount: {amount!r}") from e
        if not value.is_finite():
            raise ValueError(f"Invalid amount: {amount!r}")
        return value

    @classmethod
    def to_whole_shillings(cls, amount: Number) -> int:
        """
        Round to whole shillings, halves away from zero.

        M-Pesa only accepts integer amounts, so this is also the amount charged.
        """
        return int(cls.to_decimal(amount).quantize(cls._WHOLE, rounding=ROUND_HALF_UP))

    @classmethod
    def format_ksh(cls, amount: Number) -> str:
        """
        Format an amount as Kenyan shillings without decimals

        Examples:
            format_ksh(1234) -> "KSh 1,234"
            format_ksh("1234.56") -> "KSh 1,235"
        """
        return f"{cls.SYMBOL} {cls.to_whole_shillings(amount):,}"

    @classmethod
    def format_ksh_compact(
        cls,
        amount: Number,
        show_symbol: bool = True,
        show_decimals: bool = False,
        compact: bool = False,
    ) -> str:
        """
        Listing-card formatter

        Examples:
            format_ksh_compact(1500) -> "KSh. 1,500"
            format_ksh_compact(2500000, compact=True) -> "KSh. 2.5M"
            format_ksh_compact(1500.5, show_decimals=True) -> "KSh. 1,500.50"
        """
        value = cls.to_decimal(amount)
        prefix = f"{cls.LEGACY_SYMBOL} " if show_symbol else ""

        if compact and value >= 1_000_000:
            scaled = (value / 1_000_000).quantize(cls._TENTH, rounding=ROUND_HALF_UP)
            return f"{prefix}{scaled}M"
        if compact and value >= 1000:
            scaled = (value / 1000).quantize(cls._TENTH, rounding=ROUND_HALF_UP)
            return f"{prefix}{scaled}K"

        if show_decimals:
            return f"{prefix}{value.quantize(cls._CENT, rounding=ROUND_HALF_UP):,}"
        return f"{prefix}{cls.to_whole_shillings(value):,}"

    @classmethod
    def format_price_range(cls, min_price: Number, max_price: Number) -> str:
        if cls.to_decimal(min_price) == cls.to_decimal(max_price):
            return cls.format_ksh_compact(min_price)
        return f"{cls.format_ksh_compact(min_price)} - {cls.format_ksh_compact(max_price)}"

    @classmethod
    def format_discount(cls, original_price: Number, sale_price: Number) -> str:
        """format_discount(2000, 1500) -> "25% OFF" """
        original = cls.to_decimal(original_price)
        if original <= 0:
            raise ValueError("Original price must be positive")
        ratio = (original - cls.to_decimal(sale_price)) / original * 100
        return f"{int(ratio.quantize(cls._WHOLE, rounding=ROUND_HALF_UP))}% OFF"

    @classmethod
    def parse_ksh(cls, price_string: str) -> Optional[Decimal]:
        """
        Parse a formatted price back to a number

        Examples:
            parse_ksh("KSh. 1,500") -> Decimal("1500")
            parse_ksh("free") -> None
        """
        if not isinstance(price_string, str):
            return None
        cleaned = re.sub(r"[^\d,.]", "", price_string).replace(",", "")
        # "KSh." leaves a leading dot behind
        cleaned = cleaned.strip(".")
        if not cleaned:
            return None
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return None

    @classmethod
    def is_within_budget(cls, price: Number, min_budget: Number, max_budget: Number) -> bool:
        value = cls.to_decimal(price)
        return cls.to_decimal(min_budget) <= value <= cls.to_decimal(max_budget)

    @classmethod
    def get_price_tier(cls, price: Number) -> str:
        value = cls.to_decimal(price)
        for upper_bound, label in cls.PRICE_TIERS:
            if value < upper_bound:
                return label
        return cls.TOP_TIER

    @classmethod
    def money(cls, amount: Optional[Number]) -> Optional[float]:
        """JSON-friendly rendering of a stored NUMERIC(12,2) amount"""
        if amount is None:
            return None
        return float(cls.to_decimal(amount).quantize(cls._CENT, rounding=ROUND_HALF_UP))
