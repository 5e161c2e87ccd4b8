"""
Fixed-rate conversion between the Bulgarian lev and the euro.

All arithmetic is Decimal only:
- BGN -> EUR: amount / 1.95583, rounded half-up to cents
- EUR -> BGN: amount * 1.95583, rounded half-up to cents, then (smart policy)
  snapped to the nearest whole lev when within 0.015 of it
"""

import logging
from collections.abc import Callable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import NamedTuple

from bgn_eurozone.shared.exceptions import InvalidPriceError, UnsupportedCurrencyError

logger = logging.getLogger(__name__)

# Official irrevocable rate: 1 EUR = 1.95583 BGN
CONVERSION_RATE = Decimal("1.95583")

# Smart rounding snaps to a whole unit when closer than this
SMART_ROUNDING_TOLERANCE = Decimal("0.015")

CENT = Decimal("0.01")
WHOLE = Decimal("1")


class Currency(str, Enum):
    """The two currencies this toolkit understands."""

    BGN = "BGN"
    EUR = "EUR"


class CurrencyRole(str, Enum):
    """Role of a currency relative to the store configuration."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


class RoundingPolicy(str, Enum):
    """Rounding applied when converting EUR amounts into BGN."""

    EXACT = "exact"
    SMART = "smart"


class CurrencyPair(NamedTuple):
    """Primary (store) currency and the secondary one shown next to it."""

    primary: Currency
    secondary: Currency

    def role_of(self, currency: Currency) -> CurrencyRole:
        if currency == self.primary:
            return CurrencyRole.PRIMARY
        return CurrencyRole.SECONDARY


# filter(result, input_amount, raw_unrounded) -> result
ConversionFilter = Callable[[Decimal, Decimal, Decimal], Decimal]


def resolve_currency_pair(store_currency: str | None) -> CurrencyPair:
    """
    Resolve the configured store currency into a primary/secondary pair.

    Raises:
        UnsupportedCurrencyError: If the store runs any currency besides BGN or EUR
    """
    code = (store_currency or "").strip().upper()
    if code == Currency.BGN.value:
        return CurrencyPair(Currency.BGN, Currency.EUR)
    if code == Currency.EUR.value:
        return CurrencyPair(Currency.EUR, Currency.BGN)
    raise UnsupportedCurrencyError(store_currency)


def to_decimal(value: str | int | float | Decimal) -> Decimal:
    """
    Coerce a stored or submitted price into a finite Decimal.

    Floats go through str() so 19.99 stays 19.99 instead of its binary
    expansion.

    Raises:
        InvalidPriceError: If the value is empty, unparseable, NaN or infinite
    """
    if isinstance(value, bool):
        raise InvalidPriceError(value)
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise InvalidPriceError(value)
    else:
        raise InvalidPriceError(value)

    if not result.is_finite():
        raise InvalidPriceError(value)
    return result


def round_half_up(value: Decimal, quantum: Decimal = CENT) -> Decimal:
    """Round half away from zero, so -0.125 becomes -0.13 and 0.125 becomes 0.13."""
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


class ConversionEngine:
    """Deterministic BGN <-> EUR converter. Pure apart from registered filters."""

    def __init__(
        self,
        rounding: RoundingPolicy = RoundingPolicy.SMART,
        rate: Decimal = CONVERSION_RATE,
    ) -> None:
        self.rounding = RoundingPolicy(rounding)
        self.rate = rate
        self._filters: list[ConversionFilter] = []

    # ------------------------------------------------------------------
    # Extension point
    # ------------------------------------------------------------------

    def add_filter(self, func: ConversionFilter) -> None:
        """Register a filter that may inspect or override EUR -> BGN results."""
        self._filters.append(func)

    def remove_filter(self, func: ConversionFilter) -> None:
        self._filters.remove(func)

    # ------------------------------------------------------------------
    # Conversions
    # ------------------------------------------------------------------

    def to_secondary(self, amount_primary: str | int | float | Decimal) -> Decimal:
        """Convert BGN to EUR: divide by the rate and round half-up to cents."""
        amount = to_decimal(amount_primary)
        return round_half_up(amount / self.rate)

    def to_primary(
        self,
        amount_secondary: str | int | float | Decimal,
        policy: RoundingPolicy | None = None,
    ) -> Decimal:
        """
        Convert EUR to BGN honouring the rounding policy.

        With the smart policy a result within 0.015 of a whole lev is snapped
        to it (19.99 -> 20.00), the exact policy keeps the cents. The value is
        then passed through every registered filter.
        """
        policy = RoundingPolicy(policy) if policy is not None else self.rounding
        amount = to_decimal(amount_secondary)

        raw = amount * self.rate
        rounded = round_half_up(raw)

        if policy is RoundingPolicy.SMART:
            nearest = round_half_up(rounded, WHOLE)
            if abs(rounded - nearest) < SMART_ROUNDING_TOLERANCE:
                rounded = nearest.quantize(CENT)

        for func in self._filters:
            rounded = func(rounded, amount, raw)

        return rounded

    def convert_to_secondary(
        self, amount: str | int | float | Decimal, pair: CurrencyPair
    ) -> Decimal:
        """Convert a primary-currency amount into the pair's secondary currency."""
        if pair.primary is Currency.BGN:
            return self.to_secondary(amount)
        return self.to_primary(amount)
