"""
Detection of prices inside already-rendered text and markup.

Storefront fragments arrive formatted ("1 650,00 лв.", "€1.650,00",
'<span class="amount">25.00&nbsp;<span>лв.</span></span>'). The scanner pulls
the numeric value back out and tells callers whether a secondary-currency
annotation is already present, so re-rendered fragments are never annotated
twice.
"""

import html
import re
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from bgn_eurozone.pricing.conversion import Currency

# CSS class carried by every secondary-price span we emit
ANNOTATION_CLASS = "eur-price"

_TAG_RE = re.compile(r"<[^>]+>")
_MARKER_RE = re.compile(
    r"""class\s*=\s*["'][^"']*\b""" + re.escape(ANNOTATION_CLASS) + r"""\b[^"']*["']"""
)

# Thousands separators: space, no-break space (raw or as an entity), dot, comma
_SEPARATOR = r"(?:[ \u00a0.,]|&nbsp;|&#160;)"
_NOT_INSIDE_NUMBER = r"(?<![\d.,])"


def _number(tag: str = "") -> str:
    # Integer part with optional thousands groups, then the decimal separator
    # followed by exactly two digits.
    return (
        rf"(?P<sign{tag}>[-\u2212])?"
        rf"(?P<number{tag}>\d+(?:{_SEPARATOR}\d{{3}})*[.,]\d{{2}})(?!\d)"
    )


_NUMBER_RE = re.compile(_NOT_INSIDE_NUMBER + _number())


@dataclass(frozen=True)
class CurrencyNotation:
    """How a currency's amounts are written in storefront text."""

    currency: Currency
    label: str
    codes: tuple[str, ...]
    symbol_prefix: bool


NOTATIONS: dict[Currency, CurrencyNotation] = {
    Currency.BGN: CurrencyNotation(Currency.BGN, "лв.", ("BGN",), symbol_prefix=False),
    Currency.EUR: CurrencyNotation(
        Currency.EUR, "€", ("EUR", "&euro;"), symbol_prefix=True
    ),
}


def currency_label(currency: Currency) -> str:
    return NOTATIONS[Currency(currency)].label


@dataclass(frozen=True)
class PriceMatch:
    """A price token found in a text fragment."""

    amount: Decimal
    start: int
    end: int
    text: str


def _adjacent_pattern(notation: CurrencyNotation, gap: str = r"\s*") -> re.Pattern:
    tokens = "|".join(re.escape(t) for t in (notation.label, *notation.codes))
    suffix = _NOT_INSIDE_NUMBER + _number() + gap + rf"(?:{tokens})"
    if notation.symbol_prefix:
        prefix = rf"(?:{tokens})" + gap + _number("_prefixed")
        return re.compile(rf"{suffix}|{prefix}")
    return re.compile(suffix)


# Between number and label, markup may hold whitespace, &nbsp; and tags:
# 8.32&nbsp;<span class="woocommerce-Price-currencySymbol">лв.</span>
_MARKUP_GAP = r"(?:\s|&nbsp;|&#160;|<[^>]+>)*"

_ADJACENT_PATTERNS = {c: _adjacent_pattern(n) for c, n in NOTATIONS.items()}
_MARKUP_PATTERNS = {c: _adjacent_pattern(n, _MARKUP_GAP) for c, n in NOTATIONS.items()}


def fragment_text(fragment: str) -> str:
    """Reduce markup to plain text: tags dropped, entities such as &nbsp; decoded."""
    return html.unescape(_TAG_RE.sub("", fragment or ""))


def normalize_number(token: str) -> Decimal:
    """
    Turn a formatted number into a Decimal.

    The final separator (always followed by exactly two digits) is the decimal
    point; every other space, NBSP, dot or comma is a thousands separator.
    """
    integer_part, fraction = token[:-3], token[-2:]
    digits = re.sub(_SEPARATOR, "", integer_part)
    return Decimal(f"{digits}.{fraction}")


def _amount_from(match: re.Match) -> Decimal:
    groups = match.groupdict()
    number = groups.get("number") or groups.get("number_prefixed")
    sign = groups.get("sign") or groups.get("sign_prefixed")
    amount = normalize_number(number)
    return -amount if sign else amount


class PriceTextScanner:
    """Extract prices from formatted fragments and guard against re-annotation."""

    def extract_amount(self, fragment: str, currency: Currency) -> Decimal | None:
        """
        Return the first price in the fragment, or None when there is none.

        A number written next to the currency's label or code wins over a bare
        number appearing earlier in the text (quantities, SKUs and the like).
        """
        text = fragment_text(fragment)
        if not text:
            return None

        adjacent = _ADJACENT_PATTERNS[Currency(currency)].search(text)
        if adjacent:
            return _amount_from(adjacent)

        bare = _NUMBER_RE.search(text)
        if bare:
            return _amount_from(bare)
        return None

    def find_amounts(self, fragment: str, currency: Currency) -> list[PriceMatch]:
        """
        Every price written next to the currency's label or code, in order.

        Works on raw markup: spans index into ``fragment`` itself so callers
        can splice annotations in place.
        """
        pattern = _MARKUP_PATTERNS[Currency(currency)]
        return [
            PriceMatch(_amount_from(m), m.start(), m.end(), m.group(0))
            for m in pattern.finditer(fragment or "")
        ]

    def has_annotation(
        self,
        fragment: str,
        secondary_label: str,
        context: Iterable[str] = (),
    ) -> bool:
        """
        True when a secondary-currency annotation is already present.

        The fragment counts as annotated if it carries the annotation class or
        the secondary label text. Sibling and ancestor markup passed in
        ``context`` only counts through the annotation class.
        """
        fragment = fragment or ""
        if _MARKER_RE.search(fragment):
            return True
        if secondary_label and (
            secondary_label in fragment or secondary_label in fragment_text(fragment)
        ):
            return True

        return any(_MARKER_RE.search(item or "") for item in context)
