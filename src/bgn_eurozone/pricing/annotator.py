"""
Single entry point for adding a secondary price to storefront fragments.

Every place that used to hand-build a dual price (product page, cart rows,
fees, shipping labels, tax lines, coupons, totals) goes through
``PriceAnnotator.annotate`` with the matching ``AnnotationContext``.
"""

import logging
import re
from collections.abc import Iterable
from decimal import Decimal
from enum import Enum
from typing import Any

from bgn_eurozone.pricing.conversion import (
    ConversionEngine,
    Currency,
    CurrencyPair,
    to_decimal,
)
from bgn_eurozone.pricing.formatter import DisplayOptions, DualPriceFormatter, format_number
from bgn_eurozone.pricing.scanner import PriceTextScanner, currency_label

logger = logging.getLogger(__name__)

# <small class="includes_tax">(includes 8,32 лв. VAT)</small>
_INCLUDES_TAX_RE = re.compile(
    r"""(<small\b[^>]*class\s*=\s*["'][^"']*includes_tax[^"']*["'][^>]*>)(.*?)(</small>)""",
    re.IGNORECASE | re.DOTALL,
)


class AnnotationContext(str, Enum):
    SINGLE_PRICE = "single_price"
    RANGE = "range"
    FEE = "fee"
    TAX_LINE = "tax_line"
    SHIPPING_LABEL = "shipping_label"
    COUPON = "coupon"
    TOTAL = "total"


# Contexts where a zero or negative amount is shown without a secondary price
_POSITIVE_ONLY = frozenset(
    {AnnotationContext.FEE, AnnotationContext.TAX_LINE, AnnotationContext.SHIPPING_LABEL}
)


class PriceAnnotator:
    """Annotate primary-currency fragments with their secondary-currency value."""

    def __init__(
        self,
        pair: CurrencyPair,
        engine: ConversionEngine,
        options: DisplayOptions | None = None,
        scanner: PriceTextScanner | None = None,
        formatter: DualPriceFormatter | None = None,
    ):
        self.pair = pair
        self.engine = engine
        self.options = options or DisplayOptions()
        self.scanner = scanner or PriceTextScanner()
        self.formatter = formatter or DualPriceFormatter(pair.secondary)

    @property
    def secondary_label(self) -> str:
        return currency_label(self.pair.secondary)

    def convert(self, amount: Decimal | str | int | float) -> Decimal:
        return self.engine.convert_to_secondary(amount, self.pair)

    def annotate(
        self,
        fragment: str,
        context: AnnotationContext = AnnotationContext.SINGLE_PRICE,
        amount: Decimal | str | int | float | None = None,
        amount_max: Decimal | str | int | float | None = None,
        surroundings: Iterable[str] = (),
    ) -> str:
        """
        Return ``fragment`` with the secondary price added.

        ``amount`` (and ``amount_max`` for ranges) is the primary-currency
        value when the caller knows it; otherwise it is read back out of the
        fragment. Fragments that already carry a secondary price, or in which
        no price can be found, are returned unchanged.
        """
        context = AnnotationContext(context)
        fragment = fragment or ""

        if self.scanner.has_annotation(fragment, self.secondary_label, surroundings):
            return fragment

        if context is AnnotationContext.TOTAL:
            note = _INCLUDES_TAX_RE.search(fragment)
            if note:
                return self._annotate_total_with_tax(fragment, note.start(), amount)

        if context is AnnotationContext.RANGE:
            return self._annotate_range(fragment, amount, amount_max)

        value = self._resolve_amount(fragment, amount)
        if value is None:
            logger.debug("No %s price found in %s fragment", self.pair.primary.value, context.value)
            return fragment

        if context in _POSITIVE_ONLY and value <= 0:
            return fragment

        if context is AnnotationContext.COUPON:
            secondary = -self.convert(abs(value))
        else:
            secondary = self.convert(value)

        return self.formatter.compose(fragment, secondary, self.options)

    def _resolve_amount(
        self, fragment: str, amount: Decimal | str | int | float | None
    ) -> Decimal | None:
        if amount is not None:
            return to_decimal(amount)
        return self.scanner.extract_amount(fragment, self.pair.primary)

    def _annotate_range(
        self,
        fragment: str,
        amount_min: Decimal | str | int | float | None,
        amount_max: Decimal | str | int | float | None,
    ) -> str:
        if amount_min is None or amount_max is None:
            found = [m.amount for m in self.scanner.find_amounts(fragment, self.pair.primary)]
            if not found:
                single = self._resolve_amount(fragment, amount_min)
                if single is None:
                    return fragment
                found = [single]
            amount_min = min(found) if amount_min is None else amount_min
            amount_max = max(found) if amount_max is None else amount_max

        if to_decimal(amount_min) == to_decimal(amount_max):
            return self.formatter.compose(fragment, self.convert(amount_min), self.options)

        return self.formatter.compose_range(
            fragment,
            self.convert(amount_min),
            self.convert(amount_max),
            self.options,
        )

    def _annotate_total_with_tax(
        self,
        fragment: str,
        note_start: int,
        amount: Decimal | str | int | float | None,
    ) -> str:
        # "<total> <small class="includes_tax">(includes ... VAT)</small>": the
        # total is annotated in front of the note, amounts in the note inline.
        head, tail = fragment[:note_start], fragment[note_start:]
        tail = self.annotate_inline_tax(tail)
        value = self._resolve_amount(head, amount)
        if value is None:
            return head + tail

        stripped = head.rstrip()
        annotated = self.formatter.compose(stripped, self.convert(value), self.options)
        return f"{annotated}{head[len(stripped):]}{tail}"

    def annotate_inline_tax(self, fragment: str) -> str:
        """Append the secondary amount after every price inside an includes-tax note."""

        def rewrite_note(match: re.Match) -> str:
            opening, body, closing = match.groups()
            pieces: list[str] = []
            cursor = 0
            for found in self.scanner.find_amounts(body, self.pair.primary):
                pieces.append(body[cursor:found.start])
                pieces.append(
                    self.formatter.append_inline(
                        found.text, self.convert(found.amount), self.options
                    )
                )
                cursor = found.end
            pieces.append(body[cursor:])
            return f"{opening}{''.join(pieces)}{closing}"

        return _INCLUDES_TAX_RE.sub(rewrite_note, fragment or "")

    def relabel_legacy(
        self,
        fragment: str,
        amount: Decimal | str | int | float,
        order_currency: str | None,
    ) -> str:
        """
        Re-render an order total recorded before the store switched currency.

        Orders placed in BGN whose stored amounts were migrated to EUR values
        keep their number; only the label changes. Orders in any other
        currency are returned untouched.
        """
        if (order_currency or "").upper() != Currency.BGN.value:
            return fragment
        if self.pair.primary is not Currency.EUR:
            return fragment
        return self.formatter.format_as(to_decimal(amount), Currency.EUR)

    def enrich_api_payload(
        self, payload: dict[str, Any], price: Decimal | str | int | float | None
    ) -> dict[str, Any]:
        """Add ``price_eur`` (BGN store) or ``price_bgn`` (EUR store) to a product payload."""
        enriched = dict(payload)
        if price is None or price == "":
            return enriched
        key = f"price_{self.pair.secondary.value.lower()}"
        enriched[key] = format_number(self.convert(price))
        return enriched

    def orders_column_label(self) -> str:
        return f"Total ({self.secondary_label})"

