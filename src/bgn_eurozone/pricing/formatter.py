"""
Composition of primary and secondary price representations.

Formats produced (brackets / divider, secondary on the right):
    25,00 лв. <span class="eur-price">(12.78 €)</span>
    25,00 лв. <span class="eur-price">/ 12.78 €</span>
"""

from decimal import Decimal
from enum import Enum
from html import escape

from pydantic import BaseModel, ConfigDict

from bgn_eurozone.pricing.conversion import Currency, to_decimal
from bgn_eurozone.pricing.scanner import ANNOTATION_CLASS, currency_label


class DisplayPosition(str, Enum):
    LEFT = "left"
    RIGHT = "right"


class DisplayFormat(str, Enum):
    BRACKETS = "brackets"
    DIVIDER = "divider"


class DisplayOptions(BaseModel):
    """Where the secondary price goes and how it is delimited."""

    model_config = ConfigDict(frozen=True)

    position: DisplayPosition = DisplayPosition.RIGHT
    format: DisplayFormat = DisplayFormat.BRACKETS


def format_number(amount: Decimal | str | int | float) -> str:
    """Two decimals with comma thousands grouping: 1234.5 -> '1,234.50'."""
    return f"{to_decimal(amount):,.2f}"


class DualPriceFormatter:
    """Pure string composition; never parses the primary representation."""

    def __init__(self, secondary: Currency, css_class: str = ANNOTATION_CLASS):
        self.secondary = Currency(secondary)
        self.css_class = css_class

    @property
    def label(self) -> str:
        return currency_label(self.secondary)

    def format_secondary(self, amount: Decimal) -> str:
        return f"{format_number(amount)} {self.label}"

    def format_as(self, amount: Decimal, currency: Currency) -> str:
        """Render an amount with any currency's label, no conversion involved."""
        return f"{format_number(amount)} {currency_label(currency)}"

    def _wrap(self, secondary_text: str, options: DisplayOptions) -> str:
        if options.format is DisplayFormat.DIVIDER:
            inner = f"/ {secondary_text}"
        else:
            inner = f"({secondary_text})"
        return f'<span class="{escape(self.css_class)}">{escape(inner)}</span>'

    def _place(self, primary: str, span: str, options: DisplayOptions) -> str:
        if options.position is DisplayPosition.LEFT:
            return f"{span} {primary}"
        return f"{primary} {span}"

    def compose(
        self,
        primary_representation: str,
        secondary_amount: Decimal,
        options: DisplayOptions,
    ) -> str:
        span = self._wrap(self.format_secondary(secondary_amount), options)
        return self._place(primary_representation, span, options)

    def compose_range(
        self,
        primary_representation: str,
        secondary_min: Decimal,
        secondary_max: Decimal,
        options: DisplayOptions,
    ) -> str:
        """
        Annotate a price range ("10,00 лв. – 20,00 лв.").

        Both bounds are always written. Whether a range is really a single
        price is decided on the primary amounts, before conversion, so two
        prices that round to the same secondary amount still read as a range.
        """
        secondary_range = (
            f"{format_number(secondary_min)} - {format_number(secondary_max)} {self.label}"
        )
        span = self._wrap(secondary_range, options)
        return self._place(primary_representation, span, options)

    def append_inline(self, text: str, secondary_amount: Decimal, options: DisplayOptions) -> str:
        """Unwrapped variant used inside tax notes: "8,32 лв. (4.25 €)"."""
        secondary = escape(self.format_secondary(secondary_amount))
        if options.format is DisplayFormat.DIVIDER:
            return f"{text} / {secondary}"
        return f"{text} ({secondary})"
