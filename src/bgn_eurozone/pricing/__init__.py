"""
BGN/EUR conversion and dual-price rendering.

Usage:
    from bgn_eurozone.pricing import ConversionEngine, PriceAnnotator, resolve_currency_pair

    pair = resolve_currency_pair("BGN")
    annotator = PriceAnnotator(pair, ConversionEngine())
    annotator.annotate("25,00 лв.")
    # '25,00 лв. <span class="eur-price">(12.78 €)</span>'
"""

from bgn_eurozone.pricing.annotator import AnnotationContext, PriceAnnotator
from bgn_eurozone.pricing.conversion import (
    CONVERSION_RATE,
    ConversionEngine,
    Currency,
    CurrencyPair,
    CurrencyRole,
    RoundingPolicy,
    resolve_currency_pair,
    to_decimal,
)
from bgn_eurozone.pricing.display import (
    DisplayLocation,
    DisplaySettings,
    load_display_settings,
    save_display_settings,
    should_display_dual_currency,
)
from bgn_eurozone.pricing.formatter import (
    DisplayFormat,
    DisplayOptions,
    DisplayPosition,
    DualPriceFormatter,
)
from bgn_eurozone.pricing.scanner import PriceTextScanner

__all__ = [
    "AnnotationContext",
    "CONVERSION_RATE",
    "ConversionEngine",
    "Currency",
    "CurrencyPair",
    "CurrencyRole",
    "DisplayFormat",
    "DisplayLocation",
    "DisplayOptions",
    "DisplayPosition",
    "DisplaySettings",
    "DualPriceFormatter",
    "PriceAnnotator",
    "PriceTextScanner",
    "RoundingPolicy",
    "load_display_settings",
    "resolve_currency_pair",
    "save_display_settings",
    "should_display_dual_currency",
    "to_decimal",
]
