"""
Per-installation display settings and the dual-currency visibility rule.

Settings live in the settings store next to the migration state, one key per
option. Anything unreadable is sanitized back to its default so a bad value
never breaks the storefront.
"""

import logging
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

from bgn_eurozone.pricing.conversion import Currency, RoundingPolicy
from bgn_eurozone.pricing.formatter import DisplayFormat, DisplayOptions, DisplayPosition
from bgn_eurozone.services.base import BaseSettingsStore

logger = logging.getLogger(__name__)

SETTINGS_PREFIX = "bge_"


class DisplayLocation(str, Enum):
    """Storefront places where a secondary price can be shown."""

    SINGLE_PRODUCT = "single_product"
    VARIABLE_PRODUCT = "variable_product"
    CART_ITEM = "cart_item"
    CART_SUBTOTAL = "cart_subtotal"
    CART_TOTAL = "cart_total"
    ORDER_TOTALS = "order_totals"
    ORDERS_TABLE = "orders_table"
    API_PRICES = "api_prices"
    SHIPPING_LABELS = "shipping_labels"
    TAX_LABELS = "tax_labels"
    MINI_CART = "mini_cart"
    THANK_YOU_PAGE = "thank_you_page"


def _yes_no(value: Any, default: bool = True) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered == "yes":
            return True
        if lowered == "no":
            return False
    return default


def _default_locations() -> dict[DisplayLocation, bool]:
    return {location: True for location in DisplayLocation}


class DisplaySettings(BaseModel):
    """Sanitized view of the display options."""

    enabled: bool = True
    eur_position: DisplayPosition = DisplayPosition.RIGHT
    eur_format: DisplayFormat = DisplayFormat.BRACKETS
    bgn_rounding: RoundingPolicy = RoundingPolicy.SMART
    locations: dict[DisplayLocation, bool] = Field(default_factory=_default_locations)

    @field_validator("enabled", mode="before")
    @classmethod
    def sanitize_enabled(cls, value: Any) -> bool:
        return _yes_no(value)

    @field_validator("eur_position", mode="before")
    @classmethod
    def sanitize_position(cls, value: Any) -> DisplayPosition:
        try:
            return DisplayPosition(value)
        except ValueError:
            return DisplayPosition.RIGHT

    @field_validator("eur_format", mode="before")
    @classmethod
    def sanitize_format(cls, value: Any) -> DisplayFormat:
        try:
            return DisplayFormat(value)
        except ValueError:
            return DisplayFormat.BRACKETS

    @field_validator("bgn_rounding", mode="before")
    @classmethod
    def sanitize_rounding(cls, value: Any) -> RoundingPolicy:
        try:
            return RoundingPolicy(value)
        except ValueError:
            return RoundingPolicy.SMART

    @field_validator("locations", mode="before")
    @classmethod
    def sanitize_locations(cls, value: Any) -> dict[DisplayLocation, bool]:
        locations = _default_locations()
        if not isinstance(value, dict):
            return locations
        for key, flag in value.items():
            try:
                location = DisplayLocation(key)
            except ValueError:
                logger.debug(f"Ignoring unknown display location {key!r}")
                continue
            locations[location] = _yes_no(flag)
        return locations

    @property
    def display_options(self) -> DisplayOptions:
        return DisplayOptions(position=self.eur_position, format=self.eur_format)

    def shows(self, location: DisplayLocation | str) -> bool:
        """True when dual prices are enabled and switched on for ``location``."""
        return self.enabled and self.locations.get(DisplayLocation(location), True)

    def to_store_values(self) -> dict[str, str]:
        values = {
            f"{SETTINGS_PREFIX}enabled": "yes" if self.enabled else "no",
            f"{SETTINGS_PREFIX}eur_position": self.eur_position.value,
            f"{SETTINGS_PREFIX}eur_format": self.eur_format.value,
            f"{SETTINGS_PREFIX}bgn_rounding": self.bgn_rounding.value,
        }
        for location, flag in self.locations.items():
            values[f"{SETTINGS_PREFIX}show_{location.value}"] = "yes" if flag else "no"
        return values


def should_display_dual_currency(store_currency: str | None, locale: str | None) -> bool:
    """
    BGN stores always show the euro price. EUR stores show the lev price only
    to visitors on a Bulgarian locale; any other store currency shows nothing.
    """
    code = (store_currency or "").upper()
    if code == Currency.BGN.value:
        return True
    if code == Currency.EUR.value:
        return (locale or "").lower().startswith("bg")
    return False


async def load_display_settings(store: BaseSettingsStore) -> DisplaySettings:
    """Read every display option from the store, sanitizing as it goes."""
    raw: dict[str, Any] = {}
    for name in ("enabled", "eur_position", "eur_format", "bgn_rounding"):
        value = await store.get_setting(f"{SETTINGS_PREFIX}{name}")
        if value is not None:
            raw[name] = value

    locations = {}
    for location in DisplayLocation:
        value = await store.get_setting(f"{SETTINGS_PREFIX}show_{location.value}")
        if value is not None:
            locations[location.value] = value
    raw["locations"] = locations

    return DisplaySettings.model_validate(raw)


async def save_display_settings(store: BaseSettingsStore, settings: DisplaySettings) -> None:
    for key, value in settings.to_store_values().items():
        await store.set_setting(key, value)
    logger.info("Display settings saved")
