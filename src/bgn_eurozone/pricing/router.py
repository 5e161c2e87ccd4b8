"""
FastAPI router for display settings and storefront price annotation.
"""

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, status

from ..api.models import AnnotateRequest, AnnotateResponse, ProductPriceResponse
from ..services.catalog import SqlCatalog
from ..services.settings_store import SqlSettingsStore
from ..shared.exceptions import UnsupportedCurrencyError
from ..shared.dependencies import get_catalog, get_settings_store, require_authorized
from .annotator import PriceAnnotator
from .conversion import ConversionEngine, resolve_currency_pair
from .display import (
    DisplayLocation,
    DisplaySettings,
    load_display_settings,
    save_display_settings,
    should_display_dual_currency,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["prices"])


async def _build_annotator(store: SqlSettingsStore) -> tuple[PriceAnnotator, DisplaySettings]:
    """Annotator for the store's current currency and display settings."""
    pair = resolve_currency_pair(await store.get_store_currency())
    settings = await load_display_settings(store)
    annotator = PriceAnnotator(
        pair,
        ConversionEngine(rounding=settings.bgn_rounding),
        options=settings.display_options,
    )
    return annotator, settings


def _price_text(value: Decimal | None) -> str | None:
    return f"{value:.2f}" if value is not None else None


@router.get(
    "/settings/display",
    response_model=DisplaySettings,
    summary="Get display settings",
)
async def get_display_settings(store: SqlSettingsStore = Depends(get_settings_store)):
    return await load_display_settings(store)


@router.put(
    "/settings/display",
    response_model=DisplaySettings,
    summary="Update display settings",
    description="Invalid values are replaced by their defaults",
    dependencies=[Depends(require_authorized)],
)
async def update_display_settings(
    settings: DisplaySettings,
    store: SqlSettingsStore = Depends(get_settings_store),
):
    await save_display_settings(store, settings)
    return await load_display_settings(store)


@router.post(
    "/prices/annotate",
    response_model=AnnotateResponse,
    summary="Add the secondary price to a rendered fragment",
)
async def annotate_price(
    request: AnnotateRequest,
    store: SqlSettingsStore = Depends(get_settings_store),
):
    store_currency = await store.get_store_currency()
    if not should_display_dual_currency(store_currency, request.locale):
        return AnnotateResponse(fragment=request.fragment, annotated=False)

    annotator, settings = await _build_annotator(store)
    if not settings.enabled or (request.location and not settings.shows(request.location)):
        return AnnotateResponse(fragment=request.fragment, annotated=False)

    fragment = annotator.annotate(
        request.fragment,
        request.context,
        amount=request.amount,
        amount_max=request.amount_max,
        surroundings=request.surroundings,
    )
    return AnnotateResponse(fragment=fragment, annotated=fragment != request.fragment)


@router.get(
    "/products/{product_id}/price",
    response_model=ProductPriceResponse,
    summary="Product prices with the secondary currency",
)
async def get_product_price(
    product_id: int,
    store: SqlSettingsStore = Depends(get_settings_store),
    catalog: SqlCatalog = Depends(get_catalog),
):
    entity = await catalog.load_entity(product_id)
    if entity is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Product {product_id} not found",
        )

    store_currency = await store.get_store_currency()
    annotator = None
    try:
        annotator, settings = await _build_annotator(store)
    except UnsupportedCurrencyError as e:
        # Any other store currency disables dual pricing; prices go out as stored
        logger.debug(f"Skipping secondary price: {e}")

    payload = {
        "id": entity.id,
        "kind": entity.kind.value,
        "currency": annotator.pair.primary.value if annotator else (store_currency or ""),
        "regular_price": _price_text(entity.regular_price),
        "sale_price": _price_text(entity.sale_price),
    }
    price = entity.active_price
    if entity.has_variants:
        min_price, max_price = await catalog.get_price_range(entity.id)
        payload["min_price"] = _price_text(min_price)
        payload["max_price"] = _price_text(max_price)
        price = min_price
    payload["price"] = _price_text(price)

    if annotator is not None and settings.shows(DisplayLocation.API_PRICES):
        payload = annotator.enrich_api_payload(payload, price)
    return payload
