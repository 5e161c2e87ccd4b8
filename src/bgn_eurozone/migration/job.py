"""
Resumable BGN -> EUR catalog migration.

The job is externally clocked: each call processes at most one batch and
returns. A driver (the admin API, the CLI ``run`` command) keeps calling
``process_batch`` until ``has_more`` is false, then calls ``finalize``.

Lifecycle::

    IDLE --start--> COUNTING --> RUNNING --batch--> RUNNING ... --> COMPLETE
                                  |    ^                              |
                            failure    resume                finalize/reset
                                  v    |                              |
                              ERROR_PAUSED --reset--> IDLE <----------+

``start`` is refused while a run is open. A failure recorded by one batch
holds the run in ERROR_PAUSED until the next batch gets going.

Re-running a batch over products that were already converted converts them
again (BGN prices divided twice). The persisted offset is what prevents
that; ``reset`` followed by ``start`` does not.
"""

from collections.abc import Callable
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from bgn_eurozone.migration.state import (
    MigrationError,
    MigrationPhase,
    MigrationState,
    MigrationStateManager,
)
from bgn_eurozone.pricing.conversion import ConversionEngine, Currency
from bgn_eurozone.services.base import BaseCatalog, BaseSettingsStore, PricedEntity
from bgn_eurozone.shared.exceptions import (
    CatalogError,
    CurrencyMismatchError,
    EntityNotFoundError,
    IncompleteMigrationError,
    MigrationAlreadyStartedError,
    MigrationNotStartedError,
    PreconditionError,
    UnauthorizedError,
)
from bgn_eurozone.shared.logging_utils import StructuredLogger, get_structured_logger

DEFAULT_BATCH_SIZE = 50

SOURCE_CURRENCY = Currency.BGN
TARGET_CURRENCY = Currency.EUR


class BatchWarning(BaseModel):
    """A product that could not be migrated; the batch carried on without it."""

    entity_id: int | None = None
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def __str__(self) -> str:
        if self.entity_id is None:
            return self.message
        return f"Product #{self.entity_id}: {self.message}"


class BatchResult(BaseModel):
    """Outcome of one ``process_batch`` call."""

    processed: int
    has_more: bool
    offset: int = Field(..., description="Persisted cursor after this batch")
    total: int
    warnings: list[BatchWarning] = Field(default_factory=list)
    clamped: bool = Field(False, description="Requested offset was past the catalog end")


class MigrationStatus(BaseModel):
    """Persisted state plus everything an operator screen needs."""

    phase: MigrationPhase
    in_progress: bool
    offset: int
    total: int
    percent_complete: float
    store_currency: str | None
    last_error: MigrationError | None = None

    @classmethod
    def from_state(cls, state: MigrationState, store_currency: str | None) -> "MigrationStatus":
        return cls(
            phase=state.phase,
            in_progress=state.in_progress,
            offset=state.offset,
            total=state.total,
            percent_complete=state.percent_complete,
            store_currency=store_currency,
            last_error=state.last_error,
        )


def _allow_all() -> bool:
    return True


class MigrationJob:
    """
    Paged migration of every catalog price from BGN to EUR.

    Args:
        settings: Settings store holding the store currency and the run state
        catalog: Catalog to read and rewrite
        authorizer: Zero-argument callable; every operation refuses to run
            unless it returns True
        engine: Converter used for the BGN -> EUR division
        batch_size: Default number of products per ``process_batch`` call
        strict_finalize: Refuse to finalize before every product was processed
    """

    def __init__(
        self,
        settings: BaseSettingsStore,
        catalog: BaseCatalog,
        authorizer: Callable[[], bool] = _allow_all,
        engine: ConversionEngine | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        strict_finalize: bool = False,
        logger: StructuredLogger | None = None,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self.settings = settings
        self.catalog = catalog
        self.authorizer = authorizer
        self.engine = engine or ConversionEngine()
        self.batch_size = batch_size
        self.strict_finalize = strict_finalize
        self.state_manager = MigrationStateManager(settings)
        self.log = logger or get_structured_logger(__name__)

    # ------------------------------------------------------------------
    # Preconditions
    # ------------------------------------------------------------------

    def _authorize(self) -> None:
        if not self.authorizer():
            self.log.warning("Rejected unauthorized migration request")
            raise UnauthorizedError()

    def _ensure_correlation_id(self) -> None:
        if self.log.correlation_id is None:
            self.log.set_correlation_id(self.log.generate_correlation_id())

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def start(self) -> MigrationState:
        """
        Count the catalog and open a new run with the cursor at zero.

        Raises:
            UnauthorizedError: If the caller may not manage the migration
            CurrencyMismatchError: If the store does not currently run on BGN
            MigrationAlreadyStartedError: If a run is open; only resume or
                reset apply until it is finalized or reset
            CatalogError: If the catalog cannot be counted
        """
        self._authorize()

        currency = await self.settings.get_store_currency()
        if currency != SOURCE_CURRENCY.value:
            raise CurrencyMismatchError(SOURCE_CURRENCY.value, currency)

        # Restarting would rewind the cursor and convert finished products again
        existing = await self.state_manager.load_state()
        if existing.in_progress:
            raise MigrationAlreadyStartedError(existing.offset, existing.total)

        self.log.set_correlation_id(self.log.generate_correlation_id())
        self.log.info("Counting catalog products", phase=MigrationPhase.COUNTING.value)

        total = await self.catalog.count_entities()
        state = await self.state_manager.begin(total)

        self.log.info(
            "Currency migration started",
            phase=MigrationPhase.RUNNING.value,
            total=total,
        )
        return state

    async def process_batch(
        self, offset: int | None = None, batch_size: int | None = None
    ) -> BatchResult:
        """
        Convert up to ``batch_size`` products starting at ``offset``.

        ``offset=None`` continues from the persisted cursor. The cursor is
        persisted after every product, failed or not, so a crash mid-batch
        resumes at the first product that was not reached.

        Raises:
            UnauthorizedError: If the caller may not manage the migration
            MigrationNotStartedError: If no run is in progress
            PreconditionError: If ``offset`` is negative
            CatalogError: If the product ids cannot be listed
        """
        self._authorize()
        batch_size = batch_size or self.batch_size
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        state = await self.state_manager.load_state()
        if not state.in_progress:
            raise MigrationNotStartedError()

        self._ensure_correlation_id()

        start_offset = state.offset if offset is None else offset
        if start_offset < 0:
            raise PreconditionError("Offset must not be negative", {"offset": start_offset})

        if start_offset > state.total:
            return await self._clamp(start_offset, state.total)

        try:
            entity_ids = await self.catalog.list_entity_ids(start_offset, batch_size)
        except CatalogError as e:
            await self._abort_batch(start_offset, e)
            raise
        except Exception as e:
            error = CatalogError("Failed to list products", e)
            await self._abort_batch(start_offset, error)
            raise error from e

        if state.last_error is not None:
            # A batch that gets going acknowledges the previous failure
            await self.state_manager.clear_error()

        total = state.total
        processed = 0
        warnings: list[BatchWarning] = []

        for entity_id in entity_ids:
            try:
                await self._migrate_entity(entity_id)
            except Exception as e:
                warning = BatchWarning(entity_id=entity_id, message=str(e))
                warnings.append(warning)
                await self.state_manager.record_error(entity_id, warning.message)
                self.log.warning(
                    "Product migration failed",
                    entity_id=entity_id,
                    error=warning.message,
                    error_type=type(e).__name__,
                )

            processed += 1
            current = start_offset + processed
            if current > total:
                # Catalog grew after counting; keep offset <= total
                total = current
                await self.state_manager.save_total(total)
            await self.state_manager.save_offset(current)

        result = BatchResult(
            processed=processed,
            has_more=processed == batch_size,
            offset=start_offset + processed,
            total=total,
            warnings=warnings,
        )
        self.log.info(
            "Batch processed",
            start_offset=start_offset,
            processed=processed,
            offset=result.offset,
            total=total,
            has_more=result.has_more,
            warnings=len(warnings),
        )
        return result

    async def resume(self) -> BatchResult:
        """Process the next batch from the persisted cursor."""
        return await self.process_batch(offset=None)

    async def finalize(self, strict: bool | None = None) -> MigrationStatus:
        """
        Switch the store to EUR and forget the run.

        By default the caller decides when the run is done (the admin page
        finalizes once ``has_more`` is false). With ``strict`` the job itself
        refuses while products remain.

        Raises:
            UnauthorizedError: If the caller may not manage the migration
            MigrationNotStartedError: Strict mode only, when no run exists
            IncompleteMigrationError: Strict mode only, when offset < total
        """
        self._authorize()
        strict = self.strict_finalize if strict is None else strict

        state = await self.state_manager.load_state()
        if strict:
            if not state.in_progress:
                raise MigrationNotStartedError()
            if state.offset < state.total:
                raise IncompleteMigrationError(state.offset, state.total)

        await self.settings.set_store_currency(TARGET_CURRENCY.value)
        await self.state_manager.clear()
        await self.catalog.invalidate_price_cache()

        self.log.info(
            "Currency migration finalized",
            store_currency=TARGET_CURRENCY.value,
            offset=state.offset,
            total=state.total,
        )
        self.log.clear_correlation_id()
        return await self.status()

    async def reset(self) -> MigrationStatus:
        """
        Forget the run without touching prices.

        Products converted before the reset stay converted; starting again
        converts them a second time.
        """
        self._authorize()
        state = await self.state_manager.load_state()
        await self.state_manager.clear()

        self.log.warning(
            "Currency migration reset",
            offset=state.offset,
            total=state.total,
        )
        self.log.clear_correlation_id()
        return await self.status()

    async def status(self) -> MigrationStatus:
        self._authorize()
        state = await self.state_manager.load_state()
        store_currency = await self.settings.get_store_currency()
        return MigrationStatus.from_state(state, store_currency)

    # ------------------------------------------------------------------
    # Per-product work
    # ------------------------------------------------------------------

    async def _abort_batch(self, offset: int, error: CatalogError) -> None:
        # State stays intact so the operator can resume from the same offset
        await self.state_manager.record_error(None, str(error))
        self.log.error("Batch aborted", offset=offset, error=str(error))

    async def _clamp(self, requested: int, total: int) -> BatchResult:
        await self.state_manager.save_offset(total)
        warning = BatchWarning(
            message=f"Offset {requested} is beyond the {total} counted products; clamped to {total}"
        )
        self.log.warning("Offset clamped", requested=requested, total=total)
        return BatchResult(
            processed=0,
            has_more=False,
            offset=total,
            total=total,
            warnings=[warning],
            clamped=True,
        )

    def _convert_prices(self, entity: PricedEntity) -> None:
        # Zero and absent prices stay as they are
        if entity.regular_price:
            entity.regular_price = self.engine.to_secondary(entity.regular_price)
        if entity.sale_price:
            entity.sale_price = self.engine.to_secondary(entity.sale_price)

    async def _migrate_entity(self, entity_id: int) -> None:
        entity = await self.catalog.load_entity(entity_id)
        if entity is None:
            raise EntityNotFoundError(entity_id)

        self._convert_prices(entity)
        await self.catalog.save_entity(entity)

        if not entity.has_variants:
            return

        for variant_id in entity.variant_ids:
            variant = await self.catalog.load_entity(variant_id)
            if variant is None:
                # A missing variation does not fail its parent
                self.log.debug("Skipping missing variation", entity_id=entity_id, variant_id=variant_id)
                continue
            self._convert_prices(variant)
            await self.catalog.save_entity(variant)

        await self.catalog.resync_variant_price_range(entity_id)
