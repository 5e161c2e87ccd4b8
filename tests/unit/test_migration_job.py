"""
Unit tests for the resumable catalog migration.

Runs against the in-memory settings store and catalog from conftest.
"""

import json
import logging
from decimal import Decimal

import pytest

from bgn_eurozone.migration.job import BatchWarning, MigrationJob
from bgn_eurozone.migration.state import LAST_ERROR_KEY, STATE_KEYS, MigrationPhase
from bgn_eurozone.services.base import PricedEntity
from bgn_eurozone.shared.exceptions import (
    CatalogError,
    CurrencyMismatchError,
    IncompleteMigrationError,
    InvalidPriceError,
    MigrationAlreadyStartedError,
    MigrationNotStartedError,
    PreconditionError,
    UnauthorizedError,
)


class WorkerKilled(BaseException):
    """Stands in for a process dying mid-batch; not caught as a product failure."""


@pytest.fixture
def job(settings_store, catalog) -> MigrationJob:
    return MigrationJob(settings_store, catalog)


async def run_to_end(job: MigrationJob) -> list:
    results = []
    while True:
        result = await job.process_batch()
        results.append(result)
        if not result.has_more:
            return results


class TestStart:
    @pytest.mark.asyncio
    async def test_start_counts_catalog(self, job, settings_store):
        state = await job.start()

        assert state.total == 120
        assert state.offset == 0
        assert state.phase is MigrationPhase.RUNNING
        assert settings_store.values["bge_migration_total"] == 120

    @pytest.mark.asyncio
    async def test_requires_bgn_store(self, job, settings_store):
        settings_store.values["store_currency"] = "EUR"

        with pytest.raises(CurrencyMismatchError) as exc_info:
            await job.start()

        assert exc_info.value.actual == "EUR"
        assert settings_store.writes == []

    @pytest.mark.asyncio
    async def test_unset_currency_is_a_mismatch(self, job, settings_store):
        del settings_store.values["store_currency"]
        with pytest.raises(CurrencyMismatchError):
            await job.start()

    @pytest.mark.asyncio
    async def test_unauthorized_changes_nothing(self, settings_store, catalog):
        job = MigrationJob(settings_store, catalog, authorizer=lambda: False)

        for operation in (job.start, job.process_batch, job.resume, job.finalize, job.reset, job.status):
            with pytest.raises(UnauthorizedError):
                await operation()

        assert settings_store.writes == []
        assert catalog.saved == []


class TestProcessBatch:
    @pytest.mark.asyncio
    async def test_full_run_in_batches(self, job, catalog):
        await job.start()
        results = await run_to_end(job)

        assert [r.has_more for r in results] == [True, True, False]
        assert [r.processed for r in results] == [50, 50, 20]
        assert results[-1].offset == 120
        assert all(catalog.price(i) == Decimal("12.78") for i in range(1, 121))

        status = await job.status()
        assert status.phase is MigrationPhase.COMPLETE
        assert status.percent_complete == 100.0

    @pytest.mark.asyncio
    async def test_exact_multiple_needs_one_empty_batch(self, settings_store, empty_catalog):
        for entity_id in range(1, 101):
            empty_catalog.add_simple(entity_id)
        job = MigrationJob(settings_store, empty_catalog)
        await job.start()

        results = await run_to_end(job)

        assert [r.processed for r in results] == [50, 50, 0]
        assert [r.has_more for r in results] == [True, True, False]

    @pytest.mark.asyncio
    async def test_requires_started_migration(self, job):
        with pytest.raises(MigrationNotStartedError):
            await job.process_batch()

    @pytest.mark.asyncio
    async def test_negative_offset_rejected(self, job):
        await job.start()
        with pytest.raises(PreconditionError):
            await job.process_batch(offset=-1)

    @pytest.mark.asyncio
    async def test_explicit_offset_and_batch_size(self, job, catalog):
        await job.start()
        result = await job.process_batch(offset=100, batch_size=10)

        assert result.processed == 10
        assert result.offset == 110
        assert catalog.saved == list(range(101, 111))

    @pytest.mark.asyncio
    async def test_sale_price_is_converted(self, job, catalog):
        catalog.add_simple(1, regular="20.00", sale="15.00")
        await job.start()
        await job.process_batch(batch_size=1)

        assert catalog.entities[1].regular_price == Decimal("10.23")
        assert catalog.entities[1].sale_price == Decimal("7.67")

    @pytest.mark.asyncio
    async def test_zero_and_absent_prices_untouched(self, settings_store, empty_catalog):
        empty_catalog.add_simple(1, regular="0", sale=None)
        empty_catalog.add(PricedEntity(id=2))
        job = MigrationJob(settings_store, empty_catalog)
        await job.start()

        result = await job.process_batch()

        assert result.warnings == []
        assert empty_catalog.entities[1].regular_price == Decimal("0")
        assert empty_catalog.entities[2].regular_price is None
        assert empty_catalog.entities[2].sale_price is None


class TestFailures:
    @pytest.mark.asyncio
    async def test_product_failure_becomes_warning(self, job, catalog, settings_store):
        catalog.fail_on_load[5] = InvalidPriceError("abc", 5)
        await job.start()

        result = await job.process_batch()

        assert result.processed == 50
        assert result.has_more
        assert [str(w) for w in result.warnings] == ["Product #5: Invalid price value: 'abc'"]
        assert settings_store.values[LAST_ERROR_KEY]["entity_id"] == 5
        assert catalog.price(6) == Decimal("12.78")

        status = await job.status()
        assert status.phase is MigrationPhase.ERROR_PAUSED
        assert status.last_error.entity_id == 5

    @pytest.mark.asyncio
    async def test_missing_product_is_reported(self, settings_store, empty_catalog):
        empty_catalog.add_simple(1)
        empty_catalog.missing.add(2)
        job = MigrationJob(settings_store, empty_catalog)
        await job.start()

        result = await job.process_batch()

        assert result.processed == 2
        assert [str(w) for w in result.warnings] == ["Product #2: Product could not be loaded"]

    @pytest.mark.asyncio
    async def test_save_failure_leaves_product_unconverted(self, job, catalog):
        catalog.fail_on_save[3] = RuntimeError("disk full")
        await job.start()

        result = await job.process_batch()

        assert result.warnings[0].entity_id == 3
        assert catalog.price(3) == Decimal("25.00")

    @pytest.mark.asyncio
    async def test_crash_resumes_at_first_unreached_product(self, job, catalog, settings_store):
        catalog.fail_on_save[21] = WorkerKilled()
        await job.start()

        with pytest.raises(WorkerKilled):
            await job.process_batch()

        assert settings_store.values["bge_migration_offset"] == 20
        assert catalog.price(20) == Decimal("12.78")
        assert catalog.price(21) == Decimal("25.00")

        del catalog.fail_on_save[21]
        result = await job.resume()

        assert result.offset == 70
        # Converted exactly once on each side of the crash
        assert catalog.price(20) == Decimal("12.78")
        assert catalog.price(21) == Decimal("12.78")

    @pytest.mark.asyncio
    async def test_listing_failure_aborts_batch(self, job, catalog, settings_store):
        await job.start()
        catalog.fail_listing = RuntimeError("connection lost")

        with pytest.raises(CatalogError) as exc_info:
            await job.process_batch()

        assert "connection lost" in str(exc_info.value)
        error = settings_store.values[LAST_ERROR_KEY]
        assert error["entity_id"] is None
        assert settings_store.values["bge_migration_offset"] == 0
        assert settings_store.values["bge_migration_in_progress"] is True

    @pytest.mark.asyncio
    async def test_catalog_error_from_listing_is_not_rewrapped(self, job, catalog):
        await job.start()
        original = CatalogError("Failed to list products")
        catalog.fail_listing = original

        with pytest.raises(CatalogError) as exc_info:
            await job.process_batch()

        assert exc_info.value is original


class TestOffsets:
    @pytest.mark.asyncio
    async def test_offset_past_end_is_clamped(self, job, settings_store):
        await job.start()

        result = await job.process_batch(offset=500)

        assert result.clamped
        assert result.processed == 0
        assert not result.has_more
        assert result.offset == 120
        assert settings_store.values["bge_migration_offset"] == 120
        assert "clamped" in str(result.warnings[0])

    @pytest.mark.asyncio
    async def test_catalog_growth_raises_total(self, job, catalog, settings_store):
        await job.start()
        for entity_id in range(121, 131):
            catalog.add_simple(entity_id)

        results = await run_to_end(job)

        assert results[-1].offset == 130
        assert results[-1].total == 130
        assert settings_store.values["bge_migration_total"] == 130
        assert catalog.price(130) == Decimal("12.78")

    @pytest.mark.asyncio
    async def test_replaying_a_batch_converts_twice(self, job, catalog):
        """Reset + start forgets the cursor; already converted prices are divided again."""
        await job.start()
        await job.process_batch()
        assert catalog.price(1) == Decimal("12.78")

        await job.reset()
        await job.start()
        await job.process_batch()

        assert catalog.price(1) == Decimal("6.53")


class TestVariableProducts:
    @pytest.mark.asyncio
    async def test_variations_follow_parent(self, job, catalog, variable_product):
        await job.start()
        result = await job.process_batch(batch_size=200)

        assert result.processed == 121
        assert result.warnings == []
        assert catalog.entities[501].regular_price == Decimal("5.11")
        assert catalog.entities[502].regular_price == Decimal("10.23")
        assert catalog.entities[502].sale_price == Decimal("7.67")
        assert {500, 501, 502} <= set(catalog.saved)
        assert 599 not in catalog.saved
        assert catalog.resynced == [500]

    @pytest.mark.asyncio
    async def test_variations_are_not_listed(self, job, variable_product):
        state = await job.start()
        assert state.total == 121

    @pytest.mark.asyncio
    async def test_variation_failure_fails_parent(self, job, catalog, variable_product):
        catalog.fail_on_save[502] = RuntimeError("locked")
        await job.start()

        result = await job.process_batch(offset=120, batch_size=10)

        assert [w.entity_id for w in result.warnings] == [500]
        assert catalog.resynced == []


class TestFinalize:
    @pytest.mark.asyncio
    async def test_finalize_switches_currency(self, job, catalog, settings_store):
        await job.start()
        await run_to_end(job)

        status = await job.finalize()

        assert status.store_currency == "EUR"
        assert status.phase is MigrationPhase.IDLE
        assert not any(key in settings_store.values for key in STATE_KEYS)
        assert catalog.cache_invalidations == 1

    @pytest.mark.asyncio
    async def test_non_strict_finalize_trusts_the_caller(self, job, settings_store):
        await job.start()
        await job.process_batch()

        status = await job.finalize()
        assert status.store_currency == "EUR"

    @pytest.mark.asyncio
    async def test_strict_finalize_refuses_while_products_remain(self, settings_store, catalog):
        job = MigrationJob(settings_store, catalog, strict_finalize=True)
        await job.start()
        await job.process_batch()

        with pytest.raises(IncompleteMigrationError) as exc_info:
            await job.finalize()

        assert (exc_info.value.offset, exc_info.value.total) == (50, 120)
        assert settings_store.values["store_currency"] == "BGN"

    @pytest.mark.asyncio
    async def test_strict_finalize_after_full_run(self, job):
        await job.start()
        await run_to_end(job)

        status = await job.finalize(strict=True)
        assert status.store_currency == "EUR"

    @pytest.mark.asyncio
    async def test_strict_finalize_requires_a_run(self, job):
        with pytest.raises(MigrationNotStartedError):
            await job.finalize(strict=True)

    @pytest.mark.asyncio
    async def test_start_refused_after_finalize(self, job):
        await job.start()
        await run_to_end(job)
        await job.finalize()

        with pytest.raises(CurrencyMismatchError):
            await job.start()


class TestTransitions:
    """Which operations each phase accepts, and where they lead."""

    @pytest.mark.asyncio
    async def test_start_refused_while_running(self, job, catalog, settings_store):
        await job.start()
        await job.process_batch()

        with pytest.raises(MigrationAlreadyStartedError) as exc_info:
            await job.start()

        assert (exc_info.value.offset, exc_info.value.total) == (50, 120)
        assert settings_store.values["bge_migration_offset"] == 50

        await job.process_batch()
        # Still converted once
        assert catalog.price(1) == Decimal("12.78")
        assert catalog.price(51) == Decimal("12.78")

    @pytest.mark.asyncio
    async def test_start_refused_while_error_paused(self, job, catalog, settings_store):
        catalog.fail_on_save[3] = RuntimeError("disk full")
        await job.start()
        await job.process_batch()
        writes = len(settings_store.writes)

        with pytest.raises(MigrationAlreadyStartedError):
            await job.start()

        assert len(settings_store.writes) == writes

    @pytest.mark.asyncio
    async def test_start_refused_when_complete_but_not_finalized(self, job):
        await job.start()
        await run_to_end(job)

        with pytest.raises(MigrationAlreadyStartedError):
            await job.start()

    @pytest.mark.asyncio
    async def test_clean_resume_leaves_error_paused(self, job, catalog, settings_store):
        catalog.fail_on_save[3] = RuntimeError("disk full")
        await job.start()
        await job.process_batch()
        assert (await job.status()).phase is MigrationPhase.ERROR_PAUSED

        del catalog.fail_on_save[3]
        result = await job.resume()

        assert result.warnings == []
        status = await job.status()
        assert status.phase is MigrationPhase.RUNNING
        assert status.last_error is None
        assert LAST_ERROR_KEY not in settings_store.values

    @pytest.mark.asyncio
    async def test_resume_after_listing_failure(self, job, catalog):
        await job.start()
        catalog.fail_listing = RuntimeError("connection lost")
        with pytest.raises(CatalogError):
            await job.process_batch()
        assert (await job.status()).phase is MigrationPhase.ERROR_PAUSED

        catalog.fail_listing = None
        result = await job.resume()

        assert result.offset == 50
        assert (await job.status()).phase is MigrationPhase.RUNNING

    @pytest.mark.asyncio
    async def test_new_failure_after_resume_pauses_again(self, job, catalog):
        catalog.fail_on_save[3] = RuntimeError("disk full")
        catalog.fail_on_save[60] = RuntimeError("locked")
        await job.start()
        await job.process_batch()

        await job.resume()

        status = await job.status()
        assert status.phase is MigrationPhase.ERROR_PAUSED
        assert status.last_error.entity_id == 60

    @pytest.mark.asyncio
    async def test_reset_after_finalize_is_idle(self, job):
        await job.start()
        await run_to_end(job)
        await job.finalize()

        status = await job.reset()

        assert status.phase is MigrationPhase.IDLE
        assert status.store_currency == "EUR"

    @pytest.mark.asyncio
    async def test_eur_store_that_never_migrated_is_idle(self, job, settings_store):
        settings_store.values["store_currency"] = "EUR"

        status = await job.status()

        assert status.phase is MigrationPhase.IDLE
        assert status.store_currency == "EUR"

    @pytest.mark.asyncio
    async def test_reset_reopens_start(self, job):
        await job.start()
        await job.process_batch()
        await job.reset()

        state = await job.start()
        assert state.phase is MigrationPhase.RUNNING


class TestResetAndStatus:
    @pytest.mark.asyncio
    async def test_reset_keeps_prices(self, job, catalog):
        await job.start()
        await job.process_batch()

        status = await job.reset()

        assert status.phase is MigrationPhase.IDLE
        assert status.offset == 0
        assert catalog.price(1) == Decimal("12.78")

    @pytest.mark.asyncio
    async def test_status_of_untouched_store(self, job):
        status = await job.status()

        assert status.phase is MigrationPhase.IDLE
        assert status.store_currency == "BGN"
        assert status.last_error is None

    def test_batch_size_must_be_positive(self, settings_store, catalog):
        with pytest.raises(ValueError):
            MigrationJob(settings_store, catalog, batch_size=0)


def test_batch_warning_without_entity():
    assert str(BatchWarning(message="Offset clamped")) == "Offset clamped"


@pytest.mark.asyncio
async def test_run_shares_one_correlation_id(job, caplog):
    with caplog.at_level(logging.INFO, logger="bgn_eurozone.migration.job"):
        await job.start()
        await run_to_end(job)

    entries = [json.loads(r.message) for r in caplog.records if r.name == "bgn_eurozone.migration.job"]
    correlation_ids = {entry["correlation_id"] for entry in entries}

    assert len(entries) >= 4
    assert len(correlation_ids) == 1
    assert correlation_ids.pop().startswith("MIG_")
    assert entries[-1]["context"]["offset"] == 120
