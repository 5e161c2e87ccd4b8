"""
FastAPI router for the catalog currency migration.

The admin client drives the run: start, then POST /migration/batch until
``has_more`` is false, then finalize. A failed request leaves the saved
offset intact; POST /migration/resume continues from it.
"""

import logging

from fastapi import APIRouter, Depends

from ..api.models import BatchRequest, FinalizeRequest, MigrationStartResponse, OperationResult
from ..shared.dependencies import get_migration_job
from .job import BatchResult, MigrationJob, MigrationStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/migration", tags=["migration"])


@router.get(
    "/status",
    response_model=MigrationStatus,
    summary="Get migration status",
    description="Persisted offset, total, last error and the derived phase",
)
async def get_migration_status(job: MigrationJob = Depends(get_migration_job)):
    return await job.status()


@router.post(
    "/start",
    response_model=MigrationStartResponse,
    summary="Start a migration",
    description="Count every product and open a run with the offset at zero",
)
async def start_migration(job: MigrationJob = Depends(get_migration_job)):
    state = await job.start()
    return MigrationStartResponse(
        count=state.total, state=state, operation_id=job.log.correlation_id
    )


@router.post(
    "/batch",
    response_model=BatchResult,
    summary="Process one batch",
    description="Convert the next batch of products from BGN to EUR",
)
async def process_batch(
    request: BatchRequest | None = None,
    job: MigrationJob = Depends(get_migration_job),
):
    request = request or BatchRequest()
    return await job.process_batch(offset=request.offset, batch_size=request.batch_size)


@router.post(
    "/resume",
    response_model=BatchResult,
    summary="Resume an interrupted migration",
)
async def resume_migration(job: MigrationJob = Depends(get_migration_job)):
    return await job.resume()


@router.post(
    "/finalize",
    response_model=MigrationStatus,
    summary="Switch the store currency to EUR",
    description="Clears the migration state and the cached prices",
)
async def finalize_migration(
    request: FinalizeRequest | None = None,
    job: MigrationJob = Depends(get_migration_job),
):
    strict = request.strict if request else None
    return await job.finalize(strict=strict)


@router.post(
    "/reset",
    response_model=OperationResult,
    summary="Reset migration progress",
    description="Forget the saved offset; converted prices are not reverted",
)
async def reset_migration(job: MigrationJob = Depends(get_migration_job)):
    await job.reset()
    return OperationResult(success=True, message="Migration progress reset")
