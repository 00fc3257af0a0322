"""Transaction reconciliation endpoints."""

from fastapi import APIRouter, Depends, status

from budget_app.api.deps import get_current_user, get_reconciliation_service
from budget_app.models.user import User
from budget_app.schemas.transaction import (
    BulletproofSyncRequest,
    BulletproofSyncResponse,
    CleanupDuplicatesResponse,
    SynchronizeRequest,
    SynchronizeResponse,
)
from budget_app.services.reconciliation import ReconciliationService

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post(
    "/synchronize",
    response_model=SynchronizeResponse,
    status_code=status.HTTP_200_OK,
    summary="Synchronize an imported statement",
    description="""
    Replace the user's transactions between the earliest and latest date of the
    batch, for the account named by the first row.

    - Rows matching a previously annotated transaction (same account, day,
      description and amount) get their category, note, links and status back.
    - Repeated rows within the batch are inserted once and counted as skipped.
    - Rows in the window that are missing from the batch are removed.
    - An empty batch changes nothing.
    """,
)
async def synchronize_transactions(
    request: SynchronizeRequest,
    current_user: User = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> SynchronizeResponse:
    """
    Synchronize transactions over the window derived from the batch.

    Args:
        request: Batch of imported rows
        current_user: Authenticated user
        service: Reconciliation service

    Returns:
        Created/deleted/skipped counts
    """
    return await service.synchronize(current_user.id, request)


@router.post(
    "/bulletproof-sync",
    response_model=BulletproofSyncResponse,
    status_code=status.HTTP_200_OK,
    summary="Synchronize a statement over an explicit window",
    description="""
    Replace the transactions of `accountId` between `startDate` and `endDate`
    (widened to whole days) with the batch, restoring user annotations on
    matching rows. Rows dated outside the window are rejected.
    """,
)
async def bulletproof_sync_transactions(
    request: BulletproofSyncRequest,
    current_user: User = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> BulletproofSyncResponse:
    """
    Synchronize transactions over an explicit account window.

    Args:
        request: Account, window bounds and imported rows
        current_user: Authenticated user
        service: Reconciliation service

    Returns:
        Deleted/created/restored/duplicates-removed counts
    """
    return await service.bulletproof_sync(current_user.id, request)


@router.post(
    "/cleanup-duplicates",
    response_model=CleanupDuplicatesResponse,
    status_code=status.HTTP_200_OK,
    summary="Remove duplicate transactions",
    description="""
    Find transactions sharing account, day, description and amount across all
    of the user's accounts and keep one per group: a manually changed row if
    there is one, otherwise the most recently created.
    """,
)
async def cleanup_duplicate_transactions(
    current_user: User = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
) -> CleanupDuplicatesResponse:
    """Run the duplicate sweep for the current user."""
    return await service.cleanup_duplicates(current_user.id)
