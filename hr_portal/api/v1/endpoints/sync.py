"""API endpoints for the spreadsheet sync."""
import logging

from fastapi import APIRouter, HTTPException, status

from hr_portal.api.deps import Repo, CurrentUser, log_activity
from hr_portal.config import settings
from hr_portal.jobs.scheduler import get_job_status
from hr_portal.schemas.hr import CompanyConfig
from hr_portal.services.sync_service import SyncService, SyncClient, SyncState, SyncAction

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_endpoint() -> SyncClient:
    client = SyncClient()
    if not client.configured:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Sync endpoint URL is not configured"
        )
    return client


@router.get("/status")
async def get_sync_status(repo: Repo, current_user: CurrentUser):
    """Current sync state, pending local changes and scheduled jobs."""
    service = SyncService(repo)
    meta = await repo.load_sync_meta()
    return {
        **service.status.to_dict(),
        "enabled": settings.SYNC_ENABLED,
        "configured": service.client.configured,
        "has_local_changes": await service.has_local_changes(),
        "local_version": meta.get("local_version", 0),
        "jobs": get_job_status(),
    }


@router.post("")
async def run_sync(repo: Repo, current_user: CurrentUser):
    """
    Run one sync pass now.

    A conflict or network failure is reported in the returned status, not
    as an HTTP error.
    """
    result = await SyncService(repo, client=_require_endpoint()).sync()
    if result.state == SyncState.SUCCESS and result.last_action != SyncAction.NONE:
        await log_activity(repo, current_user, f"synced with remote ({result.last_action.value.lower()})")
    return result.to_dict()


@router.post("/download")
async def download_from_cloud(repo: Repo, current_user: CurrentUser):
    """Merge the remote dataset over local data."""
    service = SyncService(repo, client=_require_endpoint())
    applied = await service.download_from_cloud()
    if applied:
        await log_activity(repo, current_user, "downloaded data from remote")
    return {"applied": applied, **service.status.to_dict()}


@router.post("/upload")
async def upload_to_cloud(repo: Repo, current_user: CurrentUser, force: bool = False):
    """Push local data. Skipped when nothing changed since the last sync unless forced."""
    service = SyncService(repo, client=_require_endpoint())
    uploaded = await service.upload_to_cloud(force=force)
    if uploaded:
        await log_activity(repo, current_user, "uploaded data to remote")
    return {"uploaded": uploaded, **service.status.to_dict()}


@router.get("/company-config", response_model=CompanyConfig)
async def get_company_config(repo: Repo, current_user: CurrentUser):
    """Company name and logo from the remote, falling back to the cached copy."""
    return await SyncService(repo).fetch_company_config()
