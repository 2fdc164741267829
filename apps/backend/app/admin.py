"""
Admin endpoints for running the pipeline by hand.
"""
import hmac
import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends, Header, Query, Request
from pydantic import BaseModel

from app.config import get_settings
from crawler.plugins import get_profile_registry
from core.store import StoreError

logger = logging.getLogger(__name__)
router = APIRouter()


class PendingJob(BaseModel):
    id: str
    url: str
    title: str
    company: str
    location: str
    description: str
    qualifications: str
    skills: List[str]
    posted_date: str
    status: str
    created_at: str
    posted_at: Optional[str]
    email_subject: str
    email_date: str


class PendingJobsResponse(BaseModel):
    count: int
    jobs: List[PendingJob]


class RunResult(BaseModel):
    status: str
    message: Optional[str] = None
    duration_ms: Optional[int] = None
    processed: Optional[int] = None
    errors: Optional[int] = None
    duplicates: Optional[int] = None
    posted: Optional[int] = None
    failed: Optional[int] = None
    jobs: Optional[int] = None
    messages: Optional[int] = None


def require_admin(x_admin_token: Optional[str] = Header(default=None)):
    """Dependency to gate admin routes: dev mode, or a matching X-Admin-Token."""
    settings = get_settings()
    if settings.is_dev:
        return
    if settings.admin_token and x_admin_token and hmac.compare_digest(x_admin_token, settings.admin_token):
        return
    raise HTTPException(status_code=403, detail="Admin routes require dev mode or a valid admin token")


def _services(request: Request):
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return services


def _poster(request: Request):
    poster = _services(request).poster
    if poster is None:
        raise HTTPException(status_code=503, detail="Posting disabled: Discord is not configured")
    return poster


@router.post("/admin/scrape/run", response_model=RunResult, response_model_exclude_none=True)
async def run_scrape(request: Request, _: None = Depends(require_admin)):
    """Run one scrape pass now. Returns 'skipped' if one is already running."""
    result = await _services(request).orchestrator.run_once()
    if result['status'] == 'fail':
        raise HTTPException(status_code=500, detail=result.get('message', 'Scrape failed'))
    return result


@router.get("/admin/jobs/pending", response_model=PendingJobsResponse)
async def list_pending_jobs(
    request: Request,
    limit: int = Query(10, ge=1, le=100),
    _: None = Depends(require_admin)
):
    store = _services(request).store
    try:
        records = await store.query('status', 'pending', limit=limit)
    except StoreError as e:
        logger.error(f"[admin] Failed to list pending jobs: {e}")
        raise HTTPException(status_code=500, detail="Failed to list pending jobs")

    return {
        'count': len(records),
        'jobs': [dict(record.to_dict(), id=record.id) for record in records],
    }


@router.post("/admin/jobs/post", response_model=RunResult, response_model_exclude_none=True)
async def post_pending_jobs(
    request: Request,
    limit: int = Query(10, ge=1, le=100),
    _: None = Depends(require_admin)
):
    """Claim and publish up to ``limit`` pending jobs."""
    return await _poster(request).post_pending(limit)


@router.post("/admin/jobs/digest", response_model=RunResult, response_model_exclude_none=True)
async def post_pending_digest(
    request: Request,
    limit: int = Query(25, ge=1, le=250),
    _: None = Depends(require_admin)
):
    """Post a listing of pending jobs without claiming them."""
    return await _poster(request).post_digest(limit)


@router.get("/admin/profiles")
async def list_site_profiles(_: None = Depends(require_admin)):
    """Site profiles in classification order, generic fallback last."""
    profiles = get_profile_registry().list_profiles()
    return {'count': len(profiles), 'profiles': profiles}
