from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from core.dependencies import get_content_sync_job
from jobs.content_sync import ContentSyncJob

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/status")
async def get_sync_status(job: ContentSyncJob = Depends(get_content_sync_job)):
    """Snapshot of the content sync job counters"""
    return job.get_status().model_dump(mode="json", by_alias=True)


@router.post("/trigger", status_code=status.HTTP_202_ACCEPTED)
async def trigger_sync(job: ContentSyncJob = Depends(get_content_sync_job)):
    """
    Run the content sync now and wait for it to finish.
    Returns ``executed: false`` when a run is already in progress.
    """
    result = await job.trigger_manual_execution()
    return {
        "run": result.model_dump(mode="json"),
        "jobStatus": job.get_status().model_dump(mode="json", by_alias=True),
    }


@router.get("/health")
async def sync_health(job: ContentSyncJob = Depends(get_content_sync_job)):
    result = await job.health_check()
    status_code = status.HTTP_200_OK if result.status == "healthy" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=jsonable_encoder(result))
