from fastapi import HTTPException, Request, status

from core.database import db_manager, DatabaseManager
from jobs.content_sync import ContentSyncJob


def get_content_sync_job(request: Request) -> ContentSyncJob:
    """Content sync job created during application startup"""
    job = getattr(request.app.state, "content_sync_job", None)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Content sync job is not initialized",
        )
    return job


def get_db_manager() -> DatabaseManager:
    return db_manager
