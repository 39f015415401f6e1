from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.exceptions import ErrorKind


class HandlerAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    NOT_FOUND = "not_found"
    NOOP = "noop"


class UpsertResult(BaseModel):
    """Effect of one gateway write"""
    table: str
    key: Dict[str, Any]
    action: HandlerAction


class TrackingInsertResult(BaseModel):
    inserted: int = 0
    skipped: int = 0


class HandlerResult(BaseModel):
    """Summary returned by every domain handler"""
    success: bool = True
    entity: str
    action: HandlerAction
    key: Dict[str, Any] = Field(default_factory=dict)
    affected: int = 0
    details: Dict[str, Any] = Field(default_factory=dict)


class ProjectSyncResult(BaseModel):
    success: bool = True
    project_id: str
    status: Optional[str] = None
    total_tasks: int = 0
    completed_tasks: int = 0
    inserted: int = 0
    skipped: int = 0


class RouteStatus(str, Enum):
    ROUTED = "routed"
    UNHANDLED = "unhandled"
    REJECTED = "rejected"
    FAILED = "failed"


class RouteResult(BaseModel):
    """Outcome of routing a single bus message"""
    status: RouteStatus
    topic: str
    event_type: Optional[str] = None
    handler: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None


class SubPullResult(BaseModel):
    """Outcome of pulling one external collection"""
    resource: str
    completed: bool = True
    total_fetched: int = 0
    total_processed: int = 0
    total_failed: int = 0
    failed_identifiers: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    duration_ms: float = 0.0


class JobRunResult(BaseModel):
    executed: bool
    success: bool = False
    reason: Optional[str] = None
    sub_pulls: List[SubPullResult] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class CronJobStatus(BaseModel):
    """Process-wide state of the scheduled content sync"""
    model_config = ConfigDict(validate_assignment=True, alias_generator=to_camel, populate_by_name=True)

    is_running: bool = False
    last_execution: Optional[datetime] = None
    last_success: Optional[datetime] = None
    last_error: Optional[str] = None
    total_executions: int = 0
    successful_executions: int = 0
    failed_executions: int = 0


class HealthCheckResult(BaseModel):
    status: Literal["healthy", "unhealthy"]
    details: Dict[str, Any] = Field(default_factory=dict)
