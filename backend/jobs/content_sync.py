"""
Scheduled pull of course and question-set documents from the content API.

Runs daily on a cron trigger and on demand. Only one run is ever in flight:
a trigger that arrives while a run is active (or after shutdown) is logged
and ignored without touching the counters.
"""
from datetime import datetime, timezone
from time import perf_counter
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from core.config import settings
from core.exceptions import SyncException, TransportError
from core.logging import get_structured_logger
from handlers import CourseHandler
from schemas.external import ContentResource, ExternalApiResponse
from schemas.sync import CronJobStatus, HealthCheckResult, JobRunResult, SubPullResult
from services.external_api import ExternalApiService

structured_logger = get_structured_logger("content_sync")

JOB_ID = "content-sync"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ContentSyncJob:
    """Single-flight reconciliation of external content into the local store"""

    def __init__(
        self,
        external_api: ExternalApiService,
        course_handler: CourseHandler,
        schedule: Optional[str] = None,
        timezone_name: Optional[str] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.external_api = external_api
        self.course_handler = course_handler
        self.schedule = schedule or settings.CONTENT_SYNC_SCHEDULE
        self.timezone_name = timezone_name or settings.CONTENT_SYNC_TIMEZONE
        self.scheduler = scheduler
        self.clock = clock or _utc_now

        self._status = CronJobStatus()
        self._accepting = True

    # --- lifecycle ---

    async def start(self) -> None:
        """Register the cron trigger and start the scheduler"""
        if self.scheduler is None:
            self.scheduler = AsyncIOScheduler(timezone=self.timezone_name)

        self.scheduler.add_job(
            func=self.execute,
            trigger=CronTrigger.from_crontab(self.schedule, timezone=self.timezone_name),
            id=JOB_ID,
            name="Daily content sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )
        if not self.scheduler.running:
            self.scheduler.start()
        self._accepting = True

        structured_logger.info(
            "Content sync job scheduled",
            metadata={"schedule": self.schedule, "timezone": self.timezone_name},
        )

        if not await self.external_api.test_connection():
            structured_logger.warning("External API connection test failed on startup")

    def shutdown(self) -> None:
        """Stop accepting triggers; a run already in flight finishes on its own"""
        self._accepting = False
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        structured_logger.info("Content sync job shut down")

    # --- state ---

    def get_status(self) -> CronJobStatus:
        return self._status.model_copy()

    @property
    def is_running(self) -> bool:
        return self._status.is_running

    # --- execution ---

    async def trigger_manual_execution(self) -> JobRunResult:
        structured_logger.info("Manual content sync execution triggered")
        return await self.execute()

    async def execute(self) -> JobRunResult:
        """Run both sub-pulls once, unless a run is already in progress"""
        if not self._accepting:
            structured_logger.warning("Content sync job is shut down, ignoring trigger")
            return JobRunResult(executed=False, reason="shutdown")

        # Guard check and set happen with no await in between
        if self._status.is_running:
            structured_logger.warning("Content sync job is already running, skipping this execution")
            return JobRunResult(executed=False, reason="already_running")

        self._status.is_running = True
        started_at = self.clock()
        self._status.last_execution = started_at
        self._status.total_executions += 1
        execution_number = self._status.total_executions

        sub_pulls = []
        success = False
        try:
            structured_logger.info(
                "Starting content sync execution",
                metadata={"execution_number": execution_number, "timestamp": started_at.isoformat()},
            )

            sub_pulls.append(await self._pull(
                ContentResource.COURSE,
                self.external_api.fetch_course_data,
                self.course_handler.handle_course_upsert,
            ))
            sub_pulls.append(await self._pull(
                ContentResource.QUESTION_SET,
                self.external_api.fetch_question_set_data,
                self.course_handler.handle_question_set_upsert,
            ))

            aborted = [pull for pull in sub_pulls if not pull.completed]
            if aborted:
                self._status.failed_executions += 1
                self._status.last_error = "; ".join(f"{pull.resource}: {pull.error}" for pull in aborted)
                structured_logger.error(
                    "Content sync execution failed",
                    metadata={
                        "execution_number": execution_number,
                        "failed_resources": [pull.resource for pull in aborted],
                        "error_count": self._status.failed_executions,
                    },
                )
            else:
                self._status.last_success = self.clock()
                self._status.successful_executions += 1
                self._status.last_error = None
                success = True
                structured_logger.info(
                    "Content sync execution completed successfully",
                    metadata={
                        "execution_number": execution_number,
                        "processed": {pull.resource: pull.total_processed for pull in sub_pulls},
                    },
                )
        except Exception as e:
            self._status.failed_executions += 1
            self._status.last_error = str(e) or type(e).__name__
            structured_logger.error(
                "Content sync execution failed",
                metadata={"execution_number": execution_number, "error_count": self._status.failed_executions},
                exception=e,
            )
        finally:
            self._status.is_running = False

        return JobRunResult(
            executed=True,
            success=success,
            sub_pulls=sub_pulls,
            started_at=started_at,
            finished_at=self.clock(),
        )

    async def _pull(
        self,
        resource: ContentResource,
        fetch: Callable[[], Awaitable[ExternalApiResponse]],
        upsert: Callable[[dict], Awaitable[object]],
    ) -> SubPullResult:
        start = perf_counter()
        result = SubPullResult(resource=resource.value)

        structured_logger.info(f"Fetching {resource.value} data from content API")
        try:
            response = await fetch()
        except TransportError as e:
            result.completed = False
            result.error = e.message
            result.duration_ms = (perf_counter() - start) * 1000
            structured_logger.error(
                f"Failed to fetch {resource.value} data",
                metadata={"resource": resource.value, "status_code": e.status_code},
                exception=e,
            )
            return result
        except Exception as e:
            # Contained to this sub-pull; the next resource still runs
            result.completed = False
            result.error = str(e) or type(e).__name__
            result.duration_ms = (perf_counter() - start) * 1000
            structured_logger.error(
                f"Unexpected failure fetching {resource.value} data",
                metadata={"resource": resource.value},
                exception=e,
            )
            return result

        if response.is_empty:
            structured_logger.info(
                f"No {resource.value} data available from content API",
                metadata={"success": response.success, "data_length": len(response.data)},
            )
            result.duration_ms = (perf_counter() - start) * 1000
            return result

        result.total_fetched = len(response.data)
        structured_logger.info(f"Processing {result.total_fetched} {resource.value} items")

        for item in response.data:
            identifier = item.get("identifier") if isinstance(item, dict) else None
            try:
                await upsert(item)
                result.total_processed += 1
            except Exception as e:
                result.total_failed += 1
                result.failed_identifiers.append(str(identifier))
                kind = e.error_kind.value if isinstance(e, SyncException) else "unexpected"
                structured_logger.error(
                    f"Failed to process {resource.value} data",
                    metadata={"identifier": identifier, "error_kind": kind},
                    exception=e,
                )

        result.duration_ms = (perf_counter() - start) * 1000
        structured_logger.info(
            f"Successfully processed {result.total_processed} {resource.value} items",
            metadata={
                "resource": resource.value,
                "processed": result.total_processed,
                "failed": result.total_failed,
                "duration_ms": result.duration_ms,
            },
        )
        return result

    # --- health ---

    async def health_check(self) -> HealthCheckResult:
        """Probe API reachability and report job state; never raises"""
        status = self.get_status()
        try:
            api_connected = await self.external_api.test_connection()
        except Exception as e:
            return HealthCheckResult(
                status="unhealthy",
                details={"error": str(e), "jobStatus": status.model_dump(mode="json", by_alias=True)},
            )

        return HealthCheckResult(
            status="healthy" if api_connected else "unhealthy",
            details={
                "apiConnected": api_connected,
                "jobStatus": status.model_dump(mode="json", by_alias=True),
                "lastExecution": status.last_execution,
                "lastSuccess": status.last_success,
                "lastError": status.last_error,
            },
        )
