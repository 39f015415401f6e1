import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from core.config import settings
from core.database import db_manager, initialize_db
from core.events import EventRouter
from core.exceptions import SyncException, format_error
from core.kafka import KafkaEventConsumer
from core.logging import get_structured_logger, setup_logging
from handlers import (
    AssessmentHandler,
    AttendanceHandler,
    ContentHandler,
    CourseHandler,
    EventHandler,
    ProjectHandler,
    UserHandler,
)
from jobs.content_sync import ContentSyncJob
from routes import health_router, sync_router
from services.database import DatabaseService
from services.external_api import ExternalApiService
from services.transform import TransformService

logger = get_structured_logger("main")


def build_router(db_service: DatabaseService, transform_service: Optional[TransformService] = None) -> EventRouter:
    """Wire every domain handler onto one event router"""
    transform_service = transform_service or TransformService()
    return EventRouter(
        user_handler=UserHandler(db_service, transform_service),
        course_handler=CourseHandler(db_service, transform_service),
        content_handler=ContentHandler(db_service, transform_service),
        attendance_handler=AttendanceHandler(db_service, transform_service),
        assessment_handler=AssessmentHandler(db_service, transform_service),
        event_handler=EventHandler(db_service, transform_service),
        project_handler=ProjectHandler(db_service, transform_service),
    )



def log_consumer_exit(task: asyncio.Task) -> None:
    """Done-callback for the consumer task; cancellation at shutdown is not reported"""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Kafka consumer task stopped with an error", metadata={"task": task.get_name()}, exception=exc)
    else:
        logger.warning("Kafka consumer task exited", metadata={"task": task.get_name()})


async def stop_consumer_task(task: asyncio.Task) -> None:
    """Cancel the consumer and wait for it to finish"""
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        logger.info("Kafka consumer task cancelled successfully during shutdown.")
    except Exception as e:
        logger.warning("Kafka consumer task ended with an error before shutdown", exception=e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup event
    setup_logging(
        level=settings.LOG_LEVEL,
        log_format=settings.LOG_FORMAT,
        enable_file_logging=settings.LOG_TO_FILE,
        log_dir=settings.LOG_DIR,
    )
    logger.info("Starting sync service", metadata={"environment": settings.ENVIRONMENT})

    initialize_db(settings.SQLALCHEMY_DATABASE_URI, settings.ENVIRONMENT == "local")
    if settings.DB_CREATE_TABLES:
        await db_manager.create_all()

    db_service = DatabaseService(db_manager.session_factory)
    event_router = build_router(db_service)
    content_sync_job = ContentSyncJob(
        external_api=ExternalApiService(),
        course_handler=CourseHandler(db_service),
    )
    app.state.event_router = event_router
    app.state.content_sync_job = content_sync_job

    consumer_task = None
    if settings.KAFKA_CONSUMER_ENABLED:
        consumer = KafkaEventConsumer(event_router)
        consumer_task = asyncio.create_task(consumer.run(), name="kafka-consumer")
        consumer_task.add_done_callback(log_consumer_exit)
        logger.info("Kafka consumer task created", metadata={"topics": consumer.topics})

    if settings.CONTENT_SYNC_ENABLED:
        await content_sync_job.start()

    yield

    # Shutdown event
    content_sync_job.shutdown()

    if consumer_task is not None:
        await stop_consumer_task(consumer_task)

    await db_manager.dispose()
    logger.info("Sync service stopped")


app = FastAPI(
    title="Learning Data Sync",
    description="Consumes learning-platform events and reconciles external content into the reporting store.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(sync_router, prefix="/v1")


@app.get("/")
async def read_root():
    return {"service": settings.SERVICE_NAME, "status": "running"}


async def sync_exception_handler(request: Request, exc: SyncException):
    logger.error(
        f"Unhandled sync error on {request.url.path}",
        metadata={"path": request.url.path, "error_kind": exc.error_kind.value},
        exception=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE if exc.retryable else status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": format_error(exc, path=request.url.path)},
    )


app.add_exception_handler(SyncException, sync_exception_handler)
