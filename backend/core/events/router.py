"""
Dispatch of inbound bus messages to domain handlers.

The dispatch table maps ``(topic, event_type)`` to a Route and is built once
at construction. A handful of event types are routed on type alone, whatever
topic delivered them. ``route()`` never raises: every outcome comes back as
a RouteResult and is logged here exactly once.
"""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from pydantic import BaseModel

from core.config import settings
from core.exceptions import EnvelopeError, ErrorKind, SyncException
from core.logging import get_structured_logger
from handlers import (
    AssessmentHandler,
    AttendanceHandler,
    ContentHandler,
    CourseHandler,
    EventHandler,
    ProjectHandler,
    UserHandler,
)
from schemas.envelope import (
    AssessmentDeletePayload,
    AssessmentPayload,
    AttendanceDeletePayload,
    AttendancePayload,
    CohortDeletePayload,
    CohortPayload,
    ContentTrackingPayload,
    CourseEnrollmentPayload,
    EventDeletePayload,
    EventEnvelope,
    EventPayload,
    EventType,
    ProjectCreatedPayload,
    ProjectSyncPayload,
    UserCourseStatusPayload,
    UserDeletePayload,
    UserPayload,
    parse_payload,
)
from schemas.sync import RouteResult, RouteStatus


@dataclass(frozen=True)
class Route:
    """A handler bound to the payload model it expects"""
    name: str
    handler: Callable[[Any], Awaitable[BaseModel]]
    payload_model: Type[BaseModel]


@dataclass
class TopicConfig:
    user: str = settings.KAFKA_TOPIC_USER
    event: str = settings.KAFKA_TOPIC_EVENT
    attendance: str = settings.KAFKA_TOPIC_ATTENDANCE
    course: str = settings.KAFKA_TOPIC_COURSE
    assessment: str = settings.KAFKA_TOPIC_ASSESSMENT
    project: str = settings.KAFKA_TOPIC_PROJECT


class EventRouter:
    def __init__(
        self,
        user_handler: UserHandler,
        course_handler: CourseHandler,
        content_handler: ContentHandler,
        attendance_handler: AttendanceHandler,
        assessment_handler: AssessmentHandler,
        event_handler: EventHandler,
        project_handler: ProjectHandler,
        topics: Optional[TopicConfig] = None,
    ):
        self.topics = topics or TopicConfig()
        self.logger = get_structured_logger("event_router")

        enrollment = Route(
            "course.enrollment_created",
            course_handler.handle_course_enrollment_created,
            CourseEnrollmentPayload,
        )
        content_tracking = Route(
            "content.tracking_created",
            content_handler.handle_content_tracking_created,
            ContentTrackingPayload,
        )

        # Routed on event type regardless of topic
        self.overrides: Dict[str, Route] = {
            EventType.COURSE_ENROLLMENT_CREATED.value: enrollment,
            EventType.CONTENT_TRACKING_CREATED.value: content_tracking,
        }

        user_upsert = Route("user.upsert", user_handler.handle_user_upsert, UserPayload)
        cohort_upsert = Route("cohort.upsert", user_handler.handle_cohort_upsert, CohortPayload)
        event_upsert = Route("event.upsert", event_handler.handle_event_upsert, EventPayload)
        attendance_upsert = Route(
            "attendance.upsert", attendance_handler.handle_attendance_upsert, AttendancePayload
        )
        assessment_upsert = Route(
            "assessment.upsert", assessment_handler.handle_assessment_upsert, AssessmentPayload
        )

        table = {
            self.topics.user: {
                EventType.USER_CREATED: user_upsert,
                EventType.USER_UPDATED: user_upsert,
                EventType.USER_DELETED: Route("user.delete", user_handler.handle_user_delete, UserDeletePayload),
                EventType.COHORT_CREATED: cohort_upsert,
                EventType.COHORT_UPDATED: cohort_upsert,
                EventType.COHORT_DELETED: Route(
                    "cohort.delete", user_handler.handle_cohort_delete, CohortDeletePayload
                ),
            },
            self.topics.event: {
                EventType.EVENT_CREATED: event_upsert,
                EventType.EVENT_UPDATED: event_upsert,
                EventType.EVENT_DELETED: Route("event.delete", event_handler.handle_event_delete, EventDeletePayload),
            },
            self.topics.attendance: {
                EventType.ATTENDANCE_CREATED: attendance_upsert,
                EventType.ATTENDANCE_UPDATED: attendance_upsert,
                EventType.ATTENDANCE_DELETED: Route(
                    "attendance.delete", attendance_handler.handle_attendance_delete, AttendanceDeletePayload
                ),
            },
            self.topics.course: {
                EventType.COURSE_ENROLLMENT_CREATED: enrollment,
                EventType.COURSE_STATUS_UPDATED: Route(
                    "course.status_updated", course_handler.handle_user_course_update, UserCourseStatusPayload
                ),
            },
            self.topics.assessment: {
                EventType.ASSESSMENT_CREATED: assessment_upsert,
                EventType.ASSESSMENT_UPDATED: assessment_upsert,
                EventType.ASSESSMENT_DELETED: Route(
                    "assessment.delete", assessment_handler.handle_assessment_delete, AssessmentDeletePayload
                ),
            },
            self.topics.project: {
                EventType.PROJECT_CREATED: Route(
                    "project.created", project_handler.handle_project_created, ProjectCreatedPayload
                ),
                EventType.PROJECT_SYNC_UPDATED: Route(
                    "project.sync_updated", project_handler.handle_project_sync_update, ProjectSyncPayload
                ),
            },
        }

        self.routes: Dict[Tuple[str, str], Route] = {
            (topic, event_type.value): route
            for topic, by_type in table.items()
            for event_type, route in by_type.items()
        }

    @property
    def known_topics(self) -> set:
        return {topic for topic, _ in self.routes}

    def resolve(self, topic: str, event_type: str) -> Optional[Route]:
        return self.overrides.get(event_type) or self.routes.get((topic, event_type))

    async def route(self, topic: str, message: Any) -> RouteResult:
        """Parse, dispatch and await one message; failures come back as results"""
        try:
            envelope = EventEnvelope.from_message(topic, message)
        except EnvelopeError as e:
            self.logger.warning(e.message, metadata=e.metadata)
            return RouteResult(
                status=RouteStatus.REJECTED,
                topic=topic,
                error_kind=ErrorKind.ENVELOPE,
                error=e.message,
            )

        event_type = envelope.event_type
        self.logger.debug(
            f"Received {event_type} from {topic}",
            metadata={"topic": topic, "event_type": event_type},
        )

        route = self.resolve(topic, event_type)
        if route is None:
            reason = "Unknown topic" if topic not in self.known_topics else "Unhandled event type"
            self.logger.warning(
                f"{reason}: {event_type} on {topic}",
                metadata={"topic": topic, "event_type": event_type},
            )
            return RouteResult(status=RouteStatus.UNHANDLED, topic=topic, event_type=event_type)

        try:
            payload = parse_payload(route.payload_model, envelope.data)
            result = await route.handler(payload)
        except SyncException as e:
            self.logger.error(
                f"Failed to handle {event_type} from {topic}: {e.message}",
                metadata={
                    "topic": topic,
                    "event_type": event_type,
                    "handler": route.name,
                    "error_kind": e.error_kind.value,
                    "retryable": e.retryable,
                    "details": e.metadata,
                },
                exception=e,
            )
            return RouteResult(
                status=RouteStatus.FAILED,
                topic=topic,
                event_type=event_type,
                handler=route.name,
                error_kind=e.error_kind,
                error=e.message,
            )
        except Exception as e:
            self.logger.error(
                f"Unexpected error handling {event_type} from {topic}",
                metadata={"topic": topic, "event_type": event_type, "handler": route.name},
                exception=e,
            )
            return RouteResult(
                status=RouteStatus.FAILED,
                topic=topic,
                event_type=event_type,
                handler=route.name,
                error_kind=ErrorKind.UNEXPECTED,
                error=str(e),
            )

        self.logger.info(
            f"Routed {event_type} from {topic} to {route.name}",
            metadata={"topic": topic, "event_type": event_type, "handler": route.name},
        )
        return RouteResult(
            status=RouteStatus.ROUTED,
            topic=topic,
            event_type=event_type,
            handler=route.name,
            result=result.model_dump(mode="json"),
        )
