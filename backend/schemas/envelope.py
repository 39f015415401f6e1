"""
Inbound event envelope and the typed payload variant for each event family.

Payloads are parsed once, where the router picks a route, so handlers only ever
see a known shape. Unknown keys are kept (``extra="allow"``) because producers
add fields faster than this service consumes them.
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from core.exceptions import EnvelopeError, ValidationError


class EventType(str, Enum):
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DELETED = "USER_DELETED"
    COHORT_CREATED = "COHORT_CREATED"
    COHORT_UPDATED = "COHORT_UPDATED"
    COHORT_DELETED = "COHORT_DELETED"
    EVENT_CREATED = "EVENT_CREATED"
    EVENT_UPDATED = "EVENT_UPDATED"
    EVENT_DELETED = "EVENT_DELETED"
    ATTENDANCE_CREATED = "ATTENDANCE_CREATED"
    ATTENDANCE_UPDATED = "ATTENDANCE_UPDATED"
    ATTENDANCE_DELETED = "ATTENDANCE_DELETED"
    ASSESSMENT_CREATED = "ASSESSMENT_CREATED"
    ASSESSMENT_UPDATED = "ASSESSMENT_UPDATED"
    ASSESSMENT_DELETED = "ASSESSMENT_DELETED"
    COURSE_ENROLLMENT_CREATED = "COURSE_ENROLLMENT_CREATED"
    COURSE_STATUS_UPDATED = "COURSE_STATUS_UPDATED"
    CONTENT_TRACKING_CREATED = "CONTENT_TRACKING_CREATED"
    PROJECT_CREATED = "PROJECT_CREATED"
    PROJECT_SYNC_UPDATED = "PROJECT_SYNC_UPDATED"


class EventEnvelope(BaseModel):
    """One inbound bus message: ``{eventType, data}`` delivered on ``topic``"""
    model_config = ConfigDict(populate_by_name=True)

    topic: str
    event_type: str = Field(alias="eventType")
    data: Dict[str, Any]

    @classmethod
    def from_message(cls, topic: str, message: Any) -> "EventEnvelope":
        """Build an envelope or raise EnvelopeError when eventType or data is missing"""
        if not isinstance(message, dict):
            raise EnvelopeError(
                f"Invalid event received from topic {topic}: message is not a JSON object",
                metadata={"topic": topic},
            )

        event_type = message.get("eventType")
        data = message.get("data")

        if not event_type or not isinstance(event_type, str) or data is None:
            raise EnvelopeError(
                f"Invalid event received from topic {topic}: missing eventType or data",
                metadata={"topic": topic, "event_type": event_type, "has_data": data is not None},
            )
        if not isinstance(data, dict):
            raise EnvelopeError(
                f"Invalid event received from topic {topic}: data is not an object",
                metadata={"topic": topic, "event_type": event_type},
            )

        return cls(topic=topic, eventType=event_type, data=data)


class PayloadModel(BaseModel):
    """Base for family payloads: camelCase on the wire, snake_case in code"""
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)


def _key(*names: str) -> AliasChoices:
    return AliasChoices(*names)


# --- User service ---

class UserPayload(PayloadModel):
    user_id: str = Field(min_length=1, validation_alias=_key("userId", "user_id", "identifier"))
    username: Optional[str] = None
    first_name: Optional[str] = Field(default=None, validation_alias=_key("firstName", "first_name"))
    middle_name: Optional[str] = Field(default=None, validation_alias=_key("middleName", "middle_name"))
    last_name: Optional[str] = Field(default=None, validation_alias=_key("lastName", "last_name"))
    name: Optional[str] = None
    email: Optional[str] = None
    mobile: Optional[str] = None
    gender: Optional[str] = None
    dob: Optional[str] = None
    status: Optional[str] = None
    tenant_id: Optional[str] = Field(default=None, validation_alias=_key("tenantId", "tenant_id"))
    custom_fields: Optional[Union[List[Any], Dict[str, Any]]] = Field(
        default=None, validation_alias=_key("customFields", "custom_fields"))
    created_at: Optional[str] = Field(default=None, validation_alias=_key("createdAt", "created_at"))
    updated_at: Optional[str] = Field(default=None, validation_alias=_key("updatedAt", "updated_at"))


class UserDeletePayload(PayloadModel):
    user_id: str = Field(min_length=1, validation_alias=_key("userId", "user_id", "identifier"))


class CohortPayload(PayloadModel):
    cohort_id: str = Field(min_length=1, validation_alias=_key("cohortId", "cohort_id", "identifier"))
    name: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    parent_id: Optional[str] = Field(default=None, validation_alias=_key("parentId", "parent_id"))
    tenant_id: Optional[str] = Field(default=None, validation_alias=_key("tenantId", "tenant_id"))
    academic_year_id: Optional[str] = Field(
        default=None, validation_alias=_key("academicYearId", "academic_year_id"))
    custom_fields: Optional[Union[List[Any], Dict[str, Any]]] = Field(
        default=None, validation_alias=_key("customFields", "custom_fields"))


class CohortDeletePayload(PayloadModel):
    cohort_id: str = Field(min_length=1, validation_alias=_key("cohortId", "cohort_id", "identifier"))


# --- Event service ---

class EventPayload(PayloadModel):
    event_id: str = Field(min_length=1, validation_alias=_key("eventId", "event_id", "identifier"))
    title: Optional[str] = None
    short_description: Optional[str] = Field(
        default=None, validation_alias=_key("shortDescription", "short_description"))
    event_type: Optional[str] = Field(default=None, validation_alias=_key("eventType", "event_type"))
    status: Optional[str] = None
    start_datetime: Optional[str] = Field(default=None, validation_alias=_key("startDatetime", "start_datetime"))
    end_datetime: Optional[str] = Field(default=None, validation_alias=_key("endDatetime", "end_datetime"))
    location: Optional[str] = None
    online_provider: Optional[str] = Field(default=None, validation_alias=_key("onlineProvider", "online_provider"))
    is_recurring: Optional[bool] = Field(default=None, validation_alias=_key("isRecurring", "is_recurring"))
    tenant_id: Optional[str] = Field(default=None, validation_alias=_key("tenantId", "tenant_id"))
    meta_data: Optional[Dict[str, Any]] = Field(default=None, validation_alias=_key("metadata", "metaData"))


class EventDeletePayload(PayloadModel):
    event_id: str = Field(min_length=1, validation_alias=_key("eventId", "event_id", "identifier"))


# --- Attendance service ---

class AttendancePayload(PayloadModel):
    attendance_id: str = Field(min_length=1, validation_alias=_key("attendanceId", "attendance_id", "identifier"))
    user_id: Optional[str] = Field(default=None, validation_alias=_key("userId", "user_id"))
    context: Optional[str] = None
    context_id: Optional[str] = Field(default=None, validation_alias=_key("contextId", "context_id"))
    attendance_date: Optional[str] = Field(default=None, validation_alias=_key("attendanceDate", "attendance_date"))
    attendance: Optional[str] = None
    late: Optional[bool] = None
    absent_reason: Optional[str] = Field(default=None, validation_alias=_key("absentReason", "absent_reason"))
    tenant_id: Optional[str] = Field(default=None, validation_alias=_key("tenantId", "tenant_id"))
    updated_at: Optional[str] = Field(default=None, validation_alias=_key("updatedAt", "updated_at"))


class AttendanceDeletePayload(PayloadModel):
    attendance_id: str = Field(min_length=1, validation_alias=_key("attendanceId", "attendance_id", "identifier"))


# --- Assessment service ---

class AssessmentPayload(PayloadModel):
    assessment_tracking_id: str = Field(
        min_length=1,
        validation_alias=_key("assessmentTrackingId", "assessment_tracking_id", "identifier"),
    )
    user_id: Optional[str] = Field(default=None, validation_alias=_key("userId", "user_id"))
    course_id: Optional[str] = Field(default=None, validation_alias=_key("courseId", "course_id"))
    content_id: Optional[str] = Field(default=None, validation_alias=_key("contentId", "content_id"))
    attempt_id: Optional[str] = Field(default=None, validation_alias=_key("attemptId", "attempt_id"))
    assessment_type: Optional[str] = Field(default=None, validation_alias=_key("assessmentType", "assessment_type"))
    total_max_score: Optional[float] = Field(default=None, validation_alias=_key("totalMaxScore", "total_max_score"))
    total_score: Optional[float] = Field(default=None, validation_alias=_key("totalScore", "total_score"))
    time_spent: Optional[int] = Field(default=None, validation_alias=_key("timeSpent", "time_spent"))
    last_attempted_on: Optional[str] = Field(
        default=None, validation_alias=_key("lastAttemptedOn", "last_attempted_on"))
    tenant_id: Optional[str] = Field(default=None, validation_alias=_key("tenantId", "tenant_id"))
    assessment_summary: Optional[Any] = Field(
        default=None, validation_alias=_key("assessmentSummary", "assessment_summary"))


class AssessmentDeletePayload(PayloadModel):
    assessment_tracking_id: str = Field(
        min_length=1,
        validation_alias=_key("assessmentTrackingId", "assessment_tracking_id", "identifier"),
    )


# --- Course service ---

class CourseEnrollmentPayload(PayloadModel):
    user_id: str = Field(min_length=1, validation_alias=_key("userId", "user_id"))
    course_id: str = Field(min_length=1, validation_alias=_key("courseId", "course_id"))
    tenant_id: Optional[str] = Field(default=None, validation_alias=_key("tenantId", "tenant_id"))
    status: Optional[str] = None
    enrolled_on: Optional[str] = Field(
        default=None, validation_alias=_key("enrolledOnDate", "enrolledOn", "enrolled_on", "createdAt"))


class UserCourseStatusPayload(PayloadModel):
    user_id: str = Field(min_length=1, validation_alias=_key("userId", "user_id"))
    course_id: str = Field(min_length=1, validation_alias=_key("courseId", "course_id"))
    tenant_id: Optional[str] = Field(default=None, validation_alias=_key("tenantId", "tenant_id"))
    status: Optional[str] = None
    completion_percentage: Optional[float] = Field(
        default=None, validation_alias=_key("completionPercentage", "completion_percentage", "progress"))
    completed_on: Optional[str] = Field(default=None, validation_alias=_key("completedOn", "completed_on"))
    certificate_id: Optional[str] = Field(default=None, validation_alias=_key("certificateId", "certificate_id"))


class ContentTrackingPayload(PayloadModel):
    content_tracking_id: str = Field(
        min_length=1,
        validation_alias=_key("contentTrackingId", "content_tracking_id", "identifier"),
    )
    user_id: Optional[str] = Field(default=None, validation_alias=_key("userId", "user_id"))
    content_id: Optional[str] = Field(default=None, validation_alias=_key("contentId", "content_id"))
    course_id: Optional[str] = Field(default=None, validation_alias=_key("courseId", "course_id"))
    unit_id: Optional[str] = Field(default=None, validation_alias=_key("unitId", "unit_id"))
    content_type: Optional[str] = Field(default=None, validation_alias=_key("contentType", "content_type"))
    content_mime: Optional[str] = Field(default=None, validation_alias=_key("contentMime", "content_mime"))
    status: Optional[str] = None
    time_spent: Optional[int] = Field(default=None, validation_alias=_key("timeSpent", "time_spent"))
    tenant_id: Optional[str] = Field(default=None, validation_alias=_key("tenantId", "tenant_id"))
    created_on: Optional[str] = Field(default=None, validation_alias=_key("createdOn", "created_on", "createdAt"))
    details: Optional[Any] = None


# --- Project service ---

class ProjectTemplate(PayloadModel):
    project_template_id: str = Field(min_length=1, validation_alias=_key("projectTemplateId", "project_template_id"))
    title: Optional[str] = None
    description: Optional[str] = None
    external_id: Optional[str] = Field(default=None, validation_alias=_key("externalId", "external_id"))
    solution_id: Optional[str] = Field(default=None, validation_alias=_key("solutionId", "solution_id"))
    program_id: Optional[str] = Field(default=None, validation_alias=_key("programId", "program_id"))
    status: Optional[str] = None
    tenant_id: Optional[str] = Field(default=None, validation_alias=_key("tenantId", "tenant_id"))
    created_by: Optional[str] = Field(default=None, validation_alias=_key("createdBy", "created_by"))


class ProjectCreatedPayload(PayloadModel):
    project_template: ProjectTemplate = Field(validation_alias=_key("projectTemplate", "project_template"))
    project_template_tasks: List[Dict[str, Any]] = Field(
        validation_alias=_key("projectTemplateTasks", "project_template_tasks"))
    total_tasks: Optional[int] = Field(default=None, validation_alias=_key("totalTasks", "total_tasks"))


class ProjectSyncTask(PayloadModel):
    task_id: Optional[str] = Field(default=None, validation_alias=_key("_id", "taskId", "task_id"))
    name: Optional[str] = None
    status: Optional[str] = None
    updated_at: Optional[str] = Field(default=None, validation_alias=_key("updatedAt", "updated_at"))


class ProjectSyncPayload(PayloadModel):
    id: str = Field(min_length=1, validation_alias=_key("_id", "id"))
    solution_id: str = Field(min_length=1, validation_alias=_key("solutionId", "solution_id"))
    tasks: List[ProjectSyncTask]
    user_id: Optional[str] = Field(default=None, validation_alias=_key("userId", "user_id"))
    created_by: Optional[str] = Field(default=None, validation_alias=_key("createdBy", "created_by"))
    status: Optional[str] = None
    tenant_id: Optional[str] = Field(default=None, validation_alias=_key("tenantId", "tenant_id"))

    @field_validator("tasks", mode="before")
    @classmethod
    def tasks_must_be_list(cls, value):
        if value is None:
            raise ValueError("Tasks array is required")
        return value


# --- External content provider ---

class ContentItemPayload(PayloadModel):
    """One course or question-set document from the content provider"""
    identifier: str = Field(min_length=1)
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    channel: Optional[str] = None
    primary_category: Optional[str] = Field(default=None, validation_alias=_key("primaryCategory", "primary_category"))


P = TypeVar("P", bound=BaseModel)


def _format_errors(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error.get("loc", ())) or "payload"
        parts.append(f"{field}: {error.get('msg')}")
    return "; ".join(parts)


def parse_payload(model: Type[P], data: Union[Dict[str, Any], BaseModel, None]) -> P:
    """
    Parse ``data`` into ``model``.

    Already-parsed instances pass through untouched. Shape errors become a
    ValidationError carrying the "Validation failed: " prefix.
    """
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(by_alias=True)
    if not isinstance(data, dict):
        raise ValidationError(
            f"{ValidationError.prefix}{model.__name__} expects an object",
            metadata={"model": model.__name__},
        )
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(
            f"{ValidationError.prefix}{_format_errors(e)}",
            metadata={"model": model.__name__},
        ) from e
