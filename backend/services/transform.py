"""
Pure mappings from inbound payloads to canonical record dicts.

Every function returns a dict keyed by model column names, ready for the
persistence gateway. Nothing here touches storage or keeps state.
"""
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Union

from core.exceptions import TransformError
from schemas.envelope import (
    AssessmentPayload,
    AttendancePayload,
    CohortPayload,
    ContentItemPayload,
    ContentTrackingPayload,
    CourseEnrollmentPayload,
    EventPayload,
    ProjectCreatedPayload,
    ProjectSyncPayload,
    UserCourseStatusPayload,
    UserPayload,
    parse_payload,
)

COMPLETED_TASK_STATUS = "completed"
DEFAULT_ENROLLMENT_STATUS = "enrolled"

_OFFSET_WITHOUT_COLON = re.compile(r"([+-]\d{2})(\d{2})$")
# Payload models coerce numbers to strings, so epoch milliseconds can arrive as digits
_EPOCH_MS = re.compile(r"^\d{10,}(\.\d+)?$")


def _from_epoch_ms(value: float, field: str) -> datetime:
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise TransformError(f"Invalid {field}: {value!r}", metadata={"field": field}) from e


def parse_datetime(value: Any, field: str = "timestamp") -> Optional[datetime]:
    """Parse ISO-8601 strings or epoch milliseconds into an aware datetime"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _from_epoch_ms(value, field)
    if isinstance(value, str):
        text = value.strip()
        if _EPOCH_MS.match(text):
            return _from_epoch_ms(float(text), field)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _OFFSET_WITHOUT_COLON.sub(r"\1:\2", text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise TransformError(f"Invalid {field}: {value!r}", metadata={"field": field}) from e
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise TransformError(f"Invalid {field}: {value!r}", metadata={"field": field})


def parse_date(value: Any, field: str = "date") -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as e:
            raise TransformError(f"Invalid {field}: {value!r}", metadata={"field": field}) from e
    raise TransformError(f"Invalid {field}: {value!r}", metadata={"field": field})


def _to_int(value: Any, field: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise TransformError(f"Invalid {field}: {value!r}", metadata={"field": field}) from e


def _to_float(value: Any, field: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise TransformError(f"Invalid {field}: {value!r}", metadata={"field": field}) from e


def _raw(item, payload) -> Dict[str, Any]:
    if isinstance(item, dict):
        return item
    return payload.model_dump(exclude_none=True)


def _as_list(value: Any) -> Optional[List[Any]]:
    if value is None:
        return None
    if isinstance(value, list):
        return value
    return [value]


class TransformService:
    """Canonical shapes for every synced entity"""

    # --- user service ---

    @staticmethod
    def transform_user(data: Union[UserPayload, Dict[str, Any]]) -> Dict[str, Any]:
        payload = parse_payload(UserPayload, data)

        first_name = payload.first_name
        last_name = payload.last_name
        if not first_name and payload.name:
            first_name, _, remainder = payload.name.strip().partition(" ")
            last_name = last_name or (remainder or None)

        return {
            "user_id": payload.user_id,
            "username": payload.username,
            "first_name": first_name,
            "middle_name": payload.middle_name,
            "last_name": last_name,
            "email": payload.email,
            "mobile": payload.mobile,
            "gender": payload.gender,
            "dob": payload.dob,
            "status": payload.status,
            "tenant_id": payload.tenant_id,
            "custom_fields": payload.custom_fields,
            "source_created_at": parse_datetime(payload.created_at, "createdAt"),
            "source_updated_at": parse_datetime(payload.updated_at, "updatedAt"),
        }

    @staticmethod
    def transform_cohort(data: Union[CohortPayload, Dict[str, Any]]) -> Dict[str, Any]:
        payload = parse_payload(CohortPayload, data)
        return {
            "cohort_id": payload.cohort_id,
            "name": payload.name,
            "type": payload.type,
            "status": payload.status,
            "parent_id": payload.parent_id,
            "tenant_id": payload.tenant_id,
            "academic_year_id": payload.academic_year_id,
            "custom_fields": payload.custom_fields,
        }

    # --- course service ---

    @staticmethod
    def transform_course_enrollment(data: Union[CourseEnrollmentPayload, Dict[str, Any]]) -> Dict[str, Any]:
        payload = parse_payload(CourseEnrollmentPayload, data)
        return {
            "user_id": payload.user_id,
            "course_id": payload.course_id,
            "tenant_id": payload.tenant_id,
            "status": payload.status or DEFAULT_ENROLLMENT_STATUS,
            "enrolled_on": parse_datetime(payload.enrolled_on, "enrolledOn"),
        }

    @staticmethod
    def transform_user_course_update(data: Union[UserCourseStatusPayload, Dict[str, Any]]) -> Dict[str, Any]:
        """Status updates are partial: absent fields keep their stored value"""
        payload = parse_payload(UserCourseStatusPayload, data)
        record = {
            "user_id": payload.user_id,
            "course_id": payload.course_id,
            "tenant_id": payload.tenant_id,
            "status": payload.status,
            "completion_percentage": _to_float(payload.completion_percentage, "completionPercentage"),
            "completed_on": parse_datetime(payload.completed_on, "completedOn"),
            "certificate_id": payload.certificate_id,
        }
        return {key: value for key, value in record.items() if value is not None}

    @staticmethod
    def transform_external_course(item: Union[ContentItemPayload, Dict[str, Any]]) -> Dict[str, Any]:
        payload = parse_payload(ContentItemPayload, item)
        extra = payload.model_extra or {}
        return {
            "identifier": payload.identifier,
            "name": payload.name,
            "description": payload.description,
            "status": payload.status,
            "channel": payload.channel,
            "framework": extra.get("framework"),
            "primary_category": payload.primary_category,
            "mime_type": extra.get("mimeType"),
            "language": _as_list(extra.get("language")),
            "leaf_node_count": _to_int(extra.get("leafNodesCount"), "leafNodesCount"),
            "last_published_on": parse_datetime(extra.get("lastPublishedOn"), "lastPublishedOn"),
            "content_metadata": _raw(item, payload),
        }

    @staticmethod
    def transform_question_set(item: Union[ContentItemPayload, Dict[str, Any]]) -> Dict[str, Any]:
        payload = parse_payload(ContentItemPayload, item)
        extra = payload.model_extra or {}

        total_questions = extra.get("totalQuestions")
        if total_questions is None and isinstance(extra.get("childNodes"), list):
            total_questions = len(extra["childNodes"])

        return {
            "identifier": payload.identifier,
            "name": payload.name,
            "description": payload.description,
            "status": payload.status,
            "channel": payload.channel,
            "primary_category": payload.primary_category,
            "max_score": _to_float(extra.get("maxScore"), "maxScore"),
            "total_questions": _to_int(total_questions, "totalQuestions"),
            "last_published_on": parse_datetime(extra.get("lastPublishedOn"), "lastPublishedOn"),
            "content_metadata": _raw(item, payload),
        }

    # --- content / attendance / assessment / event ---

    @staticmethod
    def transform_content_tracking(data: Union[ContentTrackingPayload, Dict[str, Any]]) -> Dict[str, Any]:
        payload = parse_payload(ContentTrackingPayload, data)
        return {
            "content_tracking_id": payload.content_tracking_id,
            "user_id": payload.user_id,
            "content_id": payload.content_id,
            "course_id": payload.course_id,
            "unit_id": payload.unit_id,
            "content_type": payload.content_type,
            "content_mime": payload.content_mime,
            "status": payload.status,
            "time_spent": _to_int(payload.time_spent, "timeSpent"),
            "tenant_id": payload.tenant_id,
            "tracked_at": parse_datetime(payload.created_on, "createdOn"),
            "details": payload.details,
        }

    @staticmethod
    def transform_attendance(data: Union[AttendancePayload, Dict[str, Any]]) -> Dict[str, Any]:
        payload = parse_payload(AttendancePayload, data)
        return {
            "attendance_id": payload.attendance_id,
            "user_id": payload.user_id,
            "context": payload.context,
            "context_id": payload.context_id,
            "attendance_date": parse_date(payload.attendance_date, "attendanceDate"),
            "attendance": payload.attendance,
            "late": payload.late,
            "absent_reason": payload.absent_reason,
            "tenant_id": payload.tenant_id,
            "source_updated_at": parse_datetime(payload.updated_at, "updatedAt"),
        }

    @staticmethod
    def transform_assessment(data: Union[AssessmentPayload, Dict[str, Any]]) -> Dict[str, Any]:
        payload = parse_payload(AssessmentPayload, data)
        return {
            "assessment_tracking_id": payload.assessment_tracking_id,
            "user_id": payload.user_id,
            "course_id": payload.course_id,
            "content_id": payload.content_id,
            "attempt_id": payload.attempt_id,
            "assessment_type": payload.assessment_type,
            "total_max_score": payload.total_max_score,
            "total_score": payload.total_score,
            "time_spent": payload.time_spent,
            "last_attempted_on": parse_datetime(payload.last_attempted_on, "lastAttemptedOn"),
            "tenant_id": payload.tenant_id,
            "assessment_summary": payload.assessment_summary,
        }

    @staticmethod
    def transform_event(data: Union[EventPayload, Dict[str, Any]]) -> Dict[str, Any]:
        payload = parse_payload(EventPayload, data)
        start = parse_datetime(payload.start_datetime, "startDatetime")
        end = parse_datetime(payload.end_datetime, "endDatetime")
        if start and end and end < start:
            raise TransformError(
                "Event ends before it starts",
                metadata={"event_id": payload.event_id},
            )
        return {
            "event_id": payload.event_id,
            "title": payload.title,
            "short_description": payload.short_description,
            "event_type": payload.event_type,
            "status": payload.status,
            "start_datetime": start,
            "end_datetime": end,
            "location": payload.location,
            "online_provider": payload.online_provider,
            "is_recurring": payload.is_recurring,
            "tenant_id": payload.tenant_id,
            "event_metadata": payload.meta_data,
        }

    # --- project service ---

    @staticmethod
    def transform_project(data: Union[ProjectCreatedPayload, Dict[str, Any]]) -> Dict[str, Any]:
        payload = parse_payload(ProjectCreatedPayload, data)
        template = payload.project_template
        total_tasks = payload.total_tasks
        if total_tasks is None:
            total_tasks = len(payload.project_template_tasks)
        return {
            "project_id": template.project_template_id,
            "name": template.title,
            "description": template.description,
            "external_id": template.external_id,
            "solution_id": template.solution_id,
            "program_id": template.program_id,
            "status": template.status,
            "total_tasks": total_tasks,
            "tenant_id": template.tenant_id,
            "created_by": template.created_by,
        }

    @staticmethod
    def transform_project_tasks(data: Union[ProjectCreatedPayload, Dict[str, Any]]) -> List[Dict[str, Any]]:
        payload = parse_payload(ProjectCreatedPayload, data)
        template = payload.project_template
        records = []
        for position, task in enumerate(payload.project_template_tasks):
            task_id = task.get("_id") or task.get("taskId") or task.get("id")
            if not task_id:
                raise TransformError(
                    f"Project task at position {position} has no identifier",
                    metadata={"project_id": template.project_template_id},
                )
            records.append({
                "task_id": str(task_id),
                "project_id": template.project_template_id,
                "parent_id": task.get("parentId"),
                "name": task.get("name") or task.get("title"),
                "type": task.get("type"),
                "sequence": _to_int(task.get("sequenceNumber", task.get("sequence")), "sequenceNumber"),
                "is_deletable": task.get("isDeletable"),
                "tenant_id": task.get("tenantId") or template.tenant_id,
            })
        return records

    @staticmethod
    def transform_project_task_tracking(data: Union[ProjectSyncPayload, Dict[str, Any]]) -> List[Dict[str, Any]]:
        """One tracking record per completed task; other statuses are dropped"""
        payload = parse_payload(ProjectSyncPayload, data)
        completed = [task for task in payload.tasks if task.status == COMPLETED_TASK_STATUS]
        if not completed:
            return []

        user_id = payload.user_id or payload.created_by
        if not user_id:
            raise TransformError(
                "Project sync message has completed tasks but no userId or createdBy",
                metadata={"project_id": payload.solution_id},
            )

        records = []
        for task in completed:
            if not task.task_id:
                raise TransformError(
                    "Completed task has no identifier",
                    metadata={"project_id": payload.solution_id, "user_id": user_id},
                )
            records.append({
                "project_id": payload.solution_id,
                "user_id": user_id,
                "task_id": task.task_id,
                "task_status": COMPLETED_TASK_STATUS,
                "project_status": payload.status,
                "tenant_id": payload.tenant_id,
                "completed_at": parse_datetime(task.updated_at, "updatedAt"),
            })
        return records
