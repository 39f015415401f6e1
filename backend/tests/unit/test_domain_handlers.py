"""
Unit tests for the course, content, attendance, assessment and event handlers
"""
from datetime import date

import pytest

from core.exceptions import TransformError, ValidationError
from handlers import AssessmentHandler, AttendanceHandler, ContentHandler, CourseHandler, EventHandler
from models import AssessmentTracking, Attendance, ContentTracking, Event, UserCourse
from schemas.sync import HandlerAction


class TestCourseHandler:

    @pytest.fixture
    def handler(self, db_service, transform_service):
        return CourseHandler(db_service, transform_service)

    @pytest.mark.asyncio
    async def test_enrollment_then_progress(self, handler, store):
        enrolled = await handler.handle_course_enrollment_created(
            {"userId": "u1", "courseId": "c1", "tenantId": "t1", "enrolledOnDate": "2024-04-01T09:00:00Z"}
        )
        progressed = await handler.handle_user_course_update(
            {"userId": "u1", "courseId": "c1", "status": "completed", "completionPercentage": 100}
        )

        row = await store.find_by_key(UserCourse, user_id="u1", course_id="c1")
        assert enrolled.action == HandlerAction.CREATED
        assert progressed.action == HandlerAction.UPDATED
        assert row.status == "completed"
        assert row.tenant_id == "t1"
        assert row.enrolled_on is not None
        assert await store.count(UserCourse) == 1

    @pytest.mark.asyncio
    async def test_enrollment_redelivery_keeps_one_row(self, handler, store):
        data = {"userId": "u1", "courseId": "c1"}

        await handler.handle_course_enrollment_created(data)
        await handler.handle_course_enrollment_created(data)

        assert await store.count(UserCourse) == 1

    @pytest.mark.asyncio
    async def test_enrollment_without_course(self, handler):
        with pytest.raises(ValidationError) as exc_info:
            await handler.handle_course_enrollment_created({"userId": "u1"})

        assert exc_info.value.message.startswith("Validation failed: ")

    @pytest.mark.asyncio
    async def test_question_set_result_entity(self, handler):
        result = await handler.handle_question_set_upsert({"identifier": "qs_1", "maxScore": "5"})

        assert result.entity == "question_set"
        assert result.affected == 1


class TestContentHandler:

    @pytest.mark.asyncio
    async def test_tracking_is_upserted_by_id(self, db_service, transform_service, store):
        handler = ContentHandler(db_service, transform_service)
        data = {"contentTrackingId": "ct1", "userId": "u1", "contentId": "do_9", "status": "inProgress"}

        await handler.handle_content_tracking_created(data)
        await handler.handle_content_tracking_created({**data, "status": "completed", "timeSpent": 120})

        row = await store.find_by_key(ContentTracking, content_tracking_id="ct1")
        assert row.status == "completed"
        assert row.time_spent == 120
        assert await store.count(ContentTracking) == 1


class TestAttendanceHandler:

    @pytest.fixture
    def handler(self, db_service, transform_service):
        return AttendanceHandler(db_service, transform_service)

    @pytest.mark.asyncio
    async def test_upsert_and_delete(self, handler, store):
        await handler.handle_attendance_upsert(
            {"attendanceId": "a1", "userId": "u1", "attendanceDate": "2024-06-03", "attendance": "present"}
        )
        row = await store.find_by_key(Attendance, attendance_id="a1")

        deleted = await handler.handle_attendance_delete({"attendanceId": "a1"})
        missing = await handler.handle_attendance_delete({"attendanceId": "a1"})

        assert row.attendance_date == date(2024, 6, 3)
        assert deleted.action == HandlerAction.DELETED
        assert missing.action == HandlerAction.NOT_FOUND
        assert missing.affected == 0

    @pytest.mark.asyncio
    async def test_bad_date_is_a_transform_error(self, handler):
        with pytest.raises(TransformError):
            await handler.handle_attendance_upsert({"attendanceId": "a1", "attendanceDate": "third of June"})


class TestAssessmentHandler:

    @pytest.mark.asyncio
    async def test_upsert_and_delete(self, db_service, transform_service, store):
        handler = AssessmentHandler(db_service, transform_service)

        await handler.handle_assessment_upsert(
            {"assessmentTrackingId": "as1", "userId": "u1", "totalScore": 7, "totalMaxScore": 10}
        )
        row = await store.find_by_key(AssessmentTracking, assessment_tracking_id="as1")
        deleted = await handler.handle_assessment_delete({"identifier": "as1"})

        assert row.total_score == 7.0
        assert deleted.action == HandlerAction.DELETED
        assert await store.count(AssessmentTracking) == 0

    @pytest.mark.asyncio
    async def test_missing_identifier(self, db_service, transform_service):
        handler = AssessmentHandler(db_service, transform_service)

        with pytest.raises(ValidationError):
            await handler.handle_assessment_delete({})


class TestEventHandler:

    @pytest.mark.asyncio
    async def test_upsert_and_delete(self, db_service, transform_service, store):
        handler = EventHandler(db_service, transform_service)
        data = {
            "eventId": "e1",
            "title": "Orientation",
            "startDatetime": "2024-05-01T09:00:00Z",
            "endDatetime": "2024-05-01T10:00:00Z",
            "metadata": {"room": "B2"},
        }

        created = await handler.handle_event_upsert(data)
        updated = await handler.handle_event_upsert({**data, "title": "Orientation day"})
        row = await store.find_by_key(Event, event_id="e1")
        deleted = await handler.handle_event_delete({"eventId": "e1"})

        assert created.action == HandlerAction.CREATED
        assert updated.action == HandlerAction.UPDATED
        assert row.title == "Orientation day"
        assert row.event_metadata == {"room": "B2"}
        assert deleted.action == HandlerAction.DELETED
