from typing import Any, Dict, Union

from handlers.base import BaseHandler, validation_failures
from schemas.envelope import (
    ContentItemPayload,
    CourseEnrollmentPayload,
    UserCourseStatusPayload,
    parse_payload,
)
from schemas.sync import HandlerResult


class CourseHandler(BaseHandler):
    """
    Course enrolments and progress from the course service, plus course and
    question-set documents pulled from the external content API.
    """

    entity = "user_course"

    async def handle_course_enrollment_created(
        self, data: Union[CourseEnrollmentPayload, Dict[str, Any]]
    ) -> HandlerResult:
        with validation_failures():
            payload = parse_payload(CourseEnrollmentPayload, data)
            record = self.transform_service.transform_course_enrollment(payload)

        outcome = await self.db_service.upsert_user_course(record)
        self.logger.info(
            f"Enrolment {outcome.action.value}: user={payload.user_id} course={payload.course_id}",
            metadata=outcome.key,
        )
        return self._result(outcome)

    async def handle_user_course_update(
        self, data: Union[UserCourseStatusPayload, Dict[str, Any]]
    ) -> HandlerResult:
        with validation_failures():
            payload = parse_payload(UserCourseStatusPayload, data)
            record = self.transform_service.transform_user_course_update(payload)

        outcome = await self.db_service.upsert_user_course(record)
        self.logger.info(
            f"Course status {outcome.action.value}: user={payload.user_id} course={payload.course_id}",
            metadata={**outcome.key, "status": payload.status},
        )
        return self._result(outcome)

    async def handle_course_upsert(self, item: Union[ContentItemPayload, Dict[str, Any]]) -> HandlerResult:
        with validation_failures():
            record = self.transform_service.transform_external_course(item)

        outcome = await self.db_service.upsert_course(record)
        self.logger.debug(
            f"Course {outcome.action.value}: {record['identifier']}",
            metadata={"identifier": record["identifier"]},
        )
        return self._result(outcome, entity="course")

    async def handle_question_set_upsert(self, item: Union[ContentItemPayload, Dict[str, Any]]) -> HandlerResult:
        with validation_failures():
            record = self.transform_service.transform_question_set(item)

        outcome = await self.db_service.upsert_question_set(record)
        self.logger.debug(
            f"Question set {outcome.action.value}: {record['identifier']}",
            metadata={"identifier": record["identifier"]},
        )
        return self._result(outcome, entity="question_set")
