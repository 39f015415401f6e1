from typing import Any, Dict, Union

from handlers.base import BaseHandler, validation_failures
from schemas.envelope import AttendanceDeletePayload, AttendancePayload, parse_payload
from schemas.sync import HandlerResult


class AttendanceHandler(BaseHandler):
    entity = "attendance"

    async def handle_attendance_upsert(self, data: Union[AttendancePayload, Dict[str, Any]]) -> HandlerResult:
        with validation_failures():
            payload = parse_payload(AttendancePayload, data)
            record = self.transform_service.transform_attendance(payload)

        outcome = await self.db_service.upsert_attendance(record)
        self.logger.info(
            f"Attendance {outcome.action.value}: {payload.attendance_id}",
            metadata={"attendance_id": payload.attendance_id, "user_id": payload.user_id},
        )
        return self._result(outcome)

    async def handle_attendance_delete(
        self, data: Union[AttendanceDeletePayload, Dict[str, Any]]
    ) -> HandlerResult:
        with validation_failures():
            payload = parse_payload(AttendanceDeletePayload, data)

        outcome = await self.db_service.delete_attendance(payload.attendance_id)
        self.logger.info(
            f"Attendance delete for {payload.attendance_id}: {outcome.action.value}",
            metadata={"attendance_id": payload.attendance_id},
        )
        return self._result(outcome)
