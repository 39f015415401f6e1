from typing import Any, Dict, Union

from handlers.base import BaseHandler, validation_failures
from schemas.envelope import AssessmentDeletePayload, AssessmentPayload, parse_payload
from schemas.sync import HandlerResult


class AssessmentHandler(BaseHandler):
    entity = "assessment_tracking"

    async def handle_assessment_upsert(self, data: Union[AssessmentPayload, Dict[str, Any]]) -> HandlerResult:
        with validation_failures():
            payload = parse_payload(AssessmentPayload, data)
            record = self.transform_service.transform_assessment(payload)

        outcome = await self.db_service.upsert_assessment(record)
        self.logger.info(
            f"Assessment {outcome.action.value}: {payload.assessment_tracking_id}",
            metadata={
                "assessment_tracking_id": payload.assessment_tracking_id,
                "user_id": payload.user_id,
                "total_score": payload.total_score,
            },
        )
        return self._result(outcome)

    async def handle_assessment_delete(
        self, data: Union[AssessmentDeletePayload, Dict[str, Any]]
    ) -> HandlerResult:
        with validation_failures():
            payload = parse_payload(AssessmentDeletePayload, data)

        outcome = await self.db_service.delete_assessment(payload.assessment_tracking_id)
        self.logger.info(
            f"Assessment delete for {payload.assessment_tracking_id}: {outcome.action.value}",
            metadata={"assessment_tracking_id": payload.assessment_tracking_id},
        )
        return self._result(outcome)
