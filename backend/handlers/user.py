from typing import Any, Dict, Union

from handlers.base import BaseHandler, validation_failures
from schemas.envelope import (
    CohortDeletePayload,
    CohortPayload,
    UserDeletePayload,
    UserPayload,
    parse_payload,
)
from schemas.sync import HandlerResult


class UserHandler(BaseHandler):
    """Users and cohorts published by the user service"""

    entity = "user"

    async def handle_user_upsert(self, data: Union[UserPayload, Dict[str, Any]]) -> HandlerResult:
        with validation_failures():
            payload = parse_payload(UserPayload, data)
            record = self.transform_service.transform_user(payload)

        outcome = await self.db_service.upsert_user(record)
        self.logger.info(
            f"User {outcome.action.value}: {payload.user_id}",
            metadata={"user_id": payload.user_id, "action": outcome.action.value},
        )
        return self._result(outcome)

    async def handle_user_delete(self, data: Union[UserDeletePayload, Dict[str, Any]]) -> HandlerResult:
        with validation_failures():
            payload = parse_payload(UserDeletePayload, data)

        outcome = await self.db_service.delete_user(payload.user_id)
        self.logger.info(
            f"User delete for {payload.user_id}: {outcome.action.value}",
            metadata={"user_id": payload.user_id, "action": outcome.action.value},
        )
        return self._result(outcome)

    async def handle_cohort_upsert(self, data: Union[CohortPayload, Dict[str, Any]]) -> HandlerResult:
        with validation_failures():
            payload = parse_payload(CohortPayload, data)
            record = self.transform_service.transform_cohort(payload)

        outcome = await self.db_service.upsert_cohort(record)
        self.logger.info(
            f"Cohort {outcome.action.value}: {payload.cohort_id}",
            metadata={"cohort_id": payload.cohort_id, "action": outcome.action.value},
        )
        return self._result(outcome, entity="cohort")

    async def handle_cohort_delete(self, data: Union[CohortDeletePayload, Dict[str, Any]]) -> HandlerResult:
        with validation_failures():
            payload = parse_payload(CohortDeletePayload, data)

        outcome = await self.db_service.delete_cohort(payload.cohort_id)
        self.logger.info(
            f"Cohort delete for {payload.cohort_id}: {outcome.action.value}",
            metadata={"cohort_id": payload.cohort_id, "action": outcome.action.value},
        )
        return self._result(outcome, entity="cohort")
