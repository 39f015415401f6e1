from typing import Any, Dict, Union

from handlers.base import BaseHandler, validation_failures
from schemas.envelope import EventDeletePayload, EventPayload, parse_payload
from schemas.sync import HandlerResult


class EventHandler(BaseHandler):
    entity = "event"

    async def handle_event_upsert(self, data: Union[EventPayload, Dict[str, Any]]) -> HandlerResult:
        with validation_failures():
            payload = parse_payload(EventPayload, data)
            record = self.transform_service.transform_event(payload)

        outcome = await self.db_service.upsert_event(record)
        self.logger.info(
            f"Event {outcome.action.value}: {payload.event_id}",
            metadata={"event_id": payload.event_id, "title": payload.title},
        )
        return self._result(outcome)

    async def handle_event_delete(self, data: Union[EventDeletePayload, Dict[str, Any]]) -> HandlerResult:
        with validation_failures():
            payload = parse_payload(EventDeletePayload, data)

        outcome = await self.db_service.delete_event(payload.event_id)
        self.logger.info(
            f"Event delete for {payload.event_id}: {outcome.action.value}",
            metadata={"event_id": payload.event_id},
        )
        return self._result(outcome)
