from typing import Any, Dict, Union

from handlers.base import BaseHandler, validation_failures
from schemas.envelope import ContentTrackingPayload, parse_payload
from schemas.sync import HandlerResult


class ContentHandler(BaseHandler):
    entity = "content_tracking"

    async def handle_content_tracking_created(
        self, data: Union[ContentTrackingPayload, Dict[str, Any]]
    ) -> HandlerResult:
        with validation_failures():
            payload = parse_payload(ContentTrackingPayload, data)
            record = self.transform_service.transform_content_tracking(payload)

        outcome = await self.db_service.upsert_content_tracking(record)
        self.logger.info(
            f"Content tracking {outcome.action.value}: {payload.content_tracking_id}",
            metadata={
                "content_tracking_id": payload.content_tracking_id,
                "user_id": payload.user_id,
                "content_id": payload.content_id,
            },
        )
        return self._result(outcome)
