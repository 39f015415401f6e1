from contextlib import contextmanager
from typing import Any, Optional

from core.exceptions import ValidationError
from core.logging import get_structured_logger
from schemas.sync import HandlerAction, HandlerResult, UpsertResult
from services.database import DatabaseService
from services.transform import TransformService


@contextmanager
def validation_failures():
    """Re-raise validation problems with the "Validation failed: " prefix"""
    try:
        yield
    except ValidationError as e:
        wrapped = e.wrapped()
        if wrapped is e:
            raise
        raise wrapped from e


class BaseHandler:
    """Shared wiring for domain handlers: transform, then persist"""

    entity: str = "entity"

    def __init__(
        self,
        db_service: DatabaseService,
        transform_service: Optional[TransformService] = None,
    ):
        self.db_service = db_service
        self.transform_service = transform_service or TransformService()
        self.logger = get_structured_logger(f"handlers.{self.entity}")

    def _result(self, outcome: UpsertResult, entity: Optional[str] = None, **details: Any) -> HandlerResult:
        return HandlerResult(
            entity=entity or self.entity,
            action=outcome.action,
            key=outcome.key,
            affected=0 if outcome.action in (HandlerAction.NOT_FOUND, HandlerAction.NOOP) else 1,
            details=details,
        )
