from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel, Field


class ContentResource(str, Enum):
    """Collections pulled from the content provider"""
    COURSE = "course"
    QUESTION_SET = "questionset"


class ExternalApiResponse(BaseModel):
    """Envelope the API client hands to the scheduled job"""
    success: bool
    data: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.success or not self.data
