# Services package - Consolidated imports only
from .database import DatabaseService
from .external_api import ExternalApiService
from .transform import TransformService

__all__ = [
    "DatabaseService",
    "ExternalApiService",
    "TransformService",
]
