from .user import UserHandler
from .course import CourseHandler
from .content import ContentHandler
from .attendance import AttendanceHandler
from .assessment import AssessmentHandler
from .event import EventHandler
from .project import ProjectHandler

__all__ = [
    "UserHandler",
    "CourseHandler",
    "ContentHandler",
    "AttendanceHandler",
    "AssessmentHandler",
    "EventHandler",
    "ProjectHandler",
]
