# Models package - Consolidated imports only
from .user import User, Cohort
from .course import Course, QuestionSet, UserCourse
from .content import ContentTracking
from .attendance import Attendance
from .assessment import AssessmentTracking
from .event import Event
from .project import Project, ProjectTask, ProjectTaskTracking

__all__ = [
    # User models
    "User",
    "Cohort",

    # Course models
    "Course",
    "QuestionSet",
    "UserCourse",

    # Tracking models
    "ContentTracking",
    "Attendance",
    "AssessmentTracking",

    # Event models
    "Event",

    # Project models
    "Project",
    "ProjectTask",
    "ProjectTaskTracking",
]
