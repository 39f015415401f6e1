from sqlalchemy import Column, String, Integer, Float, DateTime, Text, JSON, UniqueConstraint
from core.database import BaseModel, CHAR_LENGTH


class Course(BaseModel):
    """Course published by the external content provider"""
    __tablename__ = "courses"
    __table_args__ = {'extend_existing': True}

    identifier = Column(String(CHAR_LENGTH), unique=True, index=True, nullable=False)
    name = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(50), nullable=True)
    channel = Column(String(CHAR_LENGTH), nullable=True)
    framework = Column(String(CHAR_LENGTH), nullable=True)
    primary_category = Column(String(CHAR_LENGTH), nullable=True)
    mime_type = Column(String(CHAR_LENGTH), nullable=True)
    language = Column(JSON, nullable=True)
    leaf_node_count = Column(Integer, nullable=True)
    last_published_on = Column(DateTime(timezone=True), nullable=True)
    content_metadata = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<Course(identifier='{self.identifier}', name='{self.name}')>"


class QuestionSet(BaseModel):
    """Question set (practice or assessment) from the external content provider"""
    __tablename__ = "question_sets"
    __table_args__ = {'extend_existing': True}

    identifier = Column(String(CHAR_LENGTH), unique=True, index=True, nullable=False)
    name = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(String(50), nullable=True)
    channel = Column(String(CHAR_LENGTH), nullable=True)
    primary_category = Column(String(CHAR_LENGTH), nullable=True)
    max_score = Column(Float, nullable=True)
    total_questions = Column(Integer, nullable=True)
    last_published_on = Column(DateTime(timezone=True), nullable=True)
    content_metadata = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<QuestionSet(identifier='{self.identifier}', name='{self.name}')>"


class UserCourse(BaseModel):
    """Enrolment of a user in a course and its progress"""
    __tablename__ = "user_courses"
    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_user_courses_user_course"),
        {'extend_existing': True},
    )

    user_id = Column(String(CHAR_LENGTH), index=True, nullable=False)
    course_id = Column(String(CHAR_LENGTH), index=True, nullable=False)
    tenant_id = Column(String(CHAR_LENGTH), nullable=True)
    status = Column(String(50), nullable=True)
    completion_percentage = Column(Float, nullable=True)
    enrolled_on = Column(DateTime(timezone=True), nullable=True)
    completed_on = Column(DateTime(timezone=True), nullable=True)
    certificate_id = Column(String(CHAR_LENGTH), nullable=True)

    def __repr__(self):
        return f"<UserCourse(user_id='{self.user_id}', course_id='{self.course_id}', status='{self.status}')>"
