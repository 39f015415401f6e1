from sqlalchemy import Column, String, Integer, Float, DateTime, JSON
from core.database import BaseModel, CHAR_LENGTH


class AssessmentTracking(BaseModel):
    __tablename__ = "assessment_trackings"
    __table_args__ = {'extend_existing': True}

    assessment_tracking_id = Column(String(CHAR_LENGTH), unique=True, index=True, nullable=False)
    user_id = Column(String(CHAR_LENGTH), index=True, nullable=True)
    course_id = Column(String(CHAR_LENGTH), index=True, nullable=True)
    content_id = Column(String(CHAR_LENGTH), index=True, nullable=True)
    attempt_id = Column(String(CHAR_LENGTH), nullable=True)
    assessment_type = Column(String(100), nullable=True)
    total_max_score = Column(Float, nullable=True)
    total_score = Column(Float, nullable=True)
    time_spent = Column(Integer, nullable=True)
    last_attempted_on = Column(DateTime(timezone=True), nullable=True)
    tenant_id = Column(String(CHAR_LENGTH), nullable=True)
    assessment_summary = Column(JSON, nullable=True)
