from sqlalchemy import Column, String, Integer, DateTime, JSON
from core.database import BaseModel, CHAR_LENGTH


class ContentTracking(BaseModel):
    __tablename__ = "content_trackings"
    __table_args__ = {'extend_existing': True}

    content_tracking_id = Column(String(CHAR_LENGTH), unique=True, index=True, nullable=False)
    user_id = Column(String(CHAR_LENGTH), index=True, nullable=True)
    content_id = Column(String(CHAR_LENGTH), index=True, nullable=True)
    course_id = Column(String(CHAR_LENGTH), index=True, nullable=True)
    unit_id = Column(String(CHAR_LENGTH), nullable=True)
    content_type = Column(String(100), nullable=True)
    content_mime = Column(String(CHAR_LENGTH), nullable=True)
    status = Column(String(50), nullable=True)
    time_spent = Column(Integer, nullable=True)
    tenant_id = Column(String(CHAR_LENGTH), nullable=True)
    tracked_at = Column(DateTime(timezone=True), nullable=True)
    details = Column(JSON, nullable=True)
