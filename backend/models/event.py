from sqlalchemy import Column, String, DateTime, Boolean, Text, JSON
from core.database import BaseModel, CHAR_LENGTH


class Event(BaseModel):
    """Scheduled session or meeting published by the event service"""
    __tablename__ = "events"
    __table_args__ = {'extend_existing': True}

    event_id = Column(String(CHAR_LENGTH), unique=True, index=True, nullable=False)
    title = Column(String(500), nullable=True)
    short_description = Column(Text, nullable=True)
    event_type = Column(String(100), nullable=True)
    status = Column(String(50), nullable=True)
    start_datetime = Column(DateTime(timezone=True), nullable=True)
    end_datetime = Column(DateTime(timezone=True), nullable=True)
    location = Column(String(500), nullable=True)
    online_provider = Column(String(100), nullable=True)
    is_recurring = Column(Boolean, nullable=True)
    tenant_id = Column(String(CHAR_LENGTH), nullable=True)
    event_metadata = Column(JSON, nullable=True)
