from sqlalchemy import Column, String, DateTime, Date, Boolean
from core.database import BaseModel, CHAR_LENGTH


class Attendance(BaseModel):
    __tablename__ = "attendance"
    __table_args__ = {'extend_existing': True}

    attendance_id = Column(String(CHAR_LENGTH), unique=True, index=True, nullable=False)
    user_id = Column(String(CHAR_LENGTH), index=True, nullable=True)
    context = Column(String(100), nullable=True)
    context_id = Column(String(CHAR_LENGTH), index=True, nullable=True)
    attendance_date = Column(Date, nullable=True)
    attendance = Column(String(50), nullable=True)
    late = Column(Boolean, nullable=True)
    absent_reason = Column(String(500), nullable=True)
    tenant_id = Column(String(CHAR_LENGTH), nullable=True)
    source_updated_at = Column(DateTime(timezone=True), nullable=True)
