from sqlalchemy import Column, String, DateTime, JSON
from core.database import BaseModel, CHAR_LENGTH


class User(BaseModel):
    """Learner or staff account mirrored from the user service"""
    __tablename__ = "users"
    __table_args__ = {'extend_existing': True}

    user_id = Column(String(CHAR_LENGTH), unique=True, index=True, nullable=False)
    username = Column(String(CHAR_LENGTH), nullable=True)
    first_name = Column(String(CHAR_LENGTH), nullable=True)
    middle_name = Column(String(CHAR_LENGTH), nullable=True)
    last_name = Column(String(CHAR_LENGTH), nullable=True)
    email = Column(String(CHAR_LENGTH), nullable=True)
    mobile = Column(String(50), nullable=True)
    gender = Column(String(50), nullable=True)
    dob = Column(String(50), nullable=True)
    status = Column(String(50), nullable=True)
    tenant_id = Column(String(CHAR_LENGTH), nullable=True, index=True)
    custom_fields = Column(JSON, nullable=True)
    source_created_at = Column(DateTime(timezone=True), nullable=True)
    source_updated_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<User(user_id='{self.user_id}', username='{self.username}')>"


class Cohort(BaseModel):
    """Class, batch or center grouping from the user service"""
    __tablename__ = "cohorts"
    __table_args__ = {'extend_existing': True}

    cohort_id = Column(String(CHAR_LENGTH), unique=True, index=True, nullable=False)
    name = Column(String(CHAR_LENGTH), nullable=True)
    type = Column(String(100), nullable=True)
    status = Column(String(50), nullable=True)
    parent_id = Column(String(CHAR_LENGTH), nullable=True, index=True)
    tenant_id = Column(String(CHAR_LENGTH), nullable=True, index=True)
    academic_year_id = Column(String(CHAR_LENGTH), nullable=True)
    custom_fields = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<Cohort(cohort_id='{self.cohort_id}', name='{self.name}')>"
