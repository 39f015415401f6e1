from sqlalchemy import Column, String, Integer, DateTime, Text, Boolean, UniqueConstraint
from core.database import BaseModel, CHAR_LENGTH


class Project(BaseModel):
    """Improvement project template"""
    __tablename__ = "projects"
    __table_args__ = {'extend_existing': True}

    project_id = Column(String(CHAR_LENGTH), unique=True, index=True, nullable=False)
    name = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    external_id = Column(String(CHAR_LENGTH), nullable=True)
    solution_id = Column(String(CHAR_LENGTH), nullable=True, index=True)
    program_id = Column(String(CHAR_LENGTH), nullable=True)
    status = Column(String(50), nullable=True)
    total_tasks = Column(Integer, nullable=True)
    tenant_id = Column(String(CHAR_LENGTH), nullable=True)
    created_by = Column(String(CHAR_LENGTH), nullable=True)


class ProjectTask(BaseModel):
    """Task belonging to a project template"""
    __tablename__ = "project_tasks"
    __table_args__ = {'extend_existing': True}

    task_id = Column(String(CHAR_LENGTH), unique=True, index=True, nullable=False)
    project_id = Column(String(CHAR_LENGTH), index=True, nullable=False)
    parent_id = Column(String(CHAR_LENGTH), nullable=True)
    name = Column(String(500), nullable=True)
    type = Column(String(100), nullable=True)
    sequence = Column(Integer, nullable=True)
    is_deletable = Column(Boolean, nullable=True)
    tenant_id = Column(String(CHAR_LENGTH), nullable=True)


class ProjectTaskTracking(BaseModel):
    """One row per completed (project, user, task) observation"""
    __tablename__ = "project_task_trackings"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", "task_id", name="uq_project_task_trackings_key"),
        {'extend_existing': True},
    )

    project_id = Column(String(CHAR_LENGTH), index=True, nullable=False)
    user_id = Column(String(CHAR_LENGTH), index=True, nullable=False)
    task_id = Column(String(CHAR_LENGTH), index=True, nullable=False)
    task_status = Column(String(50), nullable=False, default="completed")
    project_status = Column(String(50), nullable=True)
    tenant_id = Column(String(CHAR_LENGTH), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
