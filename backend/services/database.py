from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Type

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.future import select

from core.database import BaseModel
from core.exceptions import StorageError, ValidationError
from core.logging import get_structured_logger
from models import (
    AssessmentTracking,
    Attendance,
    Cohort,
    ContentTracking,
    Course,
    Event,
    Project,
    ProjectTask,
    ProjectTaskTracking,
    QuestionSet,
    User,
    UserCourse,
)
from schemas.sync import HandlerAction, TrackingInsertResult, UpsertResult

structured_logger = get_structured_logger("persistence")

# Natural key columns per synced table
NATURAL_KEYS: Dict[Type[BaseModel], Tuple[str, ...]] = {
    User: ("user_id",),
    Cohort: ("cohort_id",),
    Course: ("identifier",),
    QuestionSet: ("identifier",),
    UserCourse: ("user_id", "course_id"),
    ContentTracking: ("content_tracking_id",),
    Attendance: ("attendance_id",),
    AssessmentTracking: ("assessment_tracking_id",),
    Event: ("event_id",),
    Project: ("project_id",),
    ProjectTask: ("task_id",),
    ProjectTaskTracking: ("project_id", "user_id", "task_id"),
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DatabaseService:
    """
    Persistence gateway: the only writer of synced entity rows.

    Each public operation opens its own session and commits before returning.
    Rows are addressed by natural key; the surrogate ``id`` never leaves this
    module. ``clock`` supplies ``updated_at`` so callers can control time.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session_factory = session_factory
        self.clock = clock or utc_now

    # --- generic operations ---

    @staticmethod
    def _key_for(model: Type[BaseModel], record: Dict[str, Any]) -> Dict[str, Any]:
        key = {}
        for field in NATURAL_KEYS[model]:
            value = record.get(field)
            if value is None or value == "":
                raise ValidationError(
                    f"{ValidationError.prefix}{field} is required for {model.__tablename__}",
                    metadata={"table": model.__tablename__, "field": field},
                )
            key[field] = value
        return key

    async def _apply_upsert(
        self,
        session: AsyncSession,
        model: Type[BaseModel],
        key: Dict[str, Any],
        record: Dict[str, Any],
    ) -> HandlerAction:
        result = await session.execute(select(model).filter_by(**key))
        existing = result.scalar_one_or_none()
        now = self.clock()

        if existing is not None:
            for field, value in record.items():
                if field not in key:
                    setattr(existing, field, value)
            existing.updated_at = now
            return HandlerAction.UPDATED

        session.add(model(**record, created_at=now, updated_at=now))
        return HandlerAction.CREATED

    async def upsert(self, model: Type[BaseModel], record: Dict[str, Any]) -> UpsertResult:
        """Insert ``record`` or update the row sharing its natural key"""
        table = model.__tablename__
        key = self._key_for(model, record)

        # A concurrent insert of the same key surfaces as IntegrityError; the
        # second attempt then finds the row and updates it.
        for attempt in (1, 2):
            async with self.session_factory() as session:
                try:
                    action = await self._apply_upsert(session, model, key, record)
                    await session.commit()
                except IntegrityError as e:
                    await session.rollback()
                    if attempt == 2:
                        raise StorageError(f"Upsert into {table} violated a constraint", table, key) from e
                    continue
                except SQLAlchemyError as e:
                    await session.rollback()
                    raise StorageError(f"Upsert into {table} failed: {e}", table, key) from e

            structured_logger.log_database_operation(
                action.value, table, affected_rows=1, metadata={"key": key}
            )
            return UpsertResult(table=table, key=key, action=action)

    async def upsert_many(self, model: Type[BaseModel], records: Sequence[Dict[str, Any]]) -> int:
        """Upsert a batch in one transaction; all rows commit or none do"""
        if not records:
            return 0

        table = model.__tablename__
        keyed = [(self._key_for(model, record), record) for record in records]

        async with self.session_factory() as session:
            try:
                for key, record in keyed:
                    await self._apply_upsert(session, model, key, record)
                    await session.flush()
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(
                    f"Batch upsert into {table} failed: {e}",
                    table,
                    metadata={"batch_size": len(keyed)},
                ) from e

        structured_logger.log_database_operation("upsert_many", table, affected_rows=len(keyed))
        return len(keyed)

    async def delete(self, model: Type[BaseModel], key: Dict[str, Any]) -> UpsertResult:
        """Remove the row with this natural key; a missing row is not an error"""
        table = model.__tablename__
        key = self._key_for(model, key)

        async with self.session_factory() as session:
            try:
                result = await session.execute(delete(model).filter_by(**key))
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Delete from {table} failed: {e}", table, key) from e

        affected = result.rowcount or 0
        structured_logger.log_database_operation("delete", table, affected_rows=affected, metadata={"key": key})
        action = HandlerAction.DELETED if affected else HandlerAction.NOT_FOUND
        return UpsertResult(table=table, key=key, action=action)

    # --- entity operations ---

    async def upsert_user(self, record: Dict[str, Any]) -> UpsertResult:
        return await self.upsert(User, record)

    async def delete_user(self, user_id: str) -> UpsertResult:
        return await self.delete(User, {"user_id": user_id})

    async def upsert_cohort(self, record: Dict[str, Any]) -> UpsertResult:
        return await self.upsert(Cohort, record)

    async def delete_cohort(self, cohort_id: str) -> UpsertResult:
        return await self.delete(Cohort, {"cohort_id": cohort_id})

    async def upsert_course(self, record: Dict[str, Any]) -> UpsertResult:
        return await self.upsert(Course, record)

    async def upsert_question_set(self, record: Dict[str, Any]) -> UpsertResult:
        return await self.upsert(QuestionSet, record)

    async def upsert_user_course(self, record: Dict[str, Any]) -> UpsertResult:
        return await self.upsert(UserCourse, record)

    async def upsert_content_tracking(self, record: Dict[str, Any]) -> UpsertResult:
        return await self.upsert(ContentTracking, record)

    async def upsert_attendance(self, record: Dict[str, Any]) -> UpsertResult:
        return await self.upsert(Attendance, record)

    async def delete_attendance(self, attendance_id: str) -> UpsertResult:
        return await self.delete(Attendance, {"attendance_id": attendance_id})

    async def upsert_assessment(self, record: Dict[str, Any]) -> UpsertResult:
        return await self.upsert(AssessmentTracking, record)

    async def delete_assessment(self, assessment_tracking_id: str) -> UpsertResult:
        return await self.delete(AssessmentTracking, {"assessment_tracking_id": assessment_tracking_id})

    async def upsert_event(self, record: Dict[str, Any]) -> UpsertResult:
        return await self.upsert(Event, record)

    async def delete_event(self, event_id: str) -> UpsertResult:
        return await self.delete(Event, {"event_id": event_id})

    async def upsert_project(self, record: Dict[str, Any]) -> UpsertResult:
        return await self.upsert(Project, record)

    async def upsert_project_tasks(self, records: Sequence[Dict[str, Any]]) -> int:
        return await self.upsert_many(ProjectTask, records)

    async def upsert_project_task_trackings(self, records: Iterable[Dict[str, Any]]) -> TrackingInsertResult:
        """
        Insert completion rows that are not already tracked.

        Candidates are grouped by (project_id, user_id) and each group is
        checked with a single ``task_id IN (...)`` query. A key repeated within
        the batch is inserted once and skipped afterwards.
        """
        records = list(records)
        if not records:
            return TrackingInsertResult()

        groups: Dict[Tuple[str, str], List[Dict[str, Any]]] = defaultdict(list)
        for record in records:
            key = self._key_for(ProjectTaskTracking, record)
            groups[(key["project_id"], key["user_id"])].append(record)

        inserted = 0
        skipped = 0
        table = ProjectTaskTracking.__tablename__

        async with self.session_factory() as session:
            try:
                for (project_id, user_id), candidates in groups.items():
                    task_ids = {record["task_id"] for record in candidates}
                    result = await session.execute(
                        select(ProjectTaskTracking.task_id).where(
                            ProjectTaskTracking.project_id == project_id,
                            ProjectTaskTracking.user_id == user_id,
                            ProjectTaskTracking.task_id.in_(task_ids),
                        )
                    )
                    tracked = set(result.scalars().all())

                    now = self.clock()
                    for record in candidates:
                        if record["task_id"] in tracked:
                            skipped += 1
                            continue
                        session.add(ProjectTaskTracking(**record, created_at=now, updated_at=now))
                        tracked.add(record["task_id"])
                        inserted += 1

                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(
                    f"Task tracking insert failed: {e}",
                    table,
                    metadata={"groups": [list(group) for group in groups]},
                ) from e

        structured_logger.log_database_operation(
            "insert", table, affected_rows=inserted, metadata={"skipped": skipped}
        )
        return TrackingInsertResult(inserted=inserted, skipped=skipped)
