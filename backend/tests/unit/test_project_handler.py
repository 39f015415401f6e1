"""
Unit tests for project creation and task-tracking dedup
"""
import pytest

from core.exceptions import TransformError, ValidationError
from handlers import ProjectHandler
from models import Project, ProjectTask, ProjectTaskTracking


def _sync_message(task_statuses, user_id="u1", **extra):
    data = {
        "_id": "instance-1",
        "solutionId": "sol-1",
        "userId": user_id,
        "status": "inProgress",
        "tasks": [{"_id": task_id, "status": status} for task_id, status in task_statuses],
    }
    data.update(extra)
    return data


class TestProjectHandler:

    @pytest.fixture
    def project_handler(self, db_service, transform_service):
        return ProjectHandler(db_service, transform_service)

    @pytest.mark.asyncio
    async def test_project_created_stores_project_and_tasks(self, project_handler, store):
        data = {
            "projectTemplate": {"projectTemplateId": "pt-1", "title": "Kitchen garden", "solutionId": "sol-1"},
            "projectTemplateTasks": [
                {"_id": "t1", "name": "Pick a plot", "sequenceNumber": "1"},
                {"_id": "t2", "name": "Plant seeds", "sequenceNumber": "2"},
            ],
            "totalTasks": 2,
        }

        result = await project_handler.handle_project_created(data)
        again = await project_handler.handle_project_created(data)

        project = await store.find_by_key(Project, project_id="pt-1")
        assert result.details["tasks_count"] == 2
        assert result.affected == 3
        assert again.action.value == "updated"
        assert project.name == "Kitchen garden"
        assert project.total_tasks == 2
        assert await store.count(ProjectTask, project_id="pt-1") == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", [
        {"projectTemplateTasks": []},
        {"projectTemplate": {"projectTemplateId": "pt-1"}},
        {"projectTemplate": {"title": "no id"}, "projectTemplateTasks": []},
    ])
    async def test_project_created_requires_template_and_tasks(self, project_handler, data):
        with pytest.raises(ValidationError) as exc_info:
            await project_handler.handle_project_created(data)

        assert exc_info.value.message.startswith("Validation failed: ")

    @pytest.mark.asyncio
    async def test_only_completed_tasks_are_tracked(self, project_handler, store):
        data = _sync_message([("t1", "completed"), ("t2", "started"), ("t3", "notStarted"), ("t4", "completed")])

        result = await project_handler.handle_project_sync_update(data)

        assert result.project_id == "sol-1"
        assert result.total_tasks == 4
        assert result.completed_tasks == 2
        assert result.inserted == 2
        assert result.skipped == 0
        assert await store.count(ProjectTaskTracking, project_id="sol-1", user_id="u1") == 2

    @pytest.mark.asyncio
    async def test_redelivery_counts(self, project_handler, store):
        """N already tracked plus M new: inserted=M, skipped=N; repeat inserts nothing"""
        existing = [(f"t{i}", "completed") for i in range(3)]
        new = [(f"n{i}", "completed") for i in range(2)]

        await project_handler.handle_project_sync_update(_sync_message(existing))

        first = await project_handler.handle_project_sync_update(_sync_message(existing + new))
        repeat = await project_handler.handle_project_sync_update(_sync_message(existing + new))

        assert (first.inserted, first.skipped) == (2, 3)
        assert (repeat.inserted, repeat.skipped) == (0, 5)
        assert await store.count(ProjectTaskTracking) == 5

    @pytest.mark.asyncio
    async def test_same_task_twice_in_one_payload(self, project_handler, store):
        result = await project_handler.handle_project_sync_update(
            _sync_message([("t1", "completed"), ("t1", "completed")])
        )

        assert (result.inserted, result.skipped) == (1, 1)
        assert await store.count(ProjectTaskTracking) == 1

    @pytest.mark.asyncio
    async def test_tracking_is_per_user(self, project_handler, store):
        await project_handler.handle_project_sync_update(_sync_message([("t1", "completed")], user_id="u1"))
        result = await project_handler.handle_project_sync_update(_sync_message([("t1", "completed")], user_id="u2"))

        assert result.inserted == 1
        assert await store.count(ProjectTaskTracking, task_id="t1") == 2

    @pytest.mark.asyncio
    async def test_no_completed_tasks_skips_storage(self, mock_db_service, transform_service):
        handler = ProjectHandler(mock_db_service, transform_service)

        result = await handler.handle_project_sync_update(_sync_message([("t1", "started")]))

        assert result.success is True
        assert result.completed_tasks == 0
        assert (result.inserted, result.skipped) == (0, 0)
        mock_db_service.upsert_project_task_trackings.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_user_falls_back_to_created_by(self, project_handler, store):
        data = _sync_message([("t1", "completed")], user_id=None, createdBy="author-7")

        result = await project_handler.handle_project_sync_update(data)

        assert result.inserted == 1
        row = await store.find_by_key(ProjectTaskTracking, project_id="sol-1", user_id="author-7", task_id="t1")
        assert row is not None
        assert row.task_status == "completed"

    @pytest.mark.asyncio
    async def test_completed_tasks_without_any_user_fail(self, project_handler):
        with pytest.raises(TransformError):
            await project_handler.handle_project_sync_update(_sync_message([("t1", "completed")], user_id=None))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["_id", "solutionId", "tasks"])
    async def test_sync_requires_identity_and_tasks(self, project_handler, missing):
        data = _sync_message([("t1", "completed")])
        data.pop(missing)

        with pytest.raises(ValidationError) as exc_info:
            await project_handler.handle_project_sync_update(data)

        assert exc_info.value.message.startswith("Validation failed: ")
