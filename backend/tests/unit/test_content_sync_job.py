"""
Unit tests for the scheduled content sync job
"""
import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.triggers.cron import CronTrigger

from core.exceptions import StorageError, TransportError
from handlers import CourseHandler
from jobs.content_sync import JOB_ID, ContentSyncJob
from models import Course, QuestionSet
from schemas.external import ExternalApiResponse
from schemas.sync import HandlerAction, HandlerResult


def _items(*identifiers):
    return [{"identifier": identifier, "name": f"Item {identifier}"} for identifier in identifiers]


def _response(items):
    return ExternalApiResponse(success=True, data=items, total=len(items))


@pytest.fixture
def external_api():
    api = MagicMock()
    api.fetch_course_data = AsyncMock(return_value=_response(_items("c1", "c2", "c3")))
    api.fetch_question_set_data = AsyncMock(return_value=_response(_items("q1")))
    api.test_connection = AsyncMock(return_value=True)
    return api


@pytest.fixture
def course_handler():
    handler = MagicMock()
    ok = HandlerResult(entity="course", action=HandlerAction.CREATED, affected=1)
    handler.handle_course_upsert = AsyncMock(return_value=ok)
    handler.handle_question_set_upsert = AsyncMock(return_value=ok)
    return handler


@pytest.fixture
def job(external_api, course_handler, clock):
    return ContentSyncJob(external_api, course_handler, clock=clock)


class TestContentSyncJob:

    @pytest.mark.asyncio
    async def test_successful_run_updates_counters(self, job, course_handler):
        result = await job.execute()

        status = job.get_status()
        assert result.executed is True
        assert result.success is True
        assert [pull.total_processed for pull in result.sub_pulls] == [3, 1]
        assert course_handler.handle_course_upsert.await_count == 3
        assert course_handler.handle_question_set_upsert.await_count == 1
        assert status.is_running is False
        assert status.total_executions == 1
        assert status.successful_executions == 1
        assert status.failed_executions == 0
        assert status.last_success is not None
        assert status.last_error is None

    @pytest.mark.asyncio
    async def test_failing_item_does_not_abort_batch(self, job, course_handler):
        """Three courses with the second one failing: two processed, run still succeeds"""
        ok = HandlerResult(entity="course", action=HandlerAction.CREATED, affected=1)
        course_handler.handle_course_upsert.side_effect = [
            ok,
            StorageError("write failed", table="courses", key={"identifier": "c2"}),
            ok,
        ]

        result = await job.execute()

        course_pull = result.sub_pulls[0]
        assert course_pull.total_processed == 2
        assert course_pull.total_failed == 1
        assert course_pull.failed_identifiers == ["c2"]
        assert result.success is True
        assert job.get_status().successful_executions == 1

    @pytest.mark.asyncio
    async def test_overlapping_trigger_is_a_no_op(self, job, external_api):
        release = asyncio.Event()

        async def slow_fetch():
            await release.wait()
            return _response(_items("c1"))

        external_api.fetch_course_data.side_effect = slow_fetch

        running = asyncio.create_task(job.execute())
        while not job.is_running:
            await asyncio.sleep(0)

        before = job.get_status()
        skipped = await job.trigger_manual_execution()
        after = job.get_status()

        release.set()
        finished = await running

        assert skipped.executed is False
        assert skipped.reason == "already_running"
        assert after == before
        assert after.total_executions == 1
        assert finished.executed is True
        assert job.get_status().total_executions == 1
        assert job.get_status().successful_executions == 1

    @pytest.mark.asyncio
    async def test_transport_failure_still_runs_question_sets(self, job, external_api, course_handler):
        external_api.fetch_course_data.side_effect = TransportError(
            "Content API returned 502 for course", service="content-api", status_code=502
        )

        result = await job.execute()

        status = job.get_status()
        assert result.success is False
        assert result.sub_pulls[0].completed is False
        assert result.sub_pulls[1].total_processed == 1
        course_handler.handle_question_set_upsert.assert_awaited_once()
        assert status.failed_executions == 1
        assert status.successful_executions == 0
        assert "502" in status.last_error
        assert status.is_running is False

    @pytest.mark.asyncio
    async def test_unexpected_fetch_error_still_runs_question_sets(self, job, external_api, course_handler):
        external_api.fetch_course_data.side_effect = AttributeError("'list' object has no attribute 'get'")

        result = await job.execute()

        status = job.get_status()
        assert result.success is False
        assert len(result.sub_pulls) == 2
        assert result.sub_pulls[0].completed is False
        assert result.sub_pulls[1].total_processed == 1
        external_api.fetch_question_set_data.assert_awaited_once()
        course_handler.handle_question_set_upsert.assert_awaited_once()
        assert status.is_running is False
        assert status.failed_executions == 1
        assert status.last_error == "course: 'list' object has no attribute 'get'"

        second = await job.execute()
        assert second.executed is True

    @pytest.mark.asyncio
    async def test_unexpected_error_releases_guard(self, external_api, course_handler):
        started = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        clock = MagicMock(side_effect=[started, RuntimeError("clock skew"), started, started, started, started])
        job = ContentSyncJob(external_api, course_handler, clock=clock)

        result = await job.execute()

        status = job.get_status()
        assert result.executed is True
        assert result.success is False
        assert status.is_running is False
        assert status.failed_executions == 1
        assert status.successful_executions == 0
        assert status.last_error == "clock skew"

        second = await job.execute()
        assert second.executed is True

    @pytest.mark.asyncio
    async def test_success_clears_previous_error(self, job, external_api):
        external_api.fetch_course_data.side_effect = [
            TransportError("timeout", service="content-api"),
            _response(_items("c1")),
        ]

        await job.execute()
        await job.execute()

        status = job.get_status()
        assert status.total_executions == 2
        assert status.failed_executions == 1
        assert status.successful_executions == 1
        assert status.last_error is None

    @pytest.mark.asyncio
    async def test_empty_response_means_nothing_to_do(self, job, external_api, course_handler):
        external_api.fetch_course_data.return_value = ExternalApiResponse(success=False)
        external_api.fetch_question_set_data.return_value = _response([])

        result = await job.execute()

        assert result.success is True
        course_handler.handle_course_upsert.assert_not_awaited()
        course_handler.handle_question_set_upsert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_status_is_a_snapshot(self, job):
        snapshot = job.get_status()
        snapshot.total_executions = 99

        assert job.get_status().total_executions == 0

    @pytest.mark.asyncio
    async def test_trigger_after_shutdown_is_ignored(self, job, external_api):
        job.shutdown()

        result = await job.trigger_manual_execution()

        assert result.executed is False
        assert result.reason == "shutdown"
        assert job.get_status().total_executions == 0
        external_api.fetch_course_data.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_health_check_unreachable_api(self, job, external_api):
        external_api.test_connection.return_value = False

        health = await job.health_check()

        assert health.status == "unhealthy"
        assert health.details["apiConnected"] is False
        assert health.details["jobStatus"]["totalExecutions"] == 0

    @pytest.mark.asyncio
    async def test_health_check_never_raises(self, job, external_api):
        external_api.test_connection.side_effect = RuntimeError("resolver crashed")

        health = await job.health_check()

        assert health.status == "unhealthy"
        assert health.details["error"] == "resolver crashed"
        assert "jobStatus" in health.details

    @pytest.mark.asyncio
    async def test_health_check_healthy(self, job):
        await job.execute()

        health = await job.health_check()

        assert health.status == "healthy"
        assert health.details["apiConnected"] is True
        assert health.details["lastSuccess"] is not None

    @pytest.mark.asyncio
    async def test_start_registers_cron_trigger(self, external_api, course_handler):
        scheduler = MagicMock()
        scheduler.running = False
        job = ContentSyncJob(external_api, course_handler, schedule="0 12 * * *", scheduler=scheduler)

        await job.start()

        scheduler.add_job.assert_called_once()
        kwargs = scheduler.add_job.call_args.kwargs
        assert kwargs["id"] == JOB_ID
        assert kwargs["max_instances"] == 1
        assert isinstance(kwargs["trigger"], CronTrigger)
        scheduler.start.assert_called_once()
        external_api.test_connection.assert_awaited_once()

        job.shutdown()
        result = await job.execute()
        assert result.executed is False

    @pytest.mark.asyncio
    async def test_persists_content_through_course_handler(self, external_api, db_service, transform_service, clock, store):
        external_api.fetch_course_data.return_value = _response([
            {"identifier": "do_1", "name": "Numeracy", "primaryCategory": "Course", "leafNodesCount": 12},
            {"identifier": "do_2", "name": "Literacy", "lastPublishedOn": "2024-03-01T10:00:00.000+0000"},
        ])
        external_api.fetch_question_set_data.return_value = _response([
            {"identifier": "qs_1", "name": "Practice 1", "maxScore": 10, "childNodes": ["a", "b", "c"]},
        ])
        job = ContentSyncJob(external_api, CourseHandler(db_service, transform_service), clock=clock)

        await job.execute()
        await job.execute()

        course = await store.find_by_key(Course, identifier="do_1")
        question_set = await store.find_by_key(QuestionSet, identifier="qs_1")
        assert await store.count(Course) == 2
        assert course.leaf_node_count == 12
        assert question_set.total_questions == 3
        assert question_set.max_score == 10.0
        assert job.get_status().successful_executions == 2

    @pytest.mark.asyncio
    async def test_unparseable_item_is_skipped_with_real_handler(
        self, external_api, db_service, transform_service, clock, store
    ):
        """Three courses where the second has a bad publish date: two stored, run succeeds"""
        external_api.fetch_course_data.return_value = _response([
            {"identifier": "do_1", "name": "Numeracy"},
            {"identifier": "do_2", "name": "Literacy", "lastPublishedOn": "not-a-date"},
            {"identifier": "do_3", "name": "Science", "lastPublishedOn": "2024-03-01T10:00:00.000+0000"},
        ])
        job = ContentSyncJob(external_api, CourseHandler(db_service, transform_service), clock=clock)

        result = await job.execute()

        course_pull = result.sub_pulls[0]
        assert course_pull.total_processed == 2
        assert course_pull.total_failed == 1
        assert course_pull.failed_identifiers == ["do_2"]
        assert result.success is True
        assert await store.count(Course) == 2
        assert await store.find_by_key(Course, identifier="do_2") is None
        assert job.get_status().successful_executions == 1
