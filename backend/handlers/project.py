from typing import Any, Dict, Union

from handlers.base import BaseHandler, validation_failures
from schemas.envelope import ProjectCreatedPayload, ProjectSyncPayload, parse_payload
from schemas.sync import HandlerResult, ProjectSyncResult


class ProjectHandler(BaseHandler):
    """Project templates, their tasks, and per-user task completion"""

    entity = "project"

    async def handle_project_created(self, data: Union[ProjectCreatedPayload, Dict[str, Any]]) -> HandlerResult:
        with validation_failures():
            payload = parse_payload(ProjectCreatedPayload, data)
            project_record = self.transform_service.transform_project(payload)
            task_records = self.transform_service.transform_project_tasks(payload)

        project_id = project_record["project_id"]
        self.logger.info(
            f"Processing project creation: projectTemplateId={project_id}",
            metadata={"project_id": project_id, "total_tasks": project_record["total_tasks"]},
        )

        outcome = await self.db_service.upsert_project(project_record)
        tasks_count = await self.db_service.upsert_project_tasks(task_records)

        self.logger.info(
            f"Project {outcome.action.value}: {project_id} with {tasks_count} tasks",
            metadata={"project_id": project_id, "tasks_count": tasks_count},
        )
        result = self._result(outcome, tasks_count=tasks_count)
        result.affected += tasks_count
        return result

    async def handle_project_sync_update(
        self, data: Union[ProjectSyncPayload, Dict[str, Any]]
    ) -> ProjectSyncResult:
        """
        Record completed tasks for one user's project instance.

        Only tasks whose status is ``completed`` produce tracking rows, keyed
        by (solutionId, user, task). Redelivered completions are skipped.
        """
        with validation_failures():
            payload = parse_payload(ProjectSyncPayload, data)
            tracking_records = self.transform_service.transform_project_task_tracking(payload)

        total_tasks = len(payload.tasks)
        self.logger.info(
            f"Processing project sync update: _id={payload.id}, solutionId={payload.solution_id}",
            metadata={
                "project_instance_id": payload.id,
                "project_id": payload.solution_id,
                "user_id": payload.user_id,
                "status": payload.status,
                "total_tasks": total_tasks,
                "completed_tasks": len(tracking_records),
            },
        )

        if not tracking_records:
            self.logger.info(f"No completed tasks to insert for project {payload.solution_id}")
            return ProjectSyncResult(
                project_id=payload.solution_id,
                status=payload.status,
                total_tasks=total_tasks,
            )

        outcome = await self.db_service.upsert_project_task_trackings(tracking_records)

        self.logger.info(
            f"Project sync complete: projectId={payload.solution_id}, "
            f"inserted={outcome.inserted}, skipped={outcome.skipped}",
            metadata={"project_id": payload.solution_id, "inserted": outcome.inserted, "skipped": outcome.skipped},
        )
        return ProjectSyncResult(
            project_id=payload.solution_id,
            status=payload.status,
            total_tasks=total_tasks,
            completed_tasks=len(tracking_records),
            inserted=outcome.inserted,
            skipped=outcome.skipped,
        )
