"""Registration status lookup.

Only the single most recent run of the registration workflow is considered:
the backend assumes at most one registration in flight per user. Each call
re-derives the status from GitHub; nothing is cached.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Literal

from faasr_backend.errors import NotFound
from faasr_backend.github.client import GitHubAPIError, GitHubClient
from faasr_backend.services.fork import UPSTREAM_REPO
from faasr_backend.services.upload import REGISTER_WORKFLOW_ID
from faasr_backend.services.workflow_file import sanitize_file_name
from faasr_backend.session import UserSession

logger = logging.getLogger(__name__)

RegistrationStatus = Literal["pending", "running", "success", "failed"]

_TERMINAL: frozenset[str] = frozenset({"success", "failed"})


@dataclass(frozen=True, slots=True)
class WorkflowRegistration:
    file_name: str
    status: RegistrationStatus
    workflow_run_id: int
    workflow_run_url: str
    error_message: str | None
    triggered_at: datetime
    completed_at: datetime | None


def map_run_status(status: str | None, conclusion: str | None) -> RegistrationStatus:
    """Collapse GitHub's status/conclusion pair onto the registration states."""

    if status == "completed":
        return "success" if conclusion == "success" else "failed"
    if status == "in_progress":
        return "running"
    return "pending"


class WorkflowStatusService:
    def __init__(
        self,
        *,
        github: GitHubClient,
        repo_name: str = UPSTREAM_REPO,
        workflow_id: str = REGISTER_WORKFLOW_ID,
        clock: Callable[[], datetime] = lambda: datetime.now(tz=UTC),
    ) -> None:
        self._github = github
        self._repo_name = repo_name
        self._workflow_id = workflow_id
        self._clock = clock

    def get_status(self, session: UserSession, file_name: str) -> WorkflowRegistration:
        sanitized = sanitize_file_name(file_name)

        runs = self._github.list_workflow_runs(
            owner=session.user_login,
            repo=self._repo_name,
            workflow_id=self._workflow_id,
            per_page=1,
        )
        if not runs:
            raise NotFound("Workflow run not found")

        try:
            run = self._github.get_workflow_run(
                owner=session.user_login, repo=self._repo_name, run_id=runs[0].id
            )
        except GitHubAPIError as e:
            if e.status_code == 404:
                raise NotFound("Workflow run not found") from e
            raise

        status = map_run_status(run.status, run.conclusion)
        error_message = None
        if status == "failed":
            error_message = run.conclusion or "Workflow registration failed"

        completed_at = None
        if status in _TERMINAL:
            completed_at = run.updated_at or self._clock()

        logger.debug(
            "Registration status resolved",
            extra={"owner": session.user_login, "run_id": run.id, "status": status},
        )
        return WorkflowRegistration(
            file_name=sanitized,
            status=status,
            workflow_run_id=run.id,
            workflow_run_url=run.html_url,
            error_message=error_message,
            triggered_at=run.created_at,
            completed_at=completed_at,
        )
