"""Workflow upload: validate, commit into the user's fork, trigger registration."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

import requests

from faasr_backend.errors import UpstreamFailure, ValidationFailed
from faasr_backend.github.client import GitHubAPIError, GitHubClient, GitHubDecodeError
from faasr_backend.services.fork import DEFAULT_BRANCH, UPSTREAM_REPO
from faasr_backend.services.workflow_file import (
    FileValidationResult,
    sanitize_file_name,
    validate_workflow_file,
)
from faasr_backend.session import UserSession

logger = logging.getLogger(__name__)

REGISTER_WORKFLOW_ID = "register-workflow.yml"


@dataclass(frozen=True, slots=True)
class UploadResult:
    file_name: str
    commit_sha: str


@dataclass(frozen=True, slots=True)
class RegistrationResult:
    workflow_run_id: int | None = None
    workflow_run_url: str | None = None


class WorkflowUploadService:
    """Commit workflow files into a user's fork and kick off registration."""

    def __init__(
        self,
        *,
        github: GitHubClient,
        repo_name: str = UPSTREAM_REPO,
        workflow_id: str = REGISTER_WORKFLOW_ID,
        branch: str = DEFAULT_BRANCH,
    ) -> None:
        self._github = github
        self._repo_name = repo_name
        self._workflow_id = workflow_id
        self._branch = branch

    def validate_file(self, file_name: str, content: str, size_bytes: int) -> FileValidationResult:
        sanitized = sanitize_file_name(file_name)
        result = validate_workflow_file(sanitized, content, size_bytes)
        return replace(result, sanitized_file_name=sanitized)

    def commit_file(
        self,
        *,
        owner: str,
        repo: str,
        path: str,
        content: str,
        branch: str = DEFAULT_BRANCH,
        message: str | None = None,
    ) -> str:
        """Create or update `path` on `branch` and return the commit sha."""

        existing_sha: str | None = None
        try:
            existing_sha = self._github.get_contents(owner=owner, repo=repo, path=path, ref=branch).sha
        except GitHubAPIError as e:
            if e.status_code != 404:
                raise
        except GitHubDecodeError:
            # A directory listing (or similar) at `path` has no blob sha to reuse.
            logger.warning("Ignoring non-file contents entry", extra={"path": path})

        result = self._github.put_contents(
            owner=owner,
            repo=repo,
            path=path,
            content=content,
            message=message or f"Add workflow file: {path}",
            branch=branch,
            sha=existing_sha,
        )
        commit_sha = result.commit.sha
        if not commit_sha:
            raise UpstreamFailure("Failed to get commit SHA from GitHub API response")

        logger.info(
            "Workflow file committed",
            extra={
                "repository": f"{owner}/{repo}",
                "path": path,
                "commit_sha": commit_sha,
                "updated": existing_sha is not None,
            },
        )
        return commit_sha

    def dispatch_workflow(
        self,
        *,
        owner: str,
        repo: str,
        workflow_id: str,
        ref: str = DEFAULT_BRANCH,
        inputs: dict[str, str] | None = None,
    ) -> None:
        self._github.create_workflow_dispatch(
            owner=owner, repo=repo, workflow_id=workflow_id, ref=ref, inputs=inputs
        )

    def upload_workflow(
        self,
        session: UserSession,
        file_name: str,
        data: bytes,
        size_bytes: int | None = None,
    ) -> UploadResult:
        """Validate an uploaded file and commit it into the user's fork.

        `size_bytes` is the declared upload size when `data` was read with a cap;
        it defaults to `len(data)`.

        Raises:
            ValidationFailed: carrying every validation error at once.
        """

        # A leading UTF-8 BOM is dropped, matching how browsers read text files.
        content = data.decode("utf-8-sig", errors="replace")
        size = len(data) if size_bytes is None else max(size_bytes, len(data))
        validation = self.validate_file(file_name, content, size)
        if not validation.valid:
            raise ValidationFailed("Invalid file", validation.errors)

        sanitized = validation.sanitized_file_name or sanitize_file_name(file_name)
        commit_sha = self.commit_file(
            owner=session.user_login,
            repo=self._repo_name,
            path=sanitized,
            content=content,
            branch=self._branch,
        )
        return UploadResult(file_name=sanitized, commit_sha=commit_sha)

    def trigger_registration(self, session: UserSession, file_name: str) -> RegistrationResult:
        """Dispatch the registration workflow and report the newest run if visible.

        Neither a failed dispatch nor a failed run lookup fails the upload; the
        run may simply not be listed yet.
        """

        try:
            self.dispatch_workflow(
                owner=session.user_login,
                repo=self._repo_name,
                workflow_id=self._workflow_id,
                ref=self._branch,
                inputs={"workflow_file": file_name},
            )
        except (GitHubAPIError, GitHubDecodeError, requests.RequestException):
            logger.warning(
                "Workflow dispatch failed",
                extra={"owner": session.user_login, "file_name": file_name},
                exc_info=True,
            )
            return RegistrationResult()

        try:
            runs = self._github.list_workflow_runs(
                owner=session.user_login,
                repo=self._repo_name,
                workflow_id=self._workflow_id,
                per_page=1,
            )
        except (GitHubAPIError, GitHubDecodeError, requests.RequestException):
            logger.warning(
                "Failed to look up workflow run after dispatch",
                extra={"owner": session.user_login, "file_name": file_name},
                exc_info=True,
            )
            return RegistrationResult()

        if not runs:
            return RegistrationResult()
        run = runs[0]
        logger.info(
            "Registration dispatched",
            extra={"owner": session.user_login, "file_name": file_name, "run_id": run.id},
        )
        return RegistrationResult(workflow_run_id=run.id, workflow_run_url=run.html_url)
