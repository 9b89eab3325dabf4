"""GitHub REST client used by the fork, upload and status services.

Every call is authenticated with an installation token. Responses are
validated into the typed payloads from :mod:`faasr_backend.github.models`.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from faasr_backend.github.models import (
    ContentsPayload,
    FileCommitPayload,
    RepositoryPayload,
    WorkflowRunPayload,
    WorkflowRunsPage,
)

logger = logging.getLogger(__name__)

_T = TypeVar("_T", bound=BaseModel)

REQUEST_TIMEOUT_SECONDS = 30


class GitHubAPIError(Exception):
    """GitHub answered with a non-success status code."""

    def __init__(self, message: str, status_code: int) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class GitHubDecodeError(Exception):
    """GitHub answered successfully but the body did not have the expected shape."""


def describe_github_error(error: GitHubAPIError) -> str:
    """Translate a GitHub status code into a message fit for end users."""

    status = error.status_code
    if status == 401:
        return "GitHub authentication failed. Please reinstall the GitHub App."
    if status == 403:
        return (
            "Permission denied by GitHub. Please check that the GitHub App has the "
            "required permissions and try again."
        )
    if status == 404:
        return (
            "Resource not found on GitHub. Please verify the repository exists and is accessible."
        )
    if status == 422:
        return "GitHub validation error. Please check your request and try again."
    if status == 429:
        return (
            "GitHub API rate limit exceeded. Please wait a few minutes before trying again. "
            "Rate limits reset every hour."
        )
    if 500 <= status <= 599:
        return "GitHub is experiencing server issues. Please try again in a few minutes."
    return error.message


def _decode(model: type[_T], resp: requests.Response, *, what: str) -> _T:
    try:
        data = resp.json()
    except ValueError as e:
        raise GitHubDecodeError(f"Unreadable {what} response from GitHub") from e
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise GitHubDecodeError(f"Unexpected {what} response from GitHub") from e


class GitHubClient:
    """Small wrapper around the REST endpoints this backend needs."""

    def __init__(
        self,
        *,
        token: str,
        base_url: str = "https://api.github.com",
        session: requests.Session | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitHub token is required")

        self._rest_base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "faasr-backend",
            }
        )

    def _repo_url(self, *, owner: str, repo: str, path: str = "") -> str:
        path = path.lstrip("/")
        url = f"{self._rest_base_url}/repos/{owner.strip()}/{repo.strip().strip('/')}"
        return f"{url}/{path}" if path else url

    @staticmethod
    def _raise_for_status(resp: requests.Response) -> None:
        if resp.ok:
            return
        message = resp.reason or f"HTTP {resp.status_code}"
        try:
            data = resp.json()
        except ValueError:
            data = None
        if isinstance(data, dict) and isinstance(data.get("message"), str):
            message = data["message"]
        raise GitHubAPIError(message, resp.status_code)

    def get_repository(self, *, owner: str, repo: str) -> RepositoryPayload:
        resp = self._session.get(
            self._repo_url(owner=owner, repo=repo), timeout=REQUEST_TIMEOUT_SECONDS
        )
        self._raise_for_status(resp)
        return _decode(RepositoryPayload, resp, what="repository")

    def create_fork(self, *, owner: str, repo: str, organization: str | None = None) -> None:
        """Request a fork; GitHub accepts the request before the fork is queryable."""

        payload: dict[str, Any] = {}
        if organization:
            payload["organization"] = organization
        resp = self._session.post(
            self._repo_url(owner=owner, repo=repo, path="forks"),
            json=payload,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        self._raise_for_status(resp)

    def get_contents(self, *, owner: str, repo: str, path: str, ref: str = "") -> ContentsPayload:
        """Return the contents entry for a file.

        Raises:
            GitHubAPIError with status 404 when the file does not exist.
        """

        params: dict[str, str] = {}
        if ref.strip():
            params["ref"] = ref
        resp = self._session.get(
            self._repo_url(owner=owner, repo=repo, path=f"contents/{path.lstrip('/')}"),
            params=params or None,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        self._raise_for_status(resp)
        return _decode(ContentsPayload, resp, what="contents")

    def put_contents(
        self,
        *,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: str | None = None,
    ) -> FileCommitPayload:
        """Create or update a text file via the contents API."""

        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if sha is not None and sha.strip():
            payload["sha"] = sha

        resp = self._session.put(
            self._repo_url(owner=owner, repo=repo, path=f"contents/{path.lstrip('/')}"),
            json=payload,
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        self._raise_for_status(resp)
        return _decode(FileCommitPayload, resp, what="contents upsert")

    def create_workflow_dispatch(
        self,
        *,
        owner: str,
        repo: str,
        workflow_id: str,
        ref: str,
        inputs: dict[str, str] | None = None,
    ) -> None:
        resp = self._session.post(
            self._repo_url(owner=owner, repo=repo, path=f"actions/workflows/{workflow_id}/dispatches"),
            json={"ref": ref, "inputs": inputs or {}},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        self._raise_for_status(resp)

    def list_workflow_runs(
        self,
        *,
        owner: str,
        repo: str,
        workflow_id: str,
        per_page: int = 1,
    ) -> list[WorkflowRunPayload]:
        """List runs of a workflow, most recent first."""

        resp = self._session.get(
            self._repo_url(owner=owner, repo=repo, path=f"actions/workflows/{workflow_id}/runs"),
            params={"per_page": per_page},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        self._raise_for_status(resp)
        return _decode(WorkflowRunsPage, resp, what="workflow runs").workflow_runs

    def get_workflow_run(self, *, owner: str, repo: str, run_id: int) -> WorkflowRunPayload:
        resp = self._session.get(
            self._repo_url(owner=owner, repo=repo, path=f"actions/runs/{run_id}"),
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        self._raise_for_status(resp)
        return _decode(WorkflowRunPayload, resp, what="workflow run")

    def close(self) -> None:
        self._session.close()
