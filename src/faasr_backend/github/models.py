"""Typed views of the GitHub REST responses we consume.

Responses are validated into these models at the client boundary; the rest of
the backend only ever sees the validated types. Unknown fields are ignored.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class AccountPayload(_Payload):
    login: str
    id: int
    avatar_url: str | None = None


class ParentRepositoryPayload(_Payload):
    name: str
    owner: AccountPayload


class RepositoryPayload(_Payload):
    name: str
    html_url: str
    fork: bool = False
    parent: ParentRepositoryPayload | None = None
    default_branch: str | None = None
    created_at: datetime | None = None


class ContentsPayload(_Payload):
    """A single file entry from the contents API."""

    sha: str
    path: str | None = None
    type: str | None = None


class CommitPayload(_Payload):
    sha: str | None = None
    html_url: str | None = None


class FileCommitPayload(_Payload):
    """Response of `PUT /repos/{owner}/{repo}/contents/{path}`."""

    commit: CommitPayload


class WorkflowRunPayload(_Payload):
    id: int
    status: str | None = None
    conclusion: str | None = None
    html_url: str
    created_at: datetime
    updated_at: datetime | None = None


class WorkflowRunsPage(_Payload):
    total_count: int = 0
    workflow_runs: list[WorkflowRunPayload] = Field(default_factory=list)


class InstallationAccountPayload(AccountPayload):
    avatar_url: str


class InstallationPayload(_Payload):
    id: int
    account: InstallationAccountPayload
    permissions: dict[str, str] = Field(default_factory=dict)
