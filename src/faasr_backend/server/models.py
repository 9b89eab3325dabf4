"""Pydantic models for the REST server.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from faasr_backend.services.fork import ForkStatus
from faasr_backend.services.status import RegistrationStatus


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ApiUser(ApiModel):
    login: str
    id: int
    avatar_url: str | None = None


class ApiFork(ApiModel):
    owner: str
    repo_name: str
    url: str
    status: ForkStatus


class CallbackResponse(ApiModel):
    success: bool = True
    message: str = "Installation successful"
    user: ApiUser
    fork: ApiFork


class SessionResponse(ApiModel):
    authenticated: bool
    user: ApiUser | None = None


class MessageResponse(ApiModel):
    success: bool = True
    message: str


class UploadResponse(ApiModel):
    success: bool = True
    message: str = "Workflow uploaded and registration triggered"
    file_name: str
    commit_sha: str
    workflow_run_id: int | None = None
    workflow_run_url: str | None = None


class StatusResponse(ApiModel):
    file_name: str
    status: RegistrationStatus
    workflow_run_id: int
    workflow_run_url: str
    error_message: str | None = None
    triggered_at: datetime
    completed_at: datetime | None = None


class HealthResponse(ApiModel):
    status: Literal["healthy", "unhealthy"]
    timestamp: datetime
    version: str


class ErrorResponse(ApiModel):
    success: bool = False
    error: str
    details: list[str] | None = None
