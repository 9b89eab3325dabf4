"""Workflow upload and registration status.

All routes are mounted under `/workflows` and require a session.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Request, UploadFile

from faasr_backend.errors import ValidationFailed
from faasr_backend.server.dependencies import open_github, require_session
from faasr_backend.server.models import StatusResponse, UploadResponse
from faasr_backend.services.status import WorkflowStatusService
from faasr_backend.services.upload import WorkflowUploadService
from faasr_backend.services.workflow_file import MAX_FILE_SIZE
from faasr_backend.session import UserSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["workflows"])


def read_upload(file: UploadFile) -> tuple[bytes, int]:
    """Read at most one byte past the size limit; return the data and the declared size."""

    data = file.file.read(MAX_FILE_SIZE + 1)
    size = file.size if file.size is not None else len(data)
    return data, size


@router.post("/upload", response_model=UploadResponse, response_model_exclude_none=True)
def upload(
    request: Request,
    session: UserSession = Depends(require_session),
    file: UploadFile | None = File(default=None),
) -> UploadResponse:
    if file is None:
        raise ValidationFailed("File is required")

    data, size = read_upload(file)
    file_name = file.filename or ""

    with open_github(request, session.installation_id) as github:
        service = WorkflowUploadService(github=github)
        uploaded = service.upload_workflow(session, file_name, data, size_bytes=size)
        registration = service.trigger_registration(session, uploaded.file_name)

    logger.info(
        "Workflow uploaded",
        extra={
            "owner": session.user_login,
            "file_name": uploaded.file_name,
            "commit_sha": uploaded.commit_sha,
            "run_id": registration.workflow_run_id,
        },
    )
    return UploadResponse(
        file_name=uploaded.file_name,
        commit_sha=uploaded.commit_sha,
        workflow_run_id=registration.workflow_run_id,
        workflow_run_url=registration.workflow_run_url,
    )


@router.get("/status/{file_name:path}", response_model=StatusResponse)
def status(
    file_name: str,
    request: Request,
    session: UserSession = Depends(require_session),
) -> StatusResponse:
    with open_github(request, session.installation_id) as github:
        registration = WorkflowStatusService(github=github).get_status(session, file_name)

    return StatusResponse(
        file_name=registration.file_name,
        status=registration.status,
        workflow_run_id=registration.workflow_run_id,
        workflow_run_url=registration.workflow_run_url,
        error_message=registration.error_message,
        triggered_at=registration.triggered_at,
        completed_at=registration.completed_at,
    )
