from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import Mock

import pytest

from faasr_backend.errors import ForkNotReady
from faasr_backend.github.client import GitHubAPIError
from faasr_backend.github.models import RepositoryPayload
from faasr_backend.services.fork import ForkService


def _repo(*, fork: bool = True, parent_owner: str = "FaaSr") -> RepositoryPayload:
    data = {
        "name": "FaaSr-workflow",
        "html_url": "https://github.com/octocat/FaaSr-workflow",
        "fork": fork,
        "default_branch": "main",
        "created_at": "2024-05-01T12:00:00Z",
    }
    if fork:
        data["parent"] = {
            "name": "FaaSr-workflow",
            "owner": {"login": parent_owner, "id": 1},
        }
    return RepositoryPayload.model_validate(data)


def _not_found() -> GitHubAPIError:
    return GitHubAPIError("Not Found", 404)


def _service(github: Mock, sleep: Mock | None = None, max_attempts: int = 30) -> ForkService:
    return ForkService(
        github=github,
        max_attempts=max_attempts,
        delay_seconds=1.0,
        sleep=sleep or Mock(),
    )


def test_check_fork_returns_existing_fork(github: Mock) -> None:
    github.get_repository.return_value = _repo()

    fork = _service(github).check_fork("octocat")

    assert fork is not None
    assert fork.status == "exists"
    assert fork.owner == "octocat"
    assert fork.repo_name == "FaaSr-workflow"
    assert fork.fork_url == "https://github.com/octocat/FaaSr-workflow"
    assert fork.created_at == datetime(2024, 5, 1, 12, tzinfo=UTC)
    github.get_repository.assert_called_once_with(owner="octocat", repo="FaaSr-workflow")


def test_check_fork_treats_404_as_absent(github: Mock) -> None:
    github.get_repository.side_effect = _not_found()

    assert _service(github).check_fork("octocat") is None


def test_check_fork_propagates_other_errors(github: Mock) -> None:
    github.get_repository.side_effect = GitHubAPIError("Server Error", 500)

    with pytest.raises(GitHubAPIError):
        _service(github).check_fork("octocat")


@pytest.mark.parametrize("repo", [_repo(fork=False), _repo(parent_owner="someone-else")])
def test_check_fork_ignores_unrelated_repository(github: Mock, repo: RepositoryPayload) -> None:
    github.get_repository.return_value = repo

    assert _service(github).check_fork("octocat") is None


def test_ensure_fork_reuses_existing_fork(github: Mock) -> None:
    github.get_repository.return_value = _repo()

    fork = _service(github).ensure_fork("octocat")

    assert fork.status == "exists"
    github.create_fork.assert_not_called()


def test_ensure_fork_creates_and_waits_for_fork(github: Mock) -> None:
    sleep = Mock()
    # Initial check, then two polls before the fork becomes visible.
    github.get_repository.side_effect = [_not_found(), _not_found(), _not_found(), _repo()]

    fork = _service(github, sleep=sleep).ensure_fork("octocat")

    assert fork.status == "created"
    assert fork.created_at is not None
    github.create_fork.assert_called_once_with(owner="FaaSr", repo="FaaSr-workflow")
    assert sleep.call_count == 2
    sleep.assert_called_with(1.0)


def test_poll_succeeds_on_third_attempt(github: Mock) -> None:
    sleep = Mock()
    github.get_repository.side_effect = [_not_found(), _not_found(), _repo()]

    fork = _service(github, sleep=sleep).poll_until_fork_ready("octocat", max_attempts=5)

    assert fork.status == "exists"
    assert github.get_repository.call_count == 3
    assert sleep.call_count == 2


def test_poll_gives_up_after_max_attempts(github: Mock) -> None:
    sleep = Mock()
    github.get_repository.side_effect = _not_found()

    with pytest.raises(ForkNotReady) as excinfo:
        _service(github, sleep=sleep).poll_until_fork_ready("octocat", max_attempts=3)

    assert "3 attempts" in str(excinfo.value)
    assert excinfo.value.status_code == 502
    assert github.get_repository.call_count == 3
    # No sleep after the final attempt.
    assert sleep.call_count == 2


def test_poll_rejects_invalid_budget(github: Mock) -> None:
    with pytest.raises(ValueError):
        _service(github).poll_until_fork_ready("octocat", max_attempts=0)


@pytest.mark.parametrize("status_code", [403, 409])
def test_rejected_create_falls_back_to_existing_fork(github: Mock, status_code: int) -> None:
    github.create_fork.side_effect = GitHubAPIError("Conflict", status_code)
    github.get_repository.return_value = _repo()

    fork = _service(github).create_fork("octocat")

    assert fork.status == "exists"


def test_rejected_create_without_fork_propagates(github: Mock) -> None:
    github.create_fork.side_effect = GitHubAPIError("Forbidden", 403)
    github.get_repository.side_effect = _not_found()

    with pytest.raises(GitHubAPIError) as excinfo:
        _service(github).create_fork("octocat")

    assert excinfo.value.status_code == 403
