"""Fork detection and creation for the FaaSr-workflow template repository."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Literal

from faasr_backend.errors import ForkNotReady
from faasr_backend.github.client import GitHubAPIError, GitHubClient
from faasr_backend.github.models import RepositoryPayload

logger = logging.getLogger(__name__)

UPSTREAM_OWNER = "FaaSr"
UPSTREAM_REPO = "FaaSr-workflow"
DEFAULT_BRANCH = "main"

ForkStatus = Literal["pending", "exists", "created", "failed"]


@dataclass(frozen=True, slots=True)
class RepositoryFork:
    owner: str
    repo_name: str
    fork_url: str
    status: ForkStatus
    default_branch: str
    created_at: datetime | None = None


class ForkService:
    """Make sure a user owns a fork of the upstream template repository.

    GitHub's fork endpoint returns before the fork can be queried, so creation is
    followed by a bounded polling loop with a fixed delay.
    """

    def __init__(
        self,
        *,
        github: GitHubClient,
        max_attempts: int = 30,
        delay_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        upstream_owner: str = UPSTREAM_OWNER,
        repo_name: str = UPSTREAM_REPO,
    ) -> None:
        self._github = github
        self._max_attempts = max_attempts
        self._delay_seconds = delay_seconds
        self._sleep = sleep
        self._upstream_owner = upstream_owner
        self._repo_name = repo_name

    def _is_upstream_fork(self, repo: RepositoryPayload) -> bool:
        if not repo.fork or repo.parent is None:
            return False
        return (
            repo.parent.owner.login == self._upstream_owner
            and repo.parent.name == self._repo_name
        )

    def check_fork(self, user_login: str) -> RepositoryFork | None:
        """Return the user's fork, or None if there is no fork of the upstream repository.

        A repository with the right name that is not a fork of the upstream
        counts as "no fork". Only a 404 is treated as absence; other API errors
        propagate.
        """

        try:
            repo = self._github.get_repository(owner=user_login, repo=self._repo_name)
        except GitHubAPIError as e:
            if e.status_code == 404:
                return None
            raise

        if not self._is_upstream_fork(repo):
            logger.info(
                "Repository exists but is not a fork of the upstream",
                extra={"owner": user_login, "repo": self._repo_name},
            )
            return None

        return RepositoryFork(
            owner=user_login,
            repo_name=self._repo_name,
            fork_url=repo.html_url,
            status="exists",
            default_branch=repo.default_branch or DEFAULT_BRANCH,
            created_at=repo.created_at,
        )

    def poll_until_fork_ready(
        self,
        user_login: str,
        *,
        max_attempts: int | None = None,
        delay_seconds: float | None = None,
    ) -> RepositoryFork:
        attempts = self._max_attempts if max_attempts is None else max_attempts
        delay = self._delay_seconds if delay_seconds is None else delay_seconds
        if attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if delay < 0:
            raise ValueError("delay_seconds must be >= 0")

        for attempt in range(1, attempts + 1):
            fork = self.check_fork(user_login)
            if fork is not None:
                logger.info(
                    "Fork is ready",
                    extra={"owner": user_login, "attempt": attempt},
                )
                return fork

            if attempt < attempts:
                self._sleep(delay)

        logger.warning(
            "Timed out waiting for fork",
            extra={"owner": user_login, "attempts": attempts, "delay_seconds": delay},
        )
        raise ForkNotReady(
            owner=user_login,
            repo_name=self._repo_name,
            attempts=attempts,
            elapsed_seconds=attempts * delay,
        )

    def create_fork(self, user_login: str) -> RepositoryFork:
        """Fork the upstream into the user's account and wait until it is visible."""

        logger.info("Creating fork", extra={"owner": user_login, "repo": self._repo_name})
        try:
            self._github.create_fork(owner=self._upstream_owner, repo=self._repo_name)
        except GitHubAPIError as e:
            # A rejected create can mean the fork is already there.
            if e.status_code in (403, 409):
                existing = self.check_fork(user_login)
                if existing is not None:
                    return existing
            raise

        fork = self.poll_until_fork_ready(user_login)
        return replace(fork, status="created", created_at=datetime.now(tz=UTC))

    def ensure_fork(self, user_login: str) -> RepositoryFork:
        existing = self.check_fork(user_login)
        if existing is not None:
            return existing
        return self.create_fork(user_login)
