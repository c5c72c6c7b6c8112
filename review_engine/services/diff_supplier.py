"""Diff suppliers: where the engine gets normalized PR diffs from."""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from cachetools import TTLCache
from github import Github
from github.File import File
from github.PullRequest import PullRequest

from review_engine.models.github_types import (
    DiffSummary,
    FileChange,
    FileStatus,
    RateLimitInfo,
)

logger = logging.getLogger(__name__)

# GitHub reports a few statuses beyond the four the scorer knows about
_STATUS_MAP: dict[str, FileStatus] = {
    "added": "added",
    "modified": "modified",
    "removed": "removed",
    "renamed": "renamed",
    "copied": "added",
    "changed": "modified",
    "unchanged": "modified",
}


@runtime_checkable
class DiffSupplier(Protocol):
    """Anything that can hand out a PR diff and the current rate-limit state."""

    def fetch_diff(self, owner: str, repo: str, pr_number: int) -> DiffSummary: ...

    @property
    def rate_limit(self) -> RateLimitInfo: ...


def normalize_file(file: File) -> FileChange:
    """Convert a PyGithub ``File`` into a ``FileChange``."""
    status = _STATUS_MAP.get(file.status)
    if status is None:
        logger.warning(f"Unknown file status '{file.status}' for {file.filename}")
        status = "modified"
    return FileChange(
        path=file.filename,
        status=status,
        additions=file.additions,
        deletions=file.deletions,
        changes=file.changes,
        patch_text=file.patch,
        previous_path=file.previous_filename,
    )


class GitHubDiffSupplier:
    """
    PyGithub-backed diff supplier.

    Pull request objects and normalized diffs are cached for a short time so
    that bursts of webhook deliveries for the same PR don't refetch
    everything. The caches live on the instance and hold at most ``maxsize``
    PRs each.
    """

    def __init__(
        self,
        github_client: Github,
        pr_ttl: float = 30.0,
        files_ttl: float = 60.0,
        maxsize: int = 128,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.github_client = github_client
        self._prs: TTLCache = TTLCache(maxsize=maxsize, ttl=pr_ttl, timer=timer)
        self._diffs: TTLCache = TTLCache(maxsize=maxsize, ttl=files_ttl, timer=timer)

    def get_pull(self, owner: str, repo: str, pr_number: int) -> PullRequest:
        key = (owner, repo, pr_number)
        pr = self._prs.get(key)
        if pr is None:
            pr = self.github_client.get_repo(f"{owner}/{repo}").get_pull(pr_number)
            self._prs[key] = pr
            logger.debug(f"Cached PR object for {owner}/{repo}#{pr_number}")
        return pr

    def fetch_diff(self, owner: str, repo: str, pr_number: int) -> DiffSummary:
        """
        Fetch and normalize the changed files of a PR.

        Raises:
            GithubException: If a GitHub API request fails
        """
        key = (owner, repo, pr_number)
        diff = self._diffs.get(key)
        if diff is not None:
            return diff

        pr = self.get_pull(owner, repo, pr_number)
        diff = DiffSummary.from_files([normalize_file(f) for f in pr.get_files()])
        self._diffs[key] = diff
        logger.info(
            f"Fetched diff for {owner}/{repo}#{pr_number}: {diff.file_count} files, "
            f"+{diff.total_additions}/-{diff.total_deletions}"
        )
        return diff

    @property
    def rate_limit(self) -> RateLimitInfo:
        remaining, _limit = self.github_client.rate_limiting
        reset_at = datetime.fromtimestamp(
            self.github_client.rate_limiting_resettime, tz=timezone.utc
        )
        return RateLimitInfo(remaining=remaining, reset_at=reset_at)

    def invalidate(self, owner: str, repo: str, pr_number: int) -> None:
        """Forget cached data for one PR, e.g. after a new push."""
        key = (owner, repo, pr_number)
        self._prs.pop(key, None)
        self._diffs.pop(key, None)
