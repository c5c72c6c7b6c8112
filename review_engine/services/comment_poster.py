"""Posting review comments to GitHub pull requests."""

import logging
import re
from collections.abc import Iterable, Sequence

from github import Github, GithubException
from github.Commit import Commit
from github.PullRequest import PullRequest

from review_engine.models.github_types import DiffSummary
from review_engine.models.outputs import CommentPosting, ReviewComment

logger = logging.getLogger(__name__)

# Hunk header: @@ -old_start,old_len +new_start,new_len @@
HUNK_HEADER_RE = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,(\d+))? @@")

SEVERITY_BADGES = {
    "critical": "🔴 **Critical**",
    "high": "🟠 **High**",
    "medium": "🟡 **Medium**",
    "low": "🔵 **Low**",
    "info": "⚪ **Info**",
}


def commentable_lines(patch: str | None) -> set[int]:
    """Line numbers of the new file version that GitHub accepts comments on.

    Added and context lines inside a hunk qualify; removed lines don't.
    """
    if not patch:
        return set()

    valid_lines = set()
    current_new_line = 0
    in_hunk = False

    for line in patch.split("\n"):
        if line.startswith("@@"):
            match = HUNK_HEADER_RE.match(line)
            if match:
                current_new_line = int(match.group(1))
                in_hunk = True
                continue

        if not in_hunk:
            continue

        if line.startswith("+") or line.startswith(" "):
            valid_lines.add(current_new_line)
            current_new_line += 1

    return valid_lines


def filter_commentable(
    comments: Iterable[ReviewComment], diff: DiffSummary
) -> list[ReviewComment]:
    """Drop comments on files outside the diff or lines outside its hunks."""
    patches = {f.path: f.patch_text for f in diff.files_changed}
    kept = []
    for comment in comments:
        if comment.file_path not in patches:
            logger.warning(
                f"Skipping comment on {comment.coordinate_key} - file not found in PR"
            )
            continue
        if comment.line_number not in commentable_lines(patches[comment.file_path]):
            logger.warning(
                f"Skipping comment on {comment.coordinate_key} - line not in diff"
            )
            continue
        kept.append(comment)
    return kept


def format_comment_body(comment: ReviewComment) -> str:
    """Markdown body of an inline comment."""
    badge = SEVERITY_BADGES.get(comment.severity, comment.severity)
    body = f"{badge} · {comment.category}\n\n{comment.message}"
    if comment.suggestion:
        body += f"\n\n**Suggestion:** {comment.suggestion}"
    if comment.code_snippet:
        body += f"\n\n```suggestion\n{comment.code_snippet}\n```"
    return body


class GitHubCommentPoster:
    """Posts inline review comments through PyGithub."""

    def __init__(self, github_client: Github):
        self.github_client = github_client

    def _pull_and_commit(
        self, owner: str, repo: str, pr_number: int, commit_sha: str
    ) -> tuple[PullRequest, Commit]:
        repository = self.github_client.get_repo(f"{owner}/{repo}")
        return repository.get_pull(pr_number), repository.get_commit(commit_sha)

    def post_comment(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        commit_sha: str,
        comment: ReviewComment,
    ) -> CommentPosting:
        """
        Post a single inline comment.

        Raises:
            GithubException: If GitHub rejects the comment
        """
        pr, commit = self._pull_and_commit(owner, repo, pr_number, commit_sha)
        created = pr.create_review_comment(
            body=format_comment_body(comment),
            commit=commit,
            path=comment.file_path,
            line=comment.line_number,
        )
        logger.debug(f"Posted comment on {comment.coordinate_key} (id={created.id})")
        return CommentPosting(
            file_path=comment.file_path,
            line_number=comment.line_number,
            github_comment_id=created.id,
        )

    def post_comments(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        commit_sha: str,
        comments: Sequence[ReviewComment],
    ) -> list[CommentPosting]:
        """
        Post a batch of inline comments.

        A comment GitHub rejects is logged and left out of the result; the
        rest of the batch is still posted.

        Returns:
            One posting per comment that was created
        """
        if not comments:
            return []

        pr, commit = self._pull_and_commit(owner, repo, pr_number, commit_sha)
        postings = []
        for comment in comments:
            try:
                created = pr.create_review_comment(
                    body=format_comment_body(comment),
                    commit=commit,
                    path=comment.file_path,
                    line=comment.line_number,
                )
            except GithubException as e:
                logger.warning(
                    f"Failed to post comment on {comment.coordinate_key}: "
                    f"{e.status} {e.data}"
                )
                continue
            postings.append(
                CommentPosting(
                    file_path=comment.file_path,
                    line_number=comment.line_number,
                    github_comment_id=created.id,
                )
            )

        logger.info(
            f"Posted {len(postings)}/{len(comments)} comments on {owner}/{repo}#{pr_number}"
        )
        return postings
