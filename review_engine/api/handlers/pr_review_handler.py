"""Per-PR review flow: score a diff, store it, post what hasn't been posted."""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from review_engine.config.rule_weights import RuleWeightsConfig, resolve_rule_weights
from review_engine.config.settings import settings
from review_engine.models.github_types import DiffSummary
from review_engine.models.outputs import CommentPosting, ReviewComment, ReviewRecord
from review_engine.services.comment_poster import GitHubCommentPoster, filter_commentable
from review_engine.services.diff_supplier import DiffSupplier
from review_engine.services.review_storage import ReviewStorage
from review_engine.services.review_summary import assemble_review_result
from review_engine.services.risk_scorer import calculate_risk
from review_engine.utils.rate_limiter import wait_for_rate_limit, with_exponential_backoff

logger = logging.getLogger(__name__)


async def handle_pr_review(
    owner: str,
    repo: str,
    pr_number: int,
    diff_supplier: DiffSupplier,
    storage: ReviewStorage | None = None,
    poster: GitHubCommentPoster | None = None,
    commit_sha: str | None = None,
    comments: Sequence[ReviewComment] = (),
    config: RuleWeightsConfig | None = None,
    project_id: str | None = None,
    pr_title: str = "",
    simulation: dict[str, Any] | None = None,
    documentation_suggestions: Sequence[Any] = (),
    testing_suggestions: Sequence[Any] = (),
) -> ReviewRecord:
    """
    Assess one PR and reconcile its inline comments with what is on GitHub.

    === BEHAVIOR ===
    Input:
        owner, repo, pr_number: The pull request
        diff_supplier: Source of the diff and rate-limit metadata
        storage: Review store (default: ReviewStorage on SessionLocal)
        poster: Comment poster; None skips posting
        commit_sha: Head commit the comments are anchored to; None skips posting
        comments: Findings produced for this diff by the reviewer
        config: Rule weights (default: resolved from settings)
        project_id: Store key (default: "owner/repo")

    Output:
        Stored ReviewRecord, re-read after posted state was recorded

    Logic Flow:
    WAIT while the diff supplier reports a low rate limit
    FETCH diff (with exponential backoff)
    SCORE diff, ASSEMBLE result
    SAVE result (reconciles into the live record when one exists)
    QUERY posted coordinates, KEEP comments not yet posted and inside the diff
    POST each remaining comment (with exponential backoff); failures are skipped
    MARK successful postings
    RETURN fresh record

    Edge Cases:
        - Re-delivery of the same webhook: posted coordinates are skipped
        - Posting fails after retries: comment stays unposted for the next run
        - Store errors: propagate to the caller
    """
    if storage is None:
        storage = ReviewStorage()
    if config is None:
        config = resolve_rule_weights(settings)
    if project_id is None:
        project_id = f"{owner}/{repo}"

    review_key = f"{project_id}#{pr_number}"
    logger.info(f"Starting risk review for {review_key}")

    await wait_for_rate_limit(
        diff_supplier.rate_limit,
        min_remaining=settings.rate_limit_min_remaining,
        max_wait=settings.rate_limit_max_wait,
    )
    diff: DiffSummary = await with_exponential_backoff(
        asyncio.to_thread, diff_supplier.fetch_diff, owner, repo, pr_number
    )

    risk_score = calculate_risk(diff, config)
    result = assemble_review_result(
        diff,
        risk_score,
        config,
        comments=comments,
        simulation=simulation,
        documentation_suggestions=documentation_suggestions,
        testing_suggestions=testing_suggestions,
        pr_title=pr_title,
        commit_sha=commit_sha,
    )
    record = storage.save_review(project_id, pr_number, result)

    if poster is None or commit_sha is None:
        logger.info(f"Posting disabled for {review_key}; stored review {record.id}")
        return record

    posted = storage.get_posted_inline_comment_coordinates(project_id, pr_number)
    pending = [c for c in record.comments if c.coordinate_key not in posted]
    pending = filter_commentable(pending, diff)
    logger.info(
        f"{review_key}: {len(posted)} comments already posted, {len(pending)} to post"
    )

    postings = await _post_pending_comments(
        poster, owner, repo, pr_number, commit_sha, pending
    )
    storage.mark_comments_posted(record.id, postings)

    refreshed = storage.get_review_by_id(record.id)
    logger.info(
        f"Review completed for {review_key}: risk={record.risk_level} "
        f"({record.risk_score_numeric}), posted {len(postings)} comments"
    )
    return refreshed if refreshed is not None else record


async def _post_pending_comments(
    poster: GitHubCommentPoster,
    owner: str,
    repo: str,
    pr_number: int,
    commit_sha: str,
    comments: Sequence[ReviewComment],
) -> list[CommentPosting]:
    """Post comments one at a time so a retry never re-posts a created comment."""
    postings = []
    for comment in comments:
        try:
            posting = await with_exponential_backoff(
                asyncio.to_thread,
                poster.post_comment,
                owner,
                repo,
                pr_number,
                commit_sha,
                comment,
                max_retries=settings.post_max_retries,
            )
        except Exception as e:
            logger.warning(f"Giving up on comment {comment.coordinate_key}: {e}")
            continue
        postings.append(posting)
    return postings
