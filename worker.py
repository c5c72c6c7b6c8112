"""Command-line entrypoint that runs the risk review flow for one PR."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from github import Auth, Github
from pydantic import TypeAdapter, ValidationError

from review_engine.api.handlers import handle_pr_review
from review_engine.config.settings import settings
from review_engine.database import check_db_connection, init_db
from review_engine.exceptions import ReviewEngineError
from review_engine.models.outputs import ReviewComment
from review_engine.services.comment_poster import GitHubCommentPoster
from review_engine.services.diff_supplier import GitHubDiffSupplier
from review_engine.utils.logging import setup_observability

logger = logging.getLogger(__name__)

_comments_adapter = TypeAdapter(list[ReviewComment])


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Score a pull request and reconcile its inline comments."
    )
    parser.add_argument("repo", help="Repository as 'owner/repo'")
    parser.add_argument("pr_number", type=int, help="Pull request number")
    parser.add_argument(
        "--comments",
        type=Path,
        help="JSON file with the review comments produced for this PR",
    )
    parser.add_argument(
        "--no-post",
        action="store_true",
        help="Store the review without posting comments to GitHub",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create missing tables before running",
    )
    args = parser.parse_args(argv)

    if args.repo.count("/") != 1 or not all(args.repo.split("/")):
        parser.error(f"repo must be in 'owner/repo' format, got: '{args.repo}'")
    if args.pr_number <= 0:
        parser.error(f"pr_number must be positive, got: {args.pr_number}")
    return args


def load_comments(path: Path | None) -> list[ReviewComment]:
    if path is None:
        return []
    return _comments_adapter.validate_python(json.loads(path.read_text()))


async def run(args: argparse.Namespace) -> int:
    if not settings.github_token:
        logger.error("GH_TOKEN is not configured")
        return 1

    if args.init_db:
        init_db()
    if not check_db_connection():
        return 1

    owner, repo = args.repo.split("/")
    github_client = Github(auth=Auth.Token(settings.github_token), per_page=100)
    diff_supplier = GitHubDiffSupplier(
        github_client,
        pr_ttl=settings.diff_cache_ttl_pr,
        files_ttl=settings.diff_cache_ttl_files,
        maxsize=settings.diff_cache_size,
    )

    pr = diff_supplier.get_pull(owner, repo, args.pr_number)
    record = await handle_pr_review(
        owner,
        repo,
        args.pr_number,
        diff_supplier,
        poster=None if args.no_post else GitHubCommentPoster(github_client),
        commit_sha=pr.head.sha,
        comments=load_comments(args.comments),
        pr_title=pr.title,
    )

    posted = len(record.posted_coordinates)
    logger.info(
        f"Review {record.id}: risk {record.risk_level} ({record.risk_score_numeric}), "
        f"{len(record.comments)} comments, {posted} posted"
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    setup_observability()
    args = parse_args(argv)
    try:
        return asyncio.run(run(args))
    except (ReviewEngineError, ValidationError) as e:
        logger.error(f"Review failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
