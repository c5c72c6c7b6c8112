"""Unit tests for the PR review flow with in-memory collaborators."""

import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from github import GithubException

from review_engine.api.handlers.pr_review_handler import handle_pr_review
from review_engine.config.rule_weights import BALANCED_PRESET
from review_engine.database.db import build_engine, build_session_factory
from review_engine.models.code_review import Base
from review_engine.models.github_types import DiffSummary, FileChange, RateLimitInfo
from review_engine.models.outputs import CommentPosting, ReviewComment
from review_engine.services.review_storage import ReviewStorage

PATCH = "@@ -1,2 +1,20 @@\n" + "\n".join("+line" for _ in range(20))


def _comment(path: str, line: int, severity: str = "medium") -> ReviewComment:
    return ReviewComment(
        file_path=path,
        line_number=line,
        severity=severity,
        category="complexity",
        message=f"Finding at {path}:{line}",
    )


class FakeDiffSupplier:
    """In-memory diff supplier."""

    def __init__(self, diff: DiffSummary, remaining: int = 5000):
        self.diff = diff
        self.remaining = remaining
        self.fetches = 0

    def fetch_diff(self, owner: str, repo: str, pr_number: int) -> DiffSummary:
        self.fetches += 1
        return self.diff

    @property
    def rate_limit(self) -> RateLimitInfo:
        return RateLimitInfo(
            remaining=self.remaining,
            reset_at=datetime.now(timezone.utc) + timedelta(seconds=60),
        )


class FakePoster:
    """Comment poster that records what it was asked to post."""

    def __init__(self, failing: set[str] | None = None):
        self.failing = failing or set()
        self.posted: list[str] = []
        self.attempts: list[str] = []

    def post_comment(self, owner, repo, pr_number, commit_sha, comment):
        self.attempts.append(comment.coordinate_key)
        if comment.coordinate_key in self.failing:
            raise GithubException(502, {"message": "Bad Gateway"})
        self.posted.append(comment.coordinate_key)
        return CommentPosting(
            file_path=comment.file_path,
            line_number=comment.line_number,
            github_comment_id=5000 + len(self.posted),
        )


class TestHandlePRReview(unittest.IsolatedAsyncioTestCase):
    """Tests for handle_pr_review."""

    def setUp(self):
        self.engine = build_engine("sqlite:///:memory:")
        Base.metadata.create_all(bind=self.engine)
        self.storage = ReviewStorage(build_session_factory(self.engine), max_retries=3)
        self.diff = DiffSummary.from_files(
            [
                FileChange(path="src/a.ts", status="modified", additions=20, patch_text=PATCH),
                FileChange(path="src/b.ts", status="removed", deletions=4),
            ]
        )
        self.supplier = FakeDiffSupplier(self.diff)

    def tearDown(self):
        Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()

    async def _run(self, comments, poster, commit_sha="c0ffee" * 6 + "abcd"):
        return await handle_pr_review(
            "acme",
            "web",
            17,
            self.supplier,
            storage=self.storage,
            poster=poster,
            commit_sha=commit_sha,
            comments=comments,
            config=BALANCED_PRESET,
        )

    async def test_posts_and_records_new_comments(self):
        """Commentable findings are posted and marked; others are stored only."""
        poster = FakePoster()
        comments = [
            _comment("src/a.ts", 3),
            _comment("src/a.ts", 7, severity="high"),
            _comment("src/a.ts", 400),  # outside the diff hunk
        ]

        record = await self._run(comments, poster)

        self.assertEqual(poster.posted, ["src/a.ts:3", "src/a.ts:7"])
        self.assertEqual(record.project_id, "acme/web")
        self.assertEqual(record.posted_coordinates, {"src/a.ts:3", "src/a.ts:7"})
        self.assertEqual(len(record.comments), 3)
        self.assertEqual(
            self.storage.get_posted_inline_comment_coordinates("acme/web", 17),
            {"src/a.ts:3", "src/a.ts:7"},
        )

    async def test_redelivery_does_not_repost(self):
        poster = FakePoster()
        comments = [_comment("src/a.ts", 3), _comment("src/a.ts", 7)]

        first = await self._run(comments, poster)
        second = await self._run(comments + [_comment("src/a.ts", 9)], poster)

        self.assertEqual(second.id, first.id)
        self.assertEqual(poster.posted, ["src/a.ts:3", "src/a.ts:7", "src/a.ts:9"])
        self.assertEqual(self.supplier.fetches, 2)

    async def test_posting_disabled(self):
        record = await self._run([_comment("src/a.ts", 3)], poster=None)

        self.assertEqual(record.posted_coordinates, set())
        self.assertEqual(record.risk_level, "low")

    async def test_missing_commit_skips_posting(self):
        poster = FakePoster()

        await self._run([_comment("src/a.ts", 3)], poster, commit_sha=None)

        self.assertEqual(poster.attempts, [])

    async def test_failed_comment_stays_unposted(self):
        poster = FakePoster(failing={"src/a.ts:3"})

        with patch("review_engine.utils.rate_limiter.asyncio.sleep", new=AsyncMock()):
            record = await self._run(
                [_comment("src/a.ts", 3), _comment("src/a.ts", 5)], poster
            )

        self.assertEqual(poster.attempts.count("src/a.ts:3"), 3)
        self.assertEqual(record.posted_coordinates, {"src/a.ts:5"})

    async def test_waits_for_low_rate_limit(self):
        self.supplier.remaining = 0

        with patch(
            "review_engine.utils.rate_limiter.asyncio.sleep", new=AsyncMock()
        ) as sleep:
            await self._run([], poster=None)

        sleep.assert_awaited_once()
        self.assertGreater(sleep.await_args.args[0], 0)
