"""Persistence of review records and reconciliation of posted comment state.

A PR has one live review record per (project_id, pr_number), guarded by a
partial unique index; a fresh record retires the previous one. Re-analyses
update that record in place: comments at coordinates already stored keep
their posted state, new coordinates start unposted and vanished coordinates
are dropped.

Concurrency: ``update_review`` locks the review row and every write bumps a
version counter (on the review and on each comment row). A concurrent
``update_review`` or ``mark_comments_posted`` that slips in between our read
and our write makes the flush fail with ``StaleDataError``; the whole
read-merge-write is then repeated on fresh state.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from review_engine.config.settings import settings
from review_engine.exceptions import ReviewNotFoundError
from review_engine.models.code_review import CodeReview, CodeReviewComment
from review_engine.models.outputs import (
    CodeReviewResult,
    CommentPosting,
    PostingResult,
    ReviewComment,
    ReviewRecord,
    ReviewStats,
)
from review_engine.services.review_summary import generate_impacts
from review_engine.utils.comment_reconciliation import (
    coordinate_key,
    merge_comments,
    summarize_reconciliation,
)

logger = logging.getLogger(__name__)


def _snapshot(review: CodeReview) -> ReviewRecord:
    return ReviewRecord.model_validate(review, from_attributes=True)


def _apply_result(review: CodeReview, result: CodeReviewResult) -> None:
    """Copy the top-level fields of ``result`` onto ``review``."""
    summary = result.summary
    review.pr_title = result.pr_title
    review.commit_sha = result.commit_sha
    review.status = "completed"
    review.risk_level = result.risk_score.level
    review.risk_score_numeric = result.risk_score.overall
    review.overall_score = summary.overall_score
    review.approved = summary.approved
    review.requires_changes = summary.requires_changes
    review.files_analyzed = result.files_analyzed
    review.lines_added = result.lines_added
    review.lines_removed = result.lines_removed
    review.summary = summary.model_dump(mode="json")
    review.risk_factors = [
        factor.model_dump(mode="json") for factor in result.risk_score.factors
    ]
    review.impacts = [
        impact.model_dump(mode="json") for impact in generate_impacts(result.comments)
    ]
    review.simulation = result.simulation
    review.documentation_suggestions = list(result.documentation_suggestions)
    review.testing_suggestions = list(result.testing_suggestions)
    review.completed_at = datetime.now(timezone.utc)


def _comment_row(comment: ReviewComment) -> CodeReviewComment:
    return CodeReviewComment(
        file_path=comment.file_path,
        line_number=comment.line_number,
        severity=comment.severity,
        category=comment.category,
        message=comment.message,
        suggestion=comment.suggestion,
        code_snippet=comment.code_snippet,
        posted_to_github=comment.posted_to_github,
        github_comment_id=comment.github_comment_id,
    )


def _copy_comment(row: CodeReviewComment, comment: ReviewComment) -> None:
    row.severity = comment.severity
    row.category = comment.category
    row.message = comment.message
    row.suggestion = comment.suggestion
    row.code_snippet = comment.code_snippet
    row.posted_to_github = comment.posted_to_github
    row.github_comment_id = comment.github_comment_id


class ReviewStorage:
    """
    Review store backed by SQLAlchemy.

    Each public method opens its own session from ``session_factory`` and
    either commits completely or rolls back; callers get detached
    ``ReviewRecord`` snapshots, never ORM objects.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] | None = None,
        max_retries: int | None = None,
    ):
        if session_factory is None:
            from review_engine.database.db import SessionLocal

            session_factory = SessionLocal
        self.session_factory = session_factory
        self.max_retries = max_retries or settings.store_max_retries

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_review(
        self,
        project_id: str,
        pr_number: int,
        result: CodeReviewResult,
        fresh: bool = False,
    ) -> ReviewRecord:
        """
        Persist a review result for a PR.

        If a live record already exists and ``fresh`` is False, the result is
        reconciled into it through ``update_review``. Otherwise a new record
        is created with every comment unposted; with ``fresh`` the previous
        live record is retired in the same transaction.

        Two deliveries for the same PR can both find no live record. Only one
        insert passes the live-record index; the other gets an
        ``IntegrityError`` and reconciles into the winner instead.

        Args:
            project_id: Owning project
            pr_number: Pull request number
            result: Assembled review result
            fresh: Always create a new record, even if one exists

        Returns:
            Snapshot of the stored record
        """
        if not fresh:
            existing = self.get_review(project_id, pr_number)
            if existing is not None:
                logger.info(
                    f"Review {existing.id} exists for {project_id}#{pr_number}, reconciling"
                )
                return self.update_review(existing.id, result)

        try:
            record = self._create_review(project_id, pr_number, result, retire=fresh)
        except IntegrityError:
            db = self.session_factory()
            try:
                winner = self._live_review(db, project_id, pr_number)
                winner_id = winner.id if winner is not None else None
            finally:
                db.close()
            if winner_id is None:
                raise
            logger.warning(
                f"Live review {winner_id} for {project_id}#{pr_number} was created "
                f"concurrently, reconciling into it"
            )
            return self.update_review(winner_id, result)

        logger.info(
            f"Saved review {record.id} for {project_id}#{pr_number}: "
            f"risk={record.risk_level} ({record.risk_score_numeric}), "
            f"{len(record.comments)} comments"
        )
        return record

    def _create_review(
        self, project_id: str, pr_number: int, result: CodeReviewResult, retire: bool
    ) -> ReviewRecord:
        db = self.session_factory()
        try:
            if retire:
                retired = (
                    db.query(CodeReview)
                    .filter(
                        CodeReview.project_id == project_id,
                        CodeReview.pr_number == pr_number,
                        CodeReview.is_live.is_(True),
                    )
                    .update(
                        {
                            CodeReview.is_live: False,
                            CodeReview.version_id: CodeReview.version_id + 1,
                        },
                        synchronize_session=False,
                    )
                )
                if retired:
                    logger.info(f"Retired {retired} live review(s) for {project_id}#{pr_number}")
            review = CodeReview(project_id=project_id, pr_number=pr_number, is_live=True)
            _apply_result(review, result)
            # Merging against an empty state dedupes and clears posted fields
            for comment in merge_comments([], result.comments):
                review.comments.append(_comment_row(comment))
            db.add(review)
            db.commit()
            return _snapshot(review)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def update_review(self, review_id: int, result: CodeReviewResult) -> ReviewRecord:
        """
        Replace a review's contents with a fresh analysis, carrying forward the
        posted state of every coordinate that survives.

        Raises:
            ReviewNotFoundError: If no review has ``review_id``
            StaleDataError: If the record kept changing underneath us for
                ``max_retries`` attempts
        """
        attempt = 0
        while True:
            attempt += 1
            db = self.session_factory()
            try:
                record = self._reconcile(db, review_id, result)
                db.commit()
                snapshot = _snapshot(record)
            except StaleDataError:
                db.rollback()
                if attempt >= self.max_retries:
                    logger.error(
                        f"Review {review_id} still changing after {attempt} attempts"
                    )
                    raise
                logger.warning(
                    f"Concurrent modification of review {review_id}, "
                    f"retrying ({attempt}/{self.max_retries})"
                )
                continue
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
            return snapshot

    def _reconcile(
        self, db: Session, review_id: int, result: CodeReviewResult
    ) -> CodeReview:
        """One read-merge-write attempt; flushes but does not commit."""
        review = (
            db.query(CodeReview)
            .filter(CodeReview.id == review_id)
            .with_for_update()
            .first()
        )
        if review is None:
            raise ReviewNotFoundError(review_id)

        rows = {(row.file_path, row.line_number): row for row in review.comments}
        merged = merge_comments(rows.values(), result.comments)
        report = summarize_reconciliation(rows.values(), merged)

        for comment in merged:
            row = rows.pop(comment.coordinate, None)
            if row is None:
                review.comments.append(_comment_row(comment))
            else:
                _copy_comment(row, comment)
        # Whatever is left vanished from the new analysis
        for row in rows.values():
            review.comments.remove(row)

        _apply_result(review, result)
        db.flush()

        logger.info(
            f"Reconciled review {review_id}: {len(report.preserved)} preserved, "
            f"{len(report.added)} new, {len(report.dropped)} dropped"
        )
        if report.orphaned:
            orphaned = ", ".join(coordinate_key(*c) for c in report.orphaned)
            logger.info(
                f"Review {review_id}: posted comments no longer reported, "
                f"left on GitHub: {orphaned}"
            )
        return review

    def mark_comments_posted(
        self, review_id: int, postings: Iterable[CommentPosting]
    ) -> PostingResult:
        """
        Record that comments were posted to GitHub.

        Postings for coordinates the review no longer has are ignored, and of
        several postings for one coordinate the last wins. An empty batch
        returns immediately without touching the database.

        Raises:
            ReviewNotFoundError: If the batch is non-empty and no review has
                ``review_id``
        """
        postings = list({(p.file_path, p.line_number): p for p in postings}.values())
        if not postings:
            return PostingResult(updated=0)

        db = self.session_factory()
        try:
            exists = (
                db.query(CodeReview.id)
                .filter(CodeReview.id == review_id)
                .with_for_update(read=True)
                .first()
            )
            if exists is None:
                raise ReviewNotFoundError(review_id)

            updated = 0
            for posting in postings:
                updated += (
                    db.query(CodeReviewComment)
                    .filter(
                        CodeReviewComment.review_id == review_id,
                        CodeReviewComment.file_path == posting.file_path,
                        CodeReviewComment.line_number == posting.line_number,
                    )
                    .update(
                        {
                            CodeReviewComment.posted_to_github: True,
                            CodeReviewComment.github_comment_id: posting.github_comment_id,
                            CodeReviewComment.version_id: CodeReviewComment.version_id + 1,
                        },
                        synchronize_session=False,
                    )
                )
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        if updated < len(postings):
            logger.info(
                f"Review {review_id}: {len(postings) - updated} postings matched no stored comment"
            )
        logger.info(f"Marked {updated} comments posted on review {review_id}")
        return PostingResult(updated=updated)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @staticmethod
    def _live_review(db: Session, project_id: str, pr_number: int) -> CodeReview | None:
        return (
            db.query(CodeReview)
            .filter(
                CodeReview.project_id == project_id,
                CodeReview.pr_number == pr_number,
                CodeReview.is_live.is_(True),
            )
            .order_by(CodeReview.created_at.desc(), CodeReview.id.desc())
            .first()
        )

    def get_posted_inline_comment_coordinates(
        self, project_id: str, pr_number: int
    ) -> set[str]:
        """``"path:line"`` keys of the live review's posted comments; empty if none."""
        db = self.session_factory()
        try:
            review = self._live_review(db, project_id, pr_number)
            if review is None:
                return set()
            return {
                coordinate_key(row.file_path, row.line_number)
                for row in review.comments
                if row.posted_to_github
            }
        finally:
            db.close()

    def get_review(self, project_id: str, pr_number: int) -> ReviewRecord | None:
        """Live review of a PR, or None."""
        db = self.session_factory()
        try:
            review = self._live_review(db, project_id, pr_number)
            return _snapshot(review) if review is not None else None
        finally:
            db.close()

    def get_review_by_id(self, review_id: int) -> ReviewRecord | None:
        db = self.session_factory()
        try:
            review = db.get(CodeReview, review_id)
            return _snapshot(review) if review is not None else None
        finally:
            db.close()

    def get_project_reviews(
        self,
        project_id: str,
        limit: int = 20,
        offset: int = 0,
        risk_level: str | None = None,
    ) -> list[ReviewRecord]:
        """Reviews of a project, newest first, optionally filtered by risk level."""
        db = self.session_factory()
        try:
            query = db.query(CodeReview).filter(CodeReview.project_id == project_id)
            if risk_level is not None:
                query = query.filter(CodeReview.risk_level == risk_level)
            reviews = (
                query.order_by(CodeReview.created_at.desc(), CodeReview.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return [_snapshot(review) for review in reviews]
        finally:
            db.close()

    def review_exists_for_commit(self, project_id: str, commit_sha: str) -> bool:
        db = self.session_factory()
        try:
            found = (
                db.query(CodeReview.id)
                .filter(
                    CodeReview.project_id == project_id,
                    CodeReview.commit_sha == commit_sha,
                )
                .first()
            )
            return found is not None
        finally:
            db.close()

    def get_review_stats(self, project_id: str) -> ReviewStats:
        """Aggregate counts and the average quality score of a project's reviews."""
        db = self.session_factory()
        try:
            rows = (
                db.query(
                    CodeReview.risk_level,
                    CodeReview.approved,
                    CodeReview.requires_changes,
                    CodeReview.overall_score,
                )
                .filter(CodeReview.project_id == project_id)
                .all()
            )
        finally:
            db.close()

        stats = ReviewStats(total=len(rows))
        if not rows:
            return stats

        for risk_level, approved, requires_changes, _ in rows:
            if approved:
                stats.approved += 1
            if requires_changes:
                stats.requires_changes += 1
            if risk_level in stats.risk_distribution:
                stats.risk_distribution[risk_level] += 1
        stats.avg_score = round(sum(row[3] for row in rows) / len(rows), 2)
        return stats
