"""SQLAlchemy models for persisted code reviews and their inline comments."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class CodeReview(Base):
    """
    One assessment record for a pull request.

    A single live record exists per (project_id, pr_number), enforced by a
    partial unique index over rows with ``is_live`` set; re-analyses of the
    same PR update it in place. ``version_id`` is an optimistic concurrency
    counter bumped on every UPDATE of this row.
    """

    __tablename__ = "code_reviews"
    __table_args__ = (
        Index(
            "uq_code_reviews_live_pr",
            "project_id",
            "pr_number",
            unique=True,
            postgresql_where=text("is_live"),
            sqlite_where=text("is_live"),
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identifiers
    project_id: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True, comment="Owning project"
    )
    pr_number: Mapped[int] = mapped_column(
        Integer, nullable=False, index=True, comment="Pull request number"
    )
    pr_title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    commit_sha: Mapped[str | None] = mapped_column(
        String(40), nullable=True, index=True, comment="Head commit that was analyzed"
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="completed")
    is_live: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        comment="False once superseded by a fresh record for the same PR",
    )

    # Scores
    risk_level: Mapped[str] = mapped_column(String(16), nullable=False)
    risk_score_numeric: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Overall risk score 0-100"
    )
    overall_score: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Quality score 0-100 from the summary"
    )
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requires_changes: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    files_analyzed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lines_added: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    lines_removed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Opaque structured payloads, stored as-is
    summary: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=lambda: {}
    )
    risk_factors: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=lambda: []
    )
    impacts: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=lambda: []
    )
    simulation: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    documentation_suggestions: Mapped[list[Any]] = mapped_column(
        JSON, nullable=False, default=lambda: []
    )
    testing_suggestions: Mapped[list[Any]] = mapped_column(
        JSON, nullable=False, default=lambda: []
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    comments: Mapped[list["CodeReviewComment"]] = relationship(
        back_populates="review",
        cascade="all, delete-orphan",
        order_by="CodeReviewComment.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<CodeReview(id={self.id}, "
            f"project={self.project_id}, "
            f"pr={self.pr_number}, "
            f"risk={self.risk_level}, "
            f"comments={len(self.comments)})>"
        )


class CodeReviewComment(Base):
    """
    One inline finding of a review, identified by its (file_path, line_number)
    coordinate within the review.
    """

    __tablename__ = "code_review_comments"
    __table_args__ = (
        UniqueConstraint(
            "review_id", "file_path", "line_number", name="uq_review_comment_coordinate"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    review_id: Mapped[int] = mapped_column(
        ForeignKey("code_reviews.id", ondelete="CASCADE"), nullable=False, index=True
    )

    file_path: Mapped[str] = mapped_column(Text, nullable=False)
    line_number: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="1-based line in the new file version"
    )
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    suggestion: Mapped[str | None] = mapped_column(Text, nullable=True)
    code_snippet: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Reconciliation state, owned by the review store
    posted_to_github: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    github_comment_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    review: Mapped[CodeReview] = relationship(back_populates="comments")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<CodeReviewComment(id={self.id}, "
            f"at={self.file_path}:{self.line_number}, "
            f"posted={self.posted_to_github})>"
        )
