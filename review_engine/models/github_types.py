"""GitHub-specific type definitions."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

FileStatus = Literal["added", "modified", "removed", "renamed"]


class FileChange(BaseModel):
    """File diff information from a pull request.

    Represents changes to a single file in a PR, including the diff patch
    and metadata about additions/deletions.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    status: FileStatus
    additions: int = Field(default=0, ge=0)
    deletions: int = Field(default=0, ge=0)
    changes: int | None = Field(
        default=None,
        ge=0,
        description="Total changed lines as reported by GitHub; defaults to additions + deletions",
    )
    patch_text: str | None = None
    previous_path: str | None = None

    @property
    def change_count(self) -> int:
        """Total number of changed lines for this file."""
        if self.changes is not None:
            return self.changes
        return self.additions + self.deletions

    @property
    def is_new_file(self) -> bool:
        """Check if this is a newly added file."""
        return self.status == "added"

    @property
    def is_deleted_file(self) -> bool:
        """Check if this file was deleted."""
        return self.status == "removed"

    @property
    def is_renamed_file(self) -> bool:
        """Check if this file was renamed."""
        return self.status == "renamed"


class DiffSummary(BaseModel):
    """Normalized set of file-level changes for a PR at one commit.

    The totals always equal the sums over ``files_changed``; build instances
    with :meth:`from_files` to have them computed.
    """

    model_config = ConfigDict(frozen=True)

    files_changed: tuple[FileChange, ...] = ()
    total_additions: int = Field(default=0, ge=0)
    total_deletions: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _check_totals(self) -> "DiffSummary":
        additions = sum(f.additions for f in self.files_changed)
        deletions = sum(f.deletions for f in self.files_changed)
        if (self.total_additions, self.total_deletions) != (additions, deletions):
            raise ValueError(
                f"Diff totals ({self.total_additions}+/{self.total_deletions}-) do not "
                f"match the per-file sums ({additions}+/{deletions}-)"
            )
        return self

    @classmethod
    def from_files(cls, files: list[FileChange] | tuple[FileChange, ...]) -> "DiffSummary":
        """Build a summary whose totals are the sums over ``files``."""
        return cls(
            files_changed=tuple(files),
            total_additions=sum(f.additions for f in files),
            total_deletions=sum(f.deletions for f in files),
        )

    @property
    def total_changes(self) -> int:
        return self.total_additions + self.total_deletions

    @property
    def file_count(self) -> int:
        return len(self.files_changed)


class RateLimitInfo(BaseModel):
    """Rate-limit metadata exposed by a diff supplier.

    The engine does not interpret it; callers use it to back off.
    """

    remaining: int | None = None
    reset_at: datetime | None = None
