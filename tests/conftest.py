"""Pytest configuration and fixtures."""

import os

# Keep the module-level engine off PostgreSQL during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest  # noqa: E402

from review_engine.models.github_types import DiffSummary, FileChange  # noqa: E402
from review_engine.models.outputs import ReviewComment  # noqa: E402


def make_file(
    path: str,
    status: str = "modified",
    additions: int = 0,
    deletions: int = 0,
    changes: int | None = None,
    patch_text: str | None = None,
) -> FileChange:
    return FileChange(
        path=path,
        status=status,
        additions=additions,
        deletions=deletions,
        changes=changes,
        patch_text=patch_text,
    )


def make_diff(*files: FileChange) -> DiffSummary:
    return DiffSummary.from_files(list(files))


def make_comment(
    file_path: str = "src/a.ts",
    line_number: int = 10,
    severity: str = "medium",
    category: str = "complexity",
    message: str = "Consider simplifying this branch",
    **extra,
) -> ReviewComment:
    return ReviewComment(
        file_path=file_path,
        line_number=line_number,
        severity=severity,
        category=category,
        message=message,
        **extra,
    )


@pytest.fixture
def file_factory():
    return make_file


@pytest.fixture
def diff_factory():
    return make_diff


@pytest.fixture
def comment_factory():
    return make_comment
