"""Utility functions and helpers."""

from .comment_reconciliation import merge_comments
from .filters import is_critical_file, is_test_file
from .logging import setup_observability
from .rate_limiter import wait_for_rate_limit, with_exponential_backoff

__all__ = [
    "merge_comments",
    "is_critical_file",
    "is_test_file",
    "setup_observability",
    "wait_for_rate_limit",
    "with_exponential_backoff",
]
