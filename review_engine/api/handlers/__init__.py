"""Handlers that run the review flow for GitHub pull requests."""

from .pr_review_handler import handle_pr_review

__all__ = ["handle_pr_review"]
