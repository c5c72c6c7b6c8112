"""Unit tests for posting comments to GitHub."""

from unittest.mock import MagicMock

import pytest
from github import GithubException

from review_engine.services.comment_poster import (
    GitHubCommentPoster,
    commentable_lines,
    filter_commentable,
    format_comment_body,
)

PATCH = "\n".join(
    [
        "@@ -10,4 +10,5 @@ def handler():",
        "     context = load()",
        "-    old_call()",
        "+    new_call()",
        "+    audit()",
        "     return context",
    ]
)


@pytest.fixture
def github_client():
    pr = MagicMock()
    repo = MagicMock()
    repo.get_pull.return_value = pr
    client = MagicMock()
    client.get_repo.return_value = repo
    return client


def _created(comment_id):
    created = MagicMock()
    created.id = comment_id
    return created


class TestCommentableLines:
    """Tests for reading commentable lines from a patch."""

    def test_added_and_context_lines(self):
        assert commentable_lines(PATCH) == {10, 11, 12, 13}

    def test_no_patch(self):
        assert commentable_lines(None) == set()
        assert commentable_lines("") == set()

    def test_multiple_hunks(self):
        patch = "@@ -1,1 +1,1 @@\n+first\n@@ -40,2 +50,2 @@\n ctx\n+added"

        assert commentable_lines(patch) == {1, 50, 51}


class TestFilterCommentable:
    """Tests for dropping comments GitHub would reject."""

    def test_filters_by_file_and_line(self, diff_factory, file_factory, comment_factory):
        diff = diff_factory(file_factory("src/handler.py", additions=2, deletions=1, patch_text=PATCH))
        comments = [
            comment_factory("src/handler.py", 11),
            comment_factory("src/handler.py", 40),
            comment_factory("src/other.py", 11),
        ]

        kept = filter_commentable(comments, diff)

        assert [c.coordinate_key for c in kept] == ["src/handler.py:11"]


class TestFormatCommentBody:
    """Tests for comment formatting."""

    def test_includes_suggestion(self, comment_factory):
        body = format_comment_body(
            comment_factory(severity="high", category="security", suggestion="Escape input")
        )

        assert "**High**" in body
        assert "security" in body
        assert "**Suggestion:** Escape input" in body


class TestGitHubCommentPoster:
    """Tests for GitHubCommentPoster."""

    def test_post_comments(self, github_client, comment_factory):
        pr = github_client.get_repo.return_value.get_pull.return_value
        pr.create_review_comment.side_effect = [_created(101), _created(102)]
        poster = GitHubCommentPoster(github_client)

        postings = poster.post_comments(
            "owner",
            "repo",
            3,
            "abc123",
            [comment_factory("src/a.ts", 10), comment_factory("src/b.ts", 4)],
        )

        github_client.get_repo.assert_called_once_with("owner/repo")
        github_client.get_repo.return_value.get_commit.assert_called_once_with("abc123")
        assert [(p.file_path, p.line_number, p.github_comment_id) for p in postings] == [
            ("src/a.ts", 10, 101),
            ("src/b.ts", 4, 102),
        ]
        kwargs = pr.create_review_comment.call_args_list[0].kwargs
        assert kwargs["path"] == "src/a.ts"
        assert kwargs["line"] == 10
        assert kwargs["commit"] is github_client.get_repo.return_value.get_commit.return_value

    def test_failed_comments_are_left_out(self, github_client, comment_factory):
        pr = github_client.get_repo.return_value.get_pull.return_value
        pr.create_review_comment.side_effect = [
            GithubException(422, {"message": "line must be part of the diff"}),
            _created(202),
        ]
        poster = GitHubCommentPoster(github_client)

        postings = poster.post_comments(
            "owner",
            "repo",
            3,
            "abc123",
            [comment_factory("src/a.ts", 10), comment_factory("src/b.ts", 4)],
        )

        assert [p.github_comment_id for p in postings] == [202]

    def test_empty_batch_makes_no_calls(self, github_client):
        assert GitHubCommentPoster(github_client).post_comments("o", "r", 1, "sha", []) == []
        github_client.get_repo.assert_not_called()

    def test_post_comment_raises(self, github_client, comment_factory):
        pr = github_client.get_repo.return_value.get_pull.return_value
        pr.create_review_comment.side_effect = GithubException(502, {})

        with pytest.raises(GithubException):
            GitHubCommentPoster(github_client).post_comment(
                "owner", "repo", 3, "abc123", comment_factory()
            )
