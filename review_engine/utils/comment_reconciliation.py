"""Merging a fresh analysis' comments with previously stored posted state.

Comments are identified by their (file_path, line_number) coordinate. When a
PR is re-analyzed, each new comment whose coordinate existed in the
immediately preceding stored state inherits that state's
``posted_to_github`` and ``github_comment_id``; comments at unseen
coordinates start unposted; coordinates missing from the new analysis are
dropped. Only the preceding state is consulted, never older history.

Example:
    old: [src/a.ts:10 posted id=111]
    new: [src/a.ts:10 "new wording", src/b.ts:3]
    merged: [src/a.ts:10 "new wording" posted id=111, src/b.ts:3 unposted]
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from review_engine.models.outputs import ReviewComment

Coordinate = tuple[str, int]


class _HasCoordinateState(Protocol):
    file_path: str
    line_number: int
    posted_to_github: bool
    github_comment_id: int | None


@dataclass(frozen=True)
class PostedState:
    """External state of a comment coordinate."""

    posted_to_github: bool = False
    github_comment_id: int | None = None


@dataclass
class ReconciliationReport:
    """Which coordinates were carried forward, introduced or dropped."""

    preserved: list[Coordinate] = field(default_factory=list)
    added: list[Coordinate] = field(default_factory=list)
    dropped: list[Coordinate] = field(default_factory=list)
    orphaned: list[Coordinate] = field(default_factory=list)


def coordinate_key(file_path: str, line_number: int) -> str:
    """String form of a coordinate, as used by the posted-coordinate query."""
    return f"{file_path}:{line_number}"


def build_posted_state_index(
    comments: Iterable[_HasCoordinateState],
) -> dict[Coordinate, PostedState]:
    """Index stored comments by coordinate.

    Accepts ORM rows or ReviewComment models alike.
    """
    return {
        (c.file_path, c.line_number): PostedState(
            posted_to_github=bool(c.posted_to_github),
            github_comment_id=c.github_comment_id,
        )
        for c in comments
    }


def dedupe_by_coordinate(comments: Iterable[ReviewComment]) -> list[ReviewComment]:
    """Keep one comment per coordinate; a later comment replaces an earlier one in place."""
    by_coordinate: dict[Coordinate, ReviewComment] = {}
    for comment in comments:
        by_coordinate[comment.coordinate] = comment
    return list(by_coordinate.values())


def merge_comments(
    old_comments: Iterable[_HasCoordinateState],
    new_comments: Iterable[ReviewComment],
) -> list[ReviewComment]:
    """
    Merge a new analysis' comments with the posted state of the previous one.

    Pure function: neither input is modified. Posted fields carried by
    ``new_comments`` are ignored; the result's posted fields come only from
    ``old_comments``.

    Args:
        old_comments: Comments of the immediately preceding stored state
        new_comments: Comments of the fresh analysis

    Returns:
        New comment list, one entry per coordinate, with posted state carried forward
    """
    index = build_posted_state_index(old_comments)
    merged = []
    for comment in dedupe_by_coordinate(new_comments):
        state = index.get(comment.coordinate, PostedState())
        merged.append(
            comment.model_copy(
                update={
                    "posted_to_github": state.posted_to_github,
                    "github_comment_id": state.github_comment_id,
                }
            )
        )
    return merged


def summarize_reconciliation(
    old_comments: Iterable[_HasCoordinateState],
    merged_comments: Iterable[ReviewComment],
) -> ReconciliationReport:
    """Describe the effect of a merge.

    ``orphaned`` lists dropped coordinates that had already been posted; their
    GitHub comments are left in place.
    """
    index = build_posted_state_index(old_comments)
    merged_coordinates = [c.coordinate for c in merged_comments]
    merged_set = set(merged_coordinates)

    report = ReconciliationReport()
    for coordinate in merged_coordinates:
        if coordinate in index:
            report.preserved.append(coordinate)
        else:
            report.added.append(coordinate)
    for coordinate, state in index.items():
        if coordinate not in merged_set:
            report.dropped.append(coordinate)
            if state.posted_to_github:
                report.orphaned.append(coordinate)
    return report
