"""Errors raised by the review engine."""


class ReviewEngineError(Exception):
    """Base class for review engine errors."""


class RuleValidationError(ReviewEngineError):
    """Raised when a rule-weights configuration fails validation.

    Scoring never raises this itself; callers validate a configuration once
    before using it.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid rule weights: " + "; ".join(self.errors))


class ReviewNotFoundError(ReviewEngineError):
    """Raised when an operation targets a review id that does not exist."""

    def __init__(self, review_id: int) -> None:
        self.review_id = review_id
        super().__init__(f"Review {review_id} not found")
