"""Risk scoring, review persistence and GitHub collaborators."""

from review_engine.services.review_storage import ReviewStorage
from review_engine.services.risk_scorer import calculate_risk

__all__ = ["ReviewStorage", "calculate_risk"]
