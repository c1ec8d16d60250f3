"""Workflow modules that drive the feedback engine against a live PR."""

from prloop.workflows.review_feedback import (
    FeedbackPassResult,
    ReviewFeedbackError,
    ReviewFeedbackWorkflow,
)

__all__ = [
    "FeedbackPassResult",
    "ReviewFeedbackError",
    "ReviewFeedbackWorkflow",
]
