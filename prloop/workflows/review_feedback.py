"""Review feedback workflow: one processing pass over a pull request.

Steps: derive the cutoff from the newest processing marker, collect new
feedback grouped by file, ask the agent to address each group, correlate its
answers, reply where the thread policy allows, then record a new marker.
"""

from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from pydantic import BaseModel, Field

from prloop.feedback.collector import collect_feedback, has_actionable_feedback
from prloop.feedback.graph import build_comment_graph
from prloop.feedback.replies import plan_replies, post_replies
from prloop.feedback.responses import parse_comment_responses
from prloop.feedback.timestamps import (
    get_last_processing_timestamp,
    update_processing_timestamp,
)
from prloop.integrations.github import GitHubIntegrationError
from prloop.integrations.prompts import build_feedback_prompt
from prloop.models import Comment, EngineSettings, PRDetails, ReplyOutcome, Review
from prloop.utils.logger import get_logger

logger = get_logger(__name__)

Agent = Callable[[str], str]


class ReviewFeedbackError(Exception):
    """Review feedback workflow error."""
    pass


class FeedbackHost(Protocol):
    """Host operations the workflow needs."""

    def get_reviews(self, pr_number: int) -> list[Review]: ...

    def list_pr_comments(self, pr_number: int) -> list[Comment]: ...

    def get_pr_details(self, pr_number: int) -> PRDetails: ...

    def reply_to_comment(self, pr_number: int, comment_id: int, body: str) -> None: ...

    def add_pr_comment(self, pr_number: int, body: str) -> None: ...


class FeedbackPassResult(BaseModel):
    """Summary of one processing pass."""

    pr_number: int = Field(description="Pull request number")
    processed: bool = Field(default=False, description="Whether new feedback was handled")
    cutoff: Optional[datetime] = Field(default=None, description="Cutoff used for this pass")
    groups: list[str] = Field(default_factory=list, description="Group labels processed")
    skipped_groups: list[str] = Field(
        default_factory=list, description="Groups the agent returned no output for"
    )
    responses: dict[str, str] = Field(default_factory=dict, description="Parsed agent responses")
    replies: ReplyOutcome = Field(default_factory=ReplyOutcome, description="Reply counters")
    marker_timestamp: Optional[datetime] = Field(
        default=None, description="Pass start time recorded in the marker comment"
    )


class ReviewFeedbackWorkflow:
    """Drives one feedback pass for a PR."""

    def __init__(
        self,
        host: FeedbackHost,
        agent: Agent,
        settings: EngineSettings,
        redact_marker: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.host = host
        self.agent = agent
        self.settings = settings
        self.redact_marker = redact_marker
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = get_logger(f"{__name__}.ReviewFeedbackWorkflow")

    def run(self, pr_number: int, context: Optional[str] = None) -> FeedbackPassResult:
        """Process new review feedback on a PR.

        Args:
            pr_number: Pull request number
            context: Optional label (e.g. ticket key) for the marker comment

        Returns:
            Pass summary

        Raises:
            GitHubIntegrationError: If PR state cannot be read
            ReviewFeedbackError: If the agent fails
        """
        self.logger.info(f"Processing review feedback for PR #{pr_number}")

        # Feedback posted after this point belongs to the next pass
        started_at = self.clock()
        comments = self.host.list_pr_comments(pr_number)
        reviews = self.host.get_reviews(pr_number)

        cutoff = get_last_processing_timestamp(comments, self.settings)
        result = FeedbackPassResult(pr_number=pr_number, cutoff=cutoff)

        if not has_actionable_feedback(reviews, comments, cutoff, self.settings):
            self.logger.info(f"No new change requests or comments on PR #{pr_number}")
            return result

        grouped = collect_feedback(reviews, comments, cutoff, self.settings)
        if not grouped.has_new_feedback:
            self.logger.info(f"New feedback on PR #{pr_number} has no renderable content")
            return result

        pr = self.host.get_pr_details(pr_number)

        for group in grouped.groups.values():
            result.groups.append(group.label)
            prompt = build_feedback_prompt(pr, group, grouped.summary)

            try:
                output = self.agent(prompt)
            except Exception as e:
                raise ReviewFeedbackError(
                    f"Agent failed for group '{group.label}' on PR #{pr_number}: {e}"
                ) from e

            if not output or not output.strip():
                self.logger.warning(f"Agent output is empty for group {group.label}")
                result.skipped_groups.append(group.label)
                continue

            group_responses = parse_comment_responses(output, group.expected_ids)
            result.responses.update(group_responses)
            self.logger.info(
                f"Completed group {group.label}: {len(group_responses)} responses parsed"
            )

        graph = build_comment_graph(comments)
        actions, outcome = plan_replies(grouped, result.responses, graph, self.settings)
        result.replies = post_replies(self.host, pr_number, actions, outcome)
        result.processed = True

        try:
            result.marker_timestamp = update_processing_timestamp(
                self.host,
                pr_number,
                context=context,
                now=started_at,
                redacted=self.redact_marker,
            )
        except GitHubIntegrationError as e:
            self.logger.error(f"Failed to record processing timestamp on PR #{pr_number}: {e}")

        self.logger.info(
            f"Processed PR #{pr_number}: {len(result.groups)} groups, "
            f"{result.replies.posted} replies posted, {result.replies.skipped} skipped, "
            f"{result.replies.failed} failed"
        )
        return result
