"""Turn correlated agent responses into replies on the PR."""

from typing import Iterable, Protocol

from prloop.feedback.graph import CommentGraph
from prloop.feedback.threads import should_skip_reply
from prloop.integrations.github import GitHubIntegrationError
from prloop.models import (
    EngineSettings,
    GroupedFeedback,
    ReplyAction,
    ReplyKind,
    ReplyOutcome,
)
from prloop.utils.logger import get_logger

logger = get_logger(__name__)


class ReplyPoster(Protocol):
    """Host client capable of posting replies."""

    def reply_to_comment(self, pr_number: int, comment_id: int, body: str) -> None: ...

    def add_pr_comment(self, pr_number: int, body: str) -> None: ...


def plan_replies(
    grouped: GroupedFeedback,
    responses: dict[str, str],
    graph: CommentGraph,
    settings: EngineSettings,
) -> tuple[list[ReplyAction], ReplyOutcome]:
    """Decide which replies to post and how.

    Inline comments anchored to a file line get a threaded reply; other
    comments and all reviews get a PR conversation comment mentioning the
    reviewer. Comments the thread policy rejects are counted as skipped.

    Args:
        grouped: Feedback collected for this pass
        responses: Agent responses keyed by correlation ID
        graph: Graph of every PR comment, used for thread policy
        settings: Engine settings

    Returns:
        Replies to post, and an outcome with skipped and missing counts filled in
    """
    actions: list[ReplyAction] = []
    outcome = ReplyOutcome()
    reviews, comments = grouped.flatten()

    for correlation_id, comment in comments.items():
        response = responses.get(correlation_id)
        if response is None:
            outcome.missing += 1
            logger.warning(f"No agent response for {correlation_id} by {comment.author}")
            continue

        decision = should_skip_reply(comment, graph, settings)
        if decision.skip:
            outcome.skipped += 1
            logger.info(
                f"Skipping reply to {correlation_id} by {comment.author}: "
                f"{decision.reason.value} ({decision.detail})"
            )
            continue

        if comment.is_file_comment:
            actions.append(
                ReplyAction(
                    correlation_id=correlation_id,
                    kind=ReplyKind.THREADED,
                    target_comment_id=comment.id,
                    author=comment.author,
                    body=response,
                )
            )
        else:
            actions.append(
                ReplyAction(
                    correlation_id=correlation_id,
                    kind=ReplyKind.GENERAL,
                    author=comment.author,
                    body=f"@{comment.author} {response}",
                )
            )

    for correlation_id, review in reviews.items():
        response = responses.get(correlation_id)
        if response is None:
            outcome.missing += 1
            logger.warning(f"No agent response for {correlation_id} by {review.author}")
            continue

        actions.append(
            ReplyAction(
                correlation_id=correlation_id,
                kind=ReplyKind.GENERAL,
                author=review.author,
                body=f"@{review.author} {response}",
            )
        )

    return actions, outcome


def post_replies(
    client: ReplyPoster,
    pr_number: int,
    actions: Iterable[ReplyAction],
    outcome: ReplyOutcome | None = None,
) -> ReplyOutcome:
    """Post planned replies, continuing past individual failures.

    Returns:
        ``outcome`` (or a new one) with posted and failed counts added
    """
    outcome = outcome or ReplyOutcome()

    for action in actions:
        try:
            if action.kind == ReplyKind.THREADED and action.target_comment_id is not None:
                client.reply_to_comment(pr_number, action.target_comment_id, action.body)
            else:
                client.add_pr_comment(pr_number, action.body)
        except GitHubIntegrationError as e:
            outcome.failed += 1
            logger.error(f"Failed to post reply for {action.correlation_id}: {e}")
            continue

        outcome.posted += 1
        logger.info(f"Posted {action.kind.value} reply for {action.correlation_id} to {action.author}")

    if outcome.failed:
        logger.warning(f"{outcome.failed} replies failed to post on PR #{pr_number}")

    return outcome
