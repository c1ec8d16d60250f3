"""Feedback collection: old/new partition, grouping by file and rendering.

The collector is a pure function of its inputs. Reviews and comments are
copied and sorted by ID before anything else, so the same snapshot and cutoff
always yield the same groups, the same text and the same correlation IDs.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from prloop.feedback.graph import CommentGraph, build_comment_graph, get_parent
from prloop.models import (
    Comment,
    EngineSettings,
    FeedbackGroup,
    GroupedFeedback,
    Review,
    ReviewState,
)
from prloop.utils.logger import get_logger

logger = get_logger(__name__)

GENERAL_GROUP = ""
NEW_FEEDBACK_HEADER = "## NEW Review Feedback (Action Required)"
SUMMARY_HEADER = "Previously addressed (for context only - do not re-fix):"
FOLLOW_UP_LINE = "Follow-up to previous discussion"


def truncate_text(text: str, max_len: int) -> str:
    """Flatten ``text`` to a single line and cut it to ``max_len`` characters.

    Truncated text ends with "..." and is exactly ``max_len`` long.
    """
    flattened = text.replace("\r", " ").replace("\n", " ").strip()
    if len(flattened) <= max_len:
        return flattened
    return flattened[: max_len - 3] + "..."


def normalize_cutoff(cutoff: Optional[datetime]) -> Optional[datetime]:
    """Return None for an unset cutoff, otherwise an aware UTC datetime."""
    if cutoff is None or cutoff.year <= 1:
        return None
    if cutoff.tzinfo is None:
        return cutoff.replace(tzinfo=timezone.utc)
    return cutoff


def is_new(timestamp: Optional[datetime], cutoff: Optional[datetime]) -> bool:
    """Whether an item with ``timestamp`` arrived after ``cutoff``.

    Without a cutoff everything is new. With one, undated items count as old.
    """
    if cutoff is None:
        return True
    if timestamp is None:
        return False
    return timestamp > cutoff


def _is_rendered(author: str, body: str, settings: EngineSettings) -> bool:
    return bool(body.strip()) and not settings.is_excluded(author)


def format_comment_location(comment: Comment) -> str:
    """Describe where a comment sits, e.g. ``on src/app.py:10-14``.

    Comments without a path read "General comment"; a missing line never
    produces a ``:0`` suffix.
    """
    if not comment.path:
        return "General comment"
    if not comment.line:
        return f"on {comment.path}"
    if comment.start_line and comment.start_line != comment.line:
        return f"on {comment.path}:{comment.start_line}-{comment.line}"
    return f"on {comment.path}:{comment.line}"


def render_review(correlation_id: str, review: Review) -> str:
    """Render one review block."""
    return (
        f"### {correlation_id}\n"
        f"**Review by {review.author} ({review.state.value}):**\n"
        f"{review.body}"
    )


def render_comment(
    correlation_id: str,
    comment: Comment,
    graph: CommentGraph,
    settings: EngineSettings,
) -> str:
    """Render one comment block, with parent context for follow-ups to the automation."""
    lines = [f"### {correlation_id}"]

    parent = get_parent(comment, graph)
    if parent is not None and settings.is_self(parent.author):
        preview = truncate_text(parent.body, settings.parent_preview_length)
        lines.append(FOLLOW_UP_LINE)
        lines.append(f"Previous comment by {parent.author}: {preview}")

    lines.append(f"**Comment by {comment.author} {format_comment_location(comment)}:**")
    lines.append(comment.body)
    return "\n".join(lines)


def render_group(group: FeedbackGroup, graph: CommentGraph, settings: EngineSettings) -> str:
    """Render the new feedback text for a group."""
    blocks = [NEW_FEEDBACK_HEADER]
    if group.path:
        blocks.append(f"**File: {group.path}**")

    for correlation_id, review in group.reviews.items():
        blocks.append(render_review(correlation_id, review))

    for correlation_id, comment in group.comments.items():
        blocks.append(render_comment(correlation_id, comment, graph, settings))

    return "\n\n".join(blocks) + "\n"


def build_handled_summary(
    reviews: list[Review],
    comments: list[Comment],
    cutoff: Optional[datetime],
    settings: EngineSettings,
) -> str:
    """Summarize feedback handled by earlier passes.

    Returns an empty string on the first run or when nothing old remains after
    exclusions.
    """
    if cutoff is None:
        return ""

    items: list[str] = []
    for review in reviews:
        if not _is_rendered(review.author, review.body, settings):
            continue
        if not is_new(review.submitted_at, cutoff):
            items.append(f"{truncate_text(review.body, settings.summary_preview_length)} (review)")

    for comment in comments:
        if not _is_rendered(comment.author, comment.body, settings):
            continue
        if not is_new(comment.created_at, cutoff):
            items.append(truncate_text(comment.body, settings.summary_preview_length))

    if not items:
        return ""

    lines = [SUMMARY_HEADER]
    lines.extend(f"- {item}" for item in items)
    return "\n".join(lines) + "\n"


def collect_feedback(
    reviews: Iterable[Review],
    comments: Iterable[Comment],
    cutoff: Optional[datetime],
    settings: EngineSettings,
) -> GroupedFeedback:
    """Collect new feedback grouped by file path, plus a summary of old feedback.

    Args:
        reviews: PR reviews
        comments: Inline review comments and conversation comments
        cutoff: Last processing time; None (or a zero datetime) means first run
        settings: Engine settings

    Returns:
        Grouped feedback with the general group first (when it has content),
        then one group per file path in order of first appearance
    """
    sorted_reviews = sorted(reviews, key=lambda review: review.id)
    sorted_comments = sorted(comments, key=lambda comment: comment.id)
    cutoff = normalize_cutoff(cutoff)

    # All comments, including excluded and old ones, so parent context resolves
    graph = build_comment_graph(sorted_comments)

    summary = build_handled_summary(sorted_reviews, sorted_comments, cutoff, settings)

    new_reviews = [
        review
        for review in sorted_reviews
        if _is_rendered(review.author, review.body, settings)
        and is_new(review.submitted_at, cutoff)
    ]

    comments_by_path: dict[str, list[Comment]] = {GENERAL_GROUP: []}
    for comment in sorted_comments:
        if not _is_rendered(comment.author, comment.body, settings):
            continue
        if not is_new(comment.created_at, cutoff):
            continue
        comments_by_path.setdefault(comment.path or GENERAL_GROUP, []).append(comment)

    groups: dict[str, FeedbackGroup] = {}

    if new_reviews or comments_by_path[GENERAL_GROUP]:
        groups[GENERAL_GROUP] = FeedbackGroup(path=GENERAL_GROUP)
        for index, review in enumerate(new_reviews, start=1):
            groups[GENERAL_GROUP].reviews[f"REVIEW_{index}"] = review

    comment_counter = 1
    for path, path_comments in comments_by_path.items():
        if not path_comments:
            continue
        group = groups.setdefault(path, FeedbackGroup(path=path))
        for comment in path_comments:
            group.comments[f"COMMENT_{comment_counter}"] = comment
            comment_counter += 1

    for group in groups.values():
        group.new_feedback = render_group(group, graph, settings)
        logger.debug(
            f"Group feedback collected: {group.label} "
            f"(reviews={len(group.reviews)}, comments={len(group.comments)})"
        )

    result = GroupedFeedback(groups=groups, summary=summary)
    logger.info(
        f"Collected feedback: {len(groups)} groups, "
        f"{result.total_reviews} new reviews, {result.total_comments} new comments"
    )
    return result


def has_actionable_feedback(
    reviews: Iterable[Review],
    comments: Iterable[Comment],
    cutoff: Optional[datetime],
    settings: EngineSettings,
) -> bool:
    """Whether a pass has anything to act on.

    True when a non-excluded reviewer requested changes after the cutoff, or
    when any new non-excluded comment exists.
    """
    cutoff = normalize_cutoff(cutoff)

    for review in reviews:
        if settings.is_excluded(review.author):
            continue
        if review.state == ReviewState.CHANGES_REQUESTED and is_new(review.submitted_at, cutoff):
            return True

    return any(
        _is_rendered(comment.author, comment.body, settings)
        and is_new(comment.created_at, cutoff)
        for comment in comments
    )
