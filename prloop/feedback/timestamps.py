"""Processing timestamp markers stored in the PR's own comment history.

After each successful pass the automation posts a comment containing
``AI Processing Timestamp: <RFC3339>``. The newest such marker authored by the
automation is the cutoff for the next pass.
"""

import re
from datetime import datetime, timezone
from typing import Iterable, Optional, Protocol

from prloop.models import Comment, EngineSettings
from prloop.utils.logger import get_logger

logger = get_logger(__name__)

MARKER_PREFIX = "AI Processing Timestamp:"
TIMESTAMP_PATTERN = re.compile(r"AI Processing Timestamp:\s*(\S+)")


class CommentPoster(Protocol):
    """Host client capable of posting a PR conversation comment."""

    def add_pr_comment(self, pr_number: int, body: str) -> None: ...


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC3339 timestamp into an aware datetime.

    Raises:
        ValueError: If ``value`` is not a valid timestamp with an offset
    """
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        raise ValueError(f"Timestamp has no UTC offset: {value}")
    return parsed


def format_rfc3339(value: datetime) -> str:
    """Format ``value`` as second-precision UTC RFC3339 with a trailing Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def get_last_processing_timestamp(
    comments: Iterable[Comment], settings: EngineSettings
) -> Optional[datetime]:
    """Find the newest processing marker posted by the automation.

    Args:
        comments: All PR comments
        settings: Engine settings carrying the automation's identity

    Returns:
        Latest marker timestamp, or None when no valid marker exists (first run)
    """
    latest: Optional[datetime] = None

    for comment in comments:
        if not settings.is_self(comment.author):
            continue

        for match in TIMESTAMP_PATTERN.finditer(comment.body):
            try:
                timestamp = parse_rfc3339(match.group(1))
            except ValueError:
                logger.debug(
                    f"Ignoring malformed processing timestamp {match.group(1)!r} "
                    f"in comment {comment.id}"
                )
                continue
            if latest is None or timestamp > latest:
                latest = timestamp

    if latest is None:
        logger.debug("No processing timestamp found, treating all feedback as new")
    else:
        logger.debug(f"Last processing timestamp: {format_rfc3339(latest)}")

    return latest


def format_processing_marker(
    now: datetime, context: Optional[str] = None, redacted: bool = False
) -> str:
    """Build the body of a processing marker comment.

    Args:
        now: Processing time to record
        context: Optional label (e.g. ticket key) mentioned in the explanation
        redacted: Omit the explanation of how the marker is used

    Returns:
        Comment body
    """
    subject = f"for {context} " if context else ""
    body = f"{MARKER_PREFIX} {format_rfc3339(now)}\n\nAI has processed feedback {subject}at this time."
    if not redacted:
        body += " Future processing will only consider feedback submitted after this timestamp."
    return body


def update_processing_timestamp(
    client: CommentPoster,
    pr_number: int,
    context: Optional[str] = None,
    now: Optional[datetime] = None,
    redacted: bool = False,
) -> datetime:
    """Post a new processing marker on the PR.

    Collaborator errors propagate to the caller.

    Returns:
        The timestamp written, truncated to whole seconds
    """
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc).replace(microsecond=0)
    client.add_pr_comment(pr_number, format_processing_marker(now, context, redacted))
    logger.info(f"Recorded processing timestamp {format_rfc3339(now)} on PR #{pr_number}")
    return now
