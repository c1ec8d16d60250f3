"""Correlate the agent's free-text output back to feedback items."""

import re
from typing import Iterable

from prloop.feedback.collector import truncate_text
from prloop.utils.logger import get_logger

logger = get_logger(__name__)

RESPONSE_MARKER_PATTERN = re.compile(r"(?m)^[ \t]*\**((?:COMMENT|REVIEW)_\d+)_RESPONSE:\**[ \t]*")
BLANK_LINE_PATTERN = re.compile(r"\n[ \t]*\n")


def parse_comment_responses(raw_text: str, expected_ids: Iterable[str] = ()) -> dict[str, str]:
    """Extract ``<ID>_RESPONSE:`` blocks from agent output.

    Each response runs from the end of its marker up to the first blank line
    or the next marker, whichever comes first. A marker only counts at the
    start of a line, optionally indented or bold. Text outside markers is
    ignored, as are markers followed by nothing.

    Args:
        raw_text: Agent output
        expected_ids: IDs the agent was asked to answer; only used to log
            missing responses, never to filter

    Returns:
        Mapping of correlation ID to response text
    """
    responses: dict[str, str] = {}
    if not raw_text:
        return responses

    matches = list(RESPONSE_MARKER_PATTERN.finditer(raw_text))
    for index, match in enumerate(matches):
        start = match.end()
        end = matches[index + 1].start() if index + 1 < len(matches) else len(raw_text)

        # A blank line right after the marker is padding, not a terminator
        segment = raw_text[start:end]
        leading = len(segment) - len(segment.lstrip())
        blank = BLANK_LINE_PATTERN.search(segment, leading)
        if blank is not None:
            segment = segment[: blank.start()]

        response = segment.strip()
        correlation_id = match.group(1)
        if not response:
            logger.warning(f"Parsed empty response for {correlation_id}")
            continue

        responses[correlation_id] = response
        logger.debug(f"Parsed response for {correlation_id}: {truncate_text(response, 100)}")

    expected = list(expected_ids)
    missing = [correlation_id for correlation_id in expected if correlation_id not in responses]
    if missing:
        logger.warning(
            f"Agent did not answer {len(missing)} of {len(expected)} items: {', '.join(missing)}"
        )

    logger.info(f"Parsed {len(responses)} agent responses (expected {len(expected)})")
    return responses
