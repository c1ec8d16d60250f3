"""PR review feedback engine.

Pure functions over a snapshot of a PR's reviews and comments: comment graph,
thread policy, feedback collection, processing timestamps and response
correlation.
"""

from prloop.feedback.collector import (
    collect_feedback,
    format_comment_location,
    has_actionable_feedback,
    truncate_text,
)
from prloop.feedback.graph import CommentGraph, build_comment_graph
from prloop.feedback.responses import parse_comment_responses
from prloop.feedback.threads import calculate_thread_depth, is_known_bot, should_skip_reply
from prloop.feedback.timestamps import (
    format_processing_marker,
    get_last_processing_timestamp,
    update_processing_timestamp,
)

__all__ = [
    "CommentGraph",
    "build_comment_graph",
    "calculate_thread_depth",
    "collect_feedback",
    "format_comment_location",
    "format_processing_marker",
    "get_last_processing_timestamp",
    "has_actionable_feedback",
    "is_known_bot",
    "parse_comment_responses",
    "should_skip_reply",
    "truncate_text",
    "update_processing_timestamp",
]
