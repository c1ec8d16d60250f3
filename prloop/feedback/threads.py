"""Thread policy: reply depth and bot-to-bot loop prevention."""

from prloop.feedback.graph import CommentGraph, get_parent, is_orphaned
from prloop.models import Comment, EngineSettings, ReplyDecision, SkipReason
from prloop.utils.logger import get_logger

logger = get_logger(__name__)


def is_known_bot(login: str | None, settings: EngineSettings) -> bool:
    """Check whether ``login`` is a configured automated reviewer.

    Matching is case-insensitive and exact; "copilot" does not match
    "copilot-helper".
    """
    return settings.is_known_bot(login)


def calculate_thread_depth(
    comment_id: int, graph: CommentGraph, settings: EngineSettings
) -> int:
    """Count the automation's comments along a reply's parent chain.

    A top-level comment has depth 0. For a reply, the walk starts at
    ``comment_id`` and follows ``in_reply_to_id`` links until a comment has no
    parent or its parent is not in the graph. Every comment on the chain
    authored by ``settings.bot_username`` adds one, including a top-level
    thread root.

    Args:
        comment_id: Comment to start from
        graph: Comment graph for the PR
        settings: Engine settings carrying the automation's identity

    Returns:
        Number of automation comments in the chain
    """
    current = graph.get(comment_id)
    if current is None or not current.is_reply:
        return 0

    depth = 0
    visited: set[int] = set()

    while current is not None:
        if current.id in visited:
            logger.warning(f"Detected cycle in comment thread starting at {comment_id}")
            break
        visited.add(current.id)

        if settings.is_self(current.author):
            depth += 1

        current = get_parent(current, graph)

    return depth


def should_skip_reply(
    comment: Comment, graph: CommentGraph, settings: EngineSettings
) -> ReplyDecision:
    """Decide whether replying to ``comment`` could feed a reply loop.

    Rules are applied in order; the first match wins:

    1. Top-level comments are always answered.
    2. A reply whose parent is missing from the graph is skipped
       ("defensive skip") since the chain cannot be checked.
    3. A known bot replying to the automation's own comment is skipped
       ("loop prevention"), regardless of depth.
    4. A thread whose depth reaches ``max_thread_depth`` is skipped
       ("thread depth").
    """
    if not comment.is_reply:
        return ReplyDecision(skip=False)

    if is_orphaned(comment, graph):
        logger.warning(
            f"Comment {comment.id} by {comment.author} replies to missing parent "
            f"{comment.in_reply_to_id}, skipping"
        )
        return ReplyDecision(
            skip=True,
            reason=SkipReason.DEFENSIVE_SKIP,
            detail=f"parent {comment.in_reply_to_id} not found",
        )

    parent = get_parent(comment, graph)
    if is_known_bot(comment.author, settings) and settings.is_self(parent.author):
        return ReplyDecision(
            skip=True,
            reason=SkipReason.LOOP_PREVENTION,
            detail=f"bot '{comment.author}' is replying to our own comment",
        )

    depth = calculate_thread_depth(comment.id, graph, settings)
    if depth >= settings.max_thread_depth:
        return ReplyDecision(
            skip=True,
            reason=SkipReason.THREAD_DEPTH,
            detail=f"thread depth {depth} reaches max {settings.max_thread_depth}",
        )

    return ReplyDecision(skip=False)
