"""Comment graph construction."""

from typing import Iterable

from prloop.models import Comment

CommentGraph = dict[int, Comment]


def build_comment_graph(comments: Iterable[Comment]) -> CommentGraph:
    """Index comments by ID.

    The graph holds the caller's own Comment objects. A later comment with a
    duplicate ID replaces the earlier one.
    """
    return {comment.id: comment for comment in comments}


def get_parent(comment: Comment, graph: CommentGraph) -> Comment | None:
    """Return the parent of ``comment`` or None when top-level or orphaned."""
    if not comment.in_reply_to_id:
        return None
    return graph.get(comment.in_reply_to_id)


def is_orphaned(comment: Comment, graph: CommentGraph) -> bool:
    """A reply whose parent is not present in the graph."""
    return comment.is_reply and comment.in_reply_to_id not in graph
