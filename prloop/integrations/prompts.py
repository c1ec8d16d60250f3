"""Prompt generation for the feedback-fixing agent."""

from prloop.models import FeedbackGroup, PRDetails

RESPONSE_FORMAT_INSTRUCTIONS = """## Response Format
IMPORTANT: After making your code changes, provide individual responses in this exact format:

For each COMMENT_X or REVIEW_X, include a section like:
```
COMMENT_1_RESPONSE:
Brief 1-3 sentence explanation of what you changed to address this comment.

COMMENT_2_RESPONSE:
Brief 1-3 sentence explanation of what you changed.
```

NOTE: Each response must end with a blank line to separate it from the next response.
The parser stops at the first blank line, so keep responses concise (1-3 sentences).
"""


def _format_changed_files(pr: PRDetails) -> str:
    lines = ["## Changed Files"]
    for file in pr.files:
        lines.append(f"- {file.filename} ({file.status}): +{file.additions} -{file.deletions}")
        if file.patch:
            lines.append("```diff")
            lines.append(file.patch)
            lines.append("```")
    return "\n".join(lines)


def build_feedback_prompt(pr: PRDetails, group: FeedbackGroup, summary: str = "") -> str:
    """Build the agent prompt for one feedback group.

    Args:
        pr: Pull request context
        group: Feedback group whose items the agent must address
        summary: Previously addressed items, included for context only

    Returns:
        Prompt text
    """
    sections = [
        "You are a code reviewer and developer. You need to fix the code based on NEW PR "
        "review feedback and provide individual responses.",
        "## Original PR Information\n"
        f"**Title:** {pr.title}\n"
        f"**Description:** {pr.body}\n"
        f"**PR URL:** {pr.url}",
    ]

    if pr.files:
        sections.append(_format_changed_files(pr))

    if summary:
        sections.append(f"## {summary.rstrip()}")

    sections.append(group.new_feedback.rstrip())

    sections.append(
        "## Instructions\n"
        "1. Analyze the NEW feedback carefully (marked with COMMENT_X or REVIEW_X IDs)\n"
        "2. Apply the necessary fixes to address each piece of feedback\n"
        "3. After fixing, provide a brief response (1-3 sentences) for EACH comment/review "
        "explaining what you changed"
    )
    sections.append(RESPONSE_FORMAT_INSTRUCTIONS.rstrip())
    sections.append(
        "Now please:\n"
        "1. Apply all the fixes to the code\n"
        "2. Provide individual responses in the format shown above"
    )

    return "\n\n".join(sections) + "\n"
