"""Tests for agent response parsing."""

from prloop.feedback.responses import parse_comment_responses


class TestParseCommentResponses:
    """Test extracting <ID>_RESPONSE: blocks."""

    def test_empty_input(self):
        assert parse_comment_responses("") == {}

    def test_no_markers(self):
        assert parse_comment_responses("I fixed everything.\n\nDone.") == {}

    def test_basic_blocks(self):
        output = (
            "I made the following changes.\n\n"
            "COMMENT_1_RESPONSE:\n"
            "Replaced the magic number with a constant.\n\n"
            "COMMENT_2_RESPONSE:\n"
            "Added a nil check before dereferencing.\n\n"
            "REVIEW_1_RESPONSE:\n"
            "Added unit tests for the retry path.\n"
        )

        assert parse_comment_responses(output) == {
            "COMMENT_1": "Replaced the magic number with a constant.",
            "COMMENT_2": "Added a nil check before dereferencing.",
            "REVIEW_1": "Added unit tests for the retry path.",
        }

    def test_response_on_marker_line(self):
        output = "COMMENT_1_RESPONSE: Renamed the variable.\nCOMMENT_2_RESPONSE: Removed dead code."

        assert parse_comment_responses(output) == {
            "COMMENT_1": "Renamed the variable.",
            "COMMENT_2": "Removed dead code.",
        }

    def test_stops_at_first_blank_line(self):
        output = "COMMENT_1_RESPONSE:\nFixed the bug.\nAlso cleaned up.\n\nTrailing commentary."

        assert parse_comment_responses(output) == {"COMMENT_1": "Fixed the bug.\nAlso cleaned up."}

    def test_blank_line_after_marker_is_padding(self):
        output = "COMMENT_1_RESPONSE:\n\nFixed the bug.\n\nMore text."

        assert parse_comment_responses(output) == {"COMMENT_1": "Fixed the bug."}

    def test_empty_response_dropped(self):
        output = "COMMENT_1_RESPONSE:\nCOMMENT_2_RESPONSE:\nDone."

        assert parse_comment_responses(output) == {"COMMENT_2": "Done."}

    def test_unexpected_ids_kept(self):
        output = "COMMENT_9_RESPONSE:\nAnswered anyway."

        assert parse_comment_responses(output, expected_ids=["COMMENT_1"]) == {
            "COMMENT_9": "Answered anyway."
        }

    def test_bold_markers(self):
        output = "**COMMENT_1_RESPONSE:** Switched to a context manager.\n\n**REVIEW_1_RESPONSE:**\nDone."

        responses = parse_comment_responses(output)

        assert responses["COMMENT_1"] == "Switched to a context manager."
        assert responses["REVIEW_1"] == "Done."

    def test_inside_code_fence(self):
        output = "```\nCOMMENT_1_RESPONSE:\nFixed it.\n\n```"

        assert parse_comment_responses(output) == {"COMMENT_1": "Fixed it."}

    def test_later_duplicate_wins(self):
        output = "COMMENT_1_RESPONSE: first\n\nCOMMENT_1_RESPONSE: second"

        assert parse_comment_responses(output) == {"COMMENT_1": "second"}

    def test_two_short_responses(self):
        output = "COMMENT_1_RESPONSE:\nFixed.\n\nCOMMENT_2_RESPONSE:\nDone.\n"

        assert parse_comment_responses(output, ["COMMENT_1", "COMMENT_2"]) == {
            "COMMENT_1": "Fixed.",
            "COMMENT_2": "Done.",
        }

    def test_mid_line_marker_is_text(self):
        output = "COMMENT_1_RESPONSE: Same fix as REVIEW_1_RESPONSE: used."

        assert parse_comment_responses(output) == {
            "COMMENT_1": "Same fix as REVIEW_1_RESPONSE: used."
        }

    def test_indented_marker(self):
        output = "  COMMENT_1_RESPONSE:\n  Fixed it."

        assert parse_comment_responses(output) == {"COMMENT_1": "Fixed it."}
