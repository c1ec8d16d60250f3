"""Tests for data models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from prloop.models import (
    AgentConfig,
    Comment,
    Config,
    EngineSettings,
    FeedbackGroup,
    GitHubConfig,
    GitHubRepository,
    Review,
    ReviewState,
)


class TestReviewState:
    """Test review state normalization."""

    @pytest.mark.parametrize("raw", ["CHANGES_REQUESTED", "changes_requested", "changes-requested"])
    def test_changes_requested_variants(self, raw):
        assert ReviewState(raw) == ReviewState.CHANGES_REQUESTED

    def test_unknown_state(self):
        assert ReviewState("DISMISSED") == ReviewState.OTHER


class TestComment:
    """Test comment model."""

    def test_naive_timestamp_is_utc(self):
        comment = Comment(id=1, created_at=datetime(2024, 1, 1, 12, 0))
        assert comment.created_at.tzinfo == timezone.utc

    def test_reply_and_file_flags(self):
        assert Comment(id=2, in_reply_to_id=1).is_reply
        assert not Comment(id=2, in_reply_to_id=0).is_reply
        assert Comment(id=3, path="a.py", line=1).is_file_comment
        assert not Comment(id=3, path="a.py").is_file_comment

    def test_frozen(self):
        comment = Comment(id=1)
        with pytest.raises(ValidationError):
            comment.body = "changed"

    def test_review_naive_timestamp_is_utc(self):
        review = Review(id=1, submitted_at=datetime(2024, 1, 1))
        assert review.submitted_at.tzinfo == timezone.utc


class TestFeedbackGroup:
    """Test feedback group helpers."""

    def test_label(self):
        assert FeedbackGroup(path="").label == "general/reviews"
        assert FeedbackGroup(path="a.py").label == "a.py"

    def test_expected_ids(self):
        group = FeedbackGroup(
            reviews={"REVIEW_1": Review(id=1)},
            comments={"COMMENT_2": Comment(id=2), "COMMENT_1": Comment(id=1)},
        )
        assert group.expected_ids == ["COMMENT_1", "COMMENT_2", "REVIEW_1"]
        assert not group.is_empty


class TestGitHubRepository:
    """Test repository parsing."""

    @pytest.mark.parametrize("value", [
        "acme/widgets",
        "https://github.com/acme/widgets",
        "https://github.com/acme/widgets.git",
        "git@github.com:acme/widgets.git",
    ])
    def test_parse(self, value):
        repository = GitHubRepository.parse(value)
        assert repository.full_name == "acme/widgets"

    def test_parse_invalid(self):
        with pytest.raises(ValueError):
            GitHubRepository.parse("widgets")


class TestConfigModels:
    """Test configuration validation."""

    def test_max_thread_depth_bounds(self):
        assert GitHubConfig(max_thread_depth=0).max_thread_depth == 0
        with pytest.raises(ValidationError):
            GitHubConfig(max_thread_depth=-1)
        with pytest.raises(ValidationError):
            GitHubConfig(max_thread_depth=51)

    def test_known_bots_blank_entries_dropped(self):
        assert GitHubConfig(known_bot_usernames=["a", " ", ""]).known_bot_usernames == ["a"]

    def test_empty_agent_command(self):
        with pytest.raises(ValidationError):
            AgentConfig(command="  ")

    def test_extra_sections_allowed(self):
        config = Config.model_validate({"custom": {"x": 1}})
        assert config.github.max_thread_depth == 5


class TestEngineSettings:
    """Test identity matching."""

    def test_from_config(self):
        config = Config.model_validate({
            "github": {"bot_username": "ai-bot", "known_bot_usernames": ["copilot"], "max_thread_depth": 3},
            "feedback": {"parent_preview_length": 50},
        })

        settings = EngineSettings.from_config(config)

        assert settings.bot_username == "ai-bot"
        assert settings.known_bot_usernames == ("copilot",)
        assert settings.max_thread_depth == 3
        assert settings.parent_preview_length == 50

    def test_self_match_is_exact(self):
        settings = EngineSettings(bot_username="ai-bot")

        assert settings.is_self("ai-bot")
        assert not settings.is_self("AI-Bot")
        assert not settings.is_self("")

    def test_empty_identity_matches_nobody(self):
        settings = EngineSettings(bot_username="")

        assert not settings.is_self("")
        assert not settings.is_excluded("someone")

    def test_is_excluded(self, settings):
        assert settings.is_excluded("ai-bot")
        assert settings.is_excluded("GitHub-Actions")
        assert not settings.is_excluded("reviewer1")
