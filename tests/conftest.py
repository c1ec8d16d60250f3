"""Shared test configuration and fixtures."""

import os
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest

from prloop.config import ConfigManager
from prloop.models import Comment, EngineSettings, PRDetails, PRFile, Review, ReviewState


@pytest.fixture
def temp_home(tmp_path):
    """Create a temporary home directory for tests."""
    return tmp_path


@pytest.fixture
def isolated_config_manager(temp_home, monkeypatch):
    """Create an isolated ConfigManager that doesn't touch real config files."""
    monkeypatch.setattr(Path, "home", lambda: temp_home)

    # No git root, so no project config is found
    monkeypatch.setattr("prloop.config.get_git_root", lambda: None)

    for key in list(os.environ):
        if key.startswith("PRLOOP_"):
            monkeypatch.delenv(key)

    manager = ConfigManager()
    manager._user_config_path = temp_home / ".prloop" / "config.yaml"
    manager._project_config_path = None
    manager._config = None

    return manager


@pytest.fixture(autouse=True)
def mock_global_config_manager(isolated_config_manager, monkeypatch):
    """Automatically mock the global config_manager for all tests."""
    import prloop.config
    import prloop.cli

    monkeypatch.setattr(prloop.config, "config_manager", isolated_config_manager)
    monkeypatch.setattr(prloop.cli, "config_manager", isolated_config_manager)

    return isolated_config_manager


@pytest.fixture
def test_config(isolated_config_manager):
    """Create a user config with the automation identity set."""
    isolated_config_manager.create_default_config(user_level=True)
    isolated_config_manager.set_config_value("github.bot_username", "ai-bot")
    return isolated_config_manager.get_config()


@pytest.fixture
def mock_git_root(tmp_path, monkeypatch):
    """Mock git root to return a temporary directory."""
    git_root = tmp_path / "git_repo"
    git_root.mkdir()

    monkeypatch.setattr("prloop.config.get_git_root", lambda: git_root)

    return git_root


@pytest.fixture
def settings():
    """Engine settings with a self identity and two known bots."""
    return EngineSettings(
        bot_username="ai-bot",
        known_bot_usernames=("coderabbitai", "github-actions"),
        max_thread_depth=5,
    )


@pytest.fixture
def make_comment():
    """Factory for comments with sensible defaults."""

    def _make(comment_id, author="reviewer1", body=None, in_reply_to_id=None,
              path=None, line=None, start_line=None, created_at=None):
        return Comment(
            id=comment_id,
            in_reply_to_id=in_reply_to_id,
            author=author,
            body=body if body is not None else f"comment {comment_id}",
            path=path,
            line=line,
            start_line=start_line,
            created_at=created_at or datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc),
        )

    return _make


@pytest.fixture
def make_review():
    """Factory for reviews with sensible defaults."""

    def _make(review_id, author="reviewer1", body=None,
              state=ReviewState.CHANGES_REQUESTED, submitted_at=None):
        return Review(
            id=review_id,
            author=author,
            state=state,
            body=body if body is not None else f"review {review_id}",
            submitted_at=submitted_at or datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc),
        )

    return _make


@pytest.fixture
def pr_details():
    """Sample pull request context."""
    return PRDetails(
        number=7,
        title="Add retry logic",
        body="Retries failed uploads.",
        url="https://github.com/acme/widgets/pull/7",
        head_ref="feature/retry",
        files=[PRFile(filename="src/main.go", additions=10, deletions=2, patch="@@ -1 +1 @@")],
    )


@pytest.fixture
def mock_host(pr_details):
    """Mock host client with empty PR state."""
    host = Mock()
    host.list_pr_comments.return_value = []
    host.get_reviews.return_value = []
    host.get_pr_details.return_value = pr_details
    return host


@pytest.fixture
def runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner
    return CliRunner()
