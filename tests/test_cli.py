"""Tests for CLI interface."""

from unittest.mock import Mock, patch

import pytest

from prloop.cli import cli
from prloop.integrations.github import GitHubIntegrationError
from prloop.models import GitHubRepository, ReplyOutcome
from prloop.workflows.review_feedback import FeedbackPassResult


@pytest.fixture
def mock_client(mock_host):
    """Patch the GitHub client the CLI builds."""
    with patch("prloop.cli.GitHubFeedbackClient", return_value=mock_host) as client_class:
        yield client_class


class TestCLI:
    """Test top-level CLI behaviour."""

    def test_version_flag(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "prloop version" in result.output

    def test_help_output(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "PR review feedback engine" in result.output
        assert "Commands:" in result.output

    def test_init_command(self, runner, temp_home):
        result = runner.invoke(cli, ["init"])

        assert result.exit_code == 0
        assert (temp_home / ".prloop" / "config.yaml").exists()
        assert "bot_username" in result.output


class TestConfigCommands:
    """Test config get/set/show."""

    def test_config_get_set(self, runner):
        result = runner.invoke(cli, ["config", "set", "github.max_thread_depth", "3"])
        assert result.exit_code == 0

        result = runner.invoke(cli, ["config", "get", "github.max_thread_depth"])
        assert result.exit_code == 0
        assert "github.max_thread_depth: 3" in result.output

    def test_config_get_missing(self, runner):
        result = runner.invoke(cli, ["config", "get", "nope.nothing"])
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_config_set_invalid(self, runner):
        result = runner.invoke(cli, ["config", "set", "github.max_thread_depth", "100"])
        assert result.exit_code == 1

    def test_config_set_list_value(self, runner, isolated_config_manager):
        result = runner.invoke(cli, ["config", "set", "github.known_bot_usernames", "bot-a,bot-b"])

        assert result.exit_code == 0
        assert isolated_config_manager.get_config().github.known_bot_usernames == ["bot-a", "bot-b"]

    def test_config_show(self, runner):
        result = runner.invoke(cli, ["config", "show"])
        assert result.exit_code == 0
        assert "prloop configuration" in result.output


class TestFeedbackCommands:
    """Test commands that read PR state."""

    def test_feedback(self, runner, test_config, mock_client, mock_host, make_comment):
        mock_host.list_pr_comments.return_value = [make_comment(3, body="Use a constant")]

        result = runner.invoke(cli, ["feedback", "7", "--repo", "acme/widgets"])

        assert result.exit_code == 0
        assert "### COMMENT_1" in result.output
        assert "Use a constant" in result.output
        mock_client.assert_called_once_with(GitHubRepository(owner="acme", name="widgets"), timeout=30)

    def test_feedback_no_new(self, runner, test_config, mock_client):
        result = runner.invoke(cli, ["feedback", "7", "--repo", "acme/widgets"])

        assert result.exit_code == 0
        assert "No new feedback" in result.output

    def test_feedback_detects_repository(self, runner, test_config, mock_client):
        with patch("prloop.cli.detect_repository", return_value=GitHubRepository(owner="o", name="r")):
            result = runner.invoke(cli, ["feedback", "7"])

        assert result.exit_code == 0
        assert mock_client.call_args[0][0].full_name == "o/r"

    def test_feedback_github_error(self, runner, test_config, mock_client, mock_host):
        mock_host.list_pr_comments.side_effect = GitHubIntegrationError("HTTP 404")

        result = runner.invoke(cli, ["feedback", "7", "--repo", "acme/widgets"])

        assert result.exit_code == 1
        assert "HTTP 404" in result.output

    def test_threads(self, runner, test_config, mock_client, mock_host, make_comment):
        mock_host.list_pr_comments.return_value = [
            make_comment(100, author="reviewer1"),
            make_comment(101, author="ai-bot", in_reply_to_id=100),
            make_comment(102, author="coderabbitai", in_reply_to_id=101),
        ]

        result = runner.invoke(cli, ["threads", "7", "--repo", "acme/widgets"])

        assert result.exit_code == 0
        assert "102" in result.output
        assert "skip" in result.output

    def test_parse_responses(self, runner, tmp_path):
        output_file = tmp_path / "agent.txt"
        output_file.write_text("COMMENT_1_RESPONSE:\nFixed it.\n\nREVIEW_1_RESPONSE: Added tests.\n")

        result = runner.invoke(cli, ["parse-responses", str(output_file)])

        assert result.exit_code == 0
        assert "COMMENT_1" in result.output
        assert "REVIEW_1" in result.output

    def test_threads_bracketed_body(self, runner, test_config, mock_client, mock_host, make_comment):
        mock_host.list_pr_comments.return_value = [
            make_comment(100, author="reviewer1", body="close the [/code] tag"),
        ]

        result = runner.invoke(cli, ["threads", "7", "--repo", "acme/widgets"])

        assert result.exit_code == 0
        assert "[/code]" in result.output

    def test_parse_responses_bracketed_text(self, runner):
        result = runner.invoke(
            cli, ["parse-responses"], input="COMMENT_1_RESPONSE: Closed the [/b] tag.\n"
        )

        assert result.exit_code == 0
        assert "[/b]" in result.output

    def test_parse_responses_stdin_empty(self, runner):
        result = runner.invoke(cli, ["parse-responses"], input="nothing here")

        assert result.exit_code == 0
        assert "No responses found" in result.output

    def test_mark(self, runner, test_config, mock_client, mock_host):
        result = runner.invoke(cli, ["mark", "7", "--repo", "acme/widgets", "--context", "ENG-1"])

        assert result.exit_code == 0
        body = mock_host.add_pr_comment.call_args[0][1]
        assert body.startswith("AI Processing Timestamp:")
        assert "for ENG-1" in body


class TestRunCommand:
    """Test the run command."""

    def test_requires_identity(self, runner, mock_client):
        result = runner.invoke(cli, ["run", "7", "--repo", "acme/widgets"])

        assert result.exit_code == 1
        assert "bot_username" in result.output

    def test_run(self, runner, test_config, mock_client):
        workflow = Mock()
        workflow.run.return_value = FeedbackPassResult(
            pr_number=7,
            processed=True,
            groups=["general/reviews"],
            replies=ReplyOutcome(posted=2, skipped=1),
        )

        with patch("prloop.cli.ReviewFeedbackWorkflow", return_value=workflow) as workflow_class:
            result = runner.invoke(cli, ["run", "7", "--repo", "acme/widgets", "-c", "ENG-1"])

        assert result.exit_code == 0
        assert "2 posted" in result.output
        workflow.run.assert_called_once_with(7, context="ENG-1")
        assert workflow_class.call_args[0][2].bot_username == "ai-bot"

    def test_run_nothing_new(self, runner, test_config, mock_client):
        workflow = Mock()
        workflow.run.return_value = FeedbackPassResult(pr_number=7)

        with patch("prloop.cli.ReviewFeedbackWorkflow", return_value=workflow):
            result = runner.invoke(cli, ["run", "7", "--repo", "acme/widgets"])

        assert result.exit_code == 0
        assert "No new feedback" in result.output
