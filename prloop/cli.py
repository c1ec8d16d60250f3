"""Click CLI interface for prloop."""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from prloop import __version__
from prloop.config import ConfigError, config_manager, get_config
from prloop.feedback.collector import collect_feedback, truncate_text
from prloop.feedback.graph import build_comment_graph
from prloop.feedback.responses import parse_comment_responses
from prloop.feedback.threads import calculate_thread_depth, should_skip_reply
from prloop.feedback.timestamps import (
    format_rfc3339,
    get_last_processing_timestamp,
    update_processing_timestamp,
)
from prloop.integrations.agent import AgentError, CommandAgent
from prloop.integrations.github import (
    GitHubFeedbackClient,
    GitHubIntegrationError,
    detect_repository,
)
from prloop.models import EngineSettings, GitHubRepository
from prloop.utils.logger import enable_verbose_logging, get_logger
from prloop.workflows.review_feedback import ReviewFeedbackError, ReviewFeedbackWorkflow

logger = get_logger(__name__)
console = Console()

repo_option = click.option(
    "--repo", "-R", default=None, help="Repository as owner/name (defaults to config or current repo)"
)


def _engine_settings(require_identity: bool = False) -> EngineSettings:
    """Build engine settings from configuration.

    Raises:
        ConfigError: If the automation identity is required but not configured
    """
    config = get_config()
    if require_identity and not config.github.bot_username:
        raise ConfigError(
            "github.bot_username is not set. Run 'prloop config set github.bot_username <login>'."
        )
    if not config.github.bot_username:
        logger.warning("github.bot_username is not set; the automation's own comments will be included")
    return EngineSettings.from_config(config)


def _github_client(repo: Optional[str]) -> GitHubFeedbackClient:
    """Resolve the repository and build a GitHub client."""
    config = get_config()
    repo = repo or config.github.repository
    if repo:
        try:
            repository = GitHubRepository.parse(repo)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--repo") from e
    else:
        repository = detect_repository()
        if repository is None:
            raise click.UsageError(
                "Could not detect GitHub repository. Pass --repo owner/name."
            )
    return GitHubFeedbackClient(repository, timeout=config.github.api_timeout)


def _fail(error: Exception) -> None:
    console.print(f"[red]Error:[/red] {escape(str(error))}")
    sys.exit(1)


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version and exit")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, version: bool, verbose: bool) -> None:
    """prloop - PR review feedback engine.

    Collects new review feedback for an AI coding agent and replies to
    reviewers without starting bot-to-bot reply loops.
    """
    if version:
        click.echo(f"prloop version {__version__}")
        sys.exit(0)

    if verbose:
        enable_verbose_logging()

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.option("--project", "-p", is_flag=True, help="Create project config instead of user config")
def init(project: bool) -> None:
    """Create a default configuration file."""
    try:
        config_path = config_manager.create_default_config(user_level=not project)
    except ConfigError as e:
        _fail(e)
        return

    console.print(f"[green]✓[/green] Configuration ready: {config_path}")
    console.print("\n[bold]Next steps:[/bold]")
    console.print("1. Set the automation login: [cyan]prloop config set github.bot_username <login>[/cyan]")
    console.print("2. Set up GitHub CLI: [cyan]gh auth login[/cyan]")


@cli.group()
def config() -> None:
    """Configuration management."""
    pass


@config.command("get")
@click.argument("key")
def config_get(key: str) -> None:
    """Get configuration value by KEY (e.g. 'github.max_thread_depth')."""
    try:
        value = config_manager.get_config_value(key)
    except ConfigError as e:
        _fail(e)
        return
    console.print(f"{key}: {value}")


@config.command("set")
@click.argument("key")
@click.argument("value")
@click.option("--project", "-p", is_flag=True, help="Set in project config instead of user config")
def config_set(key: str, value: str, project: bool) -> None:
    """Set configuration KEY to VALUE.

    Comma separated values are stored as lists.
    """
    parsed_value = config_manager.parse_value(value)
    try:
        config_manager.set_config_value(key, parsed_value, user_level=not project)
    except ConfigError as e:
        _fail(e)
        return
    console.print(f"[green]✓[/green] {escape(key)} = {escape(str(parsed_value))}")


@config.command("show")
def config_show() -> None:
    """Show the effective configuration."""
    try:
        data = get_config().model_dump(mode="json")
    except ConfigError as e:
        _fail(e)
        return

    table = Table(title="prloop configuration")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for section, values in data.items():
        if isinstance(values, dict):
            for key, value in values.items():
                table.add_row(f"{section}.{key}", Text(str(value)))
        else:
            table.add_row(section, Text(str(values)))
    console.print(table)

    for kind, path in config_manager.list_config_files().items():
        console.print(f"[dim]{kind} config: {escape(str(path or 'not found'))}[/dim]")


@cli.command()
@click.argument("pr_number", type=int)
@repo_option
@click.option("--all", "ignore_cutoff", is_flag=True, help="Ignore the processing timestamp")
def feedback(pr_number: int, repo: Optional[str], ignore_cutoff: bool) -> None:
    """Show the grouped feedback the agent would receive for PR_NUMBER."""
    try:
        settings = _engine_settings()
        client = _github_client(repo)
        comments = client.list_pr_comments(pr_number)
        reviews = client.get_reviews(pr_number)
    except (ConfigError, GitHubIntegrationError) as e:
        _fail(e)
        return

    cutoff = None if ignore_cutoff else get_last_processing_timestamp(comments, settings)
    grouped = collect_feedback(reviews, comments, cutoff, settings)

    cutoff_label = format_rfc3339(cutoff) if cutoff else "none (first run)"
    console.print(f"[bold]PR #{pr_number}[/bold] cutoff: {cutoff_label}")

    if not grouped.has_new_feedback:
        console.print("[yellow]No new feedback.[/yellow]")
    for group in grouped.groups.values():
        console.rule(group.label)
        console.print(group.new_feedback, markup=False, highlight=False)

    if grouped.summary:
        console.rule("previously addressed")
        console.print(grouped.summary, markup=False, highlight=False)


@cli.command()
@click.argument("pr_number", type=int)
@repo_option
def threads(pr_number: int, repo: Optional[str]) -> None:
    """Show reply depth and skip decisions for every comment on PR_NUMBER."""
    try:
        settings = _engine_settings()
        client = _github_client(repo)
        comments = client.list_pr_comments(pr_number)
    except (ConfigError, GitHubIntegrationError) as e:
        _fail(e)
        return

    graph = build_comment_graph(comments)

    table = Table(title=f"PR #{pr_number} comment threads")
    table.add_column("ID", justify="right")
    table.add_column("Parent", justify="right")
    table.add_column("Author")
    table.add_column("Depth", justify="right")
    table.add_column("Reply")
    table.add_column("Body")

    for comment in comments:
        decision = should_skip_reply(comment, graph, settings)
        reply = f"[red]skip[/red] ({decision.reason.value})" if decision.skip else "[green]ok[/green]"
        table.add_row(
            str(comment.id),
            str(comment.in_reply_to_id or ""),
            Text(comment.author),
            str(calculate_thread_depth(comment.id, graph, settings)),
            reply,
            Text(truncate_text(comment.body, 60)),
        )

    console.print(table)


@cli.command("parse-responses")
@click.argument("source", type=click.File("r"), default="-")
def parse_responses(source) -> None:
    """Parse <ID>_RESPONSE: blocks from agent output in SOURCE (default stdin)."""
    responses = parse_comment_responses(source.read())

    if not responses:
        console.print("[yellow]No responses found.[/yellow]")
        return

    table = Table(title="Agent responses")
    table.add_column("ID", style="cyan")
    table.add_column("Response")
    for correlation_id, response in responses.items():
        table.add_row(correlation_id, Text(response))
    console.print(table)


@cli.command()
@click.argument("pr_number", type=int)
@repo_option
@click.option("--context", "-c", default=None, help="Label mentioned in the marker comment")
def mark(pr_number: int, repo: Optional[str], context: Optional[str]) -> None:
    """Post a processing timestamp marker on PR_NUMBER."""
    try:
        client = _github_client(repo)
        redacted = get_config().feedback.redact_timestamp_comments
        timestamp = update_processing_timestamp(client, pr_number, context=context, redacted=redacted)
    except (ConfigError, GitHubIntegrationError) as e:
        _fail(e)
        return
    console.print(f"[green]✓[/green] Marked PR #{pr_number} at {format_rfc3339(timestamp)}")


@cli.command()
@click.argument("pr_number", type=int)
@repo_option
@click.option("--context", "-c", default=None, help="Label mentioned in the marker comment")
@click.option(
    "--workdir", "-w",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Checkout of the PR branch the agent works in",
)
def run(pr_number: int, repo: Optional[str], context: Optional[str], workdir: Optional[Path]) -> None:
    """Run one feedback pass on PR_NUMBER."""
    try:
        config = get_config()
        settings = _engine_settings(require_identity=True)
        client = _github_client(repo)
        workflow = ReviewFeedbackWorkflow(
            client,
            CommandAgent(config.agent, cwd=workdir),
            settings,
            redact_marker=config.feedback.redact_timestamp_comments,
        )
        result = workflow.run(pr_number, context=context)
    except (ConfigError, GitHubIntegrationError, ReviewFeedbackError, AgentError) as e:
        _fail(e)
        return

    if not result.processed:
        console.print(f"[yellow]No new feedback on PR #{pr_number}.[/yellow]")
        return

    console.print(f"[green]✓[/green] Processed {len(result.groups)} feedback groups on PR #{pr_number}")
    if result.skipped_groups:
        console.print(f"  Skipped (no agent output): {', '.join(result.skipped_groups)}")
    console.print(
        f"  Replies: {result.replies.posted} posted, {result.replies.skipped} skipped, "
        f"{result.replies.failed} failed, {result.replies.missing} unanswered"
    )


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
