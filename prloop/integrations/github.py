"""GitHub integration via gh CLI.

Host JSON is decoded through explicit payload schemas into the engine's
typed models; nothing past this module sees raw API dictionaries.
"""

import json
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from prloop.models import Comment, GitHubRepository, PRDetails, PRFile, Review, ReviewState
from prloop.utils.logger import get_logger
from prloop.utils.shell import ShellError, check_command_exists, run_command

logger = get_logger(__name__)


class GitHubIntegrationError(Exception):
    """GitHub integration error."""
    pass


class GitHubAuthError(GitHubIntegrationError):
    """GitHub authentication error."""
    pass


class GitHubUser(BaseModel):
    """User reference embedded in API payloads."""

    login: str = Field(default="", description="User login")


class GitHubReviewPayload(BaseModel):
    """Review object from the pulls reviews endpoint."""

    id: int
    user: Optional[GitHubUser] = None
    state: str = ""
    body: Optional[str] = None
    submitted_at: Optional[datetime] = None

    def to_review(self) -> Review:
        return Review(
            id=self.id,
            author=self.user.login if self.user else "",
            state=ReviewState(self.state),
            body=self.body or "",
            submitted_at=self.submitted_at,
        )


class GitHubCommentPayload(BaseModel):
    """Inline review comment or issue (conversation) comment."""

    id: int
    in_reply_to_id: Optional[int] = None
    user: Optional[GitHubUser] = None
    body: Optional[str] = None
    path: Optional[str] = None
    line: Optional[int] = None
    start_line: Optional[int] = None
    created_at: Optional[datetime] = None

    def to_comment(self) -> Comment:
        return Comment(
            id=self.id,
            in_reply_to_id=self.in_reply_to_id or None,
            author=self.user.login if self.user else "",
            body=self.body or "",
            path=self.path or None,
            line=self.line,
            start_line=self.start_line,
            created_at=self.created_at,
        )


class GitHubPullPayload(BaseModel):
    """Subset of the pull request object used for prompting."""

    class Head(BaseModel):
        ref: str = ""

    number: int
    title: str = ""
    body: Optional[str] = None
    html_url: str = ""
    head: Head = Field(default_factory=Head)


def validate_github_auth() -> bool:
    """Validate GitHub authentication.

    Returns:
        True if gh CLI is installed and authenticated
    """
    if not check_command_exists("gh"):
        return False
    try:
        result = run_command("gh auth status", check=False)
    except ShellError:
        return False
    return result.success


def detect_repository() -> Optional[GitHubRepository]:
    """Detect the GitHub repository for the current directory.

    Returns:
        Repository or None if it cannot be detected
    """
    try:
        result = run_command("gh repo view --json owner,name", check=True, timeout=30)
        data = json.loads(result.stdout)
        return GitHubRepository(owner=data["owner"]["login"], name=data["name"])
    except (ShellError, json.JSONDecodeError, KeyError, TypeError) as e:
        logger.debug(f"Failed to detect repository: {e}")
        return None


class GitHubFeedbackClient:
    """Reads PR review state and posts replies using the gh CLI."""

    def __init__(self, repository: GitHubRepository, timeout: int = 30, validate: bool = True):
        """Initialize client.

        Args:
            repository: Repository the PRs live in
            timeout: Timeout for each gh call in seconds
            validate: Check gh authentication up front

        Raises:
            GitHubAuthError: If gh CLI is not authenticated
        """
        if validate and not validate_github_auth():
            raise GitHubAuthError(
                "GitHub CLI authentication required. Run 'gh auth login' to authenticate."
            )
        self.repository = repository
        self.timeout = timeout

    def _api(self, endpoint: str, *args: str, input_data: Optional[str] = None) -> str:
        command = ["gh", "api", f"repos/{self.repository.full_name}/{endpoint}", *args]
        try:
            result = run_command(command, check=True, timeout=self.timeout, input_data=input_data)
        except ShellError as e:
            raise GitHubIntegrationError(
                f"GitHub API call failed for {endpoint}: {e.stderr or e}"
            ) from e
        return result.stdout

    def _api_list(self, endpoint: str) -> list[dict[str, Any]]:
        """Fetch every page of a list endpoint as one object per line."""
        output = self._api(endpoint, "--paginate", "--jq", ".[]")
        try:
            return [json.loads(line) for line in output.splitlines() if line.strip()]
        except json.JSONDecodeError as e:
            raise GitHubIntegrationError(f"Failed to parse {endpoint} response: {e}") from e

    def _post(self, endpoint: str, payload: dict[str, Any]) -> None:
        self._api(endpoint, "--method", "POST", "--input", "-", input_data=json.dumps(payload))

    def get_reviews(self, pr_number: int) -> list[Review]:
        """Fetch all reviews for a PR.

        Raises:
            GitHubIntegrationError: If reviews cannot be fetched or decoded
        """
        items = self._api_list(f"pulls/{pr_number}/reviews")
        try:
            reviews = [GitHubReviewPayload.model_validate(item).to_review() for item in items]
        except ValidationError as e:
            raise GitHubIntegrationError(f"Unexpected review payload: {e}") from e

        logger.debug(f"Fetched {len(reviews)} reviews for PR #{pr_number}")
        return reviews

    def list_pr_comments(self, pr_number: int) -> list[Comment]:
        """Fetch inline review comments and conversation comments.

        The two endpoints return disjoint sets; inline comments come first.

        Raises:
            GitHubIntegrationError: If comments cannot be fetched or decoded
        """
        review_items = self._api_list(f"pulls/{pr_number}/comments")
        conversation_items = self._api_list(f"issues/{pr_number}/comments")

        try:
            comments = [
                GitHubCommentPayload.model_validate(item).to_comment()
                for item in [*review_items, *conversation_items]
            ]
        except ValidationError as e:
            raise GitHubIntegrationError(f"Unexpected comment payload: {e}") from e

        logger.debug(
            f"Fetched {len(review_items)} review comments and "
            f"{len(conversation_items)} conversation comments for PR #{pr_number}"
        )
        return comments

    def get_pr_details(self, pr_number: int) -> PRDetails:
        """Fetch PR title, description and changed files.

        Raises:
            GitHubIntegrationError: If the PR cannot be fetched or decoded
        """
        output = self._api(f"pulls/{pr_number}")
        try:
            pull = GitHubPullPayload.model_validate(json.loads(output))
            files = [PRFile.model_validate(item) for item in self._api_list(f"pulls/{pr_number}/files")]
        except json.JSONDecodeError as e:
            raise GitHubIntegrationError(f"Failed to parse PR #{pr_number}: {e}") from e
        except ValidationError as e:
            raise GitHubIntegrationError(f"Unexpected PR payload: {e}") from e

        return PRDetails(
            number=pull.number,
            title=pull.title,
            body=pull.body or "",
            url=pull.html_url,
            head_ref=pull.head.ref,
            files=files,
        )

    def reply_to_comment(self, pr_number: int, comment_id: int, body: str) -> None:
        """Reply inside an inline review comment thread."""
        self._post(f"pulls/{pr_number}/comments/{comment_id}/replies", {"body": body})
        logger.debug(f"Replied to comment {comment_id} on PR #{pr_number}")

    def add_pr_comment(self, pr_number: int, body: str) -> None:
        """Post a PR conversation comment."""
        self._post(f"issues/{pr_number}/comments", {"body": body})
        logger.debug(f"Added comment to PR #{pr_number}")
