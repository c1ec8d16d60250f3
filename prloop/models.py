"""Data models for prloop."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


def _as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes so old/new comparisons never mix kinds."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class ReviewState(str, Enum):
    """Review states recognised by the feedback engine."""

    APPROVED = "APPROVED"
    CHANGES_REQUESTED = "CHANGES_REQUESTED"
    COMMENTED = "COMMENTED"
    OTHER = "OTHER"

    @classmethod
    def _missing_(cls, value: object) -> "ReviewState":
        if isinstance(value, str):
            normalized = value.strip().upper().replace("-", "_").replace(" ", "_")
            for member in cls:
                if member.value == normalized:
                    return member
        return cls.OTHER


class Comment(BaseModel):
    """Inline review comment or PR conversation comment.

    Instances are read-only snapshots of host data.
    """

    model_config = {"frozen": True}

    id: int = Field(description="Host-assigned comment ID")
    in_reply_to_id: int | None = Field(
        default=None, description="Parent comment ID (None or 0 for top-level)"
    )
    author: str = Field(default="", description="Comment author login")
    body: str = Field(default="", description="Comment body text")
    path: str | None = Field(default=None, description="File path for inline comments")
    line: int | None = Field(default=None, description="Line number (end line for ranges)")
    start_line: int | None = Field(default=None, description="Start line for multi-line comments")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v: datetime | None) -> datetime | None:
        """Treat naive timestamps as UTC."""
        return _as_utc(v)

    @property
    def is_reply(self) -> bool:
        """Whether this comment replies to another comment."""
        return bool(self.in_reply_to_id)

    @property
    def is_file_comment(self) -> bool:
        """Whether this comment is anchored to a file line."""
        return bool(self.path) and bool(self.line)


class Review(BaseModel):
    """Pull request review (applies to the PR as a whole)."""

    model_config = {"frozen": True}

    id: int = Field(default=0, description="Host-assigned review ID")
    author: str = Field(default="", description="Review author login")
    state: ReviewState = Field(default=ReviewState.OTHER, description="Review state")
    body: str = Field(default="", description="Review body text")
    submitted_at: datetime | None = Field(default=None, description="Submission timestamp")

    @field_validator("submitted_at")
    @classmethod
    def normalize_submitted_at(cls, v: datetime | None) -> datetime | None:
        """Treat naive timestamps as UTC."""
        return _as_utc(v)


class FeedbackGroup(BaseModel):
    """New feedback for one file path ("" is the general bucket)."""

    path: str = Field(default="", description="File path, empty for general feedback")
    reviews: dict[str, Review] = Field(
        default_factory=dict, description="Reviews keyed by correlation ID"
    )
    comments: dict[str, Comment] = Field(
        default_factory=dict, description="Comments keyed by correlation ID"
    )
    new_feedback: str = Field(default="", description="Rendered new feedback text")

    @property
    def label(self) -> str:
        """Human readable group name for logs."""
        return self.path or "general/reviews"

    @property
    def expected_ids(self) -> list[str]:
        """Correlation IDs the agent is expected to answer, sorted."""
        return sorted([*self.reviews, *self.comments])

    @property
    def is_empty(self) -> bool:
        return not self.reviews and not self.comments


class GroupedFeedback(BaseModel):
    """Result of one feedback collection pass."""

    groups: dict[str, FeedbackGroup] = Field(
        default_factory=dict, description="Groups keyed by file path, general first"
    )
    summary: str = Field(default="", description="Summary of previously addressed items")

    @property
    def total_reviews(self) -> int:
        return sum(len(group.reviews) for group in self.groups.values())

    @property
    def total_comments(self) -> int:
        return sum(len(group.comments) for group in self.groups.values())

    @property
    def has_new_feedback(self) -> bool:
        return any(not group.is_empty for group in self.groups.values())

    def flatten(self) -> tuple[dict[str, Review], dict[str, Comment]]:
        """Merge all groups into single review and comment mappings."""
        reviews: dict[str, Review] = {}
        comments: dict[str, Comment] = {}
        for group in self.groups.values():
            reviews.update(group.reviews)
            comments.update(group.comments)
        return reviews, comments


class SkipReason(str, Enum):
    """Why a reply was suppressed."""

    NONE = ""
    LOOP_PREVENTION = "loop prevention"
    THREAD_DEPTH = "thread depth"
    DEFENSIVE_SKIP = "defensive skip"


class ReplyDecision(BaseModel):
    """Outcome of the thread policy check for one candidate reply."""

    skip: bool = Field(description="Whether the reply must not be posted")
    reason: SkipReason = Field(default=SkipReason.NONE, description="Skip reason")
    detail: str = Field(default="", description="Human readable explanation")


class ReplyKind(str, Enum):
    """How a reply is posted on the host."""

    THREADED = "threaded"  # Reply inside an inline comment thread
    GENERAL = "general"  # PR conversation comment with @mention


class ReplyAction(BaseModel):
    """A reply ready to be posted."""

    correlation_id: str = Field(description="REVIEW_n or COMMENT_n")
    kind: ReplyKind = Field(description="Threaded reply or general comment")
    target_comment_id: int | None = Field(
        default=None, description="Comment replied to (threaded replies only)"
    )
    author: str = Field(description="Login of the reviewer being answered")
    body: str = Field(description="Reply body")


class ReplyOutcome(BaseModel):
    """Counters for one round of reply posting."""

    posted: int = Field(default=0, description="Replies posted")
    failed: int = Field(default=0, description="Replies that failed to post")
    skipped: int = Field(default=0, description="Replies suppressed by thread policy")
    missing: int = Field(default=0, description="Items with no agent response")


class PRFile(BaseModel):
    """Changed file in a pull request."""

    filename: str = Field(description="File path")
    status: str = Field(default="modified", description="added, modified, removed, ...")
    additions: int = Field(default=0, description="Added lines")
    deletions: int = Field(default=0, description="Deleted lines")
    patch: str = Field(default="", description="Unified diff for the file")


class PRDetails(BaseModel):
    """Pull request context used when prompting the agent."""

    number: int = Field(description="PR number")
    title: str = Field(default="", description="PR title")
    body: str = Field(default="", description="PR description")
    url: str = Field(default="", description="PR HTML URL")
    head_ref: str = Field(default="", description="Head branch name")
    files: list[PRFile] = Field(default_factory=list, description="Changed files")


class GitHubRepository(BaseModel):
    """GitHub repository context model."""

    owner: str = Field(description="Repository owner")
    name: str = Field(description="Repository name")

    @property
    def full_name(self) -> str:
        """Get full repository name (owner/name)."""
        return f"{self.owner}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> "GitHubRepository":
        """Parse ``owner/name`` or a github.com URL."""
        cleaned = value.strip()
        for prefix in ("https://github.com/", "http://github.com/", "git@github.com:"):
            if cleaned.startswith(prefix):
                cleaned = cleaned[len(prefix):]
                break
        parts = [part for part in cleaned.split("/") if part]
        if len(parts) < 2:
            raise ValueError(f"Unable to parse repository: {value}") from None
        name = parts[1]
        if name.endswith(".git"):
            name = name[:-4]
        return cls(owner=parts[0], name=name)


DEFAULT_KNOWN_BOTS = [
    "github-actions",
    "dependabot",
    "renovate",
    "coderabbitai",
    "sourcery-ai",
    "copilot",
    "deepsource-io",
    "codefactor-io",
    "codeclimate",
]


class GitHubConfig(BaseModel):
    """GitHub configuration settings."""

    bot_username: str = Field(default="", description="Login the automation posts as")
    known_bot_usernames: list[str] = Field(
        default_factory=lambda: list(DEFAULT_KNOWN_BOTS),
        description="Other automated reviewers (case-insensitive exact match)",
    )
    max_thread_depth: int = Field(
        default=5, description="Maximum automation replies allowed in one thread"
    )
    repository: str | None = Field(
        default=None, description="Default repository (owner/name)"
    )
    api_timeout: int = Field(default=30, description="Timeout for gh API calls (seconds)")

    @field_validator("bot_username")
    @classmethod
    def validate_bot_username(cls, v: str) -> str:
        return v.strip()

    @field_validator("known_bot_usernames")
    @classmethod
    def validate_known_bots(cls, v: list[str]) -> list[str]:
        """Drop blank entries."""
        return [name.strip() for name in v if name and name.strip()]

    @field_validator("max_thread_depth")
    @classmethod
    def validate_max_thread_depth(cls, v: int) -> int:
        """Validate max thread depth is reasonable."""
        if v < 0:
            raise ValueError("Max thread depth cannot be negative") from None
        if v > 50:
            raise ValueError("Max thread depth cannot exceed 50")
        return v

    @field_validator("api_timeout")
    @classmethod
    def validate_api_timeout(cls, v: int) -> int:
        if v < 1:
            raise ValueError("API timeout must be at least 1 second") from None
        return v


class FeedbackConfig(BaseModel):
    """Feedback rendering settings."""

    summary_preview_length: int = Field(
        default=80, description="Max characters per previously-addressed item"
    )
    parent_preview_length: int = Field(
        default=150, description="Max characters of a parent comment preview"
    )
    redact_timestamp_comments: bool = Field(
        default=False, description="Post the short form of the timestamp marker comment"
    )

    @field_validator("summary_preview_length", "parent_preview_length")
    @classmethod
    def validate_preview_length(cls, v: int) -> int:
        """Previews need room for the ellipsis."""
        if v < 4:
            raise ValueError("Preview length must be at least 4 characters") from None
        return v


class AgentConfig(BaseModel):
    """Coding agent command settings."""

    command: str = Field(
        default="claude -p", description="Command run in the PR checkout, prompt on stdin"
    )
    timeout: int = Field(default=1800, description="Agent timeout in seconds")

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: str) -> str:
        """Validate agent command is not empty."""
        if not v or not v.strip():
            raise ValueError("Agent command cannot be empty") from None
        return v.strip()

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Agent timeout must be at least 1 second") from None
        return v


class Config(BaseModel):
    """Main configuration model."""

    version: str = Field(default="1.0", description="Config version")
    github: GitHubConfig = Field(default_factory=GitHubConfig, description="GitHub settings")
    feedback: FeedbackConfig = Field(
        default_factory=FeedbackConfig, description="Feedback rendering settings"
    )
    agent: AgentConfig = Field(default_factory=AgentConfig, description="Agent settings")

    model_config = {"extra": "allow"}


class EngineSettings(BaseModel):
    """Explicit parameter set handed to every feedback engine call."""

    model_config = {"frozen": True}

    bot_username: str = Field(description="Automation's own login")
    known_bot_usernames: tuple[str, ...] = Field(
        default=(), description="Other automated reviewers"
    )
    max_thread_depth: int = Field(default=5, ge=0, description="Maximum thread depth")
    summary_preview_length: int = Field(default=80, ge=4)
    parent_preview_length: int = Field(default=150, ge=4)

    @classmethod
    def from_config(cls, config: Config) -> "EngineSettings":
        """Build engine settings from loaded configuration."""
        return cls(
            bot_username=config.github.bot_username,
            known_bot_usernames=tuple(config.github.known_bot_usernames),
            max_thread_depth=config.github.max_thread_depth,
            summary_preview_length=config.feedback.summary_preview_length,
            parent_preview_length=config.feedback.parent_preview_length,
        )

    def is_self(self, login: str | None) -> bool:
        """Whether ``login`` is the automation's own identity."""
        return bool(login) and bool(self.bot_username) and login == self.bot_username

    def is_known_bot(self, login: str | None) -> bool:
        """Case-insensitive exact match against the known bot list."""
        if not login:
            return False
        lowered = login.lower()
        return any(lowered == name.lower() for name in self.known_bot_usernames)

    def is_excluded(self, login: str | None) -> bool:
        """Whether items by ``login`` are left out of rendered feedback."""
        return self.is_self(login) or self.is_known_bot(login)
