import json
import re
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from shared.constants import FALLBACK_AUTHOR_LOGIN
from splice.diff_model import Side
from splice.merge import Selection

CommentSide = Literal["LEFT", "RIGHT"]


class SpliceInstruction(BaseModel):
    """Already-parsed options of a splice command."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    batch: Optional[str] = None
    base: Optional[str] = None
    description: Optional[str] = None
    branch: Optional[str] = None
    labels: list[str] = Field(default_factory=list)
    reviewers: list[str] = Field(default_factory=list)
    draft: bool = False
    entire_hunk: bool = False
    entire_file: bool = False
    ship: bool = False

    @field_validator("reviewers")
    @classmethod
    def strip_mentions(cls, value: list[str]) -> list[str]:
        return [reviewer.strip().lstrip("@") for reviewer in value if reviewer.strip()]

    @field_validator("labels")
    @classmethod
    def strip_labels(cls, value: list[str]) -> list[str]:
        return [label.strip() for label in value if label.strip()]


class CommentContext(BaseModel):
    model_config = ConfigDict(extra="forbid")

    comment_id: int
    path: str = ""
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    original_start_line: Optional[int] = None
    original_end_line: Optional[int] = None
    side: CommentSide = "RIGHT"
    body: str = ""
    author_login: str = FALLBACK_AUTHOR_LOGIN
    author_email: str = f"{FALLBACK_AUTHOR_LOGIN}@users.noreply.github.com"

    @classmethod
    def from_review_comment(cls, comment: dict[str, Any]) -> "CommentContext":
        """Build a context from a GitHub pull request review comment payload.

        Single-line comments carry no ``start_line``; the range collapses to
        ``line`` (or ``original_line`` once the comment is outdated).
        """
        end_line = comment.get("line") or comment.get("original_line")
        start_line = comment.get("start_line") or end_line
        user = comment.get("user") or {}
        login = user.get("login") or FALLBACK_AUTHOR_LOGIN
        email = (
            f"{user['id']}+{login}@users.noreply.github.com"
            if user.get("id")
            else f"{FALLBACK_AUTHOR_LOGIN}@users.noreply.github.com"
        )
        return cls(
            comment_id=int(comment["id"]),
            path=comment.get("path") or "",
            start_line=start_line,
            end_line=end_line,
            original_start_line=comment.get("original_start_line") or comment.get("original_line"),
            original_end_line=comment.get("original_line"),
            side=comment.get("side") or "RIGHT",
            body=comment.get("body") or "",
            author_login=login,
            author_email=email,
        )

    def to_selection(self) -> Optional[Selection]:
        """Map the comment onto a diff selection, or None when lines are unknown."""
        if not self.path:
            return None

        if self.side == "LEFT":
            side = Side.OLD
            start = self.original_start_line or self.original_end_line or 0
            end = self.original_end_line or 0
        else:
            side = Side.NEW
            start = self.start_line or self.end_line or 0
            end = self.end_line or 0

        if start <= 0 or end <= 0:
            return None
        return Selection(file_path=self.path, side=side, range_start=min(start, end), range_end=max(start, end))


def _as_comment_context(value: Any) -> Any:
    # Raw GitHub payloads carry "id" rather than "comment_id".
    if isinstance(value, dict) and "id" in value and "comment_id" not in value:
        return CommentContext.from_review_comment(value)
    return value


class SpliceJob(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["splice"] = "splice"
    repo_full_name: str
    pr_number: int
    batch_id: str
    synthetic: bool = True
    trigger: CommentContext
    comments: list[CommentContext] = Field(default_factory=list)
    instruction: SpliceInstruction = Field(default_factory=SpliceInstruction)

    @field_validator("repo_full_name")
    @classmethod
    def validate_repo(cls, value: str) -> str:
        if value.count("/") != 1 or not all(part.strip() for part in value.split("/")):
            raise ValueError("repo_full_name must look like owner/repo")
        return value

    @field_validator("trigger", mode="before")
    @classmethod
    def accept_review_comment(cls, value: Any) -> Any:
        return _as_comment_context(value)

    @field_validator("comments", mode="before")
    @classmethod
    def accept_review_comments(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [_as_comment_context(item) for item in value]
        return value

    def batch_comments(self) -> list[CommentContext]:
        """Comments whose selections make up this splice."""
        if self.synthetic:
            return [self.trigger]
        return list(self.comments)


class MergedPullRequestEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: Literal["merged"] = "merged"
    repo_full_name: str
    action: str
    pull_request: dict[str, Any]


class SpliceMetadata(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    original_pr: int
    comment_id: int

    def render(self) -> str:
        payload = {"splice-bot": {"original-pr": self.original_pr, "comment-id": self.comment_id}}
        return f"<!-- {json.dumps(payload)} -->"


class SpliceResult(BaseModel):
    success: bool
    deferred: bool = False
    pr_url: Optional[str] = None
    pr_number: Optional[int] = None
    branch_name: Optional[str] = None
    error: Optional[str] = None


_METADATA_RE = re.compile(r"<!--\s*(\{\"splice-bot\":.+?\})\s*-->")


def parse_splice_metadata(body: str) -> Optional[SpliceMetadata]:
    match = _METADATA_RE.search(body or "")
    if not match:
        return None

    try:
        parsed = json.loads(match.group(1))
        inner = parsed["splice-bot"]
        return SpliceMetadata.model_validate(
            {"original_pr": inner["original-pr"], "comment_id": inner.get("comment-id", 0)}
        )
    except (json.JSONDecodeError, KeyError, TypeError, ValidationError):
        return None
