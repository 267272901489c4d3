"""Domain models (Pydantic v2).

Por qué Pydantic en el dominio:
- Validación estricta en el borde donde el JSON de GitHub entra al programa.
- Los constructores `from_api` dejan el mapeo de campos junto al modelo en vez
  de repartir `dict.get` por el bucle de copia.

Estos modelos describen *qué* son los datos, no *cómo* se obtienen.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class ChangeKind(str, Enum):
    """Outcome of one idempotent configuration update."""

    UNCHANGED = "unchanged"
    ADDED = "added"
    UPDATED = "updated"


class Repository(BaseModel):
    """A repository as listed by `GET /orgs/{org}/repos`."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    full_name: str = Field(default="", description="owner/name")
    visibility: str = Field(default="private", description="public, private or internal.")
    archived: bool = False
    has_wiki: bool = False
    html_url: str | None = None


class Label(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    color: str = Field(default="ededed")
    description: str | None = None


class Milestone(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: int | None = None
    title: str = Field(..., min_length=1)
    description: str | None = None
    state: str = "open"
    due_on: str | None = None


class IssueRecord(BaseModel):
    """An issue (or a PR, when `is_pull_request`) from the issues endpoint."""

    number: int
    title: str
    body: str = ""
    html_url: str = ""
    state: str = "open"
    author: str = "unknown"
    created_at: str = ""
    milestone_title: str = ""
    labels: list[str] = Field(default_factory=list)
    is_pull_request: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "IssueRecord":
        user = data.get("user") or {}
        milestone = data.get("milestone") or {}
        return cls(
            number=int(data["number"]),
            title=str(data.get("title") or ""),
            body=data.get("body") or "",
            html_url=data.get("html_url") or "",
            state=data.get("state") or "open",
            author=user.get("login") or "unknown",
            created_at=data.get("created_at") or "",
            milestone_title=milestone.get("title") or "",
            labels=[lbl["name"] for lbl in data.get("labels") or [] if isinstance(lbl, dict) and lbl.get("name")],
            is_pull_request="pull_request" in data,
        )


class PullRequestRecord(BaseModel):
    number: int
    title: str
    body: str = ""
    html_url: str = ""
    state: str = "open"
    created_at: str = ""
    merged_at: str = ""
    author: str = "unknown"
    base_ref: str = ""
    head_ref: str = ""

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "PullRequestRecord":
        return cls(
            number=int(data["number"]),
            title=str(data.get("title") or ""),
            body=data.get("body") or "",
            html_url=data.get("html_url") or "",
            state=data.get("state") or "open",
            created_at=data.get("created_at") or "",
            merged_at=data.get("merged_at") or "",
            author=(data.get("user") or {}).get("login") or "unknown",
            base_ref=(data.get("base") or {}).get("ref") or "",
            head_ref=(data.get("head") or {}).get("ref") or "",
        )


class ThreadEntry(BaseModel):
    """One piece of a PR conversation, merged chronologically before posting."""

    kind: str = Field(..., description="issue_comment, review_comment or review.")
    author: str = "unknown"
    created_at: str = ""
    body: str = ""

    def render(self) -> str:
        return f"**({self.kind.replace('_', ' ')} by @{self.author} on {self.created_at})**\n\n{self.body}"


class CopyStats(BaseModel):
    """Counters printed in the org-copy summary."""

    repos_processed: int = 0
    repos_created: int = 0
    wikis_copied: int = 0
    labels_copied: int = 0
    milestones_copied: int = 0
    issues_copied: int = 0
    issues_skipped: int = 0
    issue_comments_copied: int = 0
    prs_archived: int = 0
    pr_comments_copied: int = 0
    discussions_copied: int = 0
    discussion_comments_copied: int = 0
    repos_failed: int = 0


class CleanupStats(BaseModel):
    """Counters printed by the delete-repos / delete-issues summaries."""

    repos_processed: int = 0
    repos_deleted: int = 0
    repos_failed: int = 0
    issues_found: int = 0
    issues_deleted: int = 0
    issues_closed: int = 0
    issues_locked: int = 0
    issues_failed: int = 0


def creation_day(timestamp: str) -> date | None:
    """Calendar day (UTC) of a GitHub ISO-8601 timestamp, or None when unparseable."""

    value = (timestamp or "").strip()
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()
