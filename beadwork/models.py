"""Issue data types, status metadata and the errors raised by the store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class StatusInfo:
    """A status name with its display icon."""

    name: str
    icon: str


STATUSES: tuple[StatusInfo, ...] = (
    StatusInfo("open", "○"),
    StatusInfo("in_progress", "◐"),
    StatusInfo("deferred", "❄"),
    StatusInfo("closed", "✓"),
)

UNKNOWN_ICON = "?"

# Priorities 0 (most urgent) through 4 share a plain dot.
PRIORITY_ICONS: dict[int, str] = {level: "●" for level in range(0, 5)}


def status_names() -> list[str]:
    """Return the known status names in display order."""
    return [s.name for s in STATUSES]


def status_icon(status: str) -> str:
    """Return the icon for a status, or "?" for an unknown one."""
    return next((s.icon for s in STATUSES if s.name == status), UNKNOWN_ICON)


def priority_icon(priority: int) -> str:
    """Return the icon for a priority: a dot for 0-4, "?" otherwise."""
    return PRIORITY_ICONS.get(priority, UNKNOWN_ICON)


@dataclass
class Comment:
    text: str
    author: str = ""
    timestamp: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"text": self.text}
        if self.author:
            data["author"] = self.author
        data["timestamp"] = self.timestamp
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Comment":
        return cls(
            text=data.get("text") or "",
            author=data.get("author") or "",
            timestamp=data.get("timestamp") or "",
        )


@dataclass
class Issue:
    id: str = ""
    title: str = ""
    description: str = ""
    status: str = ""
    priority: int = 0
    type: str = ""
    assignee: str = ""
    created: str = ""
    updated_at: str = ""
    closed_at: str = ""
    close_reason: str = ""
    defer_until: str = ""
    parent: str = ""
    labels: list[str] = field(default_factory=list)
    blocks: list[str] = field(default_factory=list)
    blocked_by: list[str] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialise in the on-disk key order, omitting empty optional fields."""
        data: dict[str, Any] = {
            "assignee": self.assignee,
            "blocked_by": list(self.blocked_by),
            "blocks": list(self.blocks),
        }
        if self.closed_at:
            data["closed_at"] = self.closed_at
        if self.close_reason:
            data["close_reason"] = self.close_reason
        data["created"] = self.created
        if self.defer_until:
            data["defer_until"] = self.defer_until
        data["description"] = self.description
        data["id"] = self.id
        data["labels"] = list(self.labels)
        if self.parent:
            data["parent"] = self.parent
        if self.comments:
            data["comments"] = [c.to_dict() for c in self.comments]
        data["priority"] = self.priority
        data["status"] = self.status
        data["title"] = self.title
        data["type"] = self.type
        if self.updated_at:
            data["updated_at"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Issue":
        return cls(
            id=data.get("id") or "",
            title=data.get("title") or "",
            description=data.get("description") or "",
            status=data.get("status") or "",
            priority=int(data.get("priority") or 0),
            type=data.get("type") or "",
            assignee=data.get("assignee") or "",
            created=data.get("created") or "",
            updated_at=data.get("updated_at") or "",
            closed_at=data.get("closed_at") or "",
            close_reason=data.get("close_reason") or "",
            defer_until=data.get("defer_until") or "",
            parent=data.get("parent") or "",
            labels=list(data.get("labels") or []),
            blocks=list(data.get("blocks") or []),
            blocked_by=list(data.get("blocked_by") or []),
            comments=[Comment.from_dict(c) for c in data.get("comments") or []],
        )


@dataclass
class CreateOptions:
    id: str = ""
    parent: str = ""
    description: str = ""
    priority: int | None = None
    type: str = ""
    assignee: str = ""
    defer_until: str = ""


@dataclass
class UpdateOptions:
    """Fields left as None are not changed."""

    parent: str | None = None
    title: str | None = None
    description: str | None = None
    priority: int | None = None
    assignee: str | None = None
    type: str | None = None
    status: str | None = None
    defer_until: str | None = None


@dataclass
class Filter:
    status: str = ""
    statuses: list[str] = field(default_factory=list)
    assignee: str = ""
    priority: int | None = None
    type: str = ""
    label: str = ""
    grep: str = ""


@dataclass
class BlockedIssue:
    issue: Issue
    open_blockers: list[str]

    def to_dict(self) -> dict[str, Any]:
        data = self.issue.to_dict()
        data["open_blockers"] = list(self.open_blockers)
        return data


@dataclass
class CloseResult:
    issue: Issue
    unblocked: list[Issue] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "issue": self.issue.to_dict(),
            "unblocked": [i.to_dict() for i in self.unblocked],
        }


@dataclass
class DeletePlan:
    issue: Issue
    blocks: list[str] = field(default_factory=list)
    blocked_by: list[str] = field(default_factory=list)
    children: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "issue": self.issue.to_dict(),
            "blocks": list(self.blocks),
            "blocked_by": list(self.blocked_by),
            "children": list(self.children),
        }


class IssueError(Exception):
    """Base class for issue store errors."""


class IssueNotFoundError(IssueError, LookupError):
    """No issue matches the given ID."""


class AmbiguousIDError(IssueError, LookupError):
    """A partial ID matches more than one issue."""


class CorruptIssueError(IssueError):
    """An issue file could not be decoded."""


class BlockedError(IssueError):
    """An issue cannot start because it has open blockers."""

    def __init__(self, issue_id: str, blockers: list[str]):
        self.id = issue_id
        self.blockers = list(blockers)
        super().__init__(f"{issue_id} is blocked by {', '.join(self.blockers)}")