"""The issue store: creation, lookup, listing and status changes."""

from __future__ import annotations

import json
import os
import string
import sys
from datetime import datetime, timezone
from typing import Callable, Protocol

from .models import (
    AmbiguousIDError,
    BlockedError,
    CorruptIssueError,
    CreateOptions,
    Filter,
    Issue,
    IssueError,
    IssueNotFoundError,
    UpdateOptions,
    status_names,
)
from .treefs import TreeFS

BASE36 = string.digits + string.ascii_lowercase


class Committer(Protocol):
    def commit(self, message: str) -> None: ...


class ReadOnlyStoreError(IssueError):
    """The store has no committer."""


def _parse_rfc3339(value: str) -> datetime | None:
    if "T" not in value and "t" not in value:
        return None
    text = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return parsed if parsed.tzinfo is not None else None


def _sort_key(issue: Issue) -> tuple[int, str]:
    return issue.priority, issue.created


class Store:
    def __init__(
        self,
        fs: TreeFS,
        prefix: str,
        committer: Committer | None = None,
        *,
        dry_run: bool = False,
        default_priority: int | None = None,
        id_retries: int = 10,
        rand_bytes: Callable[[int], bytes] | None = None,
    ) -> None:
        self.fs = fs
        self.prefix = prefix
        self.committer = committer
        self.dry_run = dry_run
        self.default_priority = default_priority
        self.id_retries = id_retries
        self.rand_bytes = rand_bytes or os.urandom
        self._cache: dict[str, Issue] = {}
        self._id_set: set[str] | None = None

    # --- persistence ---------------------------------------------------

    def commit(self, intent: str) -> None:
        """Persist pending changes, or only report them in dry-run mode."""
        if self.committer is None:
            raise ReadOnlyStoreError("store is read-only: no committer configured")
        if self.dry_run:
            print(f"[dry-run] would commit: {intent}", file=sys.stderr)
            return
        self.committer.commit(intent)

    def clear_cache(self) -> None:
        self._cache = {}
        self._id_set = None

    def now(self) -> datetime:
        """Current UTC time, or the fixed time in BW_CLOCK when it is valid."""
        value = os.environ.get("BW_CLOCK", "")
        if value:
            parsed = _parse_rfc3339(value)
            if parsed is not None:
                return parsed.astimezone(timezone.utc)
        return datetime.now(timezone.utc)

    def _now_text(self) -> str:
        return self.now().strftime("%Y-%m-%dT%H:%M:%SZ")

    def _read_issue(self, issue_id: str) -> Issue:
        cached = self._cache.get(issue_id)
        if cached is not None:
            return cached
        try:
            raw = self.fs.read_file(f"issues/{issue_id}.json")
        except OSError:
            raise IssueNotFoundError(f"issue {issue_id} not found") from None
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise ValueError("not an object")
            issue = Issue.from_dict(data)
        except (ValueError, TypeError) as exc:
            raise CorruptIssueError(f"corrupt issue {issue_id}: {exc}") from exc
        self._cache[issue_id] = issue
        return issue

    def _write_issue(self, issue: Issue) -> None:
        text = json.dumps(issue.to_dict(), indent=2, ensure_ascii=False) + "\n"
        self.fs.write_file(f"issues/{issue.id}.json", text.encode())
        self._cache[issue.id] = issue

    def _set_status(self, issue_id: str, status: str) -> None:
        self.fs.mkdir_all(f"status/{status}")
        self.fs.write_file(f"status/{status}/{issue_id}", b"")

    def _move_status(self, issue_id: str, old: str, new: str) -> None:
        self.fs.remove(f"status/{old}/{issue_id}")
        self._set_status(issue_id, new)

    # --- IDs -----------------------------------------------------------

    def _ids(self) -> set[str]:
        if self._id_set is None:
            try:
                names = self.fs.list_dir("issues")
            except OSError:
                names = []
            self._id_set = {n[: -len(".json")] for n in names if n.endswith(".json")}
        return self._id_set

    def existing_ids(self) -> set[str]:
        """Return a copy of the set of all issue IDs."""
        return set(self._ids())

    def _track(self, issue_id: str) -> None:
        if self._id_set is not None:
            self._id_set.add(issue_id)

    def _untrack(self, issue_id: str) -> None:
        if self._id_set is not None:
            self._id_set.discard(issue_id)

    def _resolve_id(self, partial: str) -> str:
        ids = self._ids()
        if partial in ids:
            return partial
        matches = [i for i in ids if i.startswith(partial) or i.endswith(partial)]
        if len(matches) == 1:
            return matches[0]
        if matches:
            raise AmbiguousIDError(f'ambiguous ID "{partial}": matches {", ".join(matches)}')
        raise IssueNotFoundError(f'no issue found matching "{partial}"')

    def _validate_explicit_id(self, issue_id: str) -> str:
        if any(c in issue_id for c in " \t\n\r"):
            raise IssueError(f'invalid ID "{issue_id}": must not contain whitespace')
        if issue_id in self._ids():
            raise IssueError(f'ID "{issue_id}" already exists')
        return issue_id

    def _generate_id(self) -> str:
        existing = self._ids()
        retries = self.id_retries if self.id_retries > 0 else 10
        for length in range(3, 9):
            for _ in range(retries):
                raw = self.rand_bytes(length)
                candidate = f"{self.prefix}-" + "".join(BASE36[b % 36] for b in raw)
                if candidate not in existing:
                    return candidate
        raise IssueError("failed to generate unique ID after trying lengths 3-8")

    def _generate_child_id(self, parent_id: str) -> str:
        prefix = parent_id + "."
        numbers = [
            int(rest)
            for rest in (i[len(prefix):] for i in self._ids() if i.startswith(prefix))
            if rest.isdigit()
        ]
        return f"{parent_id}.{max(numbers, default=0) + 1}"

    # --- creation ------------------------------------------------------

    def create(self, title: str, options: CreateOptions | None = None) -> Issue:
        opts = options or CreateOptions()
        parent_id = ""
        if opts.parent:
            try:
                parent_id = self._resolve_id(opts.parent)
            except IssueError as exc:
                raise type(exc)(f"parent: {exc}") from exc
        if opts.id:
            issue_id = self._validate_explicit_id(opts.id)
        elif parent_id:
            issue_id = self._generate_child_id(parent_id)
        else:
            issue_id = self._generate_id()

        now = self._now_text()
        status = "deferred" if opts.defer_until else "open"
        if opts.priority is not None:
            priority = opts.priority
        elif self.default_priority is not None:
            priority = self.default_priority
        else:
            priority = 2
        issue = Issue(
            id=issue_id,
            title=title,
            description=opts.description,
            status=status,
            priority=priority,
            type=opts.type or "task",
            assignee=opts.assignee,
            created=now,
            updated_at=now,
            defer_until=opts.defer_until,
            parent=parent_id,
        )
        self._write_issue(issue)
        self._set_status(issue_id, status)
        self._track(issue_id)
        return issue

    def import_issue(self, issue: Issue) -> None:
        """Write an issue with a caller-provided ID and fields."""
        self._write_issue(issue)
        self._set_status(issue.id, issue.status)
        self._track(issue.id)

    def get(self, issue_id: str) -> Issue:
        return self._read_issue(self._resolve_id(issue_id))

    # --- listing -------------------------------------------------------

    def ids_with_status(self, status: str) -> list[str]:
        try:
            names = self.fs.list_dir(f"status/{status}")
        except OSError:
            return []
        return [n for n in names if n != ".gitkeep"]

    def status_count(self, status: str) -> int:
        return len(self.ids_with_status(status))

    def is_closed(self, issue_id: str) -> bool:
        return self.fs.exists(f"status/closed/{issue_id}")

    def list(self, filter: Filter | None = None) -> list[Issue]:
        flt = filter or Filter()
        if flt.statuses:
            statuses = list(flt.statuses)
        elif flt.status:
            statuses = [flt.status]
        else:
            statuses = status_names()
        needle = flt.grep.lower()
        issues = []
        for status in statuses:
            for issue_id in self.ids_with_status(status):
                try:
                    issue = self._read_issue(issue_id)
                except IssueError:
                    continue
                if flt.assignee and issue.assignee != flt.assignee:
                    continue
                if flt.priority is not None and issue.priority != flt.priority:
                    continue
                if flt.type and issue.type != flt.type:
                    continue
                if flt.label and flt.label not in issue.labels:
                    continue
                if needle and needle not in issue.title.lower() and needle not in issue.description.lower():
                    continue
                issues.append(issue)
        issues.sort(key=_sort_key)
        return issues

    def children(self, parent_id: str) -> list[Issue]:
        return [i for i in self.list() if i.parent == parent_id]

    # --- changes -------------------------------------------------------

    def update(self, issue_id: str, options: UpdateOptions) -> Issue:
        issue_id = self._resolve_id(issue_id)
        issue = self._read_issue(issue_id)
        opts = options
        for name in ("title", "description", "priority", "assignee", "type", "defer_until"):
            value = getattr(opts, name)
            if value is not None:
                setattr(issue, name, value)
        if opts.parent is not None:
            if opts.parent:
                if opts.parent == issue_id:
                    raise IssueError("cannot set issue as its own parent")
                try:
                    parent_id = self._resolve_id(opts.parent)
                except IssueError as exc:
                    raise type(exc)(f"parent: {exc}") from exc
                current = parent_id
                while current:
                    if current == issue_id:
                        raise IssueError(
                            f"circular parent reference: {issue_id} is an ancestor of {parent_id}"
                        )
                    try:
                        current = self._read_issue(current).parent
                    except IssueError:
                        break
                issue.parent = parent_id
            else:
                issue.parent = ""
        if opts.status is not None and opts.status != issue.status:
            self._move_status(issue_id, issue.status, opts.status)
            issue.status = opts.status
        issue.updated_at = self._now_text()
        self._write_issue(issue)
        return issue

    def close(self, issue_id: str, reason: str = "") -> Issue:
        issue_id = self._resolve_id(issue_id)
        issue = self._read_issue(issue_id)
        if issue.status == "closed":
            raise IssueError(f"{issue_id} is already closed")
        self._move_status(issue_id, issue.status, "closed")
        now = self._now_text()
        issue.status = "closed"
        issue.closed_at = now
        issue.close_reason = reason
        issue.updated_at = now
        self._write_issue(issue)
        return issue

    def reopen(self, issue_id: str) -> Issue:
        issue_id = self._resolve_id(issue_id)
        issue = self._read_issue(issue_id)
        if issue.status not in ("closed", "in_progress"):
            raise IssueError(f"{issue_id} is {issue.status}, not closed or in_progress")
        self._move_status(issue_id, issue.status, "open")
        issue.status = "open"
        issue.assignee = ""
        issue.closed_at = ""
        issue.close_reason = ""
        issue.updated_at = self._now_text()
        self._write_issue(issue)
        return issue

    def _is_resolved(self, issue_id: str) -> bool:
        try:
            return self._read_issue(issue_id).status == "closed"
        except IssueError:
            return False

    def start(self, issue_id: str, assignee: str) -> Issue:
        """Move an open issue to in_progress; raise BlockedError if blocked."""
        issue_id = self._resolve_id(issue_id)
        issue = self._read_issue(issue_id)
        if issue.status != "open":
            raise IssueError(f"{issue_id} is {issue.status}, not open")
        open_blockers = [b for b in issue.blocked_by if not self._is_resolved(b)]
        if open_blockers:
            raise BlockedError(issue_id, open_blockers)
        self._move_status(issue_id, "open", "in_progress")
        issue.status = "in_progress"
        issue.assignee = assignee
        issue.updated_at = self._now_text()
        self._write_issue(issue)
        return issue