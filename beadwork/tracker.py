"""Dependencies, deletion, labels and comments on top of the issue store."""

from __future__ import annotations

from contextlib import suppress

from .models import BlockedIssue, Comment, DeletePlan, Issue, IssueError
from .store import Store


class Tracker(Store):
    """An issue store that also manages blocking links, labels and comments."""

    # --- helpers -------------------------------------------------------

    def _remove(self, path: str) -> None:
        with suppress(OSError):
            self.fs.remove(path)

    def _mkdir(self, path: str) -> None:
        with suppress(OSError):
            self.fs.mkdir_all(path)

    def _dir_is_empty(self, path: str) -> bool:
        try:
            names = self.fs.list_dir(path)
        except OSError:
            return True
        return all(name == ".gitkeep" for name in names)

    def _resolve_role(self, role: str, partial: str) -> str:
        try:
            return self._resolve_id(partial)
        except IssueError as exc:
            raise type(exc)(f"{role}: {exc}") from exc

    # --- blocking links ------------------------------------------------

    def link(self, blocker_id: str, blocked_id: str) -> None:
        """Record that one issue blocks another."""
        blocker_id = self._resolve_role("blocker", blocker_id)
        blocked_id = self._resolve_role("blocked", blocked_id)
        if blocker_id == blocked_id:
            raise IssueError("an issue cannot block itself")

        self._mkdir(f"blocks/{blocker_id}")
        self.fs.write_file(f"blocks/{blocker_id}/{blocked_id}", b"")

        now = self._now_text()
        blocker = self._read_issue(blocker_id)
        if blocked_id not in blocker.blocks:
            blocker.blocks = sorted([*blocker.blocks, blocked_id])
        blocker.updated_at = now
        self._write_issue(blocker)

        blocked = self._read_issue(blocked_id)
        if blocker_id not in blocked.blocked_by:
            blocked.blocked_by = sorted([*blocked.blocked_by, blocker_id])
        blocked.updated_at = now
        self._write_issue(blocked)

    def unlink(self, blocker_id: str, blocked_id: str) -> None:
        """Remove a blocking link; removing a missing link is harmless."""
        blocker_id = self._resolve_role("blocker", blocker_id)
        blocked_id = self._resolve_role("blocked", blocked_id)

        self._remove(f"blocks/{blocker_id}/{blocked_id}")
        if self._dir_is_empty(f"blocks/{blocker_id}"):
            self._remove(f"blocks/{blocker_id}/.gitkeep")

        now = self._now_text()
        blocker = self._read_issue(blocker_id)
        blocker.blocks = [i for i in blocker.blocks if i != blocked_id]
        blocker.updated_at = now
        self._write_issue(blocker)

        blocked = self._read_issue(blocked_id)
        blocked.blocked_by = [i for i in blocked.blocked_by if i != blocker_id]
        blocked.updated_at = now
        self._write_issue(blocked)

    def dep_exists(self, blocker_id: str, blocked_id: str) -> bool:
        """Report whether blocker_id currently blocks blocked_id."""
        try:
            blocker_id = self._resolve_id(blocker_id)
            blocked_id = self._resolve_id(blocked_id)
        except IssueError:
            return False
        return self.fs.exists(f"blocks/{blocker_id}/{blocked_id}")

    def load_edges(self) -> tuple[dict[str, list[str]], dict[str, list[str]]]:
        """Return (blocker -> blocked, blocked -> blocker) adjacency maps."""
        forward: dict[str, list[str]] = {}
        reverse: dict[str, list[str]] = {}
        try:
            blockers = self.fs.list_dir("blocks")
        except OSError:
            return forward, reverse
        for blocker_id in blockers:
            if blocker_id == ".gitkeep" or not self.fs.is_dir(f"blocks/{blocker_id}"):
                continue
            try:
                children = self.fs.list_dir(f"blocks/{blocker_id}")
            except OSError:
                continue
            for blocked_id in children:
                if blocked_id == ".gitkeep":
                    continue
                forward.setdefault(blocker_id, []).append(blocked_id)
                reverse.setdefault(blocked_id, []).append(blocker_id)
        return forward, reverse

    def tips(self, roots: list[str] | None, edges: dict[str, list[str]]) -> list[Issue]:
        """Walk from roots along edges and return the leaf issues, each once."""
        visited: set[str] = set()
        found: list[Issue] = []
        stack = list(reversed(roots or []))
        while stack:
            node = stack.pop()
            if node in visited:
                continue
            visited.add(node)
            children = edges.get(node) or []
            if children:
                stack.extend(reversed(children))
                continue
            try:
                found.append(self._read_issue(node))
            except IssueError:
                continue
        return found

    def ready(self) -> list[Issue]:
        """Open issues whose blockers are all closed, by priority then age."""
        result = []
        for issue_id in self.ids_with_status("open"):
            try:
                issue = self._read_issue(issue_id)
            except IssueError:
                continue
            if all(self.is_closed(b) for b in issue.blocked_by):
                result.append(issue)
        result.sort(key=lambda i: (i.priority, i.created))
        return result

    def blocked(self) -> list[BlockedIssue]:
        """Open or in-progress issues that have at least one open blocker."""
        result = []
        for issue_id in self.ids_with_status("open") + self.ids_with_status("in_progress"):
            try:
                issue = self._read_issue(issue_id)
            except IssueError:
                continue
            open_blockers = [b for b in issue.blocked_by if not self.is_closed(b)]
            if open_blockers:
                result.append(BlockedIssue(issue=issue, open_blockers=open_blockers))
        return result

    def newly_unblocked(self, issue_id: str) -> list[Issue]:
        """Non-closed issues blocked by issue_id whose blockers are now all closed."""
        issue_id = self._resolve_id(issue_id)
        blocker = self._read_issue(issue_id)
        result = []
        for blocked_id in blocker.blocks:
            try:
                issue = self._read_issue(blocked_id)
            except IssueError:
                continue
            if issue.status == "closed":
                continue
            if all(self._is_resolved(dep) for dep in issue.blocked_by):
                result.append(issue)
        return result

    # --- deletion ------------------------------------------------------

    def delete_preview(self, issue_id: str) -> DeletePlan:
        """Describe what deleting an issue would touch, without changing anything."""
        issue_id = self._resolve_id(issue_id)
        issue = self._read_issue(issue_id)
        return DeletePlan(
            issue=issue,
            blocks=list(issue.blocks),
            blocked_by=list(issue.blocked_by),
            children=[child.id for child in self.children(issue_id)],
        )

    def delete(self, issue_id: str) -> Issue:
        """Remove an issue and every reference to it; orphan its children."""
        issue_id = self._resolve_id(issue_id)
        issue = self._read_issue(issue_id)

        for blocked_id in issue.blocks:
            self._remove(f"blocks/{issue_id}/{blocked_id}")
        self._remove(f"blocks/{issue_id}/.gitkeep")
        self._remove(f"blocks/{issue_id}")
        for blocker_id in issue.blocked_by:
            self._remove(f"blocks/{blocker_id}/{issue_id}")

        for blocked_id in issue.blocks:
            with suppress(IssueError):
                other = self._read_issue(blocked_id)
                other.blocked_by = [i for i in other.blocked_by if i != issue_id]
                self._write_issue(other)
        for blocker_id in issue.blocked_by:
            with suppress(IssueError):
                other = self._read_issue(blocker_id)
                other.blocks = [i for i in other.blocks if i != issue_id]
                self._write_issue(other)

        for child in self.children(issue_id):
            child.parent = ""
            self._write_issue(child)

        self._remove(f"status/{issue.status}/{issue_id}")
        self._remove(f"issues/{issue_id}.json")
        self._cache.pop(issue_id, None)
        self._untrack(issue_id)
        return issue

    # --- labels and comments -------------------------------------------

    def label(
        self,
        issue_id: str,
        add: list[str] | None = None,
        remove: list[str] | None = None,
    ) -> Issue:
        """Add and remove labels, keeping the label index in step."""
        issue_id = self._resolve_id(issue_id)
        issue = self._read_issue(issue_id)

        for name in add or []:
            self._mkdir(f"labels/{name}")
            self.fs.write_file(f"labels/{name}/{issue_id}", b"")
            if name not in issue.labels:
                issue.labels.append(name)

        for name in remove or []:
            self._remove(f"labels/{name}/{issue_id}")
            if self._dir_is_empty(f"labels/{name}"):
                self._remove(f"labels/{name}/.gitkeep")
            issue.labels = [lbl for lbl in issue.labels if lbl != name]

        issue.labels.sort()
        issue.updated_at = self._now_text()
        self._write_issue(issue)
        return issue

    def comment(self, issue_id: str, text: str, author: str = "") -> Issue:
        """Append a timestamped comment to an issue."""
        issue_id = self._resolve_id(issue_id)
        issue = self._read_issue(issue_id)
        now = self._now_text()
        issue.comments.append(Comment(text=text, author=author, timestamp=now))
        issue.updated_at = now
        self._write_issue(issue)
        return issue