# beadwork

A small issue tracker library. Issues are stored as JSON files in a tree,
alongside empty marker files that index them by status, label and blocking
relationship. The tree can live in memory (`MemoryTree`) or in a directory
on disk (`DirectoryTree`), both in `beadwork.treefs`.

## Installation

```
pip install .
```

## Quick start

`Store` (in `beadwork.store`) handles creating, finding, listing and
changing issues. `Tracker` (in `beadwork.tracker`) is a `Store` that also
manages blocking links, labels, comments and deletion, so most programs
only need a `Tracker`.

```python
from beadwork.treefs import DirectoryTree
from beadwork.tracker import Tracker
from beadwork.models import CreateOptions, UpdateOptions, Filter

tracker = Tracker(DirectoryTree(".beadwork"), "app")

login = tracker.create("Fix login timeout", CreateOptions(priority=1, type="bug"))
docs = tracker.create("Document the login flow")

tracker.link(login.id, docs.id)        # login blocks docs

for issue in tracker.ready():          # open issues whose blockers are all closed
    print(issue.id, issue.title)

tracker.start(login.id, "alice")
tracker.close(login.id, "fixed")
print([i.id for i in tracker.newly_unblocked(login.id)])
```

The constructor is `Store(fs, prefix, committer=None, *, dry_run=False,
default_priority=None, id_retries=10, rand_bytes=None)`; `Tracker` takes the
same arguments.

## Concepts

- **IDs** are generated as `<prefix>-<base36>`; the random suffix starts at
  three characters and grows (up to eight) when `id_retries` attempts at a
  length all collide. `rand_bytes` can replace the random source. Issues
  created with `CreateOptions(parent=...)` get sequential dotted IDs
  (`app-x1z.1`, `app-x1z.2`, ...). An explicit `CreateOptions(id=...)` must
  be unique and free of whitespace. Any issue can be referred to by its
  full ID or by a prefix or suffix that matches exactly one ID;
  `existing_ids()` returns a copy of all IDs.
- **Defaults**: new issues are `open` (or `deferred` when `defer_until` is
  given), of type `task`, with priority 2 unless `default_priority` or the
  options say otherwise.
- **Statuses** are `open`, `in_progress`, `deferred` and `closed`.
  `status_names()`, `status_icon()` and `priority_icon()` in
  `beadwork.models` give their names and display icons.
- **Changing issues**: `update(id, UpdateOptions(...))` changes only the
  fields that are not `None`, and refuses an issue as its own parent or a
  parent chain that would form a cycle. `start()` moves an open issue to
  `in_progress` (raising `BlockedError` while any blocker is open),
  `close()` records a reason and time, and `reopen()` returns a closed or
  in-progress issue to `open`, clearing its assignee.
- **Listing**: `list(Filter(...))` filters by status (or several statuses),
  assignee, priority, type, label or a case-insensitive search of title and
  description, sorted by priority then creation time. `children()`,
  `ids_with_status()`, `status_count()` and `is_closed()` answer smaller
  questions.
- **Blocking**: `link()` / `unlink()` maintain both sides of a dependency;
  `dep_exists()`, `load_edges()`, `tips()`, `ready()`, `blocked()` and
  `newly_unblocked()` query the dependency graph.
- **Labels and comments**: `label(id, add, remove)` and
  `comment(id, text, author)`.
- **Deleting**: `delete_preview()` returns a `DeletePlan` of what `delete()`
  would touch; deleting removes the issue's links from related issues and
  clears the parent of its children.

Issues are read once and cached; `clear_cache()` forgets the cache and the
known IDs after the tree has been changed from elsewhere.

## Errors

All errors raised by the store derive from `beadwork.models.IssueError`:
`IssueNotFoundError`, `AmbiguousIDError`, `CorruptIssueError` and
`BlockedError` (which carries `id` and `blockers`), plus
`beadwork.store.ReadOnlyStoreError`.

## Timestamps

Timestamps are RFC 3339 in UTC. Setting the `BW_CLOCK` environment variable
to an RFC 3339 value pins the clock, which is useful for reproducible
output; an invalid value is ignored.

## Persisting changes

A store can be given a committer: any object with a `commit(message)`
method. `Store.commit(intent)` passes the message to it, or with
`dry_run=True` only prints `[dry-run] would commit: ...` to standard error.
Without a committer, `commit()` raises `ReadOnlyStoreError`.

## What this package does not do

This is a library only. It has no command-line program, and it does not
record history or commit changes to version control itself: files are
written straight to the chosen tree, and anything beyond that is up to the
committer you supply.

## Running the tests

```
pip install .[test]
pytest
```