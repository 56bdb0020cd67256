import pytest

from beadwork.models import (
    AmbiguousIDError,
    BlockedError,
    CorruptIssueError,
    CreateOptions,
    Filter,
    Issue,
    IssueError,
    IssueNotFoundError,
    UpdateOptions,
)
from beadwork.store import ReadOnlyStoreError, Store
from beadwork.treefs import MemoryTree


class RecordingCommitter:
    def __init__(self):
        self.messages = []

    def commit(self, message):
        self.messages.append(message)


@pytest.fixture
def store(monkeypatch):
    monkeypatch.delenv("BW_CLOCK", raising=False)
    return Store(MemoryTree(), "test", RecordingCommitter())


def imp(store, issue_id, **kw):
    base = dict(id=issue_id, title="Issue " + issue_id, status="open", priority=3,
                type="task", created="2026-01-01T00:00:00Z")
    base.update(kw)
    store.import_issue(Issue(**base))


def link(store, a, b):
    # direct blocker wiring for tests of start()
    ia, ib = store.get(a), store.get(b)
    ia.blocks.append(b)
    ib.blocked_by.append(a)
    store._write_issue(ia)
    store._write_issue(ib)


def test_create_and_get(store):
    iss = store.create("Fix auth bug", CreateOptions(priority=1, type="bug",
                       description="Tokens expire too fast", assignee="agent-1"))
    assert store.fs.exists(f"issues/{iss.id}.json")
    assert store.fs.exists(f"status/open/{iss.id}")
    store.clear_cache()
    got = store.get(iss.id)
    assert (got.title, got.priority, got.type, got.status, got.assignee, got.description) == (
        "Fix auth bug", 1, "bug", "open", "agent-1", "Tokens expire too fast")


def test_create_defaults(store):
    iss = store.create("Simple task")
    assert iss.type == "task"
    assert iss.priority == 2


def test_commit_delegates(store):
    store.commit("create x")
    assert store.committer.messages == ["create x"]


def test_commit_dry_run_skips(store, capsys):
    store.dry_run = True
    store.commit("intent")
    assert store.committer.messages == []
    assert "[dry-run] would commit: intent" in capsys.readouterr().err


def test_commit_without_committer(store):
    store.committer = None
    with pytest.raises(ReadOnlyStoreError):
        store.commit("should fail")


def test_default_priority_from_store(store):
    store.default_priority = 3
    assert store.create("a").priority == 3
    assert store.create("b", CreateOptions(priority=1)).priority == 1
    assert store.create("c", CreateOptions(priority=0)).priority == 0


def test_import_direct(store):
    imp(store, "ext-001", assignee="someone")
    got = store.get("ext-001")
    assert got.status == "open"
    assert got.assignee == "someone"


def test_import_closed_status(store):
    imp(store, "ext-closed", status="closed")
    assert store.get("ext-closed").status == "closed"
    assert store.fs.exists("status/closed/ext-closed")


def test_child_ids_sequential_and_grandchild(store):
    parent = store.create("Parent")
    c1 = store.create("C1", CreateOptions(parent=parent.id))
    c2 = store.create("C2", CreateOptions(parent=parent.id))
    assert c1.id == parent.id + ".1"
    assert c2.id == parent.id + ".2"
    assert store.get(c1.id).parent == parent.id
    gc = store.create("GC", CreateOptions(parent=c1.id))
    assert gc.id == c1.id + ".1"
    assert store.create("C3", CreateOptions(parent=parent.id)).id == parent.id + ".3"


def test_dotted_id_permanent_after_orphaning(store):
    parent = store.create("Parent")
    child = store.create("Child", CreateOptions(parent=parent.id))
    got = store.update(child.id, UpdateOptions(parent=""))
    assert got.parent == ""
    assert got.id == parent.id + ".1"


def test_create_with_nonexistent_parent(store):
    with pytest.raises(IssueNotFoundError):
        store.create("Orphan", CreateOptions(parent="test-zzzz"))


def test_updated_at_equals_created(store):
    iss = store.create("New")
    assert iss.updated_at and iss.updated_at == iss.created


def test_explicit_id(store):
    iss = store.create("Explicit", CreateOptions(id="test-myid"))
    assert iss.id == "test-myid"
    assert store.get("test-myid").title == "Explicit"
    with pytest.raises(IssueError, match="already exists"):
        store.create("Second", CreateOptions(id="test-myid"))
    with pytest.raises(IssueError):
        store.create("Bad", CreateOptions(id="test bad id"))


def test_explicit_id_with_parent(store):
    parent = store.create("Parent")
    child = store.create("Child", CreateOptions(parent=parent.id, id="test-custom-child"))
    assert child.id == "test-custom-child"
    assert child.parent == parent.id


@pytest.mark.parametrize("clock", ["2025-06-15T10:30:00Z", "2025-09-01T14:00:00Z"])
def test_bw_clock(store, monkeypatch, clock):
    monkeypatch.setenv("BW_CLOCK", clock)
    iss = store.create("Clock")
    assert iss.created == clock
    assert store.close(iss.id, "done").closed_at == clock


def test_bw_clock_invalid_ignored(store, monkeypatch):
    monkeypatch.setenv("BW_CLOCK", "not-a-date")
    created = store.create("x").created
    assert created and created != "not-a-date"


def test_id_suffix_resolution(store):
    iss = store.create("Test")
    assert store.get(iss.id[len("test-"):]).id == iss.id


def test_ambiguous_id(store):
    imp(store, "test-ab01")
    imp(store, "test-ab02")
    with pytest.raises(AmbiguousIDError, match="ambiguous"):
        store.get("test-ab0")
    assert store.get("test-ab01").id == "test-ab01"


def test_ids_unique_base36_length3(store):
    ids = {store.create("I").id for _ in range(50)}
    assert len(ids) == 50
    for issue_id in ids:
        suffix = issue_id[len("test-"):]
        assert all(c in "0123456789abcdefghijklmnopqrstuvwxyz" for c in suffix)
    assert len(store.create("x").id) - len("test-") in range(3, 9)


def test_id_deterministic_rand(store):
    calls = [0]

    def rand(n):
        calls[0] += 1
        return bytes([calls[0]] * n)

    store.rand_bytes = rand
    assert store.create("A").id != store.create("B").id


def test_id_adaptive_length(store):
    store.rand_bytes = lambda n: bytes(n)
    store.id_retries = 2
    assert len(store.create("A").id) == len("test-") + 3
    assert len(store.create("B").id) == len("test-") + 4


def test_existing_ids_copy_and_tracking(store):
    a = store.create("A")
    ids = store.existing_ids()
    ids.add("fake-id")
    assert "fake-id" not in store.existing_ids()
    b = store.create("B")
    imp(store, "test-import1")
    assert {a.id, b.id, "test-import1"} <= store.existing_ids()
    store.clear_cache()
    assert a.id in store.existing_ids()


def test_list_filters(store):
    store.create("Bug one", CreateOptions(priority=1, type="bug"))
    store.create("Task two", CreateOptions(priority=2, type="task", assignee="agent-1"))
    store.create("Bug three", CreateOptions(priority=1, type="bug"))
    assert len(store.list(Filter(type="bug"))) == 2
    assert len(store.list(Filter(priority=1))) == 2
    assert len(store.list(Filter(assignee="agent-1"))) == 1
    everything = store.list()
    assert len(everything) == 3
    assert everything[0].priority == 1


def test_list_by_status_and_statuses(store):
    a = store.create("Open")
    b = store.create("WIP")
    c = store.create("Closed")
    store.update(b.id, UpdateOptions(status="in_progress"))
    store.close(c.id)
    assert len(store.list(Filter(statuses=["open", "in_progress"]))) == 2
    assert [i.id for i in store.list(Filter(status="open"))] == [a.id]
    prec = store.list(Filter(status="closed", statuses=["open"]))
    assert [i.status for i in prec] == ["open"]
    assert store.status_count("closed") == 1
    assert store.is_closed(c.id)


def test_list_deferred(store):
    store.create("Open")
    b = store.create("Deferred", CreateOptions(defer_until="2027-01-01"))
    assert len(store.list()) == 2
    assert [i.id for i in store.list(Filter(status="deferred"))] == [b.id]
    assert len(store.list(Filter(status="open"))) == 1


def test_list_grep(store):
    a = store.create("Login page broken", CreateOptions(description="The form is blank"))
    store.create("Update readme", CreateOptions(description="Add auth instructions"))
    store.create("Fix sidebar")
    assert len(store.list(Filter(grep="login"))) == 1
    assert len(store.list(Filter(grep="auth"))) == 1
    assert len(store.list(Filter(grep="LOGIN"))) == 1
    store.update(a.id, UpdateOptions(status="closed"))
    assert store.list(Filter(grep="login", status="open")) == []
    assert store.list(Filter(grep="nonexistent")) == []


def test_children(store):
    parent = store.create("Parent")
    child = store.create("Child", CreateOptions(parent=parent.id))
    assert [i.id for i in store.children(parent.id)] == [child.id]


def test_get_nonexistent(store):
    with pytest.raises(IssueNotFoundError):
        store.get("test-zzzz")


def test_corrupt_json(store):
    iss = store.create("Valid")
    store.fs.write_file(f"issues/{iss.id}.json", b"{invalid json")
    store.clear_cache()
    with pytest.raises(CorruptIssueError, match="corrupt"):
        store.get(iss.id)


def test_cache_identity(store):
    iss = store.create("Cache")
    assert store.get(iss.id) is store.get(iss.id)
    first = store.get(iss.id)
    store.clear_cache()
    second = store.get(iss.id)
    assert first is not second and first.id == second.id


def test_update_fields(store):
    iss = store.create("Original")
    up = store.update(iss.id, UpdateOptions(title="Updated title", priority=1, assignee="agent-2"))
    assert (up.title, up.priority, up.assignee) == ("Updated title", 1, "agent-2")
    assert store.get(iss.id).updated_at == up.updated_at


def test_status_transitions(store):
    iss = store.create("Lifecycle")
    store.update(iss.id, UpdateOptions(status="in_progress"))
    assert store.fs.exists(f"status/in_progress/{iss.id}")
    assert not store.fs.exists(f"status/open/{iss.id}")
    store.close(iss.id)
    assert store.fs.exists(f"status/closed/{iss.id}")
    assert not store.fs.exists(f"status/in_progress/{iss.id}")
    reopened = store.reopen(iss.id)
    assert reopened.status == "open"
    assert store.fs.exists(f"status/open/{iss.id}")
    assert not store.fs.exists(f"status/closed/{iss.id}")


def test_update_same_status_noop(store):
    iss = store.create("S")
    store.update(iss.id, UpdateOptions(status="in_progress"))
    assert store.update(iss.id, UpdateOptions(status="in_progress")).status == "in_progress"


def test_close_errors(store):
    iss = store.create("T")
    store.close(iss.id)
    with pytest.raises(IssueError, match="already closed"):
        store.close(iss.id)
    with pytest.raises(IssueNotFoundError):
        store.close("test-zzzz")


def test_reopen_errors(store):
    iss = store.create("T")
    with pytest.raises(IssueError, match="not closed"):
        store.reopen(iss.id)
    with pytest.raises(IssueNotFoundError):
        store.reopen("test-zzzz")
    with pytest.raises(IssueNotFoundError):
        store.update("test-zzzz", UpdateOptions(title="x"))


def test_reopen_in_progress_clears_assignee(store):
    iss = store.create("Unclaim")
    store.start(iss.id, "alice")
    reopened = store.reopen(iss.id)
    assert (reopened.status, reopened.assignee) == ("open", "")
    store.clear_cache()
    assert store.get(iss.id).assignee == ""


def test_close_reason_and_reopen_clears(store):
    iss = store.create("Close me")
    closed = store.close(iss.id, "duplicate")
    assert closed.close_reason == "duplicate" and closed.closed_at
    store.clear_cache()
    assert store.get(iss.id).close_reason == "duplicate"
    reopened = store.reopen(iss.id)
    assert reopened.closed_at == "" and reopened.close_reason == ""


def test_defer_until(store):
    iss = store.create("D", CreateOptions(defer_until="2027-03-15"))
    assert iss.status == "deferred"
    store.clear_cache()
    assert store.get(iss.id).defer_until == "2027-03-15"
    up = store.update(iss.id, UpdateOptions(status="open", defer_until=""))
    assert (up.status, up.defer_until) == ("open", "")


def test_parent_updates(store):
    a = store.create("A")
    b = store.create("B")
    c = store.create("C")
    assert store.update(b.id, UpdateOptions(parent=a.id)).parent == a.id
    store.update(c.id, UpdateOptions(parent=b.id))
    with pytest.raises(IssueError, match="own parent"):
        store.update(a.id, UpdateOptions(parent=a.id))
    with pytest.raises(IssueError, match="circular"):
        store.update(a.id, UpdateOptions(parent=b.id))
    with pytest.raises(IssueError, match="circular"):
        store.update(a.id, UpdateOptions(parent=c.id))
    with pytest.raises(IssueNotFoundError):
        store.update(a.id, UpdateOptions(parent="test-zzzz"))


def test_start(store):
    iss = store.create("Start me")
    started = store.start(iss.id, "alice")
    assert (started.status, started.assignee) == ("in_progress", "alice")
    with pytest.raises(IssueError):
        store.start(iss.id, "alice")
    with pytest.raises(IssueNotFoundError):
        store.start("nonexistent", "alice")


def test_start_blocked(store):
    a = store.create("Blocker A")
    b = store.create("Blocker B")
    c = store.create("Blocked")
    link(store, a.id, c.id)
    link(store, b.id, c.id)
    with pytest.raises(BlockedError) as info:
        store.start(c.id, "alice")
    assert sorted(info.value.blockers) == sorted([a.id, b.id])
    store.close(a.id)
    store.close(b.id)
    assert store.start(c.id, "alice").status == "in_progress"


def test_start_closed(store):
    iss = store.create("Closed")
    store.close(iss.id)
    with pytest.raises(IssueError, match="not open"):
        store.start(iss.id, "alice")