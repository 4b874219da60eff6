from __future__ import annotations

import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from page_digest import state
from page_digest.errors import StoreError, ValidationError
from page_digest.state import WorkflowStore

PAYLOAD = {
    "user_id": "user-1",
    "url": "https://example.com",
    "prompt": "Summarize",
    "frequency": "hourly",
    "notify_type": "in-app",
}


@pytest.fixture
def store(tmp_path) -> WorkflowStore:
    return WorkflowStore(tmp_path / "nested" / "workflows.json")


def test_create_workflow_defaults(store):
    workflow = store.create_workflow(PAYLOAD)

    assert workflow.status == "active"
    assert workflow.last_run is None
    assert store.get_workflow(workflow.id).url == "https://example.com"


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"url": ""}, "Missing required fields: url"),
        ({"frequency": "weekly"}, "frequency must be"),
        ({"notify_type": "sms"}, "notify_type must be"),
        ({"notify_type": "email"}, "email is required"),
        ({"email": "someone@example.com"}, "email is only allowed"),
    ],
)
def test_create_workflow_validation(store, overrides, message):
    with pytest.raises(ValidationError, match=message):
        store.create_workflow({**PAYLOAD, **overrides})


def test_update_merges_fields_and_last_write_wins(store):
    workflow = store.create_workflow(PAYLOAD)
    first = datetime(2024, 1, 1, tzinfo=timezone.utc)

    store.update(workflow.id, {"last_run": first, "status": "error"})
    updated = store.update(workflow.id, {"status": "active"})

    assert updated.status == "active"
    assert updated.last_run == first
    assert updated.prompt == "Summarize"
    assert updated.updated_at is not None


def test_update_missing_workflow_raises(store):
    with pytest.raises(StoreError):
        store.update("missing", {"status": "active"})


def test_list_active_excludes_paused_only(store):
    active = store.create_workflow(PAYLOAD)
    errored = store.create_workflow({**PAYLOAD, "status": "error"})
    store.create_workflow({**PAYLOAD, "status": "paused"})

    ids = {wf.id for wf in store.list_active()}

    assert ids == {active.id, errored.id}


def test_results_newest_first_and_mark_seen(store):
    workflow = store.create_workflow(PAYLOAD)
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    older = store.create_result({"workflow_id": workflow.id, "summary": "old", "timestamp": base})
    newer = store.create_result({"workflow_id": workflow.id, "summary": "new", "timestamp": base + timedelta(hours=1)})

    results = store.list_results(workflow.id)
    assert [r.id for r in results] == [newer.id, older.id]
    assert all(r.seen is False for r in results)

    assert store.mark_result_seen(older.id).seen is True
    assert store.mark_result_seen("missing") is None


def test_delete_workflow_removes_results(store):
    workflow = store.create_workflow(PAYLOAD)
    store.create_result({"workflow_id": workflow.id, "summary": "s"})

    assert store.delete_workflow(workflow.id) is True
    assert store.get_workflow(workflow.id) is None
    assert store.list_results(workflow.id) == []
    assert store.delete_workflow(workflow.id) is False


def test_list_by_user_filters(store):
    mine = store.create_workflow(PAYLOAD)
    store.create_workflow({**PAYLOAD, "user_id": "user-2"})

    assert [wf.id for wf in store.list_by_user("user-1")] == [mine.id]


def test_corrupt_store_file_raises(tmp_path):
    path = tmp_path / "workflows.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(StoreError, match="Could not parse"):
        WorkflowStore(path).list_active()


def test_workflow_added_while_runner_updates_survives(tmp_path):
    path = tmp_path / "workflows.json"
    runner_store = WorkflowStore(path)
    cli_store = WorkflowStore(path)
    existing = runner_store.create_workflow(PAYLOAD)
    loaded = threading.Event()
    load = runner_store._load

    def slow_load():
        data = load()
        loaded.set()
        time.sleep(0.2)
        return data

    runner_store._load = slow_load
    worker = threading.Thread(target=runner_store.update, args=(existing.id, {"status": "error"}))
    worker.start()
    assert loaded.wait(timeout=5)
    added = cli_store.create_workflow({**PAYLOAD, "url": "https://example.com/new"})
    worker.join(timeout=5)

    reader = WorkflowStore(path)
    assert reader.get_workflow(existing.id).status == "error"
    assert reader.get_workflow(added.id).url == "https://example.com/new"


def test_failed_write_keeps_previous_file(store, monkeypatch):
    workflow = store.create_workflow(PAYLOAD)

    def refuse(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(state.os, "replace", refuse)

    with pytest.raises(StoreError, match="disk full"):
        store.update(workflow.id, {"status": "paused"})

    monkeypatch.undo()
    assert store.get_workflow(workflow.id).status == "active"
    assert not list(store.path.parent.glob("*.tmp"))
