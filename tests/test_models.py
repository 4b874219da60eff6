from __future__ import annotations

from datetime import datetime, timezone

from page_digest.models import Workflow, WorkflowResult, parse_datetime


def test_parse_datetime_assumes_utc_for_naive_values():
    parsed = parse_datetime("2024-05-01T12:00:00")

    assert parsed == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert parse_datetime(None) is None
    assert parse_datetime("not a date") is None


def test_workflow_row_round_trip_keeps_last_run():
    row = {
        "id": "wf-1",
        "user_id": "u1",
        "url": "https://example.com",
        "prompt": "p",
        "frequency": "15min",
        "notify_type": "email",
        "email": "a@example.com",
        "last_run": "2024-05-01T12:00:00+00:00",
        "status": "error",
        "created_at": "2024-04-01T00:00:00Z",
    }

    workflow = Workflow.from_row(row)

    assert workflow.wants_email is True
    assert workflow.last_run == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert Workflow.from_row(workflow.to_row()) == workflow


def test_workflow_from_row_defaults_missing_fields():
    workflow = Workflow.from_row({"id": "wf-2", "url": "https://example.com"})

    assert workflow.frequency == "daily"
    assert workflow.notify_type == "in-app"
    assert workflow.status == "active"
    assert workflow.wants_email is False


def test_result_row_defaults_unseen():
    result = WorkflowResult.from_row({"id": "r1", "workflow_id": "wf-1", "summary": "s"})

    assert result.seen is False
    assert result.metadata == {}
