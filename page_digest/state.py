"""JSON-backed persistence for workflows and their results."""

from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .errors import StoreError
from .models import (
    STATUS_ACTIVE,
    STATUS_PAUSED,
    Workflow,
    WorkflowResult,
    format_datetime,
    utcnow,
    validate_workflow_payload,
)

LOGGER = logging.getLogger(__name__)


class WorkflowStore:
    """Row store for workflows and workflow results kept in one JSON file.

    The file is re-read before every operation so that edits made by another
    process (the CLI adding a workflow while the runner loops) are picked up.
    Each load-modify-save holds an exclusive lock on ``<file>.lock`` and the
    file is replaced atomically, so readers never see a partial write.
    Updates merge onto the stored row; the last writer wins per field.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self.lock_path = path.with_name(path.name + ".lock")

    @contextmanager
    def _locked(self) -> Iterator[None]:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            handle = open(self.lock_path, "a+", encoding="utf-8")
        except OSError as exc:
            raise StoreError(f"Could not open lock file {self.lock_path}: {exc}") from exc
        with handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"workflows": {}, "results": []}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise StoreError(f"Could not parse store file {self.path}: {exc}") from exc
        except OSError as exc:
            raise StoreError(f"Could not read store file {self.path}: {exc}") from exc
        data.setdefault("workflows", {})
        data.setdefault("results", [])
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp", delete=False
            ) as handle:
                tmp_name = handle.name
                handle.write(json.dumps(data, indent=2, sort_keys=True))
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StoreError(f"Could not write store file {self.path}: {exc}") from exc

    def create_workflow(self, payload: Mapping[str, Any]) -> Workflow:
        validate_workflow_payload(payload)
        now = utcnow()
        workflow = Workflow(
            id=str(payload.get("id") or uuid.uuid4()),
            user_id=payload["user_id"],
            url=payload["url"],
            prompt=payload["prompt"],
            frequency=payload["frequency"],
            notify_type=payload["notify_type"],
            email=payload.get("email") or None,
            last_run=None,
            status=payload.get("status") or STATUS_ACTIVE,
            created_at=now,
            updated_at=now,
        )
        with self._locked():
            data = self._load()
            data["workflows"][workflow.id] = workflow.to_row()
            self._save(data)
        LOGGER.info("Created workflow %s for %s", workflow.id, workflow.url)
        return workflow

    def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        row = self._load()["workflows"].get(workflow_id)
        return Workflow.from_row(row) if row else None

    def list_active(self) -> List[Workflow]:
        """Return every schedulable workflow, i.e. all that are not paused."""

        rows = self._load()["workflows"].values()
        return [Workflow.from_row(row) for row in rows if row.get("status") != STATUS_PAUSED]

    def list_by_user(self, user_id: str) -> List[Workflow]:
        rows = self._load()["workflows"].values()
        workflows = [Workflow.from_row(row) for row in rows if row.get("user_id") == user_id]
        workflows.sort(key=lambda wf: wf.created_at, reverse=True)
        return workflows

    def update(self, workflow_id: str, fields: Mapping[str, Any]) -> Workflow:
        with self._locked():
            data = self._load()
            row = data["workflows"].get(workflow_id)
            if row is None:
                raise StoreError(f"Workflow {workflow_id} not found")
            for key, value in fields.items():
                row[key] = format_datetime(value) if hasattr(value, "isoformat") else value
            row["updated_at"] = format_datetime(utcnow())
            self._save(data)
        return Workflow.from_row(row)

    def delete_workflow(self, workflow_id: str) -> bool:
        with self._locked():
            data = self._load()
            if data["workflows"].pop(workflow_id, None) is None:
                return False
            data["results"] = [row for row in data["results"] if row.get("workflow_id") != workflow_id]
            self._save(data)
        return True

    def create_result(self, payload: Mapping[str, Any]) -> WorkflowResult:
        result = WorkflowResult(
            id=str(payload.get("id") or uuid.uuid4()),
            workflow_id=str(payload["workflow_id"]),
            summary=payload.get("summary", ""),
            metadata=dict(payload.get("metadata") or {}),
            timestamp=payload.get("timestamp") or utcnow(),
            seen=bool(payload.get("seen", False)),
        )
        with self._locked():
            data = self._load()
            data["results"].append(result.to_row())
            self._save(data)
        return result

    def list_results(self, workflow_id: str) -> List[WorkflowResult]:
        rows = self._load()["results"]
        results = [WorkflowResult.from_row(row) for row in rows if row.get("workflow_id") == workflow_id]
        results.sort(key=lambda res: res.timestamp, reverse=True)
        return results

    def mark_result_seen(self, result_id: str) -> Optional[WorkflowResult]:
        with self._locked():
            data = self._load()
            for row in data["results"]:
                if row.get("id") == result_id:
                    row["seen"] = True
                    self._save(data)
                    return WorkflowResult.from_row(row)
        return None


__all__ = ["WorkflowStore"]
