"""High-level orchestration: due checks, workflow execution and the scheduling loop."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from .config import Config, load_config
from .content import ExtractionCascade, build_cascade
from .errors import StoreError, SummarizationError, WorkflowExecutionError
from .models import (
    FREQUENCY_15MIN,
    FREQUENCY_DAILY,
    FREQUENCY_HOURLY,
    NOTIFY_EMAIL,
    STATUS_ACTIVE,
    STATUS_ERROR,
    Workflow,
    utcnow,
)
from .notifier import EmailNotifier, best_effort
from .state import WorkflowStore
from .summarizer import Summarizer, build_summarizer, local_summary

LOGGER = logging.getLogger(__name__)

FREQUENCY_THRESHOLDS: Dict[str, timedelta] = {
    FREQUENCY_15MIN: timedelta(milliseconds=900_000),
    FREQUENCY_HOURLY: timedelta(milliseconds=3_600_000),
    FREQUENCY_DAILY: timedelta(milliseconds=86_400_000),
}


def should_run(frequency: Optional[str], last_run: Optional[datetime], now: datetime) -> bool:
    """Return whether a workflow is due. Unknown frequencies count as daily."""

    if last_run is None:
        return True
    threshold = FREQUENCY_THRESHOLDS.get(frequency or "", FREQUENCY_THRESHOLDS[FREQUENCY_DAILY])
    return now - last_run >= threshold


@dataclass
class RunResult:
    workflow_id: str
    success: bool = False
    skipped: bool = False
    summary: Optional[str] = None
    method: Optional[str] = None
    title: Optional[str] = None
    summary_source: Optional[str] = None
    error: Optional[str] = None
    result_id: Optional[str] = None
    notified: Optional[bool] = None


@dataclass
class PassReport:
    results: List[RunResult] = field(default_factory=list)
    crashed: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.success and not result.skipped) + len(self.crashed)

    @property
    def skipped(self) -> int:
        return sum(1 for result in self.results if result.skipped)


class WorkflowRunner:
    """Turn a stored workflow into a persisted result row.

    ``run`` never raises for extraction, summarization, notification or store
    failures; they end up in the returned :class:`RunResult` and, where the
    store allows, in an error row plus ``status = error`` on the workflow.
    """

    def __init__(
        self,
        store: WorkflowStore,
        cascade: ExtractionCascade,
        summarizer: Summarizer,
        notifier: Optional[EmailNotifier] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.cascade = cascade
        self.summarizer = summarizer
        self.notifier = notifier
        self.clock = clock

    def run(self, workflow: Workflow, now: Optional[datetime] = None) -> RunResult:
        now = now or self.clock()
        if not should_run(workflow.frequency, workflow.last_run, now):
            LOGGER.debug("Workflow %s not due (last run %s)", workflow.id, workflow.last_run)
            return RunResult(workflow_id=workflow.id, skipped=True)

        LOGGER.info("Running workflow %s (%s)", workflow.id, workflow.url)
        try:
            return self._execute(workflow, now)
        except (WorkflowExecutionError, StoreError) as exc:
            return self._record_failure(workflow, now, str(exc))

    def _summarize(self, text: str, prompt: str) -> Dict[str, Any]:
        try:
            return {"summary": self.summarizer.summarize(text, prompt), "source": "llm"}
        except SummarizationError as exc:
            LOGGER.warning("Summarization unavailable, using local summary: %s", exc)
            summary = local_summary(text)
            if not summary:
                raise WorkflowExecutionError(f"Summarization failed: {exc}") from exc
            return {"summary": summary, "source": "local", "error": str(exc)}

    def _execute(self, workflow: Workflow, now: datetime) -> RunResult:
        extraction = self.cascade.extract(workflow.url)
        if not extraction.success:
            raise WorkflowExecutionError(f"Extraction failed: {extraction.error}")
        text = extraction.text or ""

        outcome = self._summarize(text, workflow.prompt)
        metadata: Dict[str, Any] = {
            "method": extraction.method,
            "title": extraction.title,
            "extractedLength": len(text),
            "url": workflow.url,
            "summary_source": outcome["source"],
        }
        if "error" in outcome:
            metadata["summary_error"] = outcome["error"]

        row = self.store.create_result(
            {
                "workflow_id": workflow.id,
                "summary": outcome["summary"],
                "metadata": metadata,
                "timestamp": now,
                "seen": workflow.notify_type == NOTIFY_EMAIL,
            }
        )
        result = RunResult(
            workflow_id=workflow.id,
            success=True,
            summary=outcome["summary"],
            method=extraction.method,
            title=extraction.title,
            summary_source=outcome["source"],
            result_id=row.id,
        )

        if workflow.wants_email and self.notifier is not None:
            sent = best_effort(
                f"Email for workflow {workflow.id}",
                self.notifier.send_email,
                to=workflow.email,
                subject=f"Workflow summary: {extraction.title or workflow.url}",
                summary=outcome["summary"],
                title=extraction.title,
            )
            result.notified = bool(sent and sent.success)
            if not result.notified:
                LOGGER.warning("Email for workflow %s not delivered: %s", workflow.id, sent.error if sent else "error")

        try:
            self.store.update(workflow.id, {"last_run": now, "status": STATUS_ACTIVE})
        except StoreError:
            LOGGER.exception("Could not update workflow %s after a successful run", workflow.id)
        LOGGER.info("Workflow %s completed via %s", workflow.id, extraction.method)
        return result

    def _record_failure(self, workflow: Workflow, now: datetime, reason: str) -> RunResult:
        LOGGER.error("Workflow %s failed: %s", workflow.id, reason)
        result = RunResult(workflow_id=workflow.id, success=False, error=reason)
        try:
            row = self.store.create_result(
                {
                    "workflow_id": workflow.id,
                    "summary": f"Error: {reason}",
                    "metadata": {"error": reason, "url": workflow.url, "method": None},
                    "timestamp": now,
                    "seen": False,
                }
            )
            result.result_id = row.id
        except StoreError:
            LOGGER.exception("Could not persist error result for workflow %s", workflow.id)
        try:
            self.store.update(workflow.id, {"last_run": now, "status": STATUS_ERROR})
        except StoreError:
            LOGGER.exception("Could not mark workflow %s as errored", workflow.id)
        return result

    def run_pass(self) -> PassReport:
        """Run every due workflow once, sequentially."""

        report = PassReport()
        try:
            workflows = self.store.list_active()
        except StoreError:
            LOGGER.exception("Could not list workflows")
            return report

        LOGGER.info("Checking %d workflows", len(workflows))
        for workflow in workflows:
            try:
                report.results.append(self.run(workflow))
            except Exception:  # noqa: BLE001 - one broken workflow must not stop the pass
                LOGGER.exception("Unexpected failure running workflow %s", workflow.id)
                report.crashed.append(workflow.id)

        LOGGER.info(
            "Pass complete: %d succeeded, %d failed, %d not due",
            report.succeeded,
            report.failed,
            report.skipped,
        )
        return report

    def run_forever(
        self,
        interval: float,
        sleep: Callable[[float], None] = time.sleep,
        max_passes: Optional[int] = None,
    ) -> None:
        """Loop passes with a fixed sleep in between so passes never overlap."""

        passes = 0
        while max_passes is None or passes < max_passes:
            self.run_pass()
            passes += 1
            if max_passes is not None and passes >= max_passes:
                break
            LOGGER.info("Sleeping for %.0f seconds", interval)
            sleep(interval)


def build_runner(config: Config) -> WorkflowRunner:
    return WorkflowRunner(
        store=WorkflowStore(config.store_file),
        cascade=build_cascade(config),
        summarizer=build_summarizer(config),
        notifier=EmailNotifier(config),
    )


def run(config: Config | None = None) -> PassReport:
    config = config or load_config()
    return build_runner(config).run_pass()


__all__ = [
    "FREQUENCY_THRESHOLDS",
    "PassReport",
    "RunResult",
    "WorkflowRunner",
    "build_runner",
    "run",
    "should_run",
]
