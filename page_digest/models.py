"""Shared dataclasses and type definitions for workflows and their results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from dateutil import parser as date_parser

from .errors import ValidationError

FREQUENCY_15MIN = "15min"
FREQUENCY_HOURLY = "hourly"
FREQUENCY_DAILY = "daily"
FREQUENCIES = (FREQUENCY_15MIN, FREQUENCY_HOURLY, FREQUENCY_DAILY)

NOTIFY_EMAIL = "email"
NOTIFY_IN_APP = "in-app"
NOTIFY_TYPES = (NOTIFY_EMAIL, NOTIFY_IN_APP)

STATUS_ACTIVE = "active"
STATUS_PAUSED = "paused"
STATUS_ERROR = "error"
STATUSES = (STATUS_ACTIVE, STATUS_PAUSED, STATUS_ERROR)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp, assuming UTC for naive values."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = date_parser.parse(str(value))
        except (ValueError, TypeError, OverflowError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


@dataclass
class Workflow:
    """A user-defined recurring job: URL, prompt, frequency and channel."""

    id: str
    user_id: str
    url: str
    prompt: str
    frequency: str = FREQUENCY_DAILY
    notify_type: str = NOTIFY_IN_APP
    email: Optional[str] = None
    last_run: Optional[datetime] = None
    status: str = STATUS_ACTIVE
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    @property
    def wants_email(self) -> bool:
        return self.notify_type == NOTIFY_EMAIL and bool(self.email)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Workflow":
        return cls(
            id=str(row["id"]),
            user_id=str(row.get("user_id", "")),
            url=row.get("url", ""),
            prompt=row.get("prompt", ""),
            frequency=row.get("frequency") or FREQUENCY_DAILY,
            notify_type=row.get("notify_type") or NOTIFY_IN_APP,
            email=row.get("email"),
            last_run=parse_datetime(row.get("last_run")),
            status=row.get("status") or STATUS_ACTIVE,
            created_at=parse_datetime(row.get("created_at")) or utcnow(),
            updated_at=parse_datetime(row.get("updated_at")),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "url": self.url,
            "prompt": self.prompt,
            "frequency": self.frequency,
            "notify_type": self.notify_type,
            "email": self.email,
            "last_run": format_datetime(self.last_run),
            "status": self.status,
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
        }


@dataclass
class WorkflowResult:
    """One persisted execution attempt of a workflow."""

    id: str
    workflow_id: str
    summary: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)
    seen: bool = False

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "WorkflowResult":
        return cls(
            id=str(row["id"]),
            workflow_id=str(row["workflow_id"]),
            summary=row.get("summary", ""),
            metadata=dict(row.get("metadata") or {}),
            timestamp=parse_datetime(row.get("timestamp")) or utcnow(),
            seen=bool(row.get("seen", False)),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "summary": self.summary,
            "metadata": self.metadata,
            "timestamp": format_datetime(self.timestamp),
            "seen": self.seen,
        }


@dataclass
class ExtractionResult:
    """Outcome of the extraction cascade; never persisted."""

    success: bool
    method: Optional[str] = None
    title: Optional[str] = None
    text: Optional[str] = None
    error: Optional[str] = None


def validate_workflow_payload(payload: Mapping[str, Any]) -> None:
    """Reject payloads that would create an invalid workflow."""

    missing = [key for key in ("user_id", "url", "prompt", "frequency", "notify_type") if not payload.get(key)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    if payload["notify_type"] not in NOTIFY_TYPES:
        raise ValidationError('notify_type must be "email" or "in-app"')
    if payload["frequency"] not in FREQUENCIES:
        raise ValidationError('frequency must be "15min", "hourly", or "daily"')
    if payload["notify_type"] == NOTIFY_EMAIL and not payload.get("email"):
        raise ValidationError('email is required when notify_type is "email"')
    if payload["notify_type"] != NOTIFY_EMAIL and payload.get("email"):
        raise ValidationError('email is only allowed when notify_type is "email"')
    status = payload.get("status")
    if status is not None and status not in STATUSES:
        raise ValidationError('status must be "active", "paused", or "error"')
