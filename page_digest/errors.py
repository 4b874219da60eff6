"""Exception hierarchy shared across the digest pipeline."""

from __future__ import annotations


class PageDigestError(Exception):
    """Base class for all page digest failures."""


class TransportError(PageDigestError):
    """A remote call failed, timed out or answered with a non-2xx status."""


class FormatError(PageDigestError):
    """A remote service answered with a body we could not interpret."""


class ExtractionError(PageDigestError):
    """An extraction strategy could not produce text."""


class ContentInsufficientError(ExtractionError):
    """Extracted text is shorter than the strategy's minimum length."""


class SummarizationError(PageDigestError):
    """No configured language model provider produced a summary."""


class WorkflowExecutionError(PageDigestError):
    """Extraction or summarization failed for a whole workflow run."""


class StoreError(PageDigestError):
    """The workflow store could not be read or written."""


class ValidationError(PageDigestError, ValueError):
    """A workflow payload violates the data model."""


__all__ = [
    "ContentInsufficientError",
    "ExtractionError",
    "FormatError",
    "PageDigestError",
    "StoreError",
    "SummarizationError",
    "TransportError",
    "ValidationError",
    "WorkflowExecutionError",
]
