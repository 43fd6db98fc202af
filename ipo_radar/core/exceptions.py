"""
IPO Radar Exception Hierarchy

Structured exception classes for the reconciliation pipeline. Every exception
carries a code, message, and details so it can be turned into a diagnostic
entry instead of escaping the run.

Exception Hierarchy:
    IpoRadarError
    ├── SourceFetchError
    ├── ExtractionError
    ├── LookupTableError
    └── PipelineError
"""
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class IpoRadarError(Exception):
    """
    Base exception for all IPO Radar errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging
        severity: "error", "warning" or "info"
    """

    default_code: str = "IPO_RADAR_ERROR"
    default_severity: str = "error"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class SourceFetchError(IpoRadarError):
    """A source page could not be retrieved (timeout, non-2xx, network)."""

    default_code = "SOURCE_FETCH_FAILED"
    default_severity = "warning"

    def __init__(
        self,
        url: str,
        reason: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = {"url": url, "status_code": status_code}
        merged.update(details or {})
        super().__init__(f"Failed to fetch {url}: {reason}", details=merged)
        self.url = url
        self.reason = reason
        self.status_code = status_code


class ExtractionError(IpoRadarError):
    """A page did not have the table structure an extractor expects."""

    default_code = "EXTRACTION_FAILED"
    default_severity = "warning"


class LookupTableError(IpoRadarError):
    """The subscription lookup table could not be loaded or validated."""

    default_code = "LOOKUP_TABLE_INVALID"


class PipelineError(IpoRadarError):
    """Unexpected failure caught at the orchestrator boundary."""

    default_code = "PIPELINE_FAILED"
