"""
Pipeline diagnostics

Every stage reports partial failures as PipelineDiagnostic entries instead of
raising. The orchestrator collects them into the RefreshResult so callers and
tests can inspect exactly which source or record degraded.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ipo_radar.core.exceptions import IpoRadarError


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Stage(str, Enum):
    """Pipeline stage a diagnostic was raised in."""
    FETCH = "fetch"
    EXTRACT = "extract"
    DEDUP = "dedup"
    DETAIL = "detail_enrichment"
    SUBSCRIPTION = "subscription_enrichment"
    GMP = "gmp_enrichment"
    PIPELINE = "pipeline"


@dataclass
class PipelineDiagnostic:
    """One partial-failure or notable event from a pipeline stage."""
    stage: Stage
    code: str
    message: str
    source: Optional[str] = None
    severity: Severity = Severity.WARNING
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_error(
        cls,
        stage: Stage,
        error: Exception,
        source: Optional[str] = None,
    ) -> "PipelineDiagnostic":
        """Build a diagnostic from any exception, keeping structured fields when present."""
        if isinstance(error, IpoRadarError):
            return cls(
                stage=stage,
                code=error.code,
                message=error.message,
                source=source,
                severity=Severity(error.severity),
                details=dict(error.details),
            )
        return cls(
            stage=stage,
            code="UNEXPECTED_ERROR",
            message=f"{type(error).__name__}: {error}",
            source=source,
            severity=Severity.ERROR,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "code": self.code,
            "message": self.message,
            "source": self.source,
            "severity": self.severity.value,
            "details": self.details,
        }
