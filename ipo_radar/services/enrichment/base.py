"""
Shared enrichment result type.

Enrichers mutate records in place and return an EnrichmentReport. Fetch and
parse failures land in the report's diagnostics; nothing is raised.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from ipo_radar.core.diagnostics import PipelineDiagnostic, Severity, Stage
from ipo_radar.core.http_client import PageFetchResult


@dataclass
class EnrichmentReport:
    name: str
    stage: Stage
    attempted: int = 0
    enriched: int = 0
    diagnostics: List[PipelineDiagnostic] = field(default_factory=list)

    def record_fetch_failure(self, page: PageFetchResult, source: Optional[str] = None):
        if page.error is not None:
            diagnostic = PipelineDiagnostic.from_error(self.stage, page.error, source=source)
        else:
            diagnostic = PipelineDiagnostic(
                stage=self.stage,
                code="SOURCE_FETCH_FAILED",
                message=f"Failed to fetch {page.url}",
                source=source,
                details={"url": page.url, "status_code": page.status_code},
            )
        self.diagnostics.append(diagnostic)

    def record_error(self, error: Exception, source: Optional[str] = None):
        self.diagnostics.append(PipelineDiagnostic.from_error(self.stage, error, source=source))

    def note(self, code: str, message: str, source: Optional[str] = None, **details):
        self.diagnostics.append(
            PipelineDiagnostic(
                stage=self.stage,
                code=code,
                message=message,
                source=source,
                severity=Severity.INFO,
                details=details,
            )
        )
