"""
IPO Refresh Job

One reconciliation run, start to finish:

1. Fetch every unique enabled source page concurrently
2. Run each extractor bound to a successfully fetched page
3. Exact-key merge, fuzzy prefix merge, status refresh
4. Detail-page enrichment, status refresh
5. Subscription and GMP enrichment concurrently, fault-isolated
6. Strip internal fields

The job never raises. Partial failures become diagnostics on the result; an
unexpected failure degrades the run to zero records with success=False, which
callers treat as "skip this run" rather than "delete everything".
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from ipo_radar.adapters.base import SourceRegistry
from ipo_radar.adapters.ipowatch import default_sources
from ipo_radar.core.config import Settings, get_settings
from ipo_radar.core.diagnostics import PipelineDiagnostic, Severity, Stage
from ipo_radar.core.exceptions import PipelineError
from ipo_radar.core.http_client import PageFetcher, create_page_fetcher
from ipo_radar.core.utils import ensure_utc, utcnow
from ipo_radar.schemas.ipo import IpoRecord
from ipo_radar.services.dedup_engine import deduplicate
from ipo_radar.services.enrichment.base import EnrichmentReport
from ipo_radar.services.enrichment.detail_page import enrich_from_detail_pages
from ipo_radar.services.enrichment.gmp import enrich_gmp
from ipo_radar.services.enrichment.subscription import (
    SubscriptionLookupTable,
    enrich_subscriptions,
)
from ipo_radar.services.records import refresh_statuses

logger = logging.getLogger(__name__)


@dataclass
class RefreshResult:
    """Records and diagnostics from one run."""
    records: List[IpoRecord] = field(default_factory=list)
    diagnostics: List[PipelineDiagnostic] = field(default_factory=list)
    success: bool = True
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    source_counts: Dict[str, int] = field(default_factory=dict)
    exact_merges: int = 0
    fuzzy_merges: int = 0
    enrichment: Dict[str, Dict[str, int]] = field(default_factory=dict)

    @property
    def duration_ms(self) -> Optional[float]:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds() * 1000

    def diagnostics_for(self, stage: Stage) -> List[PipelineDiagnostic]:
        return [d for d in self.diagnostics if d.stage == stage]

    def add_report(self, report: EnrichmentReport):
        self.enrichment[report.name] = {
            "attempted": report.attempted,
            "enriched": report.enriched,
        }
        self.diagnostics.extend(report.diagnostics)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_ms": self.duration_ms,
            "record_count": len(self.records),
            "source_counts": self.source_counts,
            "dedup": {
                "exact_merges": self.exact_merges,
                "fuzzy_merges": self.fuzzy_merges,
            },
            "enrichment": self.enrichment,
            "records": [record.to_public_dict() for record in self.records],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


async def _fetch_and_extract(
    result: RefreshResult,
    registry: SourceRegistry,
    fetcher: PageFetcher,
    settings: Settings,
    now: datetime,
) -> List[IpoRecord]:
    pages = registry.pages()
    if not pages:
        raise PipelineError("No enabled sources registered")

    logger.info(f"[REFRESH] Fetching {len(pages)} source pages")
    fetched = await fetcher.fetch_many(list(pages), timeout=settings.PRIMARY_FETCH_TIMEOUT)

    collected: List[IpoRecord] = []
    for page in fetched:
        extractors = pages[page.url]

        if not page.success:
            for extractor in extractors:
                result.source_counts[extractor.name] = 0
            result.diagnostics.append(
                PipelineDiagnostic.from_error(Stage.FETCH, page.error, source=page.url)
                if page.error is not None
                else PipelineDiagnostic(
                    stage=Stage.FETCH,
                    code="SOURCE_FETCH_FAILED",
                    message=f"Failed to fetch {page.url}",
                    source=page.url,
                )
            )
            continue

        soup = BeautifulSoup(page.html, "html.parser")
        for extractor in extractors:
            try:
                extracted = extractor.extract(soup, now=now)
            except Exception as e:
                logger.warning(f"[EXTRACT] {extractor.name}: {e}")
                result.source_counts[extractor.name] = 0
                result.diagnostics.append(
                    PipelineDiagnostic.from_error(Stage.EXTRACT, e, source=extractor.name)
                )
                continue

            result.source_counts[extractor.name] = extracted.count
            collected.extend(extracted.records)

    return collected


async def _run_pipeline(
    result: RefreshResult,
    settings: Settings,
    registry: SourceRegistry,
    fetcher: PageFetcher,
    lookup: Optional[SubscriptionLookupTable],
    now: datetime,
) -> List[IpoRecord]:
    collected = await _fetch_and_extract(result, registry, fetcher, settings, now)

    dedup = deduplicate(collected, source_priority=registry.source_priority())
    result.exact_merges = dedup.exact_merges
    result.fuzzy_merges = dedup.fuzzy_merges
    for match in dedup.ambiguous:
        result.diagnostics.append(
            PipelineDiagnostic(
                stage=Stage.DEDUP,
                code="AMBIGUOUS_PREFIX_MATCH",
                message=f"'{match.slug}' prefixes unrelated records; not merged",
                source=match.slug,
                severity=Severity.INFO,
                details={"candidates": match.candidates},
            )
        )

    records = dedup.records
    refresh_statuses(records, now=now)

    result.add_report(await enrich_from_detail_pages(records, fetcher, settings))
    refresh_statuses(records, now=now)

    outcomes = await asyncio.gather(
        enrich_subscriptions(records, fetcher, settings, lookup=lookup),
        enrich_gmp(records, fetcher, settings, now=now),
        return_exceptions=True,
    )
    for stage, outcome in zip((Stage.SUBSCRIPTION, Stage.GMP), outcomes):
        if isinstance(outcome, Exception):
            logger.error(f"[REFRESH] {stage.value} crashed: {outcome}")
            result.diagnostics.append(PipelineDiagnostic.from_error(stage, outcome))
        else:
            result.add_report(outcome)

    return [record.public() for record in records]


async def run_ipo_refresh(
    settings: Optional[Settings] = None,
    registry: Optional[SourceRegistry] = None,
    fetcher: Optional[PageFetcher] = None,
    lookup: Optional[SubscriptionLookupTable] = None,
    now: Optional[datetime] = None,
) -> RefreshResult:
    """
    Run one full refresh.

    Args:
        settings: Defaults to the process settings
        registry: Source registry; defaults to the IPOWatch tables
        fetcher: Page fetcher; created (and closed) here when omitted
        lookup: Subscription lookup table; loaded from settings when omitted
        now: Reference time for status and year resolution; defaults to now (UTC)

    Returns:
        RefreshResult. Never raises.
    """
    result = RefreshResult()
    owns_fetcher = fetcher is None

    try:
        settings = settings or get_settings()
        current = ensure_utc(now)
        if registry is None:
            registry = default_sources(settings.SHORT_RANGE_ROLLOVER_DAYS)
        if fetcher is None:
            fetcher = create_page_fetcher(settings)
        await fetcher.init()

        result.records = await _run_pipeline(result, settings, registry, fetcher, lookup, current)
    except Exception as e:
        logger.exception(f"[REFRESH] Run failed, returning no records: {e}")
        result.records = []
        result.success = False
        error = e if isinstance(e, PipelineError) else PipelineError(
            f"Unexpected {type(e).__name__}: {e}",
            details={"error_type": type(e).__name__},
        )
        result.diagnostics.append(PipelineDiagnostic.from_error(Stage.PIPELINE, error))
    finally:
        if owns_fetcher and fetcher is not None:
            try:
                await fetcher.close()
            except Exception as e:
                logger.warning(f"[REFRESH] Failed to close fetcher: {e}")
        result.finished_at = utcnow()

    logger.info(
        f"[REFRESH] {'Completed' if result.success else 'Failed'}: "
        f"{len(result.records)} records, {len(result.diagnostics)} diagnostics, "
        f"{result.duration_ms:.0f}ms"
    )
    return result


async def fetch_all_ipos(**kwargs) -> List[IpoRecord]:
    """Records only; an empty list means the run produced nothing usable."""
    result = await run_ipo_refresh(**kwargs)
    return result.records
