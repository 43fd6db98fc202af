"""
Detail-page enrichment

Backfills listing_date and lot_size from each record's own IPOWatch detail
page. The page is reduced to plain text and matched against two sentence
templates the site uses consistently:

    "... IPO to list on NSE, BSE on March 2, 2026."
    "... minimum market lot is 4,000 shares ..."

A missing phrase or a failed fetch leaves the field unset. Fetches run
concurrently, bounded by DETAIL_ENRICH_CONCURRENCY, each with the short
DETAIL_FETCH_TIMEOUT so one slow page cannot hold up the rest.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence

from ipo_radar.core.config import Settings, get_settings
from ipo_radar.core.diagnostics import Stage
from ipo_radar.core.http_client import PageFetcher
from ipo_radar.schemas.ipo import IpoRecord
from ipo_radar.services.enrichment.base import EnrichmentReport
from ipo_radar.utils.field_parsers import html_to_text, parse_long_date, parse_lot_size

logger = logging.getLogger(__name__)

LISTING_DATE_RE = re.compile(
    r"to list\b[^.]*?\bon\s+([A-Z][a-z]+ \d{1,2},\s*\d{4})",
    re.IGNORECASE,
)
LOT_SIZE_RE = re.compile(
    r"(?:minimum market )?lot (?:size )?is ([\d,]+)\s*shares",
    re.IGNORECASE,
)


@dataclass
class DetailFields:
    listing_date: Optional[date] = None
    lot_size: Optional[int] = None


def extract_detail_fields(text: str) -> DetailFields:
    """Pull listing date and lot size out of a detail page's plain text."""
    fields = DetailFields()

    listing_match = LISTING_DATE_RE.search(text)
    if listing_match:
        fields.listing_date = parse_long_date(listing_match.group(1))

    lot_match = LOT_SIZE_RE.search(text)
    if lot_match:
        fields.lot_size = parse_lot_size(lot_match.group(1))

    return fields


def select_detail_candidates(
    records: Sequence[IpoRecord],
    statuses: Sequence[str],
) -> List[IpoRecord]:
    """Records with a detail URL, a missing listing date or lot size, and an eligible status."""
    allowed = set(statuses)
    return [
        record for record in records
        if record.detail_url
        and (record.listing_date is None or record.lot_size is None)
        and record.status.value in allowed
    ]


async def enrich_from_detail_pages(
    records: Sequence[IpoRecord],
    fetcher: PageFetcher,
    settings: Optional[Settings] = None,
) -> EnrichmentReport:
    """
    Fill listing_date and lot_size from detail pages, in place.

    Only absent fields are written. Each record is isolated: a timeout or
    parse failure on one page never affects another.
    """
    settings = settings or get_settings()
    report = EnrichmentReport(name="detail_page", stage=Stage.DETAIL)

    candidates = select_detail_candidates(records, settings.DETAIL_ENRICH_STATUSES)
    report.attempted = len(candidates)
    if not candidates:
        return report

    logger.info(f"[DETAIL] Enriching {len(candidates)} records from detail pages")
    semaphore = asyncio.Semaphore(settings.DETAIL_ENRICH_CONCURRENCY)

    async def enrich_one(record: IpoRecord) -> bool:
        async with semaphore:
            page = await fetcher.fetch(record.detail_url, timeout=settings.DETAIL_FETCH_TIMEOUT)

        if not page.success:
            report.record_fetch_failure(page, source=record.slug)
            return False

        fields = extract_detail_fields(html_to_text(page.html))
        changed = False
        if fields.listing_date is not None and record.listing_date is None:
            record.listing_date = fields.listing_date
            changed = True
        if fields.lot_size is not None and record.lot_size is None:
            record.lot_size = fields.lot_size
            changed = True

        if changed:
            logger.debug(
                f"[DETAIL] {record.slug}: listing_date={record.listing_date} lot_size={record.lot_size}"
            )
        return changed

    outcomes = await asyncio.gather(
        *(enrich_one(record) for record in candidates),
        return_exceptions=True,
    )

    for record, outcome in zip(candidates, outcomes):
        if isinstance(outcome, Exception):
            logger.warning(f"[DETAIL] {record.slug}: enrichment failed: {outcome}")
            report.record_error(outcome, source=record.slug)
        elif outcome:
            report.enriched += 1

    logger.info(f"[DETAIL] Enriched {report.enriched}/{report.attempted} records")
    return report
