"""
Grey-market premium backfill

Fills gmp on non-Listed records from the live GMP report tables. Listed
records carry their final GMP from the listing table and are never touched.

Rows are matched to records by close date, printed as "24-Feb" without a
year and read against the current year. When several records close on the
same day, the row's name cell must contain the record's first name word.

GMP pages are fetched concurrently and applied in configured order; the first
page to supply a value wins and a populated gmp is never overwritten.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from bs4 import BeautifulSoup

from ipo_radar.core.config import Settings, get_settings
from ipo_radar.core.diagnostics import Stage
from ipo_radar.core.http_client import PageFetcher
from ipo_radar.core.utils import ensure_utc
from ipo_radar.schemas.ipo import IpoRecord, IpoStatus
from ipo_radar.services.enrichment.base import EnrichmentReport
from ipo_radar.utils.field_parsers import parse_compact_day_month, parse_gmp

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GmpTableLayout:
    """
    Column positions in the GMP report table.

    0=Name 1=GMP 2=Rating 3=Sub 4=Price 5=IssueSize 6=Lot 7=Open 8=Close ...
    """
    name: int = 0
    gmp: int = 1
    close_date: int = 8

    @property
    def min_cells(self) -> int:
        return max(self.name, self.gmp, self.close_date) + 1


DEFAULT_GMP_LAYOUT = GmpTableLayout()


@dataclass
class GmpRow:
    name: str
    close_date: date
    gmp: float


def parse_gmp_rows(
    html: str,
    year: int,
    layout: GmpTableLayout = DEFAULT_GMP_LAYOUT,
) -> List[GmpRow]:
    """Rows with a parseable close date and a non-zero GMP."""
    soup = BeautifulSoup(html, "html.parser")
    rows = []
    for row in soup.select("table tr"):
        cells = row.find_all("td")
        if len(cells) < layout.min_cells:
            continue

        close = parse_compact_day_month(cells[layout.close_date].get_text("\n"), year)
        if close is None:
            continue

        gmp = parse_gmp(cells[layout.gmp].get_text(" ", strip=True))
        if gmp is None:
            continue

        rows.append(GmpRow(
            name=cells[layout.name].get_text(" ", strip=True),
            close_date=close,
            gmp=gmp,
        ))
    return rows


def _first_word(name: str) -> str:
    words = name.lower().split()
    return words[0] if words else ""


def match_row(row: GmpRow, by_close_date: Dict[date, List[IpoRecord]]) -> Optional[IpoRecord]:
    """Record a GMP row belongs to, or None when unmatched or ambiguous."""
    candidates = by_close_date.get(row.close_date, [])
    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        return None

    row_name = row.name.lower()
    named = []
    for record in candidates:
        word = _first_word(record.company_name)
        if word and word in row_name:
            named.append(record)
    if len(named) == 1:
        return named[0]

    logger.debug(
        f"[GMP] Row '{row.name}' ({row.close_date}) matches {len(named)} of "
        f"{len(candidates)} records closing that day; skipping"
    )
    return None


async def enrich_gmp(
    records: Sequence[IpoRecord],
    fetcher: PageFetcher,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
    layout: GmpTableLayout = DEFAULT_GMP_LAYOUT,
) -> EnrichmentReport:
    """Backfill gmp on non-Listed records with a close date, in place."""
    settings = settings or get_settings()
    report = EnrichmentReport(name="gmp", stage=Stage.GMP)

    by_close_date: Dict[date, List[IpoRecord]] = {}
    for record in records:
        if record.status != IpoStatus.LISTED and record.close_date is not None:
            by_close_date.setdefault(record.close_date, []).append(record)

    report.attempted = sum(
        1 for group in by_close_date.values() for r in group if r.gmp is None
    )
    if not report.attempted or not settings.GMP_SOURCE_URLS:
        return report

    year = ensure_utc(now).year
    pages = await fetcher.fetch_many(settings.GMP_SOURCE_URLS, timeout=settings.GMP_FETCH_TIMEOUT)

    for page in pages:
        if not page.success:
            report.record_fetch_failure(page, source=page.host)
            continue

        rows = parse_gmp_rows(page.html, year, layout=layout)
        logger.debug(f"[GMP] {page.url}: {len(rows)} rows with a close date and GMP")

        for row in rows:
            record = match_row(row, by_close_date)
            if record is None or record.gmp is not None:
                continue
            record.gmp = row.gmp
            report.enriched += 1
            logger.info(f"[GMP] {record.company_name}: gmp={row.gmp}")

    return report
