"""
IPOWatch table extractors

IPOWatch publishes its IPO calendars as TablePress tables:
- mainboard-ipo/ (#tablepress-17) and sme-ipo/ (#tablepress-18) list recent
  and already-listed issues with full dates and listing results
- upcoming-ipo/ carries two tables on one page, #tablepress-22 (Mainboard)
  and #tablepress-23 (SME), with year-less "DD-DD Mon" windows

Column positions are hand-mapped in ColumnLayout. When the site reorders a
table, extraction degrades to absent fields until the layout is updated.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from bs4 import Tag

from ipo_radar.adapters.base import SourceConfig, SourceRegistry, TableExtractor
from ipo_radar.schemas.ipo import IpoRecord, IpoType
from ipo_radar.services.ipo_status import determine_status
from ipo_radar.services.records import resolve_status
from ipo_radar.utils.field_parsers import (
    DEFAULT_ROLLOVER_DAYS,
    parse_gmp,
    parse_issue_size,
    parse_long_date,
    parse_percent,
    parse_price,
    parse_price_band,
    parse_short_date_range,
    slugify,
)

logger = logging.getLogger(__name__)

IPOWATCH_BASE_URL = "https://www.ipowatch.in"
MAINBOARD_LISTED_URL = f"{IPOWATCH_BASE_URL}/mainboard-ipo/"
SME_LISTED_URL = f"{IPOWATCH_BASE_URL}/sme-ipo/"
UPCOMING_URL = f"{IPOWATCH_BASE_URL}/upcoming-ipo/"


@dataclass(frozen=True)
class ColumnLayout:
    """Cell index for each field a table provides. None = not in this table."""
    company_name: int = 0
    open_date: Optional[int] = None
    close_date: Optional[int] = None
    date_range: Optional[int] = None
    issue_size: Optional[int] = None
    price_band: Optional[int] = None
    gmp: Optional[int] = None
    listing_price: Optional[int] = None
    listing_gain_percent: Optional[int] = None

    @property
    def min_cells(self) -> int:
        indexes = [v for v in vars(self).values() if v is not None]
        return max(indexes) + 1


# company | open | close | issue size | price band | GMP | listing price | listing gain
LISTED_LAYOUT = ColumnLayout(
    company_name=0,
    open_date=1,
    close_date=2,
    issue_size=3,
    price_band=4,
    gmp=5,
    listing_price=6,
    listing_gain_percent=7,
)

# company | "DD-DD Mon" window | issue size | price band
UPCOMING_LAYOUT = ColumnLayout(
    company_name=0,
    date_range=1,
    issue_size=2,
    price_band=3,
)


def _cell_text(cells: List[Tag], index: Optional[int]) -> Optional[str]:
    if index is None or index >= len(cells):
        return None
    return cells[index].get_text(" ", strip=True)


class _IpoWatchExtractor(TableExtractor):
    layout: ColumnLayout = LISTED_LAYOUT

    def __init__(self, config: SourceConfig):
        super().__init__(config)
        self.min_cells = self.layout.min_cells

    def _base_record(self, cells: List[Tag]) -> Optional[IpoRecord]:
        name_cell = cells[self.layout.company_name]
        company_name = name_cell.get_text(" ", strip=True)
        if not company_name:
            return None

        band = parse_price_band(_cell_text(cells, self.layout.price_band))
        return IpoRecord(
            company_name=company_name,
            slug=slugify(company_name),
            ipo_type=self.config.ipo_type,
            issue_size=parse_issue_size(_cell_text(cells, self.layout.issue_size)),
            price_band_low=band.low,
            price_band_high=band.high,
            detail_url=self.detail_url_from(name_cell),
        )


class ListedTableExtractor(_IpoWatchExtractor):
    """Recent and already-listed IPOs, with full dates and listing results."""

    layout = LISTED_LAYOUT

    def parse_row(self, cells: List[Tag], now: Optional[datetime] = None) -> Optional[IpoRecord]:
        record = self._base_record(cells)
        if record is None:
            return None

        record.open_date = parse_long_date(_cell_text(cells, self.layout.open_date))
        record.close_date = parse_long_date(_cell_text(cells, self.layout.close_date))
        record.gmp = parse_gmp(_cell_text(cells, self.layout.gmp))
        record.listing_price = parse_price(_cell_text(cells, self.layout.listing_price))
        record.listing_gain_percent = parse_percent(
            _cell_text(cells, self.layout.listing_gain_percent)
        )

        # Listing price present -> Listed, regardless of dates
        record.status = resolve_status(record, now=now)
        return record


class UpcomingTableExtractor(_IpoWatchExtractor):
    """Announced and open IPOs with a year-less subscription window."""

    layout = UPCOMING_LAYOUT

    def parse_row(self, cells: List[Tag], now: Optional[datetime] = None) -> Optional[IpoRecord]:
        record = self._base_record(cells)
        if record is None:
            return None

        window = parse_short_date_range(
            _cell_text(cells, self.layout.date_range),
            now=now,
            rollover_days=self.config.extra.get("rollover_days", DEFAULT_ROLLOVER_DAYS),
        )
        record.open_date = window.open_date
        record.close_date = window.close_date
        record.status = determine_status(record.open_date, record.close_date, None, now=now)
        return record


def default_sources(rollover_days: int = DEFAULT_ROLLOVER_DAYS) -> SourceRegistry:
    """
    Registry with the four IPOWatch tables.

    Priorities follow page order: a later table wins exact-slug ties, so the
    SME upcoming table ranks highest and the mainboard listed table lowest.
    """
    registry = SourceRegistry()
    registry.register(
        SourceConfig(
            name="ipowatch_mainboard_listed",
            url=MAINBOARD_LISTED_URL,
            table_id="tablepress-17",
            ipo_type=IpoType.MAINBOARD,
            priority=40,
        ),
        ListedTableExtractor,
    )
    registry.register(
        SourceConfig(
            name="ipowatch_sme_listed",
            url=SME_LISTED_URL,
            table_id="tablepress-18",
            ipo_type=IpoType.SME,
            priority=30,
        ),
        ListedTableExtractor,
    )
    registry.register(
        SourceConfig(
            name="ipowatch_mainboard_upcoming",
            url=UPCOMING_URL,
            table_id="tablepress-22",
            ipo_type=IpoType.MAINBOARD,
            priority=20,
            extra={"rollover_days": rollover_days},
        ),
        UpcomingTableExtractor,
    )
    registry.register(
        SourceConfig(
            name="ipowatch_sme_upcoming",
            url=UPCOMING_URL,
            table_id="tablepress-23",
            ipo_type=IpoType.SME,
            priority=10,
            extra={"rollover_days": rollover_days},
        ),
        UpcomingTableExtractor,
    )
    return registry
