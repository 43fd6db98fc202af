"""
Source Extractor Registry

- TableExtractor interface for every HTML table source
- SourceRegistry for enable/disable, discovery and merge priority
- Extensible: a new source is a SourceConfig plus an extractor class

Each extractor is responsible for one table on one page:
- Locating its table by id
- Skipping structurally broken rows
- Normalizing cells into IpoRecord fields

Extractors never fetch. The orchestrator fetches each unique page once and
hands the parsed document to every extractor bound to that URL.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Type
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from ipo_radar.core.exceptions import ExtractionError
from ipo_radar.schemas.ipo import IpoRecord, IpoType

logger = logging.getLogger(__name__)


@dataclass
class SourceConfig:
    """Configuration for one table source."""
    name: str
    url: str
    table_id: str
    ipo_type: IpoType
    enabled: bool = True
    priority: int = 100  # Lower = higher priority; applied last in exact merges

    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ExtractResult:
    """Records produced from one table, plus the rows that were dropped."""
    source: str
    records: List[IpoRecord] = field(default_factory=list)
    skipped_rows: int = 0

    @property
    def count(self) -> int:
        return len(self.records)


class TableExtractor(ABC):
    """
    Abstract base class for table extractors.

    Subclasses implement parse_row(); row iteration, structural checks and
    error isolation live here.
    """

    min_cells: int = 1

    def __init__(self, config: SourceConfig):
        self.config = config

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def url(self) -> str:
        return self.config.url

    @abstractmethod
    def parse_row(self, cells: List[Tag], now: Optional[datetime] = None) -> Optional[IpoRecord]:
        """
        Build a record from one row's cells.

        Args:
            cells: The row's <td> elements (at least min_cells of them)
            now: Reference time for status and year resolution

        Returns:
            IpoRecord, or None when the row carries no usable company name
        """
        pass

    def find_table(self, soup: BeautifulSoup) -> Tag:
        table = soup.find("table", id=self.config.table_id)
        if table is None:
            raise ExtractionError(
                f"Table #{self.config.table_id} not found on {self.url}",
                details={"source": self.name, "table_id": self.config.table_id},
            )
        return table

    def detail_url_from(self, cell: Tag) -> Optional[str]:
        """First hyperlink in a cell, resolved against the page URL."""
        link = cell.find("a", href=True)
        if not link:
            return None
        href = link["href"].strip()
        return urljoin(self.url, href) if href else None

    def extract(self, soup: BeautifulSoup, now: Optional[datetime] = None) -> ExtractResult:
        """
        Extract every usable row of this source's table.

        Raises:
            ExtractionError: the table is missing from the page
        """
        table = self.find_table(soup)
        result = ExtractResult(source=self.name)

        rows = table.select("tbody tr") or table.find_all("tr")
        for row in rows:
            cells = row.find_all("td")
            if len(cells) < self.min_cells:
                result.skipped_rows += 1
                continue

            try:
                record = self.parse_row(cells, now=now)
            except Exception as e:
                logger.debug(f"[EXTRACT] {self.name}: skipping malformed row: {e}")
                result.skipped_rows += 1
                continue

            if record is None:
                result.skipped_rows += 1
                continue

            record.source = self.name
            result.records.append(record)

        logger.info(
            f"[EXTRACT] {self.name}: {result.count} records "
            f"({result.skipped_rows} rows skipped)"
        )
        return result


class SourceRegistry:
    """
    Registry for table sources.

    Manages extractor lifecycle, enable/disable, and the priority ranking the
    deduplicator uses for exact-key merges.
    """

    def __init__(self):
        self._extractors: Dict[str, TableExtractor] = {}
        self._configs: Dict[str, SourceConfig] = {}

    def register(
        self,
        config: SourceConfig,
        extractor_class: Type[TableExtractor],
    ) -> TableExtractor:
        """Register a source, replacing any existing one of the same name."""
        if config.name in self._extractors:
            logger.warning(f"Source '{config.name}' already registered, replacing")

        extractor = extractor_class(config)
        self._extractors[config.name] = extractor
        self._configs[config.name] = config

        logger.debug(f"Registered source: {config.name} ({config.url}#{config.table_id})")
        return extractor

    def get(self, name: str) -> Optional[TableExtractor]:
        return self._extractors.get(name)

    def get_all(self) -> List[TableExtractor]:
        return list(self._extractors.values())

    def get_enabled(self) -> List[TableExtractor]:
        """Enabled extractors in registration order."""
        return [e for e in self._extractors.values() if e.config.enabled]

    def enable(self, name: str) -> bool:
        if name in self._configs:
            self._configs[name].enabled = True
            logger.info(f"Enabled source: {name}")
            return True
        return False

    def disable(self, name: str) -> bool:
        if name in self._configs:
            self._configs[name].enabled = False
            logger.info(f"Disabled source: {name}")
            return True
        return False

    def unregister(self, name: str) -> bool:
        if name in self._extractors:
            del self._extractors[name]
            del self._configs[name]
            logger.info(f"Unregistered source: {name}")
            return True
        return False

    def source_priority(self) -> Dict[str, int]:
        """Source name -> merge priority (lower wins)."""
        return {name: config.priority for name, config in self._configs.items()}

    def pages(self) -> Dict[str, List[TableExtractor]]:
        """
        Unique page URLs of enabled sources, each with the extractors bound to it.

        Sources sharing a URL are fetched and parsed once.
        """
        grouped: Dict[str, List[TableExtractor]] = {}
        for extractor in self.get_enabled():
            grouped.setdefault(extractor.url, []).append(extractor)
        return grouped

    def get_stats(self) -> Dict[str, Any]:
        return {
            "total_sources": len(self._extractors),
            "enabled": len(self.get_enabled()),
            "pages": len(self.pages()),
            "sources": {
                name: {
                    "url": config.url,
                    "table_id": config.table_id,
                    "ipo_type": config.ipo_type.value,
                    "priority": config.priority,
                    "enabled": config.enabled,
                }
                for name, config in self._configs.items()
            },
        }
