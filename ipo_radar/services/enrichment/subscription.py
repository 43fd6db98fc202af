"""
Subscription enrichment

Backfills the four subscription multipliers for Open IPOs from the
subscription source's per-IPO pages. The subscription source shares no
identifier with the listing source, so each record is resolved through a
hand-curated lookup table keyed by close date, with a short name hint to
break ties when several IPOs close on the same day.

The lookup table is data, not code: it ships as
ipo_radar/data/subscription_lookup.json and can be replaced with
SUBSCRIPTION_LOOKUP_PATH or passed in directly.

Pages carry the figures in one sentence, e.g.:

    "Gaudium IVF IPO subscribed 0.90 times. The public issue subscribed
     1.42 times in the retail category, 0.00 times in QIB (Ex Anchor),
     and 0.91 times in the NII category"
"""
import asyncio
import json
import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Union

from pydantic import ValidationError

from ipo_radar.core.config import Settings, get_settings
from ipo_radar.core.diagnostics import Stage
from ipo_radar.core.exceptions import LookupTableError
from ipo_radar.core.http_client import PageFetcher
from ipo_radar.schemas.ipo import IpoRecord, IpoStatus
from ipo_radar.schemas.subscription_lookup import SubscriptionLookupEntry
from ipo_radar.services.enrichment.base import EnrichmentReport
from ipo_radar.utils.field_parsers import html_to_text, parse_multiplier

logger = logging.getLogger(__name__)

DEFAULT_LOOKUP_PATH = Path(__file__).resolve().parents[2] / "data" / "subscription_lookup.json"

TOTAL_RE = re.compile(r"subscribed ([\d.]+) times", re.IGNORECASE)
RETAIL_RE = re.compile(r"([\d.]+) times in the retail", re.IGNORECASE)
QIB_RE = re.compile(r"([\d.]+) times in(?: the)? QIB", re.IGNORECASE)
NII_RE = re.compile(r"([\d.]+) times in the NII", re.IGNORECASE)


class SubscriptionLookupTable:
    """Read-only set of lookup entries, indexed by close date."""

    def __init__(self, entries: Iterable[SubscriptionLookupEntry] = ()):
        self._entries: List[SubscriptionLookupEntry] = list(entries)
        self._by_close_date = defaultdict(list)
        for entry in self._entries:
            self._by_close_date[entry.close_date].append(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[SubscriptionLookupEntry]:
        return iter(self._entries)

    @classmethod
    def load_from_path(cls, path: Union[str, Path, None] = None) -> "SubscriptionLookupTable":
        """
        Load entries from a JSON array of {slug, id, closeDate, nameHint} objects.

        Raises:
            LookupTableError: file missing, not JSON, or an entry fails validation
        """
        lookup_path = Path(path) if path else DEFAULT_LOOKUP_PATH
        try:
            raw = json.loads(lookup_path.read_text(encoding="utf-8"))
        except OSError as e:
            raise LookupTableError(
                f"Cannot read subscription lookup table: {e}",
                details={"path": str(lookup_path)},
            )
        except json.JSONDecodeError as e:
            raise LookupTableError(
                f"Subscription lookup table is not valid JSON: {e}",
                details={"path": str(lookup_path)},
            )

        if not isinstance(raw, list):
            raise LookupTableError(
                "Subscription lookup table must be a JSON array",
                details={"path": str(lookup_path)},
            )

        try:
            entries = [SubscriptionLookupEntry.model_validate(item) for item in raw]
        except ValidationError as e:
            raise LookupTableError(
                f"Invalid subscription lookup entry: {e.error_count()} error(s)",
                details={"path": str(lookup_path), "errors": e.errors(include_url=False, include_context=False, include_input=False)},
            )

        logger.debug(f"[SUBSCRIPTION] Loaded {len(entries)} lookup entries from {lookup_path}")
        return cls(entries)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SubscriptionLookupTable":
        return cls.load_from_path(settings.SUBSCRIPTION_LOOKUP_PATH or None)

    def resolve(self, record: IpoRecord) -> Optional[SubscriptionLookupEntry]:
        """
        Lookup entry for a record, or None.

        Exact close-date match; a single candidate is used as-is, several are
        narrowed to the one whose name hint occurs in the company name. Anything
        other than exactly one survivor is no match.
        """
        if record.close_date is None:
            return None

        candidates = self._by_close_date.get(record.close_date, [])
        if len(candidates) == 1:
            return candidates[0]
        if not candidates:
            return None

        name = record.company_name.lower()
        hinted = [entry for entry in candidates if entry.name_hint in name]
        if len(hinted) == 1:
            return hinted[0]

        logger.debug(
            f"[SUBSCRIPTION] {record.slug}: {len(candidates)} entries close on "
            f"{record.close_date}, {len(hinted)} match by name; skipping"
        )
        return None


@dataclass
class SubscriptionFigures:
    total: Optional[float] = None
    retail: Optional[float] = None
    qib: Optional[float] = None
    nii: Optional[float] = None

    def as_record_fields(self) -> Dict[str, Optional[float]]:
        return {
            "subscription_total": self.total,
            "subscription_retail": self.retail,
            "subscription_qib": self.qib,
            "subscription_nii": self.nii,
        }


def _match_multiplier(pattern: re.Pattern, text: str) -> Optional[float]:
    match = pattern.search(text)
    return parse_multiplier(match.group(1)) if match else None


def extract_subscription_figures(text: str) -> SubscriptionFigures:
    return SubscriptionFigures(
        total=_match_multiplier(TOTAL_RE, text),
        retail=_match_multiplier(RETAIL_RE, text),
        qib=_match_multiplier(QIB_RE, text),
        nii=_match_multiplier(NII_RE, text),
    )


def build_subscription_url(entry: SubscriptionLookupEntry, template: str) -> str:
    return template.format(slug=entry.slug, id=entry.external_id)


async def enrich_subscriptions(
    records: Sequence[IpoRecord],
    fetcher: PageFetcher,
    settings: Optional[Settings] = None,
    lookup: Optional[SubscriptionLookupTable] = None,
) -> EnrichmentReport:
    """
    Fill subscription multipliers on Open records with a close date, in place.

    Records without a lookup match are left untouched. Only absent fields are
    written.
    """
    settings = settings or get_settings()
    report = EnrichmentReport(name="subscription", stage=Stage.SUBSCRIPTION)

    open_records = [
        r for r in records
        if r.status == IpoStatus.OPEN and r.close_date is not None
    ]
    if not open_records:
        return report

    if lookup is None:
        try:
            lookup = SubscriptionLookupTable.from_settings(settings)
        except LookupTableError as e:
            logger.error(f"[SUBSCRIPTION] {e.message}")
            report.record_error(e)
            return report

    resolved = []
    for record in open_records:
        entry = lookup.resolve(record)
        if entry is None:
            report.note(
                "NO_LOOKUP_MATCH",
                f"No subscription lookup entry for {record.company_name}",
                source=record.slug,
                close_date=record.close_date.isoformat(),
            )
            continue
        resolved.append((record, build_subscription_url(entry, settings.SUBSCRIPTION_URL_TEMPLATE)))

    report.attempted = len(resolved)
    if not resolved:
        return report

    logger.info(f"[SUBSCRIPTION] Fetching subscription pages for {len(resolved)} open IPOs")
    pages = await asyncio.gather(
        *(fetcher.fetch(url, timeout=settings.SUBSCRIPTION_FETCH_TIMEOUT) for _, url in resolved)
    )

    for (record, _url), page in zip(resolved, pages):
        if not page.success:
            report.record_fetch_failure(page, source=record.slug)
            continue

        figures = extract_subscription_figures(html_to_text(page.html))
        changed = False
        for field_name, value in figures.as_record_fields().items():
            if value is not None and getattr(record, field_name) is None:
                setattr(record, field_name, value)
                changed = True

        if changed:
            report.enriched += 1
            logger.info(
                f"[SUBSCRIPTION] {record.company_name}: total={record.subscription_total}x "
                f"retail={record.subscription_retail}x qib={record.subscription_qib}x "
                f"nii={record.subscription_nii}x"
            )

    return report
