"""
IPO Store boundary

The refresh job does not persist anything itself. A store implements the
IpoStore interface and sync_refresh_to_store() applies the caller contract:

- Zero records: skip the run entirely (a failed scrape must never wipe data)
- Otherwise upsert every record by slug
- Then delete stale non-Listed records whose slug is missing from this run
  but whose close date appears in it (a renamed duplicate, not a vanished IPO)

InMemoryIpoStore is the reference implementation used by the CLI and tests.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence, Set

from ipo_radar.schemas.ipo import IpoRecord, IpoStatus, IpoType
from ipo_radar.services.records import resolve_status

logger = logging.getLogger(__name__)

# Statuses eligible for stale cleanup
STALE_CLEANUP_STATUSES = (IpoStatus.OPEN, IpoStatus.UPCOMING, IpoStatus.CLOSED)

STATUS_ORDER = {
    IpoStatus.UPCOMING: 0,
    IpoStatus.OPEN: 1,
    IpoStatus.CLOSED: 2,
    IpoStatus.LISTED: 3,
}


@dataclass
class SyncSummary:
    skipped: bool = False
    upserted: int = 0
    deleted: int = 0


class IpoStore(ABC):
    """Persistence collaborator for reconciled records."""

    @abstractmethod
    def upsert_many(self, records: Sequence[IpoRecord]) -> int:
        """Insert or update by slug. Returns the number of records written."""
        pass

    @abstractmethod
    def delete_stale(
        self,
        current_slugs: Set[str],
        close_dates: Set[date],
        now: Optional[datetime] = None,
    ) -> int:
        """Delete stale records not Listed as of now. Returns the number deleted."""
        pass

    @abstractmethod
    def list_ipos(
        self,
        status: Optional[IpoStatus] = None,
        ipo_type: Optional[IpoType] = None,
        now: Optional[datetime] = None,
    ) -> List[IpoRecord]:
        pass


class InMemoryIpoStore(IpoStore):
    """Dict-backed store keyed by slug."""

    def __init__(self, records: Iterable[IpoRecord] = ()):
        self._records: Dict[str, IpoRecord] = {}
        for record in records:
            self._records[record.slug] = record.public()

    def __len__(self) -> int:
        return len(self._records)

    def get(self, slug: str) -> Optional[IpoRecord]:
        return self._records.get(slug)

    def upsert_many(self, records: Sequence[IpoRecord]) -> int:
        for record in records:
            self._records[record.slug] = record.public()
        return len(records)

    def delete_stale(
        self,
        current_slugs: Set[str],
        close_dates: Set[date],
        now: Optional[datetime] = None,
    ) -> int:
        # Stored status may be from an earlier run
        stale = [
            slug for slug, record in self._records.items()
            if slug not in current_slugs
            and record.close_date in close_dates
            and resolve_status(record, now=now) in STALE_CLEANUP_STATUSES
        ]
        for slug in stale:
            logger.info(f"[STORE] Removing stale record '{slug}'")
            del self._records[slug]
        return len(stale)

    def list_ipos(
        self,
        status: Optional[IpoStatus] = None,
        ipo_type: Optional[IpoType] = None,
        now: Optional[datetime] = None,
    ) -> List[IpoRecord]:
        """
        Records with status recomputed on read, optionally filtered.

        Ordered by status (Upcoming, Open, Closed, Listed), then open date
        descending with undated records last.
        """
        results = []
        for record in self._records.values():
            current = record.model_copy()
            current.status = resolve_status(current, now=now)
            if status is not None and current.status != status:
                continue
            if ipo_type is not None and current.ipo_type != ipo_type:
                continue
            results.append(current)

        results.sort(key=lambda r: r.open_date.toordinal() if r.open_date else 0, reverse=True)
        results.sort(key=lambda r: STATUS_ORDER[r.status])
        return results


def sync_refresh_to_store(
    store: IpoStore,
    records: Sequence[IpoRecord],
    now: Optional[datetime] = None,
) -> SyncSummary:
    """Apply a run's records to a store under the skip/upsert/cleanup contract."""
    if not records:
        logger.warning("[STORE] Refresh returned no records; skipping sync")
        return SyncSummary(skipped=True)

    upserted = store.upsert_many(records)
    current_slugs = {record.slug for record in records}
    close_dates = {record.close_date for record in records if record.close_date is not None}
    deleted = store.delete_stale(current_slugs, close_dates, now=now)

    logger.info(f"[STORE] Upserted {upserted} records, removed {deleted} stale")
    return SyncSummary(upserted=upserted, deleted=deleted)
