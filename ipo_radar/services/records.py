"""
Record helpers

Status resolution for extracted records and the manual-entry factory used
when an IPO has to be added by hand.
"""
from datetime import date, datetime
from typing import Iterable, Optional

from ipo_radar.schemas.ipo import IpoRecord, IpoStatus, IpoType
from ipo_radar.services.ipo_status import determine_status
from ipo_radar.utils.field_parsers import slugify


def resolve_status(record: IpoRecord, now: Optional[datetime] = None) -> IpoStatus:
    """
    Status for a record.

    A populated listing price only comes from an "already listed" table and
    beats date arithmetic; everything else goes through the classifier.
    """
    if record.listing_price is not None:
        return IpoStatus.LISTED
    return determine_status(
        record.open_date,
        record.close_date,
        record.listing_date,
        now=now,
    )


def refresh_statuses(records: Iterable[IpoRecord], now: Optional[datetime] = None) -> None:
    """Recompute status on every record in place."""
    for record in records:
        record.status = resolve_status(record, now=now)


def create_ipo_record(
    company_name: str,
    ipo_type: IpoType = IpoType.MAINBOARD,
    price_band_low: Optional[float] = None,
    price_band_high: Optional[float] = None,
    lot_size: Optional[int] = None,
    issue_size: Optional[str] = None,
    open_date: Optional[date] = None,
    close_date: Optional[date] = None,
    listing_date: Optional[date] = None,
    gmp: Optional[float] = None,
    now: Optional[datetime] = None,
) -> IpoRecord:
    """Build a record from manually supplied values, deriving slug and status."""
    record = IpoRecord(
        company_name=company_name,
        slug=slugify(company_name),
        ipo_type=ipo_type,
        price_band_low=price_band_low,
        price_band_high=price_band_high,
        lot_size=lot_size,
        issue_size=issue_size,
        open_date=open_date,
        close_date=close_date,
        listing_date=listing_date,
        gmp=gmp,
    )
    record.status = resolve_status(record, now=now)
    return record
