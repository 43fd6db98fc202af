"""
Field Normalizers

Pure parsers between raw table-cell text and typed IpoRecord fields. Every
source formats dates, prices and currency differently, so all extractors and
enrichers go through these functions.

Every parser is total: malformed input returns None (or an empty range/band),
never an exception. A cell that matches no expected pattern means "field
absent" for that run.
"""
import logging
import math
import re
from datetime import date, datetime, timedelta
from typing import NamedTuple, Optional

from bs4 import BeautifulSoup

from ipo_radar.core.utils import ensure_utc

logger = logging.getLogger(__name__)

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

# Cell values that mean "not reported"
EMPTY_TOKENS = {"", "-", "--", "n/a", "na", "tba", "tbd", "nil"}

DEFAULT_ROLLOVER_DAYS = 60

LONG_DATE_FORMATS = (
    "%b %d, %Y",     # Dec 22, 2025
    "%B %d, %Y",     # December 22, 2025
    "%b %d %Y",      # Dec 22 2025
    "%B %d %Y",      # December 22 2025
    "%d %b %Y",      # 22 Dec 2025
    "%d %B %Y",      # 22 December 2025
)

_CURRENCY_RE = re.compile(r"₹|rs\.?|inr", re.IGNORECASE)
_LEADING_NUMBER_RE = re.compile(r"^[-+]?(?:\d+(?:\.\d*)?|\.\d+)")
_NUMBER = r"(\d+(?:\.\d+)?)"
_PRICE_RANGE_RE = re.compile(rf"^{_NUMBER}(?:to|-){_NUMBER}$", re.IGNORECASE)
_SAME_MONTH_RE = re.compile(r"^(\d{1,2})\s*-\s*(\d{1,2})\s+([A-Za-z]{3,})\.?$")
_CROSS_MONTH_RE = re.compile(
    r"^(\d{1,2})\s+([A-Za-z]{3,})\.?\s*-\s*(\d{1,2})\s+([A-Za-z]{3,})\.?$"
)
_COMPACT_DAY_MONTH_RE = re.compile(r"^(\d{1,2})-([A-Za-z]{3})$")
_UNIT_SUFFIX_RE = re.compile(r"\b(Cr|Crore|Crores|Lakh|Lakhs|Mn|Bn)\.$", re.IGNORECASE)
_SLUG_RE = re.compile(r"[^a-z0-9]+")


class DateRange(NamedTuple):
    open_date: Optional[date] = None
    close_date: Optional[date] = None


class PriceBand(NamedTuple):
    low: Optional[float] = None
    high: Optional[float] = None


def _normalize_space(raw: Optional[str]) -> str:
    if raw is None:
        return ""
    return " ".join(str(raw).split())


def _is_empty(text: str) -> bool:
    return text.lower() in EMPTY_TOKENS


def _month_index(token: str) -> Optional[int]:
    return MONTHS.get(token[:3].lower())


def _clean_numeric(raw: Optional[str]) -> str:
    """Strip currency symbols, thousands separators, whitespace and percent signs."""
    text = _CURRENCY_RE.sub("", _normalize_space(raw))
    return re.sub(r"[,\s%]", "", text)


def _leading_float(text: str) -> Optional[float]:
    match = _LEADING_NUMBER_RE.match(text)
    if not match:
        return None
    try:
        value = float(match.group(0))
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def slugify(text: str) -> str:
    """'Gaudium IVF & Women Health' -> 'gaudium-ivf-women-health'"""
    return _SLUG_RE.sub("-", (text or "").lower()).strip("-")


def parse_long_date(raw: Optional[str]) -> Optional[date]:
    """Parse 'Dec 22, 2025' (or 'December 22, 2025') to a date."""
    cleaned = _normalize_space(raw)
    if _is_empty(cleaned):
        return None

    # "Sept 3, 2025" and "Dec. 22, 2025" both show up
    cleaned = re.sub(r"^Sept\b", "Sep", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"^([A-Za-z]{3,})\.", r"\1", cleaned)

    for fmt in LONG_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue

    logger.debug(f"Could not parse long date: '{cleaned}'")
    return None


def parse_short_date_range(
    raw: Optional[str],
    now: Optional[datetime] = None,
    rollover_days: int = DEFAULT_ROLLOVER_DAYS,
) -> DateRange:
    """
    Parse a year-less subscription window.

    '25-27 Feb'      -> same month. The year is the current one unless the start
                        date is more than rollover_days in the past, in which
                        case the page is showing next year's issue.
    '28 Feb-03 Mar'  -> cross month. The end date rolls into next year when its
                        month index is lower than the start month (Dec -> Jan).
    """
    cleaned = _normalize_space(raw)
    if _is_empty(cleaned):
        return DateRange()

    today = ensure_utc(now).date()
    base_year = today.year

    same_month = _SAME_MONTH_RE.match(cleaned)
    if same_month:
        start_day, end_day = int(same_month.group(1)), int(same_month.group(2))
        month = _month_index(same_month.group(3))
        if month is None or start_day > end_day:
            return DateRange()
        try:
            year = base_year
            if date(year, month, start_day) < today - timedelta(days=rollover_days):
                year += 1
            return DateRange(date(year, month, start_day), date(year, month, end_day))
        except ValueError:
            return DateRange()

    cross_month = _CROSS_MONTH_RE.match(cleaned)
    if cross_month:
        start_day, end_day = int(cross_month.group(1)), int(cross_month.group(3))
        start_month = _month_index(cross_month.group(2))
        end_month = _month_index(cross_month.group(4))
        if start_month is None or end_month is None:
            return DateRange()
        end_year = base_year + 1 if end_month < start_month else base_year
        try:
            return DateRange(
                date(base_year, start_month, start_day),
                date(end_year, end_month, end_day),
            )
        except ValueError:
            return DateRange()

    logger.debug(f"Could not parse short date range: '{cleaned}'")
    return DateRange()


def parse_compact_day_month(raw: Optional[str], year: int) -> Optional[date]:
    """Parse '24-Feb' (first line of the cell only) against the given year."""
    if not raw:
        return None
    first_line = str(raw).strip().split("\n")[0].strip()
    match = _COMPACT_DAY_MONTH_RE.match(first_line)
    if not match:
        return None
    month = _month_index(match.group(2))
    if month is None:
        return None
    try:
        return date(year, month, int(match.group(1)))
    except ValueError:
        return None


def parse_price_band(raw: Optional[str]) -> PriceBand:
    """'₹216 to ₹227' -> (216, 227); '₹114' -> (114, 114); else empty."""
    cleaned = _clean_numeric(raw)
    if _is_empty(cleaned):
        return PriceBand()

    match = _PRICE_RANGE_RE.match(cleaned)
    if match:
        low, high = float(match.group(1)), float(match.group(2))
        if not (math.isfinite(low) and math.isfinite(high)):
            return PriceBand()
        if low > high:
            low, high = high, low
        return PriceBand(low, high)

    fixed = _leading_float(cleaned)
    if fixed is not None and fixed > 0:
        return PriceBand(fixed, fixed)
    return PriceBand()


def parse_issue_size(raw: Optional[str]) -> Optional[str]:
    """'₹250.80 Cr.' -> '₹250.80 Cr'"""
    cleaned = _normalize_space(raw)
    if _is_empty(cleaned):
        return None
    return _UNIT_SUFFIX_RE.sub(r"\1", cleaned).strip()


def parse_gmp(raw: Optional[str]) -> Optional[float]:
    """
    '₹1.5' / '₹-2' / '8.5 (10.76%)' -> signed amount.

    Zero is returned as None: sources print 0 when nothing is reported.
    """
    cleaned = _clean_numeric(raw)
    if _is_empty(cleaned):
        return None
    value = _leading_float(cleaned)
    if value is None or value == 0:
        return None
    return value


def parse_percent(raw: Optional[str]) -> Optional[float]:
    """'5.26%' / '-3.65%' -> float."""
    cleaned = _clean_numeric(raw)
    if _is_empty(cleaned):
        return None
    return _leading_float(cleaned)


def parse_price(raw: Optional[str]) -> Optional[float]:
    """'₹1,120.50' -> 1120.5; non-positive -> None."""
    cleaned = _clean_numeric(raw)
    if _is_empty(cleaned):
        return None
    value = _leading_float(cleaned)
    if value is None or value <= 0:
        return None
    return value


def parse_lot_size(raw: Optional[str]) -> Optional[int]:
    """'4,000 shares' -> 4000"""
    cleaned = _normalize_space(raw).replace(",", "")
    match = re.search(r"\d+", cleaned)
    if not match:
        return None
    value = int(match.group(0))
    return value if value > 0 else None


def parse_multiplier(raw: Optional[str]) -> Optional[float]:
    """Subscription multiplier ('1.42', '12.3x') -> non-negative float."""
    cleaned = _clean_numeric(raw).rstrip("xX")
    if _is_empty(cleaned):
        return None
    value = _leading_float(cleaned)
    if value is None or value < 0:
        return None
    return value


def html_to_text(html: Optional[str]) -> str:
    """Strip markup to whitespace-collapsed plain text for regex matching."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return " ".join(soup.get_text(" ").split())
