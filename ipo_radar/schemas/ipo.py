"""
IPO Record Schemas

IpoRecord is the canonical entity every source extractor emits and every
enrichment pass mutates. Attributes are snake_case in Python and serialize to
the camelCase wire names consumed by the persistence collaborator.

Internal-only fields (detail_url, source) are excluded from every dump and
cleared by public() before a record leaves the pipeline.
"""
from datetime import date
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class IpoType(str, Enum):
    MAINBOARD = "Mainboard"
    SME = "SME"


class IpoStatus(str, Enum):
    UPCOMING = "Upcoming"
    OPEN = "Open"
    CLOSED = "Closed"
    LISTED = "Listed"


INTERNAL_FIELDS = ("detail_url", "source")

# Fields that identify a record rather than describe it
IDENTITY_FIELDS = ("company_name", "slug")


class IpoRecord(BaseModel):
    """One reconciled IPO."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    company_name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    ipo_type: IpoType = IpoType.MAINBOARD

    price_band_low: Optional[float] = None
    price_band_high: Optional[float] = None
    issue_size: Optional[str] = None
    lot_size: Optional[int] = Field(None, gt=0)

    open_date: Optional[date] = None
    close_date: Optional[date] = None
    listing_date: Optional[date] = None

    gmp: Optional[float] = None
    listing_price: Optional[float] = None
    listing_gain_percent: Optional[float] = None

    subscription_retail: Optional[float] = Field(None, ge=0)
    subscription_nii: Optional[float] = Field(None, ge=0)
    subscription_qib: Optional[float] = Field(None, ge=0)
    subscription_total: Optional[float] = Field(None, ge=0)

    status: IpoStatus = IpoStatus.UPCOMING

    # Internal only
    detail_url: Optional[str] = Field(None, exclude=True)
    source: Optional[str] = Field(None, exclude=True)

    @field_validator("company_name")
    @classmethod
    def strip_company_name(cls, v: str) -> str:
        v = " ".join(v.split())
        if not v:
            raise ValueError("company_name must not be blank")
        return v

    @property
    def gmp_percent(self) -> Optional[float]:
        """GMP as a percentage of the upper price band."""
        if self.gmp is None or not self.price_band_high:
            return None
        return round(self.gmp / self.price_band_high * 100, 1)

    def overlay(self, other: "IpoRecord") -> "IpoRecord":
        """Exact-key merge: every non-absent field of other replaces ours."""
        for name in type(self).model_fields:
            value = getattr(other, name)
            if value is not None:
                setattr(self, name, value)
        return self

    def fill_gaps_from(self, other: "IpoRecord") -> "IpoRecord":
        """Fuzzy merge: copy other's values only into fields we lack."""
        for name in type(self).model_fields:
            if name in IDENTITY_FIELDS:
                continue
            if getattr(self, name) is None:
                value = getattr(other, name)
                if value is not None:
                    setattr(self, name, value)
        return self

    def public(self) -> "IpoRecord":
        """Copy with internal-only fields cleared."""
        return self.model_copy(update={name: None for name in INTERNAL_FIELDS})

    def to_public_dict(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys, internal fields omitted."""
        return self.model_dump(mode="json", by_alias=True)
