"""Pydantic models shared across the pipeline."""
from ipo_radar.schemas.ipo import INTERNAL_FIELDS, IpoRecord, IpoStatus, IpoType
from ipo_radar.schemas.subscription_lookup import SubscriptionLookupEntry

__all__ = [
    "INTERNAL_FIELDS",
    "IpoRecord",
    "IpoStatus",
    "IpoType",
    "SubscriptionLookupEntry",
]
