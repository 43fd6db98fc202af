from ipo_radar.services.enrichment.base import EnrichmentReport
from ipo_radar.services.enrichment.detail_page import enrich_from_detail_pages
from ipo_radar.services.enrichment.gmp import GmpTableLayout, enrich_gmp
from ipo_radar.services.enrichment.subscription import (
    SubscriptionLookupTable,
    enrich_subscriptions,
)

__all__ = [
    "EnrichmentReport",
    "GmpTableLayout",
    "SubscriptionLookupTable",
    "enrich_from_detail_pages",
    "enrich_gmp",
    "enrich_subscriptions",
]
