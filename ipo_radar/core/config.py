"""
Application configuration

All settings have safe defaults so a scheduled run can start with an empty
environment. Override any of them via environment variables or a .env file.

- Timeouts are per request; one slow source cannot stall the batch
- List settings accept a JSON array or a comma-separated string
- The subscription lookup table is external data, pointed to by path
"""
import json
import logging
from typing import List, Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ipo_radar.schemas.ipo import IpoStatus

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)

DEFAULT_GMP_SOURCE_URLS = [
    "https://www.investorgain.com/report/live-ipo-gmp/331/ipo/",
    "https://www.investorgain.com/report/live-ipo-gmp/331/sme/",
]

DEFAULT_DETAIL_ENRICH_STATUSES = [status.value for status in IpoStatus]


def _split_list(v) -> List[str]:
    """Accept a JSON array or a comma-separated string."""
    if isinstance(v, list):
        return [str(item).strip() for item in v if str(item).strip()]
    if isinstance(v, str):
        v = v.strip()
        if v.startswith("["):
            try:
                return [str(item).strip() for item in json.loads(v) if str(item).strip()]
            except json.JSONDecodeError:
                pass
        return [item.strip() for item in v.split(",") if item.strip()]
    return v


class Settings(BaseSettings):
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"

    # Outbound HTTP
    HTTP_USER_AGENT: str = DEFAULT_USER_AGENT
    PRIMARY_FETCH_TIMEOUT: float = 15.0
    DETAIL_FETCH_TIMEOUT: float = 7.0  # Shorter: a single detail page must not dominate the run
    SUBSCRIPTION_FETCH_TIMEOUT: float = 15.0
    GMP_FETCH_TIMEOUT: float = 10.0

    # Detail-page enrichment
    DETAIL_ENRICH_CONCURRENCY: int = 8
    DETAIL_ENRICH_STATUSES: Union[str, List[str]] = DEFAULT_DETAIL_ENRICH_STATUSES

    # Short "DD-DD Mon" ranges older than this roll to next year
    SHORT_RANGE_ROLLOVER_DAYS: int = 60

    # Subscription enrichment
    SUBSCRIPTION_LOOKUP_PATH: str = ""  # Empty = packaged ipo_radar/data/subscription_lookup.json
    SUBSCRIPTION_URL_TEMPLATE: str = "https://www.chittorgarh.com/ipo_subscription/{slug}/{id}/"

    # GMP backfill, in priority order (first writer wins)
    GMP_SOURCE_URLS: Union[str, List[str]] = DEFAULT_GMP_SOURCE_URLS

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator(
        "PRIMARY_FETCH_TIMEOUT",
        "DETAIL_FETCH_TIMEOUT",
        "SUBSCRIPTION_FETCH_TIMEOUT",
        "GMP_FETCH_TIMEOUT",
    )
    @classmethod
    def timeout_must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeouts must be greater than zero")
        return v

    @field_validator("DETAIL_ENRICH_CONCURRENCY")
    @classmethod
    def concurrency_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("DETAIL_ENRICH_CONCURRENCY must be at least 1")
        return v

    @field_validator("GMP_SOURCE_URLS", mode="before")
    @classmethod
    def parse_gmp_source_urls(cls, v):
        return _split_list(v)

    @field_validator("DETAIL_ENRICH_STATUSES", mode="before")
    @classmethod
    def parse_detail_statuses(cls, v):
        statuses = _split_list(v)
        if isinstance(statuses, list):
            valid = {status.value.lower(): status.value for status in IpoStatus}
            unknown = [s for s in statuses if s.lower() not in valid]
            if unknown:
                raise ValueError(f"Unknown IPO status in DETAIL_ENRICH_STATUSES: {unknown}")
            return [valid[s.lower()] for s in statuses]
        return statuses

    @field_validator("SUBSCRIPTION_URL_TEMPLATE")
    @classmethod
    def template_has_placeholders(cls, v: str) -> str:
        if "{slug}" not in v or "{id}" not in v:
            raise ValueError("SUBSCRIPTION_URL_TEMPLATE must contain {slug} and {id}")
        return v


settings = Settings()


def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return settings
