"""
Pytest configuration and fixtures for IPO Radar tests.

All network access goes through PageFetcher with an httpx.MockTransport
injected into its _client; no test touches a real site.
"""
import os
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Callable, Dict, List, Optional, Sequence, Union

import httpx
import pytest

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "DEBUG"

from ipo_radar.core.config import Settings
from ipo_radar.core.http_client import PageFetcher

# Friday 2026-02-20, 11:30 IST
FIXED_NOW = datetime(2026, 2, 20, 6, 0, tzinfo=timezone.utc)

TIMEOUT = "__timeout__"
CONNECT_ERROR = "__connect_error__"

GMP_MAINBOARD_URL = "https://gmp.test/live-ipo-gmp/ipo/"
GMP_SME_URL = "https://gmp.test/live-ipo-gmp/sme/"

Route = Union[str, int, tuple, Callable[[httpx.Request], httpx.Response]]


def _table(table_id: Optional[str], rows: Sequence[Sequence[str]], header: Sequence[str] = ()) -> str:
    id_attr = f' id="{table_id}"' if table_id else ""
    head = ""
    if header:
        head = "<thead><tr>" + "".join(f"<th>{h}</th>" for h in header) + "</tr></thead>"
    body = "".join("<tr>" + "".join(f"<td>{cell}</td>" for cell in row) + "</tr>" for row in rows)
    return f"<table{id_attr}>{head}<tbody>{body}</tbody></table>"


def _page(*tables: str) -> str:
    return "<html><head><title>IPO</title></head><body>" + "".join(tables) + "</body></html>"


def _link(name: str, href: str) -> str:
    return f'<a href="{href}">{name}</a>'


def _listed_row(
    name: str,
    open_date: str = "-",
    close_date: str = "-",
    issue_size: str = "-",
    price_band: str = "-",
    gmp: str = "-",
    listing_price: str = "-",
    listing_gain: str = "-",
) -> List[str]:
    return [name, open_date, close_date, issue_size, price_band, gmp, listing_price, listing_gain]


def _upcoming_row(
    name: str,
    window: str = "-",
    issue_size: str = "-",
    price_band: str = "-",
) -> List[str]:
    return [name, window, issue_size, price_band]


def _gmp_row(name: str, gmp: str, close: str) -> List[str]:
    # Name | GMP | Rating | Sub | Price | IssueSize | Lot | Open | Close | BoA | Listing
    return [name, gmp, "3/5", "1.2x", "100", "50 Cr", "150", "20-Feb", close, "25-Feb", "27-Feb"]


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def html() -> SimpleNamespace:
    """HTML builders for source tables and pages."""
    return SimpleNamespace(
        table=_table,
        page=_page,
        link=_link,
        listed_row=_listed_row,
        upcoming_row=_upcoming_row,
        gmp_row=_gmp_row,
    )


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        PRIMARY_FETCH_TIMEOUT=1.0,
        DETAIL_FETCH_TIMEOUT=0.5,
        SUBSCRIPTION_FETCH_TIMEOUT=1.0,
        GMP_FETCH_TIMEOUT=1.0,
        DETAIL_ENRICH_CONCURRENCY=4,
        GMP_SOURCE_URLS=[GMP_MAINBOARD_URL, GMP_SME_URL],
        SUBSCRIPTION_URL_TEMPLATE="https://subs.test/ipo_subscription/{slug}/{id}/",
    )


@pytest.fixture
def make_fetcher():
    """
    Factory for a PageFetcher backed by httpx.MockTransport.

    Routes map URL -> HTML body, HTTP status code, (status, body) tuple,
    TIMEOUT, CONNECT_ERROR, or a handler callable. Unrouted URLs return 404.
    Requested URLs are recorded on fetcher.requested.
    """

    def factory(routes: Dict[str, Route], timeout: float = 1.0) -> PageFetcher:
        requested: List[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            requested.append(url)
            route = routes.get(url)
            if route is None:
                return httpx.Response(404, text="not found")
            if route == TIMEOUT:
                raise httpx.ReadTimeout("timed out", request=request)
            if route == CONNECT_ERROR:
                raise httpx.ConnectError("connection refused", request=request)
            if callable(route):
                return route(request)
            if isinstance(route, int):
                return httpx.Response(route, text="")
            if isinstance(route, tuple):
                status, body = route
                return httpx.Response(status, text=body)
            return httpx.Response(200, text=route)

        fetcher = PageFetcher(timeout=timeout)
        fetcher._client = httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            timeout=fetcher.timeout,
            headers=fetcher.default_headers,
        )
        fetcher.requested = requested
        return fetcher

    factory.TIMEOUT = TIMEOUT
    factory.CONNECT_ERROR = CONNECT_ERROR
    return factory
