"""
End-to-end refresh runs against mocked source pages.

Every page the pipeline touches is served by httpx.MockTransport: the three
IPOWatch listing pages, the subscription page and both GMP pages.
"""
from datetime import date

import pytest

from ipo_radar.adapters.base import SourceRegistry
from ipo_radar.adapters.ipowatch import (
    MAINBOARD_LISTED_URL,
    SME_LISTED_URL,
    UPCOMING_URL,
    default_sources,
)
from ipo_radar.core.diagnostics import Severity, Stage
from ipo_radar.jobs.ipo_refresh import fetch_all_ipos, run_ipo_refresh
from ipo_radar.schemas.ipo import IpoStatus, IpoType
from ipo_radar.schemas.subscription_lookup import SubscriptionLookupEntry
from ipo_radar.services.enrichment.subscription import SubscriptionLookupTable

SUBSCRIPTION_URL = "https://subs.test/ipo_subscription/gaudium-ivf-ipo/2019/"

SUBSCRIPTION_HTML = """
<html><body><p>
Gaudium IVF IPO subscribed 0.90 times. The public issue subscribed 1.42 times in the
retail category, 0.00 times in QIB (Ex Anchor), and 0.91 times in the NII category.
</p></body></html>
"""


@pytest.fixture
def lookup() -> SubscriptionLookupTable:
    return SubscriptionLookupTable([
        SubscriptionLookupEntry(
            slug="gaudium-ivf-ipo", id=2019, close_date=date(2026, 2, 24), name_hint="gaudium"
        ),
    ])


@pytest.fixture
def routes(html, test_settings):
    gmp_mainboard, gmp_sme = test_settings.GMP_SOURCE_URLS
    mainboard_listed = html.page(html.table("tablepress-17", [
        html.listed_row(
            "Acme Ltd", "Feb 2, 2026", "Feb 4, 2026", "₹250.80 Cr.", "₹216 to ₹227",
            "₹12", "₹250", "10.13%",
        ),
        html.listed_row(
            "Gaudium IVF", "Feb 20, 2026", "Feb 24, 2026", "₹165 Cr", "₹75 to ₹79",
        ),
    ]))
    upcoming = html.page(
        html.table("tablepress-22", [
            html.upcoming_row("Gaudium IVF Women Health", "20-24 Feb", "₹165 Cr", "₹75 to ₹79"),
            html.upcoming_row("Clean Max Enviro", "26-27 Feb", "₹5,200 Cr", "₹1,000 to ₹1,053"),
        ]),
        html.table("tablepress-23", [
            html.upcoming_row("Aye Finance", "25-27 Feb", "₹50 Cr", "₹95"),
        ]),
    )
    return {
        MAINBOARD_LISTED_URL: mainboard_listed,
        SME_LISTED_URL: html.page(html.table("tablepress-18", [])),
        UPCOMING_URL: upcoming,
        SUBSCRIPTION_URL: SUBSCRIPTION_HTML,
        gmp_mainboard: html.page(html.table(None, [
            html.gmp_row("Gaudium IVF IPO", "₹8.5 (10.76%)", "24-Feb"),
            html.gmp_row("Aye Finance SME", "₹6", "27-Feb"),
        ])),
        gmp_sme: html.page(html.table(None, [])),
    }


@pytest.mark.asyncio
async def test_one_source_times_out(make_fetcher, routes, test_settings, lookup, now):
    routes[SME_LISTED_URL] = make_fetcher.TIMEOUT
    fetcher = make_fetcher(routes)

    result = await run_ipo_refresh(
        settings=test_settings,
        registry=default_sources(),
        fetcher=fetcher,
        lookup=lookup,
        now=now,
    )
    await fetcher.close()

    assert result.success is True
    assert result.finished_at is not None

    by_slug = {record.slug: record for record in result.records}
    assert set(by_slug) == {"acme-ltd", "gaudium-ivf-women-health", "clean-max-enviro", "aye-finance"}

    fetch_diagnostics = result.diagnostics_for(Stage.FETCH)
    assert len(fetch_diagnostics) == 1
    assert fetch_diagnostics[0].source == SME_LISTED_URL
    assert result.source_counts == {
        "ipowatch_mainboard_listed": 2,
        "ipowatch_sme_listed": 0,
        "ipowatch_mainboard_upcoming": 2,
        "ipowatch_sme_upcoming": 1,
    }
    assert result.fuzzy_merges == 1

    # Status recomputed against the run's reference time
    assert by_slug["acme-ltd"].status == IpoStatus.LISTED
    assert by_slug["gaudium-ivf-women-health"].status == IpoStatus.OPEN
    assert by_slug["clean-max-enviro"].status == IpoStatus.UPCOMING
    assert by_slug["aye-finance"].ipo_type == IpoType.SME

    # Internal fields never leave the pipeline
    for record in result.records:
        assert record.detail_url is None
        assert record.source is None


@pytest.mark.asyncio
async def test_enrichment_lands_on_the_right_records(make_fetcher, routes, test_settings, lookup, now):
    fetcher = make_fetcher(routes)

    result = await run_ipo_refresh(
        settings=test_settings,
        registry=default_sources(),
        fetcher=fetcher,
        lookup=lookup,
        now=now,
    )
    await fetcher.close()

    by_slug = {record.slug: record for record in result.records}
    gaudium = by_slug["gaudium-ivf-women-health"]

    # "24-Feb" / "₹8.5 (10.76%)" only matches the record closing 2026-02-24
    assert gaudium.gmp == 8.5
    assert by_slug["acme-ltd"].gmp == 12.0
    assert by_slug["aye-finance"].gmp == 6.0
    assert by_slug["clean-max-enviro"].gmp is None

    assert gaudium.subscription_total == 0.9
    assert gaudium.subscription_retail == 1.42
    assert gaudium.price_band_low == 75.0
    assert gaudium.price_band_high == 79.0

    assert result.enrichment["gmp"]["enriched"] == 2
    assert result.enrichment["subscription"]["enriched"] == 1
    assert result.diagnostics_for(Stage.FETCH) == []

    payload = result.to_dict()
    assert payload["record_count"] == 4
    assert all("detailUrl" not in item for item in payload["records"])


@pytest.mark.asyncio
async def test_all_pages_down_yields_no_records(make_fetcher, test_settings, lookup, now):
    fetcher = make_fetcher({
        MAINBOARD_LISTED_URL: 503,
        SME_LISTED_URL: make_fetcher.CONNECT_ERROR,
        UPCOMING_URL: make_fetcher.TIMEOUT,
    })

    records = await fetch_all_ipos(
        settings=test_settings,
        fetcher=fetcher,
        lookup=lookup,
        now=now,
    )
    await fetcher.close()

    assert records == []


@pytest.mark.asyncio
async def test_empty_registry_fails_the_run(make_fetcher, test_settings, lookup, now):
    fetcher = make_fetcher({})

    result = await run_ipo_refresh(
        settings=test_settings,
        registry=SourceRegistry(),
        fetcher=fetcher,
        lookup=lookup,
        now=now,
    )
    await fetcher.close()

    assert result.success is False
    assert result.records == []
    assert len(result.diagnostics_for(Stage.PIPELINE)) == 1
    assert fetcher.requested == []


class ExplodingRegistry(SourceRegistry):

    def pages(self):
        raise RuntimeError("registry exploded")


@pytest.mark.asyncio
async def test_unexpected_error_degrades_to_empty_result(make_fetcher, test_settings, lookup, now):
    fetcher = make_fetcher({})

    result = await run_ipo_refresh(
        settings=test_settings,
        registry=ExplodingRegistry(),
        fetcher=fetcher,
        lookup=lookup,
        now=now,
    )
    await fetcher.close()

    assert result.success is False
    assert result.records == []
    diagnostic = result.diagnostics_for(Stage.PIPELINE)[0]
    assert diagnostic.severity == Severity.ERROR
    assert diagnostic.details["error_type"] == "RuntimeError"
    assert "registry exploded" in diagnostic.message
