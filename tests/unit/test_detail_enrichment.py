"""
Tests for detail-page enrichment.
"""
from datetime import date

import pytest

from ipo_radar.core.config import Settings
from ipo_radar.core.diagnostics import Stage
from ipo_radar.schemas.ipo import IpoRecord, IpoStatus
from ipo_radar.services.enrichment.detail_page import (
    enrich_from_detail_pages,
    extract_detail_fields,
    select_detail_candidates,
)

DETAIL_HTML = """
<html><body>
<h1>Gaudium IVF IPO</h1>
<p>Gaudium IVF IPO is a book built issue. The <b>IPO to list</b> on NSE, BSE on March 2, 2026.</p>
<p>The minimum market lot is 4,000 shares with an application amount of ₹3,16,000.</p>
</body></html>
"""


def record(slug: str, url: str = None, **fields) -> IpoRecord:
    return IpoRecord(company_name=slug.replace("-", " ").title(), slug=slug, detail_url=url, **fields)


class TestExtractDetailFields:

    def test_both_phrases(self):
        fields = extract_detail_fields(
            "The IPO to list on NSE, BSE on March 2, 2026. The minimum market lot is 4,000 shares."
        )
        assert fields.listing_date == date(2026, 3, 2)
        assert fields.lot_size == 4000

    def test_short_lot_phrase(self):
        assert extract_detail_fields("Lot size is 2000 shares").lot_size == 2000

    def test_listing_phrase_does_not_cross_sentences(self):
        fields = extract_detail_fields("Shares to list soon. Results on March 2, 2026.")
        assert fields.listing_date is None

    def test_no_match(self):
        fields = extract_detail_fields("Nothing useful here.")
        assert fields.listing_date is None
        assert fields.lot_size is None


class TestSelectDetailCandidates:

    def test_filters(self):
        statuses = ["Open", "Upcoming"]
        eligible = record("a", "https://d.test/a", status=IpoStatus.OPEN)
        no_url = record("b", status=IpoStatus.OPEN)
        complete = record("c", "https://d.test/c", listing_date=date(2026, 3, 2), lot_size=10)
        listed = record("d", "https://d.test/d", status=IpoStatus.LISTED)
        half = record("e", "https://d.test/e", lot_size=10)

        selected = select_detail_candidates([eligible, no_url, complete, listed, half], statuses)

        assert [r.slug for r in selected] == ["a", "e"]


@pytest.mark.asyncio
async def test_fills_only_absent_fields(make_fetcher, test_settings):
    fetcher = make_fetcher({"https://d.test/gaudium": DETAIL_HTML})
    target = record("gaudium-ivf", "https://d.test/gaudium", lot_size=189)

    report = await enrich_from_detail_pages([target], fetcher, test_settings)
    await fetcher.close()

    assert target.listing_date == date(2026, 3, 2)
    assert target.lot_size == 189
    assert report.attempted == 1
    assert report.enriched == 1
    assert report.diagnostics == []


@pytest.mark.asyncio
async def test_one_timeout_does_not_block_others(make_fetcher, test_settings):
    fetcher = make_fetcher({
        "https://d.test/slow": make_fetcher.TIMEOUT,
        "https://d.test/ok-1": DETAIL_HTML,
        "https://d.test/ok-2": DETAIL_HTML,
    })
    slow = record("slow-co", "https://d.test/slow")
    ok_1 = record("ok-one", "https://d.test/ok-1")
    ok_2 = record("ok-two", "https://d.test/ok-2")

    report = await enrich_from_detail_pages([slow, ok_1, ok_2], fetcher, test_settings)
    await fetcher.close()

    assert slow.listing_date is None
    assert slow.lot_size is None
    for done in (ok_1, ok_2):
        assert done.listing_date == date(2026, 3, 2)
        assert done.lot_size == 4000

    assert report.attempted == 3
    assert report.enriched == 2
    assert len(report.diagnostics) == 1
    assert report.diagnostics[0].stage == Stage.DETAIL
    assert report.diagnostics[0].source == "slow-co"


@pytest.mark.asyncio
async def test_statuses_setting_limits_candidates(make_fetcher):
    settings = Settings(DETAIL_ENRICH_STATUSES="open")
    fetcher = make_fetcher({"https://d.test/a": DETAIL_HTML, "https://d.test/b": DETAIL_HTML})
    open_record = record("a", "https://d.test/a", status=IpoStatus.OPEN)
    closed_record = record("b", "https://d.test/b", status=IpoStatus.CLOSED)

    report = await enrich_from_detail_pages([open_record, closed_record], fetcher, settings)
    await fetcher.close()

    assert report.attempted == 1
    assert fetcher.requested == ["https://d.test/a"]
    assert closed_record.lot_size is None


@pytest.mark.asyncio
async def test_no_candidates_makes_no_requests(make_fetcher, test_settings):
    fetcher = make_fetcher({})
    report = await enrich_from_detail_pages([record("x")], fetcher, test_settings)
    await fetcher.close()

    assert report.attempted == 0
    assert fetcher.requested == []
