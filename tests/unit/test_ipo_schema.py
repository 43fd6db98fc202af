"""
Tests for IpoRecord and SubscriptionLookupEntry.
"""
from datetime import date

import pytest
from pydantic import ValidationError

from ipo_radar.schemas.ipo import IpoRecord, IpoStatus
from ipo_radar.schemas.subscription_lookup import SubscriptionLookupEntry


def make_record(**overrides) -> IpoRecord:
    values = {"company_name": "Acme Ltd", "slug": "acme-ltd"}
    values.update(overrides)
    return IpoRecord(**values)


class TestIpoRecord:

    def test_company_name_whitespace_collapsed(self):
        assert make_record(company_name="  Acme \n Ltd ").company_name == "Acme Ltd"

    def test_blank_company_name_rejected(self):
        with pytest.raises(ValidationError):
            make_record(company_name="   ")

    def test_empty_slug_rejected(self):
        with pytest.raises(ValidationError):
            make_record(slug="")

    def test_negative_subscription_rejected(self):
        with pytest.raises(ValidationError):
            make_record(subscription_total=-1)

    def test_default_status(self):
        assert make_record().status == IpoStatus.UPCOMING

    def test_camel_case_aliases(self):
        record = IpoRecord.model_validate({
            "companyName": "Acme Ltd",
            "slug": "acme-ltd",
            "priceBandHigh": 227,
            "closeDate": "2026-02-24",
        })
        assert record.price_band_high == 227.0
        assert record.close_date == date(2026, 2, 24)

    def test_public_dict_uses_wire_names_and_hides_internal_fields(self):
        record = make_record(
            close_date=date(2026, 2, 24),
            detail_url="https://www.ipowatch.in/acme-ipo/",
            source="ipowatch_mainboard_upcoming",
        )
        payload = record.to_public_dict()
        assert payload["companyName"] == "Acme Ltd"
        assert payload["closeDate"] == "2026-02-24"
        assert payload["ipoType"] == "Mainboard"
        assert "detailUrl" not in payload
        assert "detail_url" not in payload
        assert "source" not in payload

    def test_public_clears_internal_fields(self):
        record = make_record(detail_url="https://x.test/a", source="s")
        cleaned = record.public()
        assert cleaned.detail_url is None
        assert cleaned.source is None
        assert record.detail_url == "https://x.test/a"

    def test_gmp_percent(self):
        assert make_record(gmp=8.5, price_band_high=79).gmp_percent == 10.8
        assert make_record(gmp=8.5).gmp_percent is None
        assert make_record(price_band_high=79).gmp_percent is None

    def test_overlay_takes_every_present_value(self):
        base = make_record(gmp=10, lot_size=50, issue_size="₹100 Cr")
        other = make_record(gmp=12, issue_size=None, listing_price=140)
        base.overlay(other)
        assert base.gmp == 12
        assert base.lot_size == 50
        assert base.issue_size == "₹100 Cr"
        assert base.listing_price == 140

    def test_fill_gaps_never_overwrites(self):
        kept = make_record(company_name="Acme Ltd Long", slug="acme-ltd-long", gmp=10)
        shorter = make_record(gmp=99, lot_size=50)
        kept.fill_gaps_from(shorter)
        assert kept.gmp == 10
        assert kept.lot_size == 50
        assert kept.slug == "acme-ltd-long"
        assert kept.company_name == "Acme Ltd Long"


class TestSubscriptionLookupEntry:

    def test_loads_wire_format(self):
        entry = SubscriptionLookupEntry.model_validate({
            "slug": "gaudium-ivf-ipo",
            "id": 2019,
            "closeDate": "2026-02-24",
            "nameHint": " Gaudium ",
        })
        assert entry.external_id == 2019
        assert entry.close_date == date(2026, 2, 24)
        assert entry.name_hint == "gaudium"

    def test_rejects_non_positive_id(self):
        with pytest.raises(ValidationError):
            SubscriptionLookupEntry.model_validate({
                "slug": "x", "id": 0, "closeDate": "2026-02-24", "nameHint": "x",
            })

    def test_frozen(self):
        entry = SubscriptionLookupEntry(slug="x", id=1, close_date=date(2026, 1, 1), name_hint="x")
        with pytest.raises(ValidationError):
            entry.slug = "y"
