from datetime import date
from decimal import Decimal
from types import SimpleNamespace

import pytest

from venue_marketing.models_marketing import AdPerformanceRow, DegradedSourceError, MarketingSource
from venue_marketing.services_marketing_normalizer import (
    GRANULARITY_AD_GROUP,
    GRANULARITY_CAMPAIGN,
    ad_rows_from_raw,
    booking_from_raw,
    booking_metric_rows,
    bookings_from_raw,
    historical_campaign_rows,
    historical_medium_rows,
    resolve_marketing_source,
)
from venue_marketing.utils.marketing_config import MarketingSettings


CUTOVER = date(2026, 2, 28)
SETTINGS = MarketingSettings(historical_cutover_date=CUTOVER)


def test_resolve_marketing_source_is_case_and_separator_insensitive():
    assert resolve_marketing_source("Google Ads") is MarketingSource.GOOGLE_ADS
    assert resolve_marketing_source("google_ads") is MarketingSource.GOOGLE_ADS
    assert resolve_marketing_source("  GOOGLEADS ") is MarketingSource.GOOGLE_ADS
    assert resolve_marketing_source("meta-ads") is MarketingSource.META_ADS
    assert resolve_marketing_source("facebook") is None
    assert resolve_marketing_source("") is None
    assert resolve_marketing_source(None) is None


def test_booking_from_raw_mapping():
    record = booking_from_raw(
        {
            "id": 7,
            "platform_booking_id": 12345,
            "platform": "ecwid",
            "guest_first_name": " Anna ",
            "guest_last_name": "Nowak",
            "experience_date": "2026-03-02",
            "base_amount": "100.005",
            "currency": "PLN",
            "utm_source": " Google Ads ",
            "utm_medium": "  ",
            "utm_campaign": "Brand",
            "product": {"name": "Pub Crawl"},
        }
    )
    assert record.guest_name == "Anna Nowak"
    assert record.platform_booking_id == "12345"
    assert record.product_name == "Pub Crawl"
    assert record.experience_date == date(2026, 3, 2)
    assert record.base_amount == Decimal("100.01")
    assert record.utm_source == "Google Ads"
    assert record.utm_medium is None
    assert record.marketing_source is MarketingSource.GOOGLE_ADS


def test_booking_from_raw_object_defaults():
    row = SimpleNamespace(
        id=1,
        platform="viator",
        guest_name=None,
        experience_date=date(2026, 3, 5),
        base_amount=None,
        currency=None,
        utm_source="Meta Ads",
        product_name="Bar Crawl",
    )
    record = booking_from_raw(row)
    assert record.guest_name == "-"
    assert record.base_amount == Decimal("0.00")
    assert record.product_name == "Bar Crawl"
    assert record.marketing_source is MarketingSource.META_ADS
    assert bookings_from_raw([record]) == [record]


def test_booking_metric_rows_skip_unattributed_and_undated():
    records = bookings_from_raw(
        [
            {"id": 1, "experience_date": "2026-03-02", "base_amount": 100, "utm_source": "Google Ads", "utm_medium": "search"},
            {"id": 2, "experience_date": "2026-03-02", "base_amount": 50, "utm_source": "newsletter"},
            {"id": 3, "experience_date": None, "base_amount": 70, "utm_source": "Meta Ads"},
        ]
    )
    rows = booking_metric_rows(records)
    assert len(rows) == 1
    assert rows[0].booking_count == Decimal(1)
    assert rows[0].revenue == Decimal("100.00")
    assert rows[0].medium == "search"
    assert rows[0].campaign is None


def test_ad_rows_convert_micros_and_aggregate_duplicate_keys():
    rows = ad_rows_from_raw(
        [
            {"campaign": "Brand", "ad_group": "search", "date": "2026-01-10", "cost_micros": "100000000", "conversions": 1.5, "conversions_value_micros": 90_000_000},
            {"campaign": "Brand", "ad_group": "search", "date": "2026-01-10", "cost_micros": 50_000_000, "conversions": 0.5, "conversions_value_micros": 90_000_000},
            {"campaign": "Brand", "ad_group": "search", "date": "2025-12-31", "cost_micros": 10_000_000},
        ],
        settings=SETTINGS,
        granularity=GRANULARITY_AD_GROUP,
        date_from=date(2026, 1, 1),
        date_to=date(2026, 1, 31),
    )
    assert rows == [
        AdPerformanceRow(
            campaign="Brand",
            medium="search",
            date=date(2026, 1, 10),
            cost=Decimal("150.00"),
            booking_count=Decimal("2.00"),
            revenue=Decimal("180.00"),
        )
    ]


def test_ad_rows_accept_google_stream_shape_and_drop_medium_for_campaign_reports():
    rows = ad_rows_from_raw(
        [
            {
                "campaign": {"name": "Brand"},
                "adGroup": {"name": "ignored"},
                "segments": {"date": "2026-01-10"},
                "metrics": {"costMicros": "200000000", "conversions": 3, "conversionsValueMicros": "300000000"},
            }
        ],
        settings=SETTINGS,
        granularity=GRANULARITY_CAMPAIGN,
    )
    assert len(rows) == 1
    assert rows[0].medium is None
    assert rows[0].campaign == "Brand"
    assert rows[0].cost == Decimal("200.00")
    assert rows[0].booking_count == Decimal("3.00")
    assert rows[0].revenue == Decimal("300.00")


def test_smart_campaign_revenue_is_zeroed_but_conversions_and_cost_kept():
    rows = ad_rows_from_raw(
        [
            {"campaign": "Smart Campaign — Search", "date": "2026-01-12", "cost_micros": 75_500_000, "conversions": 2.5, "conversions_value_micros": 400_000_000},
        ],
        settings=SETTINGS,
        granularity=GRANULARITY_CAMPAIGN,
    )
    assert rows[0].cost == Decimal("75.50")
    assert rows[0].booking_count == Decimal("2.50")
    assert rows[0].revenue == 0


def test_ad_rows_keep_nameless_rows_and_skip_undated():
    rows = ad_rows_from_raw(
        [
            {"campaign": "", "date": "2026-01-10", "cost_micros": 1_000_000},
            {"campaign": "Brand", "cost_micros": 1_000_000},
        ],
        settings=SETTINGS,
        granularity=GRANULARITY_AD_GROUP,
    )
    assert len(rows) == 1
    assert rows[0].campaign is None
    assert rows[0].medium is None


@pytest.mark.parametrize(
    "payload",
    [
        {"results": []},
        "not rows",
        [["Brand", "2026-01-10"]],
        [{"campaign": "Brand", "date": "2026-01-10", "cost_micros": "lots"}],
        [{"campaign": "Brand", "date": "2026-01-10", "cost_micros": -5}],
        [{"campaign": "Brand", "date": "yesterday", "cost_micros": 5}],
    ],
)
def test_malformed_ad_reports_raise_degraded_source_error(payload):
    with pytest.raises(DegradedSourceError):
        ad_rows_from_raw(payload, settings=SETTINGS, granularity=GRANULARITY_CAMPAIGN)


def test_unknown_granularity_rejected():
    with pytest.raises(ValueError):
        ad_rows_from_raw([], settings=SETTINGS, granularity="keyword")


def _campaign_row(day, cost, count, revenue, campaign="Brand"):
    return AdPerformanceRow(campaign=campaign, medium=None, date=day, cost=Decimal(cost), booking_count=Decimal(count), revenue=Decimal(revenue))


def _ad_group_row(day, medium, cost, count, revenue, campaign="Brand"):
    return AdPerformanceRow(campaign=campaign, medium=medium, date=day, cost=Decimal(cost), booking_count=Decimal(count), revenue=Decimal(revenue))


def test_historical_campaign_rows_only_before_cutover():
    rows = historical_campaign_rows(
        [
            _campaign_row(date(2026, 1, 10), "200.00", "3", "300.00"),
            _campaign_row(CUTOVER, "10.00", "1", "20.00"),
        ],
        CUTOVER,
    )
    assert [r.date for r in rows] == [date(2026, 1, 10)]
    assert rows[0].medium is None
    assert rows[0].marketing_source is MarketingSource.GOOGLE_ADS
    assert historical_campaign_rows([_campaign_row(date(2026, 1, 10), "1", "1", "1")], None) == []


def test_historical_medium_rows_recover_shortfall():
    day = date(2026, 1, 10)
    rows = historical_medium_rows(
        [_ad_group_row(day, "search", "150.00", "2", "180.00")],
        [_campaign_row(day, "200.00", "3", "300.00")],
        CUTOVER,
        Decimal("0.005"),
    )
    assert len(rows) == 2
    real, synthetic = rows
    assert real.medium == "search"
    assert real.booking_count == Decimal("2")
    assert synthetic.synthetic is True
    assert synthetic.medium is None
    assert synthetic.campaign == "Brand"
    assert synthetic.booking_count == Decimal("1.00")
    assert synthetic.revenue == Decimal("120.00")
