from datetime import date
from decimal import Decimal

from venue_marketing.utils.marketing_config import (
    MarketingSettings,
    default_marketing_settings,
    load_marketing_settings,
    marketing_settings_from_env,
    validate_marketing_settings,
)


def test_defaults():
    settings = MarketingSettings()
    assert settings.historical_cutover_date is None
    assert settings.non_revenue_campaign_prefixes == ["Smart Campaign"]
    assert settings.cost_leftover_threshold == Decimal("0.01")
    assert settings.shortfall_discard_threshold == Decimal("0.005")
    assert default_marketing_settings()["historical_cutover_date"] is None


def test_non_revenue_prefix_match_is_case_insensitive():
    settings = MarketingSettings()
    assert settings.is_non_revenue_campaign("Smart Campaign — Search") is True
    assert settings.is_non_revenue_campaign("  smart campaign display") is True
    assert settings.is_non_revenue_campaign("Smartphone Promo") is False
    assert settings.is_non_revenue_campaign(None) is False


def test_prefixes_accept_csv_and_are_deduplicated():
    settings = MarketingSettings(non_revenue_campaign_prefixes=" Smart , PMax,smart,, ")
    assert settings.non_revenue_campaign_prefixes == ["Smart", "PMax"]


def test_validate_marketing_settings_reports_errors():
    out = validate_marketing_settings({"cost_leftover_threshold": -1})
    assert out["valid"] is False
    assert out["normalized"] is None
    assert any("cost_leftover_threshold" in err["path"] for err in out["errors"])

    ok = validate_marketing_settings({"historical_cutover_date": "2026-02-28"})
    assert ok["valid"] is True
    assert ok["normalized"]["historical_cutover_date"] == "2026-02-28"


def test_load_marketing_settings_falls_back_to_defaults():
    settings = load_marketing_settings({"historical_cutover_date": "not-a-date"})
    assert settings == MarketingSettings()


def test_marketing_settings_from_env():
    settings = marketing_settings_from_env(
        {
            "MARKETING_HISTORICAL_CUTOVER_DATE": "2026-02-28",
            "MARKETING_NON_REVENUE_CAMPAIGN_PREFIXES": "Smart Campaign,Local",
            "MARKETING_COST_LEFTOVER_THRESHOLD": "0.05",
        }
    )
    assert settings.historical_cutover_date == date(2026, 2, 28)
    assert settings.non_revenue_campaign_prefixes == ["Smart Campaign", "Local"]
    assert settings.cost_leftover_threshold == Decimal("0.05")
    assert settings.shortfall_discard_threshold == Decimal("0.005")
