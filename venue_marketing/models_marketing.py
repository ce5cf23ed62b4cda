"""
Domain types for the marketing attribution report.

- Bookings and ad platform rows are the two inputs; both become MetricRow before aggregation.
- Money and counts are two-decimal Decimals; floats only appear in to_dict() output.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .utils.money import ZERO, money_to_float


MISSING_LABEL = "(missing)"


class MarketingSource(str, enum.Enum):
    GOOGLE_ADS = "Google Ads"
    META_ADS = "Meta Ads"

    @property
    def label(self) -> str:
        return self.value


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class MarketingReportError(Exception):
    """Base class for marketing report failures."""


class FatalInputError(MarketingReportError):
    """The report cannot be built at all; nothing partial is returned."""


class InvalidDateRangeError(FatalInputError):
    pass


class BookingStoreUnavailableError(FatalInputError):
    pass


class DegradedSourceError(MarketingReportError):
    """Ad platform data is unavailable or malformed; the report renders from bookings alone."""


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BookingRecord:
    id: Any
    platform: str
    guest_name: str
    experience_date: Optional[date]
    base_amount: Decimal
    currency: Optional[str] = None
    platform_booking_id: Optional[str] = None
    product_name: Optional[str] = None
    experience_start_at: Optional[datetime] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    marketing_source: Optional[MarketingSource] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "platform_booking_id": self.platform_booking_id,
            "platform": self.platform,
            "product_name": self.product_name,
            "guest_name": self.guest_name,
            "experience_date": self.experience_date.isoformat() if self.experience_date else None,
            "experience_start_at": self.experience_start_at.isoformat() if self.experience_start_at else None,
            "base_amount": money_to_float(self.base_amount),
            "currency": self.currency,
            "utm_source": self.utm_source,
            "utm_medium": self.utm_medium,
            "utm_campaign": self.utm_campaign,
            "marketing_source": self.marketing_source.label if self.marketing_source else None,
        }


@dataclass(frozen=True)
class AdPerformanceRow:
    campaign: Optional[str]
    medium: Optional[str]  # ad group name; None on campaign-granularity rows
    date: date
    cost: Decimal = ZERO
    booking_count: Decimal = ZERO
    revenue: Decimal = ZERO


@dataclass
class AdPerformanceResult:
    currency: Optional[str] = None
    campaign_rows: List[AdPerformanceRow] = field(default_factory=list)
    ad_group_rows: List[AdPerformanceRow] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Canonical rows
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MetricRow:
    date: date
    marketing_source: MarketingSource
    medium: Optional[str]
    campaign: Optional[str]
    booking_count: Decimal
    revenue: Decimal
    synthetic: bool = False


@dataclass(frozen=True)
class MergedMetricRows:
    """A tab's metric rows after the cutover merge.

    ``rows`` (bookings + campaign-level history) drives totals, the source and
    campaign breakdowns and the daily series. ``medium_rows`` (bookings +
    ad-group history + shortfall rows) drives the medium breakdown.
    """

    rows: List[MetricRow]
    medium_rows: List[MetricRow]


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BreakdownRow:
    label: str
    booking_count: Decimal
    revenue: Decimal
    cost: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "booking_count": money_to_float(self.booking_count),
            "revenue": money_to_float(self.revenue),
            "cost": money_to_float(self.cost),
        }


@dataclass(frozen=True)
class DailySeriesPoint:
    date: date
    booking_count: Decimal
    revenue: Decimal
    cost: Optional[Decimal] = None
    roas: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "booking_count": money_to_float(self.booking_count),
            "revenue": money_to_float(self.revenue),
            "cost": money_to_float(self.cost),
            "roas": money_to_float(self.roas),
        }


@dataclass(frozen=True)
class CostRow:
    campaign: str
    medium: str
    cost: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {"campaign": self.campaign, "medium": self.medium, "cost": money_to_float(self.cost)}


@dataclass
class TabReport:
    booking_count: Decimal
    revenue_total: Decimal
    revenue_currency: Optional[str]
    source_breakdown: List[BreakdownRow]
    medium_breakdown: List[BreakdownRow]
    campaign_breakdown: List[BreakdownRow]
    daily_series: List[DailySeriesPoint]
    bookings: List[BookingRecord]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "booking_count": money_to_float(self.booking_count),
            "revenue_total": money_to_float(self.revenue_total),
            "revenue_currency": self.revenue_currency,
            "source_breakdown": [row.to_dict() for row in self.source_breakdown],
            "medium_breakdown": [row.to_dict() for row in self.medium_breakdown],
            "campaign_breakdown": [row.to_dict() for row in self.campaign_breakdown],
            "daily_series": [point.to_dict() for point in self.daily_series],
            "bookings": [booking.to_dict() for booking in self.bookings],
        }


@dataclass
class MarketingOverview:
    start_date: date
    end_date: date
    overall: TabReport
    google_ads: TabReport
    meta_ads: TabReport
    spend: Optional[Decimal] = None
    spend_currency: Optional[str] = None
    spend_error: Optional[str] = None
    cost_rows: List[CostRow] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        spend = money_to_float(self.spend)
        overall = self.overall.to_dict()
        overall.update({"spend": spend, "spend_currency": self.spend_currency})
        google_ads = self.google_ads.to_dict()
        google_ads.update(
            {
                "spend": spend,
                "spend_currency": self.spend_currency,
                "spend_error": self.spend_error,
                "cost_rows": [row.to_dict() for row in self.cost_rows],
            }
        )
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "overall": overall,
            "google_ads": google_ads,
            "meta_ads": self.meta_ads.to_dict(),
        }
