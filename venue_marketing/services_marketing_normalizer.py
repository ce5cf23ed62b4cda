"""Convert bookings and Google Ads report rows into canonical MetricRows."""

from __future__ import annotations

import logging
import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models_marketing import (
    AdPerformanceRow,
    BookingRecord,
    DegradedSourceError,
    MarketingSource,
    MetricRow,
)
from .services_marketing_cutover import build_shortfall_rows, is_pre_cutover
from .utils.marketing_config import MarketingSettings
from .utils.money import ZERO, micros_to_money, round_count, round_money

logger = logging.getLogger(__name__)

GRANULARITY_CAMPAIGN = "campaign"
GRANULARITY_AD_GROUP = "ad_group"

_SOURCE_ALIASES = {
    "googleads": MarketingSource.GOOGLE_ADS,
    "metaads": MarketingSource.META_ADS,
}

_CAMPAIGN_PATHS = ("campaign", "campaign_name", "campaign.name")
_MEDIUM_PATHS = ("medium", "ad_group", "ad_group_name", "adGroup.name", "ad_group.name")
_DATE_PATHS = ("date", "segments.date")
_COST_PATHS = ("cost_micros", "metrics.costMicros", "metrics.cost_micros")
_CONVERSIONS_PATHS = ("conversions", "metrics.conversions")
_VALUE_PATHS = (
    "conversions_value_micros",
    "metrics.conversionsValueMicros",
    "metrics.conversions_value_micros",
)


def normalize_text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def resolve_marketing_source(utm_source: Optional[str]) -> Optional[MarketingSource]:
    """Map a UTM source to a marketing source; "Google Ads", "google_ads" and "GoogleAds" all match."""
    text = normalize_text(utm_source)
    if not text:
        return None
    key = "".join(ch for ch in text.casefold() if ch not in " _-")
    return _SOURCE_ALIASES.get(key)


def parse_day(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = normalize_text(str(value))
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------

def _field(raw: Any, name: str, default: Any = None) -> Any:
    if isinstance(raw, Mapping):
        value = raw.get(name, default)
    else:
        value = getattr(raw, name, default)
    return default if value is None else value


def _guest_name(raw: Any) -> str:
    name = normalize_text(_field(raw, "guest_name"))
    if not name:
        parts = [normalize_text(_field(raw, "guest_first_name")), normalize_text(_field(raw, "guest_last_name"))]
        name = " ".join(p for p in parts if p)
    return name or "-"


def _product_name(raw: Any) -> Optional[str]:
    product = _field(raw, "product")
    if product is not None:
        name = normalize_text(_field(product, "name"))
        if name:
            return name
    return normalize_text(_field(raw, "product_name"))


def _start_at(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime) or value is None:
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def booking_from_raw(raw: Any) -> BookingRecord:
    """Build a BookingRecord from a mapping or an ORM-like object."""
    if isinstance(raw, BookingRecord):
        return raw
    utm_source = normalize_text(_field(raw, "utm_source"))
    platform_booking_id = _field(raw, "platform_booking_id")
    return BookingRecord(
        id=_field(raw, "id"),
        platform_booking_id=str(platform_booking_id) if platform_booking_id is not None else None,
        platform=str(_field(raw, "platform", "")),
        product_name=_product_name(raw),
        guest_name=_guest_name(raw),
        experience_date=parse_day(_field(raw, "experience_date")),
        experience_start_at=_start_at(_field(raw, "experience_start_at")),
        base_amount=round_money(_field(raw, "base_amount", 0)),
        currency=normalize_text(_field(raw, "currency")),
        utm_source=utm_source,
        utm_medium=normalize_text(_field(raw, "utm_medium")),
        utm_campaign=normalize_text(_field(raw, "utm_campaign")),
        marketing_source=resolve_marketing_source(utm_source),
    )


def bookings_from_raw(rows: Optional[Iterable[Any]]) -> List[BookingRecord]:
    return [booking_from_raw(row) for row in rows or []]


def booking_metric_rows(records: Iterable[BookingRecord]) -> List[MetricRow]:
    rows: List[MetricRow] = []
    for record in records:
        if record.marketing_source is None or record.experience_date is None:
            continue
        rows.append(
            MetricRow(
                date=record.experience_date,
                marketing_source=record.marketing_source,
                medium=record.utm_medium,
                campaign=record.utm_campaign,
                booking_count=Decimal(1),
                revenue=record.base_amount,
            )
        )
    return rows


# ---------------------------------------------------------------------------
# Google Ads report rows
# ---------------------------------------------------------------------------

def _extract_path(record: Mapping[str, Any], path: str) -> Any:
    if path in record:
        return record[path]
    current: Any = record
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
        if current is None:
            return None
    return current


def _first(record: Mapping[str, Any], paths: Sequence[str]) -> Any:
    # "campaign" may hold a scalar or, in searchStream results, a {"name": ...} object.
    for path in paths:
        value = _extract_path(record, path)
        if value is not None and not isinstance(value, Mapping):
            return value
    return None


def _strict_number(value: Any, field_name: str) -> Decimal:
    if value is None or value == "":
        return ZERO
    if isinstance(value, bool):
        raise DegradedSourceError(f"Malformed Google Ads row: {field_name} is not numeric")
    if isinstance(value, float) and not math.isfinite(value):
        raise DegradedSourceError(f"Malformed Google Ads row: {field_name} is not finite")
    try:
        out = Decimal(str(value).strip())
    except InvalidOperation:
        raise DegradedSourceError(f"Malformed Google Ads row: {field_name}={value!r} is not numeric") from None
    if not out.is_finite():
        raise DegradedSourceError(f"Malformed Google Ads row: {field_name} is not finite")
    return out


def ad_rows_from_raw(
    raw_rows: Any,
    *,
    settings: MarketingSettings,
    granularity: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> List[AdPerformanceRow]:
    """Normalize one Google Ads report into AdPerformanceRows.

    Micro-unit cost and conversion value are summed per (campaign, medium, date)
    before conversion, so duplicated ad group names do not compound rounding.
    Campaigns matching a non-revenue prefix keep their cost and conversions but
    report zero revenue.
    """
    if granularity not in {GRANULARITY_CAMPAIGN, GRANULARITY_AD_GROUP}:
        raise ValueError("granularity must be one of: campaign, ad_group")
    if raw_rows is None:
        return []
    if isinstance(raw_rows, (str, bytes, Mapping)) or not isinstance(raw_rows, Iterable):
        raise DegradedSourceError(f"Malformed Google Ads {granularity} report: expected a list of rows")

    totals: Dict[Tuple[Optional[str], Optional[str], date], List[Decimal]] = {}
    skipped = 0
    for raw in raw_rows:
        if not isinstance(raw, Mapping):
            raise DegradedSourceError(f"Malformed Google Ads {granularity} report: row is not an object")
        day_raw = _first(raw, _DATE_PATHS)
        day = parse_day(day_raw)
        if day is None:
            if day_raw is not None:
                raise DegradedSourceError(f"Malformed Google Ads row: date={day_raw!r}")
            skipped += 1
            continue
        if (date_from and day < date_from) or (date_to and day > date_to):
            skipped += 1
            continue
        cost_micros = _strict_number(_first(raw, _COST_PATHS), "cost_micros")
        if cost_micros < 0:
            raise DegradedSourceError("Malformed Google Ads row: negative cost_micros")
        conversions = _strict_number(_first(raw, _CONVERSIONS_PATHS), "conversions")
        value_micros = _strict_number(_first(raw, _VALUE_PATHS), "conversions_value_micros")

        campaign = normalize_text(_first(raw, _CAMPAIGN_PATHS))
        medium = normalize_text(_first(raw, _MEDIUM_PATHS)) if granularity == GRANULARITY_AD_GROUP else None
        entry = totals.setdefault((campaign, medium, day), [ZERO, ZERO, ZERO])
        entry[0] += cost_micros
        entry[1] += conversions
        entry[2] += value_micros

    if skipped:
        logger.debug("Skipped %s Google Ads %s rows without a usable date in range", skipped, granularity)

    rows: List[AdPerformanceRow] = []
    for (campaign, medium, day), (cost_micros, conversions, value_micros) in sorted(
        totals.items(), key=lambda item: (item[0][2], item[0][0] or "", item[0][1] or "")
    ):
        revenue = ZERO if settings.is_non_revenue_campaign(campaign) else micros_to_money(value_micros)
        rows.append(
            AdPerformanceRow(
                campaign=campaign,
                medium=medium,
                date=day,
                cost=micros_to_money(cost_micros),
                booking_count=round_count(conversions),
                revenue=revenue,
            )
        )
    return rows


def historical_campaign_rows(
    campaign_perf: Iterable[AdPerformanceRow],
    cutover_date: Optional[date],
) -> List[MetricRow]:
    return [
        MetricRow(
            date=row.date,
            marketing_source=MarketingSource.GOOGLE_ADS,
            medium=None,
            campaign=row.campaign,
            booking_count=row.booking_count,
            revenue=row.revenue,
        )
        for row in campaign_perf
        if is_pre_cutover(row.date, cutover_date)
    ]


def historical_medium_rows(
    ad_group_perf: Sequence[AdPerformanceRow],
    campaign_perf: Sequence[AdPerformanceRow],
    cutover_date: Optional[date],
    shortfall_threshold: Decimal,
) -> List[MetricRow]:
    rows = [
        MetricRow(
            date=row.date,
            marketing_source=MarketingSource.GOOGLE_ADS,
            medium=row.medium,
            campaign=row.campaign,
            booking_count=row.booking_count,
            revenue=row.revenue,
        )
        for row in ad_group_perf
        if is_pre_cutover(row.date, cutover_date)
    ]
    rows.extend(
        build_shortfall_rows(
            campaign_perf,
            ad_group_perf,
            cutover_date=cutover_date,
            threshold=shortfall_threshold,
        )
    )
    return rows
