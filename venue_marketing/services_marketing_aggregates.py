from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models_marketing import (
    MISSING_LABEL,
    BookingRecord,
    BreakdownRow,
    DailySeriesPoint,
    MergedMetricRows,
    MetricRow,
    TabReport,
)
from .services_marketing_costs import CostMaps
from .utils.money import ZERO, round_count, round_money, safe_ratio


def date_range(start: date, end: date) -> List[date]:
    days: List[date] = []
    cursor = start
    while cursor <= end:
        days.append(cursor)
        cursor += timedelta(days=1)
    return days


def _totals(rows: Iterable[MetricRow], key: Callable[[MetricRow], object]) -> Dict[object, Tuple[Decimal, Decimal]]:
    out: Dict[object, Tuple[Decimal, Decimal]] = {}
    for row in rows:
        k = key(row)
        count, revenue = out.get(k, (ZERO, ZERO))
        out[k] = (count + row.booking_count, revenue + row.revenue)
    return out


def build_daily_series(
    rows: Iterable[MetricRow],
    start: date,
    end: date,
    cost_by_date: Optional[Mapping[date, Decimal]] = None,
) -> List[DailySeriesPoint]:
    """One point per calendar day in [start, end], zero-filled where no rows fall."""
    by_day = _totals(rows, lambda r: r.date)
    series: List[DailySeriesPoint] = []
    for day in date_range(start, end):
        count, revenue = by_day.get(day, (ZERO, ZERO))
        raw_cost = (cost_by_date or {}).get(day)
        cost = round_money(raw_cost) if raw_cost is not None else None
        revenue = round_money(revenue)
        series.append(
            DailySeriesPoint(
                date=day,
                booking_count=round_count(count),
                revenue=revenue,
                cost=cost,
                roas=safe_ratio(revenue, cost),
            )
        )
    return series


def _breakdown_sort_key(row: BreakdownRow):
    primary = row.cost if row.cost is not None else row.revenue
    return (-primary, -row.revenue, row.label.casefold(), row.label)


def build_breakdown(
    rows: Iterable[MetricRow],
    selector: Callable[[MetricRow], Optional[str]],
    cost_by_label: Optional[Mapping[str, Decimal]] = None,
) -> List[BreakdownRow]:
    """Group rows by ``selector`` and attach cost where the label has any.

    A label that only appears in ``cost_by_label`` still gets a row (spend with no
    bookings). A label missing from ``cost_by_label`` keeps ``cost=None``: unknown
    spend, as opposed to a confirmed zero.
    """
    grouped = _totals(rows, lambda r: selector(r) or MISSING_LABEL)
    costs = dict(cost_by_label or {})
    out: List[BreakdownRow] = []
    for label in set(grouped) | set(costs):
        count, revenue = grouped.get(label, (ZERO, ZERO))
        cost = costs.get(label)
        out.append(
            BreakdownRow(
                label=str(label),
                booking_count=round_count(count),
                revenue=round_money(revenue),
                cost=round_money(cost) if cost is not None else None,
            )
        )
    out.sort(key=_breakdown_sort_key)
    return out


def detect_revenue_currency(bookings: Iterable[BookingRecord]) -> Optional[str]:
    currencies = {b.currency for b in bookings if b.currency}
    return currencies.pop() if len(currencies) == 1 else None


def build_tab_report(
    merged: MergedMetricRows,
    bookings: Sequence[BookingRecord],
    start: date,
    end: date,
    *,
    cost_maps: Optional[CostMaps] = None,
    fallback_currency: Optional[str] = None,
) -> TabReport:
    rows = merged.rows
    return TabReport(
        booking_count=round_count(sum((r.booking_count for r in rows), ZERO)),
        revenue_total=round_money(sum((r.revenue for r in rows), ZERO)),
        revenue_currency=detect_revenue_currency(bookings) or fallback_currency,
        source_breakdown=build_breakdown(
            rows,
            lambda r: r.marketing_source.label,
            cost_maps.by_source if cost_maps else None,
        ),
        medium_breakdown=build_breakdown(
            merged.medium_rows,
            lambda r: r.medium,
            cost_maps.by_medium if cost_maps else None,
        ),
        campaign_breakdown=build_breakdown(
            rows,
            lambda r: r.campaign,
            cost_maps.by_campaign if cost_maps else None,
        ),
        daily_series=build_daily_series(rows, start, end, cost_maps.by_date if cost_maps else None),
        bookings=list(bookings),
    )
