"""
Cutover merge: per date, decide whether bookings or Google Ads history is the truth source.

Before the historical cutover date bookings carry no UTM attribution, so Google Ads
bookings are replaced by the platform's own conversion data for those days. Meta Ads
has no historical feed and always comes from bookings.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models_marketing import AdPerformanceRow, MarketingSource, MergedMetricRows, MetricRow
from .utils.money import ZERO, round_count, round_money

logger = logging.getLogger(__name__)


def uses_historical_feed(source: MarketingSource) -> bool:
    if source is MarketingSource.GOOGLE_ADS:
        return True
    if source is MarketingSource.META_ADS:
        return False
    raise ValueError(f"Unhandled marketing source: {source!r}")


def is_pre_cutover(day: date, cutover_date: Optional[date]) -> bool:
    # The cutover day itself already belongs to bookings.
    return cutover_date is not None and day < cutover_date


def _totals_by_campaign_day(
    rows: Iterable[AdPerformanceRow],
    cutover_date: Optional[date],
) -> Dict[Tuple[Optional[str], date], Tuple[Decimal, Decimal]]:
    out: Dict[Tuple[Optional[str], date], Tuple[Decimal, Decimal]] = {}
    for row in rows:
        if not is_pre_cutover(row.date, cutover_date):
            continue
        key = (row.campaign, row.date)
        count, revenue = out.get(key, (ZERO, ZERO))
        out[key] = (count + row.booking_count, revenue + row.revenue)
    return out


def build_shortfall_rows(
    campaign_perf: Sequence[AdPerformanceRow],
    ad_group_perf: Sequence[AdPerformanceRow],
    *,
    cutover_date: Optional[date],
    threshold: Decimal,
) -> List[MetricRow]:
    """Synthetic medium-less rows for the gap between campaign and ad group totals.

    Evaluated per (campaign, date) before the cutover. A gap within ``threshold`` of
    zero on both booking count and revenue is rounding noise and is dropped. Negative
    gaps (ad group report over-counting) are kept as negative rows.
    """
    campaign_totals = _totals_by_campaign_day(campaign_perf, cutover_date)
    ad_group_totals = _totals_by_campaign_day(ad_group_perf, cutover_date)

    rows: List[MetricRow] = []
    keys = set(campaign_totals) | set(ad_group_totals)
    for campaign, day in sorted(keys, key=lambda k: (k[1], k[0] or "")):
        campaign_count, campaign_revenue = campaign_totals.get((campaign, day), (ZERO, ZERO))
        group_count, group_revenue = ad_group_totals.get((campaign, day), (ZERO, ZERO))
        missing_count = campaign_count - group_count
        missing_revenue = campaign_revenue - group_revenue
        if abs(missing_count) <= threshold and abs(missing_revenue) <= threshold:
            if missing_count or missing_revenue:
                logger.debug(
                    "Discarding shortfall noise campaign=%s date=%s bookings=%s revenue=%s",
                    campaign,
                    day,
                    missing_count,
                    missing_revenue,
                )
            continue
        rows.append(
            MetricRow(
                date=day,
                marketing_source=MarketingSource.GOOGLE_ADS,
                medium=None,
                campaign=campaign,
                booking_count=round_count(missing_count),
                revenue=round_money(missing_revenue),
                synthetic=True,
            )
        )
    return rows


def merge_tab_metric_rows(
    booking_rows: Sequence[MetricRow],
    *,
    historical_campaign_rows: Sequence[MetricRow] = (),
    historical_medium_rows: Sequence[MetricRow] = (),
    cutover_date: Optional[date],
    historical_available: bool,
) -> MergedMetricRows:
    """Concatenate post-cutover bookings with pre-cutover Google Ads history.

    Without a cutover date, or when the Google Ads feed failed, bookings are the
    truth source for every day.
    """
    if cutover_date is None or not historical_available:
        rows = list(booking_rows)
        return MergedMetricRows(rows=rows, medium_rows=list(rows))

    kept = [
        row
        for row in booking_rows
        if not (uses_historical_feed(row.marketing_source) and is_pre_cutover(row.date, cutover_date))
    ]
    campaign_history = [row for row in historical_campaign_rows if is_pre_cutover(row.date, cutover_date)]
    medium_history = [row for row in historical_medium_rows if is_pre_cutover(row.date, cutover_date)]
    return MergedMetricRows(rows=kept + campaign_history, medium_rows=kept + medium_history)
