"""
Marketing overview: bookings + Google Ads spend merged into overall / Google Ads / Meta Ads tabs.

- Bookings are required; a failing booking store fails the whole report.
- Google Ads data is optional; any failure degrades to booking-only figures with
  ``spend_error`` set on the Google Ads tab.
- Fetching is async; everything after the fetch is pure and synchronous.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import date, datetime
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .connectors.marketing_sources import AdsClient, BookingStore, describe_ads_error
from .models_marketing import (
    AdPerformanceResult,
    BookingRecord,
    BookingStoreUnavailableError,
    InvalidDateRangeError,
    MarketingOverview,
    MarketingSource,
)
from .services_marketing_aggregates import build_tab_report
from .services_marketing_costs import CostMaps, reconcile_costs
from .services_marketing_cutover import merge_tab_metric_rows
from .services_marketing_normalizer import (
    GRANULARITY_AD_GROUP,
    GRANULARITY_CAMPAIGN,
    ad_rows_from_raw,
    booking_metric_rows,
    bookings_from_raw,
    historical_campaign_rows,
    historical_medium_rows,
    normalize_text,
)
from .utils.marketing_config import MarketingSettings

logger = logging.getLogger(__name__)

ADS_NOT_CONFIGURED = "Google Ads client is not configured"


def _parse_bound(value: Any, name: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None:
        raise InvalidDateRangeError(f"{name} is required")
    if not isinstance(value, str):
        raise InvalidDateRangeError(f"{name} is not a valid date: {value!r}")
    text = normalize_text(value)
    if not text:
        raise InvalidDateRangeError(f"{name} is required")
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        raise InvalidDateRangeError(f"{name} is not a valid date: {value!r}") from None


def normalize_date_range(start: Any, end: Any) -> Tuple[date, date]:
    start_d = _parse_bound(start, "start_date")
    end_d = _parse_bound(end, "end_date")
    if end_d < start_d:
        raise InvalidDateRangeError(f"end_date {end_d.isoformat()} is before start_date {start_d.isoformat()}")
    return start_d, end_d


async def _call(fn: Callable[..., Any], *args: Any) -> Any:
    # Collaborators may be sync (run in a worker thread) or async.
    if inspect.iscoroutinefunction(fn):
        return await fn(*args)
    result = await asyncio.to_thread(fn, *args)
    # A sync wrapper around an async function hands back the coroutine.
    if inspect.isawaitable(result):
        result = await result
    return result


class MarketingReportService:
    """Builds the marketing overview. Holds only its settings; safe to share between requests."""

    def __init__(self, settings: Optional[MarketingSettings] = None):
        self.settings = settings or MarketingSettings()

    async def build_overview(
        self,
        booking_store: BookingStore,
        ads_client: Optional[AdsClient],
        start_date: Any,
        end_date: Any,
    ) -> MarketingOverview:
        start, end = normalize_date_range(start_date, end_date)
        bookings_task = asyncio.ensure_future(self.fetch_bookings(booking_store, start, end))
        ads_task = asyncio.ensure_future(self.fetch_ad_performance(ads_client, start, end))
        try:
            bookings = await bookings_task
            ad_performance = await ads_task
        finally:
            # A failed booking fetch ends the request; stop the ad calls still in flight.
            for task in (bookings_task, ads_task):
                if not task.done():
                    task.cancel()
        return self.assemble_overview(start, end, bookings, ad_performance)

    async def fetch_bookings(self, booking_store: BookingStore, start: date, end: date) -> List[BookingRecord]:
        try:
            raw = await _call(booking_store.list_bookings, start, end)
            records = bookings_from_raw(raw)
        except Exception as exc:
            raise BookingStoreUnavailableError(f"Unable to load bookings: {exc}") from exc
        # Unattributed bookings and stray rows outside the range take no part in the report.
        return [
            r
            for r in records
            if r.marketing_source is not None
            and (r.experience_date is None or start <= r.experience_date <= end)
        ]

    async def fetch_ad_performance(
        self,
        ads_client: Optional[AdsClient],
        start: date,
        end: date,
    ) -> AdPerformanceResult:
        if ads_client is None:
            return AdPerformanceResult(error=ADS_NOT_CONFIGURED)
        results = await asyncio.gather(
            _call(ads_client.get_account_currency),
            _call(ads_client.get_campaign_cost_report, start, end),
            _call(ads_client.get_ad_group_cost_report, start, end),
            return_exceptions=True,
        )
        try:
            for outcome in results:
                if isinstance(outcome, BaseException):
                    raise outcome
            currency, campaign_raw, ad_group_raw = results
            campaign_rows = ad_rows_from_raw(
                campaign_raw,
                settings=self.settings,
                granularity=GRANULARITY_CAMPAIGN,
                date_from=start,
                date_to=end,
            )
            ad_group_rows = ad_rows_from_raw(
                ad_group_raw,
                settings=self.settings,
                granularity=GRANULARITY_AD_GROUP,
                date_from=start,
                date_to=end,
            )
        except Exception as exc:
            message = describe_ads_error(exc)
            logger.warning("Google Ads data unavailable for %s..%s: %s", start, end, message)
            return AdPerformanceResult(error=message)
        return AdPerformanceResult(
            currency=normalize_text(currency),
            campaign_rows=campaign_rows,
            ad_group_rows=ad_group_rows,
        )

    def assemble_overview(
        self,
        start: date,
        end: date,
        bookings: Sequence[BookingRecord],
        ad_performance: AdPerformanceResult,
    ) -> MarketingOverview:
        settings = self.settings
        cutover = settings.historical_cutover_date
        google_bookings = [b for b in bookings if b.marketing_source is MarketingSource.GOOGLE_ADS]
        meta_bookings = [b for b in bookings if b.marketing_source is MarketingSource.META_ADS]

        cost_maps: Optional[CostMaps] = None
        campaign_history = []
        medium_history = []
        if ad_performance.available:
            cost_maps = reconcile_costs(
                ad_performance.campaign_rows,
                ad_performance.ad_group_rows,
                leftover_threshold=settings.cost_leftover_threshold,
            )
            campaign_history = historical_campaign_rows(ad_performance.campaign_rows, cutover)
            medium_history = historical_medium_rows(
                ad_performance.ad_group_rows,
                ad_performance.campaign_rows,
                cutover,
                settings.shortfall_discard_threshold,
            )

        def merged(tab_bookings: Sequence[BookingRecord], with_history: bool):
            return merge_tab_metric_rows(
                booking_metric_rows(tab_bookings),
                historical_campaign_rows=campaign_history if with_history else (),
                historical_medium_rows=medium_history if with_history else (),
                cutover_date=cutover,
                historical_available=ad_performance.available,
            )

        overall = build_tab_report(merged(bookings, True), bookings, start, end, cost_maps=cost_maps)
        google_ads = build_tab_report(
            merged(google_bookings, True),
            google_bookings,
            start,
            end,
            cost_maps=cost_maps,
            fallback_currency=ad_performance.currency,
        )
        meta_ads = build_tab_report(merged(meta_bookings, False), meta_bookings, start, end)

        logger.info(
            "Marketing overview built: range=%s..%s bookings=%s google=%s meta=%s spend=%s ads_error=%s",
            start,
            end,
            len(bookings),
            len(google_bookings),
            len(meta_bookings),
            cost_maps.total if cost_maps else None,
            ad_performance.error,
        )
        return MarketingOverview(
            start_date=start,
            end_date=end,
            overall=overall,
            google_ads=google_ads,
            meta_ads=meta_ads,
            spend=cost_maps.total if cost_maps else None,
            spend_currency=ad_performance.currency,
            spend_error=ad_performance.error,
            cost_rows=list(cost_maps.cost_rows) if cost_maps else [],
        )
