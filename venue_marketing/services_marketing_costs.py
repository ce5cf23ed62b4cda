"""
Google Ads cost maps used to annotate breakdowns and the daily series.

- Source, campaign and day totals come from campaign-level rows only; summing ad
  group rows as well would double count.
- Medium totals come from ad group rows, with the part of each campaign's cost that
  no ad group explains moved to the "(missing)" bucket.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .models_marketing import MISSING_LABEL, AdPerformanceRow, CostRow, MarketingSource
from .utils.money import ZERO, round_money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CostMaps:
    total: Decimal = ZERO
    by_source: Dict[str, Decimal] = field(default_factory=dict)
    by_campaign: Dict[str, Decimal] = field(default_factory=dict)
    by_medium: Dict[str, Decimal] = field(default_factory=dict)
    by_date: Dict[date, Decimal] = field(default_factory=dict)
    cost_rows: List[CostRow] = field(default_factory=list)


def _label(value: Optional[str]) -> str:
    return value or MISSING_LABEL


def _sum_by(rows: Iterable[AdPerformanceRow], key) -> Dict:
    out: Dict = {}
    for row in rows:
        k = key(row)
        out[k] = out.get(k, ZERO) + row.cost
    return out


def campaign_leftovers(
    campaign_perf: Sequence[AdPerformanceRow],
    ad_group_perf: Sequence[AdPerformanceRow],
    *,
    threshold: Decimal,
) -> Dict[str, Decimal]:
    """Per campaign, cost not attributable to any ad group; amounts within ``threshold`` are dropped."""
    campaign_cost = _sum_by(campaign_perf, lambda r: _label(r.campaign))
    group_cost = _sum_by(ad_group_perf, lambda r: _label(r.campaign))
    out: Dict[str, Decimal] = {}
    for campaign in sorted(set(campaign_cost) | set(group_cost)):
        missing = campaign_cost.get(campaign, ZERO) - group_cost.get(campaign, ZERO)
        if abs(missing) > threshold:
            out[campaign] = round_money(missing)
        elif missing:
            logger.debug("Absorbing cost leftover campaign=%s amount=%s", campaign, missing)
    return out


def build_cost_rows(
    ad_group_perf: Sequence[AdPerformanceRow],
    leftovers: Dict[str, Decimal],
) -> List[CostRow]:
    pairs: Dict[Tuple[str, str], Decimal] = _sum_by(ad_group_perf, lambda r: (_label(r.campaign), _label(r.medium)))
    for campaign, missing in leftovers.items():
        key = (campaign, MISSING_LABEL)
        pairs[key] = pairs.get(key, ZERO) + missing
    rows = [CostRow(campaign=c, medium=m, cost=round_money(cost)) for (c, m), cost in pairs.items()]
    rows.sort(key=lambda r: (-r.cost, r.campaign.casefold(), r.medium.casefold()))
    return rows


def reconcile_costs(
    campaign_perf: Sequence[AdPerformanceRow],
    ad_group_perf: Sequence[AdPerformanceRow],
    *,
    leftover_threshold: Decimal,
) -> CostMaps:
    total = round_money(sum((row.cost for row in campaign_perf), ZERO))

    by_medium = _sum_by(ad_group_perf, lambda r: _label(r.medium))
    # Independent of the booking/revenue shortfall pass; the cost and performance
    # reports can drift separately.
    leftovers = campaign_leftovers(campaign_perf, ad_group_perf, threshold=leftover_threshold)
    for missing in leftovers.values():
        by_medium[MISSING_LABEL] = by_medium.get(MISSING_LABEL, ZERO) + missing

    return CostMaps(
        total=total,
        by_source={MarketingSource.GOOGLE_ADS.label: total},
        by_campaign={k: round_money(v) for k, v in _sum_by(campaign_perf, lambda r: _label(r.campaign)).items()},
        by_medium={k: round_money(v) for k, v in by_medium.items()},
        by_date={k: round_money(v) for k, v in _sum_by(campaign_perf, lambda r: r.date).items()},
        cost_rows=build_cost_rows(ad_group_perf, leftovers),
    )
