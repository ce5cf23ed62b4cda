"""Settings for the marketing attribution report: cutover date and reconciliation thresholds."""

from __future__ import annotations

import logging
import os
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

DEFAULT_NON_REVENUE_CAMPAIGN_PREFIXES = ["Smart Campaign"]

_ENV_CUTOVER = "MARKETING_HISTORICAL_CUTOVER_DATE"
_ENV_PREFIXES = "MARKETING_NON_REVENUE_CAMPAIGN_PREFIXES"
_ENV_LEFTOVER = "MARKETING_COST_LEFTOVER_THRESHOLD"
_ENV_SHORTFALL = "MARKETING_SHORTFALL_DISCARD_THRESHOLD"


class MarketingSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Bookings before this date carry no UTM data; Google Ads history is used instead.
    historical_cutover_date: Optional[date] = None
    non_revenue_campaign_prefixes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_NON_REVENUE_CAMPAIGN_PREFIXES)
    )
    cost_leftover_threshold: Decimal = Field(default=Decimal("0.01"), ge=0)
    shortfall_discard_threshold: Decimal = Field(default=Decimal("0.005"), ge=0)

    @field_validator("non_revenue_campaign_prefixes", mode="before")
    @classmethod
    def _split_prefixes(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return value.split(",")
        return value

    @field_validator("non_revenue_campaign_prefixes")
    @classmethod
    def _normalize_prefixes(cls, value: List[str]) -> List[str]:
        seen: set[str] = set()
        out: List[str] = []
        for raw in value:
            prefix = str(raw or "").strip()
            key = prefix.casefold()
            if not prefix or key in seen:
                continue
            seen.add(key)
            out.append(prefix)
        return out

    def is_non_revenue_campaign(self, campaign: Optional[str]) -> bool:
        if not campaign:
            return False
        name = campaign.strip().casefold()
        return any(name.startswith(prefix.casefold()) for prefix in self.non_revenue_campaign_prefixes)


def default_marketing_settings() -> Dict[str, Any]:
    return MarketingSettings().model_dump(mode="json")


def validate_marketing_settings(raw: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    errors: List[Dict[str, str]] = []
    try:
        normalized: Optional[Dict[str, Any]] = MarketingSettings.model_validate(dict(raw or {})).model_dump(mode="json")
    except ValidationError as exc:
        normalized = None
        for issue in exc.errors():
            path = ".".join(str(p) for p in issue.get("loc", []))
            errors.append(
                {
                    "path": path or "settings",
                    "message": issue.get("msg", "Invalid value"),
                    "code": str(issue.get("type", "validation_error")),
                }
            )
    return {"valid": not errors, "errors": errors, "normalized": normalized}


def load_marketing_settings(raw: Optional[Mapping[str, Any]]) -> MarketingSettings:
    """Validate raw settings, falling back to defaults (with a warning) when they are invalid."""
    try:
        return MarketingSettings.model_validate(dict(raw or {}))
    except ValidationError as exc:
        logger.warning("Invalid marketing settings, using defaults: %s", exc)
        return MarketingSettings()


def marketing_settings_from_env(environ: Optional[Mapping[str, str]] = None) -> MarketingSettings:
    env = os.environ if environ is None else environ
    raw: Dict[str, Any] = {}
    if env.get(_ENV_CUTOVER):
        raw["historical_cutover_date"] = env[_ENV_CUTOVER].strip()
    if env.get(_ENV_PREFIXES) is not None:
        raw["non_revenue_campaign_prefixes"] = env[_ENV_PREFIXES]
    if env.get(_ENV_LEFTOVER):
        raw["cost_leftover_threshold"] = env[_ENV_LEFTOVER].strip()
    if env.get(_ENV_SHORTFALL):
        raw["shortfall_discard_threshold"] = env[_ENV_SHORTFALL].strip()
    return load_marketing_settings(raw)
