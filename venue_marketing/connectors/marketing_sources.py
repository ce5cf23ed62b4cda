"""Interfaces for the booking store and the Google Ads client used by the marketing report."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol


class BookingStore(Protocol):
    def list_bookings(self, date_from: date, date_to: date) -> Iterable[Any]:
        """Bookings whose experience date falls in [date_from, date_to], ordered by start time then id.

        Items may be BookingRecord instances, mappings or ORM-like objects.
        """
        ...


class AdsClient(Protocol):
    """Google Ads reporting client. Cost and conversion value are reported in micro-units.

    Implementations may define these as plain or ``async def`` methods.
    """

    def get_account_currency(self) -> Optional[str]:
        ...

    def get_campaign_cost_report(self, date_from: date, date_to: date) -> List[Mapping[str, Any]]:
        ...

    def get_ad_group_cost_report(self, date_from: date, date_to: date) -> List[Mapping[str, Any]]:
        ...


DEFAULT_ADS_ERROR_MESSAGE = "Unable to load Google Ads costs"


def _text(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _response_json(response: Any) -> Dict[str, Any]:
    try:
        body = response.json()
    except Exception:
        return {}
    return body if isinstance(body, dict) else {}


def describe_ads_error(exc: BaseException) -> str:
    """Human-readable message for a failed Google Ads call.

    HTTP errors raised by requests/httpx carry the API error body; nested
    ``error.details[].errors[].message`` entries are joined and the request id
    is appended so the failure can be traced on the Google side.
    """
    response = getattr(exc, "response", None)
    if response is None:
        return _text(str(exc)) or DEFAULT_ADS_ERROR_MESSAGE

    error = _response_json(response).get("error")
    error = error if isinstance(error, dict) else {}
    details = error.get("details") if isinstance(error.get("details"), list) else []
    nested: List[str] = []
    for detail in details:
        if not isinstance(detail, dict) or not isinstance(detail.get("errors"), list):
            continue
        for entry in detail["errors"]:
            message = _text(entry.get("message")) if isinstance(entry, dict) else None
            if message:
                nested.append(message)

    if nested:
        message = " | ".join(nested)
    else:
        message = _text(error.get("message")) or _text(str(exc)) or DEFAULT_ADS_ERROR_MESSAGE

    headers = getattr(response, "headers", None) or {}
    request_id = _text(headers.get("request-id")) if hasattr(headers, "get") else None
    return f"{message} (request-id: {request_id})" if request_id else message
