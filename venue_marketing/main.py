from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from venue_marketing.connectors.marketing_sources import AdsClient, BookingStore
from venue_marketing.models_marketing import BookingStoreUnavailableError, InvalidDateRangeError
from venue_marketing.services_marketing_overview import MarketingReportService
from venue_marketing.utils.marketing_config import MarketingSettings, marketing_settings_from_env

app = FastAPI(title="Venue Marketing Attribution API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Collaborators are wired by the hosting process, e.g.
#   app.state.booking_store = SqlBookingStore(...)
#   app.state.ads_client = GoogleAdsReportingClient(...)
app.state.booking_store = None
app.state.ads_client = None
app.state.marketing_settings = None


def get_booking_store(request: Request) -> BookingStore:
    store = getattr(request.app.state, "booking_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Booking store is not configured")
    return store


def get_ads_client(request: Request) -> Optional[AdsClient]:
    # None is allowed: the report degrades to booking-only figures.
    return getattr(request.app.state, "ads_client", None)


def get_marketing_settings(request: Request) -> MarketingSettings:
    settings = getattr(request.app.state, "marketing_settings", None)
    return settings if settings is not None else marketing_settings_from_env()


@app.get("/api/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


@app.get("/api/marketing/overview")
async def marketing_overview(
    date_from: str = Query(..., description="Start date (YYYY-MM-DD)"),
    date_to: str = Query(..., description="End date (YYYY-MM-DD)"),
    booking_store: BookingStore = Depends(get_booking_store),
    ads_client: Optional[AdsClient] = Depends(get_ads_client),
    settings: MarketingSettings = Depends(get_marketing_settings),
):
    service = MarketingReportService(settings)
    try:
        overview = await service.build_overview(booking_store, ads_client, date_from, date_to)
    except InvalidDateRangeError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except BookingStoreUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return overview.to_dict()
