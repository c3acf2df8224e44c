from fastapi import APIRouter, Depends, HTTPException, Query, Request
from app.config import settings
from app.core.dependencies import get_client_ip, require_internal_key
from app.core.rate_limit import limiter
from app.modules.currency.exchange_rates import (
    ExchangeRateService, get_exchange_rate_service, format_currency, is_supported,
)
from app.modules.currency.location import DetectionContext, LocationDetectionService, get_location_service
from app.modules.currency.schemas import RatesResponse, ConversionResponse, DetectionResponse, GeoResponse
from typing import Optional

router = APIRouter(tags=["currency"])


@router.get("/currency/rates", response_model=RatesResponse)
async def get_rates(service: ExchangeRateService = Depends(get_exchange_rate_service)):
    return service.get_current_rates()


@router.post("/currency/refresh", response_model=RatesResponse, dependencies=[Depends(require_internal_key)])
async def refresh_rates(service: ExchangeRateService = Depends(get_exchange_rate_service)):
    return service.refresh_rates()


@router.get("/currency/convert", response_model=ConversionResponse)
async def convert(
    amount: float = Query(...),
    source: str = Query("COP", alias="from"),
    target: str = Query("USD", alias="to"),
    service: ExchangeRateService = Depends(get_exchange_rate_service)
):
    """Convert between COP and a supported currency (either side must be COP)"""
    source, target = source.upper(), target.upper()
    if not is_supported(source) or not is_supported(target):
        raise HTTPException(status_code=400, detail="Unsupported currency")
    rates = service.get_current_rates()
    if source == "COP":
        result = service.convert_from_cop(amount, target)
    elif target == "COP":
        result = service.convert_to_cop(amount, source)
    else:
        result = service.convert_from_cop(service.convert_to_cop(amount, source), target)
    return ConversionResponse(
        amount=amount,
        source=source,
        target=target,
        result=result,
        formatted=format_currency(result, target, show_code=True),
        rateSource=rates["source"],
    )


@router.get("/currency/detect", response_model=DetectionResponse)
@limiter.limit(settings.public_rate_limit)
async def detect_currency(
    request: Request,
    timezone: Optional[str] = Query(None),
    service: LocationDetectionService = Depends(get_location_service)
):
    context = DetectionContext(headers=request.headers, client_ip=get_client_ip(request), timezone=timezone)
    return service.detect(context)


@router.get("/geo", response_model=GeoResponse)
async def geo(request: Request):
    """Geo data our CDN attached to the request"""
    headers = request.headers
    country = headers.get("cf-ipcountry")
    vercel_country = headers.get("x-vercel-ip-country")
    return GeoResponse(
        country=country or vercel_country,
        continent=headers.get("cf-ipcontinent"),
        timezone=headers.get("cf-timezone") or headers.get("x-vercel-ip-timezone"),
        region=headers.get("x-vercel-ip-country-region"),
        source="cloudflare" if country else "vercel" if vercel_country else "unknown",
    )
