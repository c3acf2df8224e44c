from pydantic import BaseModel
from typing import Dict, Optional


class RatesResponse(BaseModel):
    base: str
    rates: Dict[str, float]
    lastUpdated: str
    source: str


class ConversionResponse(BaseModel):
    amount: float
    source: str
    target: str
    result: float
    formatted: str
    rateSource: str


class DetectionResponse(BaseModel):
    currency: str
    confidence: float
    method: str
    cached: bool = False


class GeoResponse(BaseModel):
    country: Optional[str] = None
    continent: Optional[str] = None
    timezone: Optional[str] = None
    region: Optional[str] = None
    source: str
