"""
Best-effort visitor currency detection.

Each method looks at one signal and returns a currency with a confidence:
CDN geo headers (Cloudflare 0.95, Vercel 0.90), IP geolocation services
(0.80), the browser timezone (0.70) and the Accept-Language region (0.50).
Nothing detected means COP, the home market.
"""

import ipaddress
import time
import httpx
from dataclasses import dataclass, field
from app.config import settings
from typing import Callable, Dict, List, Mapping, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "COP"
HIGH_CONFIDENCE = 0.80
CONSENSUS_BONUS = 0.15
MAX_CONFIDENCE = 0.95
CACHE_MAX_SIZE = 5000

COUNTRY_TO_CURRENCY: Dict[str, str] = {
    # Americas
    "US": "USD", "USA": "USD", "UNITED STATES": "USD",
    "CA": "CAD", "CAN": "CAD", "CANADA": "CAD",
    "MX": "MXN", "MEX": "MXN", "MEXICO": "MXN",
    "AR": "ARS", "ARG": "ARS", "ARGENTINA": "ARS",
    "BR": "BRL", "BRA": "BRL", "BRAZIL": "BRL",
    "CL": "CLP", "CHL": "CLP", "CHILE": "CLP",
    "PE": "PEN", "PER": "PEN", "PERU": "PEN",
    "UY": "UYU", "URY": "UYU", "URUGUAY": "UYU",
    "CO": "COP", "COL": "COP", "COLOMBIA": "COP",
    # Europe
    "GB": "GBP", "GBR": "GBP", "UK": "GBP", "UNITED KINGDOM": "GBP",
    "DE": "EUR", "DEU": "EUR", "GERMANY": "EUR",
    "FR": "EUR", "FRA": "EUR", "FRANCE": "EUR",
    "ES": "EUR", "ESP": "EUR", "SPAIN": "EUR",
    "IT": "EUR", "ITA": "EUR", "ITALY": "EUR",
    "NL": "EUR", "NLD": "EUR", "NETHERLANDS": "EUR",
    "PT": "EUR", "PRT": "EUR", "PORTUGAL": "EUR",
    "IE": "EUR", "IRL": "EUR", "IRELAND": "EUR",
    "AT": "EUR", "AUT": "EUR", "AUSTRIA": "EUR",
    "BE": "EUR", "BEL": "EUR", "BELGIUM": "EUR",
    "FI": "EUR", "FIN": "EUR", "FINLAND": "EUR",
    "GR": "EUR", "GRC": "EUR", "GREECE": "EUR",
    # Asia Pacific
    "AU": "AUD", "AUS": "AUD", "AUSTRALIA": "AUD",
    "NZ": "NZD", "NZL": "NZD", "NEW ZEALAND": "NZD",
    "JP": "JPY", "JPN": "JPY", "JAPAN": "JPY",
    "KR": "KRW", "KOR": "KRW", "SOUTH KOREA": "KRW",
    "CN": "CNY", "CHN": "CNY", "CHINA": "CNY",
    "IN": "INR", "IND": "INR", "INDIA": "INR",
    "SG": "SGD", "SGP": "SGD", "SINGAPORE": "SGD",
    "HK": "HKD", "HKG": "HKD", "HONG KONG": "HKD",
    # Africa
    "ZA": "ZAR", "ZAF": "ZAR", "SOUTH AFRICA": "ZAR",
    "NG": "NGN", "NGA": "NGN", "NIGERIA": "NGN",
    "EG": "EGP", "EGY": "EGP", "EGYPT": "EGP",
    "MA": "MAD", "MAR": "MAD", "MOROCCO": "MAD",
}

TIMEZONE_TO_CURRENCY: Dict[str, str] = {
    "America/New_York": "USD", "America/Chicago": "USD", "America/Denver": "USD", "America/Los_Angeles": "USD",
    "America/Toronto": "CAD", "America/Vancouver": "CAD",
    "America/Mexico_City": "MXN",
    "America/Argentina/Buenos_Aires": "ARS",
    "America/Sao_Paulo": "BRL",
    "America/Santiago": "CLP",
    "America/Lima": "PEN",
    "America/Montevideo": "UYU",
    "America/Bogota": "COP",
    "Europe/London": "GBP",
    "Europe/Berlin": "EUR", "Europe/Paris": "EUR", "Europe/Madrid": "EUR", "Europe/Rome": "EUR",
    "Europe/Amsterdam": "EUR", "Europe/Lisbon": "EUR", "Europe/Dublin": "EUR", "Europe/Vienna": "EUR",
    "Europe/Brussels": "EUR", "Europe/Helsinki": "EUR", "Europe/Athens": "EUR",
    "Australia/Sydney": "AUD", "Australia/Melbourne": "AUD", "Australia/Perth": "AUD",
    "Pacific/Auckland": "NZD",
    "Asia/Tokyo": "JPY",
    "Asia/Seoul": "KRW",
    "Asia/Shanghai": "CNY",
    "Asia/Kolkata": "INR",
    "Asia/Singapore": "SGD",
    "Asia/Hong_Kong": "HKD",
    "Africa/Johannesburg": "ZAR",
    "Africa/Lagos": "NGN",
    "Africa/Cairo": "EGP",
    "Africa/Casablanca": "MAD",
}

# (name, url template, response field with the country code)
IP_SERVICES: List[Tuple[str, str, str]] = [
    ("ip-api", "http://ip-api.com/json/{ip}?fields=countryCode", "countryCode"),
    ("ipapi", "https://ipapi.co/{ip}/json/", "country_code"),
]


def currency_for_country(country: Optional[str]) -> Optional[str]:
    if not country:
        return None
    return COUNTRY_TO_CURRENCY.get(country.strip().upper())


@dataclass
class DetectionContext:
    headers: Mapping[str, str] = field(default_factory=dict)
    client_ip: Optional[str] = None
    timezone: Optional[str] = None

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name) or self.headers.get(name.lower())


@dataclass
class DetectionResult:
    currency: str
    confidence: float
    method: str


def select_best_result(results: List[DetectionResult]) -> Optional[DetectionResult]:
    """Highest confidence wins if it is high enough; otherwise a currency two methods agree on."""
    if not results:
        return None
    ranked = sorted(results, key=lambda r: r.confidence, reverse=True)
    if ranked[0].confidence >= HIGH_CONFIDENCE:
        return ranked[0]

    counts: Dict[str, int] = {}
    for r in ranked:
        counts[r.currency] = counts.get(r.currency, 0) + 1
    currency, count = max(counts.items(), key=lambda item: item[1])
    if count >= 2:
        best = next(r for r in ranked if r.currency == currency)
        return DetectionResult(
            currency=best.currency,
            confidence=min(MAX_CONFIDENCE, best.confidence + CONSENSUS_BONUS),
            method=f"{best.method}+consensus",
        )
    return ranked[0]


def _is_public_ip(value: Optional[str]) -> bool:
    try:
        address = ipaddress.ip_address(value or "")
    except ValueError:
        return False
    return address.is_global


class LocationDetectionService:
    _cache: Dict[str, Tuple[Dict[str, object], float]] = {}

    def __init__(self, timeout: Optional[float] = None, cache_seconds: Optional[int] = None):
        self.timeout = timeout if timeout is not None else settings.geo_timeout_seconds
        self.cache_seconds = cache_seconds if cache_seconds is not None else settings.geo_cache_seconds

    @classmethod
    def clear_cache(cls):
        cls._cache.clear()

    @classmethod
    def _remember(cls, key: str, detection: Dict[str, object], expires_at: float):
        now = time.time()
        for stale in [k for k, (_, expiry) in cls._cache.items() if expiry <= now]:
            del cls._cache[stale]
        if len(cls._cache) >= CACHE_MAX_SIZE and key not in cls._cache:
            # Drop the entry closest to expiry
            del cls._cache[min(cls._cache, key=lambda k: cls._cache[k][1])]
        cls._cache[key] = (detection, expires_at)

    def from_headers(self, context: DetectionContext) -> Optional[DetectionResult]:
        currency = currency_for_country(context.header("cf-ipcountry"))
        if currency:
            return DetectionResult(currency, 0.95, "cloudflare-headers")
        currency = currency_for_country(context.header("x-vercel-ip-country"))
        if currency:
            return DetectionResult(currency, 0.90, "vercel-headers")
        return None

    def from_ip_services(self, context: DetectionContext) -> Optional[DetectionResult]:
        if not _is_public_ip(context.client_ip):
            return None
        for name, url, field_name in IP_SERVICES:
            try:
                response = httpx.get(url.format(ip=context.client_ip), timeout=self.timeout)
                if response.status_code >= 400:
                    continue
                currency = currency_for_country(response.json().get(field_name))
            except (httpx.HTTPError, ValueError) as e:
                logger.debug(f"IP service {name} failed: {e}")
                continue
            if currency:
                return DetectionResult(currency, 0.80, name)
        return None

    def from_timezone(self, context: DetectionContext) -> Optional[DetectionResult]:
        timezone = context.timezone or context.header("cf-timezone") or context.header("x-vercel-ip-timezone")
        currency = TIMEZONE_TO_CURRENCY.get(timezone or "")
        if currency:
            return DetectionResult(currency, 0.70, "timezone")
        return None

    def from_accept_language(self, context: DetectionContext) -> Optional[DetectionResult]:
        header = context.header("accept-language") or ""
        for part in header.split(","):
            tag = part.split(";")[0].strip()
            pieces = tag.replace("_", "-").split("-")
            if len(pieces) >= 2:
                currency = currency_for_country(pieces[1])
                if currency:
                    return DetectionResult(currency, 0.50, "accept-language")
        return None

    def _methods(self) -> List[Callable[[DetectionContext], Optional[DetectionResult]]]:
        return [self.from_headers, self.from_ip_services, self.from_timezone, self.from_accept_language]

    def detect(self, context: DetectionContext) -> Dict[str, object]:
        cache_key = context.client_ip or "unknown"
        cached = type(self)._cache.get(cache_key)
        if cached and time.time() < cached[1]:
            return {**cached[0], "cached": True}

        results: List[DetectionResult] = []
        for method in self._methods():
            try:
                result = method(context)
            except Exception as e:
                logger.debug(f"Location method {method.__name__} failed: {e}")
                continue
            if result:
                results.append(result)

        best = select_best_result(results)
        if best:
            detection = {"currency": best.currency, "confidence": best.confidence, "method": best.method}
        else:
            detection = {"currency": DEFAULT_CURRENCY, "confidence": 0.0, "method": "default"}
        self._remember(cache_key, detection, time.time() + self.cache_seconds)
        logger.info(f"Detected currency {detection['currency']} via {detection['method']}")
        return {**detection, "cached": False}


def get_location_service() -> LocationDetectionService:
    return LocationDetectionService()
