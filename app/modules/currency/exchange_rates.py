"""
Exchange rates relative to COP.

Rates are quoted "1 COP = x units". Fresh API rates are cached in process for
`exchange_rate_cache_seconds`; when the API is unavailable the fallback table
is served (and not cached, so the next request tries the API again).
"""

import time
import httpx
from app.config import settings
from app.core.timeutil import utcnow_iso
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)

# Based on 1 USD = 4,000 COP
FALLBACK_RATES: Dict[str, float] = {
    "COP": 1,
    "USD": 0.00025,
    "EUR": 0.00023,
    "GBP": 0.0002,
    "CAD": 0.00034,
    "AUD": 0.00038,
    "NZD": 0.00041,
    "MXN": 0.0043,
    "ARS": 0.24,
    "BRL": 0.0015,
    "CLP": 0.92,
    "PEN": 0.00095,
    "UYU": 0.01,
    "JPY": 0.037,
    "KRW": 0.33,
    "CNY": 0.0018,
    "INR": 0.021,
    "SGD": 0.00034,
    "HKD": 0.00195,
    "ZAR": 0.0045,
    "NGN": 0.39,
    "EGP": 0.012,
    "MAD": 0.0025,
}

SUPPORTED_CURRENCIES = tuple(FALLBACK_RATES.keys())

CURRENCY_INFO: Dict[str, Dict[str, Any]] = {
    "COP": {"name": "Colombian Peso", "symbol": "$", "flag": "🇨🇴", "decimals": 0},
    "USD": {"name": "US Dollar", "symbol": "$", "flag": "🇺🇸", "decimals": 2},
    "EUR": {"name": "Euro", "symbol": "€", "flag": "🇪🇺", "decimals": 2},
    "GBP": {"name": "British Pound", "symbol": "£", "flag": "🇬🇧", "decimals": 2},
    "CAD": {"name": "Canadian Dollar", "symbol": "$", "flag": "🇨🇦", "decimals": 2},
    "AUD": {"name": "Australian Dollar", "symbol": "$", "flag": "🇦🇺", "decimals": 2},
    "NZD": {"name": "New Zealand Dollar", "symbol": "$", "flag": "🇳🇿", "decimals": 2},
    "MXN": {"name": "Mexican Peso", "symbol": "$", "flag": "🇲🇽", "decimals": 2},
    "ARS": {"name": "Argentine Peso", "symbol": "$", "flag": "🇦🇷", "decimals": 0},
    "BRL": {"name": "Brazilian Real", "symbol": "R$", "flag": "🇧🇷", "decimals": 2},
    "CLP": {"name": "Chilean Peso", "symbol": "$", "flag": "🇨🇱", "decimals": 0},
    "PEN": {"name": "Peruvian Sol", "symbol": "S/", "flag": "🇵🇪", "decimals": 2},
    "UYU": {"name": "Uruguayan Peso", "symbol": "$", "flag": "🇺🇾", "decimals": 0},
    "JPY": {"name": "Japanese Yen", "symbol": "¥", "flag": "🇯🇵", "decimals": 0},
    "KRW": {"name": "South Korean Won", "symbol": "₩", "flag": "🇰🇷", "decimals": 0},
    "CNY": {"name": "Chinese Yuan", "symbol": "¥", "flag": "🇨🇳", "decimals": 2},
    "INR": {"name": "Indian Rupee", "symbol": "₹", "flag": "🇮🇳", "decimals": 0},
    "SGD": {"name": "Singapore Dollar", "symbol": "$", "flag": "🇸🇬", "decimals": 2},
    "HKD": {"name": "Hong Kong Dollar", "symbol": "$", "flag": "🇭🇰", "decimals": 2},
    "ZAR": {"name": "South African Rand", "symbol": "R", "flag": "🇿🇦", "decimals": 2},
    "NGN": {"name": "Nigerian Naira", "symbol": "₦", "flag": "🇳🇬", "decimals": 0},
    "EGP": {"name": "Egyptian Pound", "symbol": "£", "flag": "🇪🇬", "decimals": 2},
    "MAD": {"name": "Moroccan Dirham", "symbol": "د.م.", "flag": "🇲🇦", "decimals": 2},
}


class ExchangeRateError(Exception):
    pass


def is_supported(currency: Optional[str]) -> bool:
    return (currency or "").upper() in FALLBACK_RATES


def format_currency(amount: float, currency: str, show_code: bool = False, show_flag: bool = False) -> str:
    """en-US style: symbol, thousands separators and the currency's usual decimals."""
    info = CURRENCY_INFO[currency]
    decimals = info["decimals"]
    sign = "-" if amount < 0 else ""
    result = f"{sign}{info['symbol']}{abs(amount):,.{decimals}f}"
    if show_flag:
        result = f"{info['flag']} {result}"
    if show_code and currency != "USD":
        result = f"{result} {currency}"
    return result


class ExchangeRateService:
    _cached: Optional[Dict[str, Any]] = None
    _cached_at: float = 0

    def __init__(self, api_key: Optional[str] = None, api_url: Optional[str] = None,
                 cache_seconds: Optional[int] = None):
        self.api_key = api_key if api_key is not None else settings.exchange_rate_api_key
        self.api_url = (api_url or settings.exchange_rate_api_url).rstrip("/")
        self.cache_seconds = cache_seconds if cache_seconds is not None else settings.exchange_rate_cache_seconds

    @classmethod
    def clear_cache(cls):
        cls._cached = None
        cls._cached_at = 0

    def fetch_rates(self) -> Dict[str, Any]:
        if not self.api_key:
            raise ExchangeRateError("Exchange rate API key not configured")
        response = httpx.get(
            f"{self.api_url}/{self.api_key}/latest/COP",
            headers={"Accept": "application/json"},
            timeout=10,
        )
        if response.status_code >= 400:
            raise ExchangeRateError(f"API responded with status: {response.status_code}")
        data = response.json()
        if data.get("result") != "success":
            raise ExchangeRateError(f"API error: {data.get('error-type', 'Unknown error')}")

        api_rates = data.get("conversion_rates") or {}
        rates = {code: api_rates.get(code, fallback) for code, fallback in FALLBACK_RATES.items()}
        return {"base": "COP", "rates": rates, "lastUpdated": utcnow_iso(), "source": "api"}

    def fallback_rates(self) -> Dict[str, Any]:
        return {"base": "COP", "rates": dict(FALLBACK_RATES), "lastUpdated": utcnow_iso(), "source": "fallback"}

    def get_current_rates(self) -> Dict[str, Any]:
        cls = type(self)
        if cls._cached and (time.time() - cls._cached_at) < self.cache_seconds:
            return cls._cached
        try:
            rates = self.fetch_rates()
        except (ExchangeRateError, httpx.HTTPError, ValueError) as e:
            logger.warning(f"Exchange rate fetch failed, using fallback rates: {e}")
            return self.fallback_rates()
        cls._cached = rates
        cls._cached_at = time.time()
        logger.info("Exchange rates refreshed from API")
        return rates

    def refresh_rates(self) -> Dict[str, Any]:
        self.clear_cache()
        return self.get_current_rates()

    def _rate(self, currency: str) -> float:
        cached = type(self)._cached
        rates = cached["rates"] if cached else FALLBACK_RATES
        return rates.get(currency, FALLBACK_RATES[currency])

    def convert_from_cop(self, cop_amount: float, target: str) -> float:
        return cop_amount * self._rate(target)

    def convert_to_cop(self, amount: float, source: str) -> int:
        return round(amount / self._rate(source))


def get_exchange_rate_service() -> ExchangeRateService:
    return ExchangeRateService()
