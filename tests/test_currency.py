# =============================================================================
# tests/test_currency.py - Exchange rates and visitor currency detection
# =============================================================================

from unittest.mock import MagicMock, patch

import httpx
import pytest

from app.modules.currency.exchange_rates import (
    FALLBACK_RATES, ExchangeRateService, format_currency, is_supported,
)
from app.modules.currency import location
from app.modules.currency.location import (
    DetectionContext, DetectionResult, LocationDetectionService, currency_for_country, select_best_result,
)


@pytest.fixture(autouse=True)
def clear_caches():
    ExchangeRateService.clear_cache()
    LocationDetectionService.clear_cache()
    yield
    ExchangeRateService.clear_cache()
    LocationDetectionService.clear_cache()


def api_response(status=200, payload=None):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload or {}
    return response


class TestFormatting:
    def test_cop_has_no_decimals(self):
        assert format_currency(1234567, "COP") == "$1,234,567"

    def test_code_and_flag(self):
        assert format_currency(12.5, "EUR", show_code=True, show_flag=True) == "🇪🇺 €12.50 EUR"

    def test_usd_never_shows_code(self):
        assert format_currency(5, "USD", show_code=True) == "$5.00"

    def test_supported(self):
        assert is_supported("usd")
        assert not is_supported("XYZ")
        assert not is_supported(None)


class TestExchangeRateService:
    def test_without_api_key_serves_fallback(self):
        rates = ExchangeRateService(api_key="").get_current_rates()
        assert rates["source"] == "fallback"
        assert rates["rates"] == FALLBACK_RATES

    @patch("app.modules.currency.exchange_rates.httpx.get")
    def test_api_rates_fill_missing_from_fallback(self, mock_get):
        mock_get.return_value = api_response(payload={"result": "success", "conversion_rates": {"USD": 0.00026}})

        rates = ExchangeRateService(api_key="k").get_current_rates()

        assert rates["source"] == "api"
        assert rates["rates"]["USD"] == 0.00026
        assert rates["rates"]["EUR"] == FALLBACK_RATES["EUR"]
        assert mock_get.call_args.args[0].endswith("/k/latest/COP")

    @patch("app.modules.currency.exchange_rates.httpx.get")
    def test_api_rates_are_cached(self, mock_get):
        mock_get.return_value = api_response(payload={"result": "success", "conversion_rates": {}})
        service = ExchangeRateService(api_key="k")

        service.get_current_rates()
        service.get_current_rates()

        assert mock_get.call_count == 1

    @patch("app.modules.currency.exchange_rates.httpx.get")
    def test_fallback_is_not_cached(self, mock_get):
        mock_get.side_effect = httpx.ConnectError("down")
        service = ExchangeRateService(api_key="k")

        assert service.get_current_rates()["source"] == "fallback"
        assert service.get_current_rates()["source"] == "fallback"
        assert mock_get.call_count == 2

    @patch("app.modules.currency.exchange_rates.httpx.get")
    def test_api_error_result_falls_back(self, mock_get):
        mock_get.return_value = api_response(payload={"result": "error", "error-type": "invalid-key"})
        assert ExchangeRateService(api_key="k").get_current_rates()["source"] == "fallback"

    @patch("app.modules.currency.exchange_rates.httpx.get")
    def test_refresh_bypasses_cache(self, mock_get):
        mock_get.return_value = api_response(payload={"result": "success", "conversion_rates": {}})
        service = ExchangeRateService(api_key="k")
        service.get_current_rates()
        service.refresh_rates()
        assert mock_get.call_count == 2

    def test_conversions(self):
        service = ExchangeRateService(api_key="")
        assert service.convert_from_cop(40000, "USD") == pytest.approx(10)
        assert service.convert_to_cop(10, "USD") == 40000


class TestSelection:
    def test_high_confidence_wins(self):
        best = select_best_result([
            DetectionResult("EUR", 0.5, "accept-language"),
            DetectionResult("USD", 0.9, "vercel-headers"),
        ])
        assert best.currency == "USD"

    def test_consensus_boosts_low_confidence(self):
        best = select_best_result([
            DetectionResult("MXN", 0.7, "timezone"),
            DetectionResult("MXN", 0.5, "accept-language"),
        ])
        assert best.currency == "MXN"
        assert best.confidence == pytest.approx(0.85)
        assert best.method == "timezone+consensus"

    def test_no_consensus_takes_top(self):
        best = select_best_result([
            DetectionResult("MXN", 0.7, "timezone"),
            DetectionResult("EUR", 0.5, "accept-language"),
        ])
        assert best.method == "timezone"

    def test_empty(self):
        assert select_best_result([]) is None

    def test_country_lookup(self):
        assert currency_for_country(" co ") == "COP"
        assert currency_for_country("United Kingdom") == "GBP"
        assert currency_for_country("ZZ") is None


class TestLocationDetection:
    def test_cloudflare_header(self):
        service = LocationDetectionService(cache_seconds=60)
        result = service.detect(DetectionContext(headers={"cf-ipcountry": "AR"}, client_ip="10.0.0.1"))
        assert result == {"currency": "ARS", "confidence": 0.95, "method": "cloudflare-headers", "cached": False}

    def test_default_is_cop(self):
        result = LocationDetectionService().detect(DetectionContext(client_ip="10.0.0.2"))
        assert result["currency"] == "COP"
        assert result["method"] == "default"
        assert result["confidence"] == 0.0

    def test_second_call_is_cached(self):
        service = LocationDetectionService(cache_seconds=60)
        context = DetectionContext(timezone="Europe/Madrid", client_ip="10.0.0.3")
        service.detect(context)
        assert service.detect(context)["cached"] is True

    def test_expired_entries_are_evicted_on_write(self):
        service = LocationDetectionService(cache_seconds=0)
        service.detect(DetectionContext(client_ip="10.0.0.4"))
        service.detect(DetectionContext(client_ip="10.0.0.5"))
        assert set(LocationDetectionService._cache) == {"10.0.0.5"}

    def test_cache_size_is_capped(self, monkeypatch):
        monkeypatch.setattr(location, "CACHE_MAX_SIZE", 3)
        service = LocationDetectionService(cache_seconds=60)
        for n in range(5):
            service.detect(DetectionContext(client_ip=f"10.0.1.{n}"))
        assert len(LocationDetectionService._cache) == 3
        assert "10.0.1.4" in LocationDetectionService._cache

    @patch("app.modules.currency.location.httpx.get")
    def test_ip_service_for_public_ip(self, mock_get):
        mock_get.return_value = api_response(payload={"countryCode": "BR"})
        result = LocationDetectionService().detect(DetectionContext(client_ip="8.8.8.8"))
        assert result["currency"] == "BRL"
        assert result["method"] == "ip-api"

    @patch("app.modules.currency.location.httpx.get")
    def test_private_ip_is_not_looked_up(self, mock_get):
        LocationDetectionService().detect(DetectionContext(client_ip="192.168.1.10"))
        mock_get.assert_not_called()

    def test_accept_language_and_timezone_agree(self):
        context = DetectionContext(headers={"accept-language": "es-MX,es;q=0.9"}, timezone="America/Mexico_City",
                                   client_ip="10.0.0.4")
        result = LocationDetectionService().detect(context)
        assert result["currency"] == "MXN"
        assert result["method"] == "timezone+consensus"


class TestCurrencyRoutes:
    def test_rates(self, client):
        data = client.get("/api/currency/rates").json()
        assert data["base"] == "COP"
        assert data["source"] == "fallback"

    def test_convert_from_cop(self, client):
        data = client.get("/api/currency/convert?amount=40000&from=COP&to=usd").json()
        assert data["result"] == pytest.approx(10)
        assert data["formatted"] == "$10.00"
        assert data["rateSource"] == "fallback"

    def test_convert_to_cop(self, client):
        data = client.get("/api/currency/convert?amount=10&from=USD&to=COP").json()
        assert data["result"] == 40000

    def test_convert_unsupported(self, client):
        assert client.get("/api/currency/convert?amount=1&from=COP&to=XYZ").status_code == 400

    def test_refresh_requires_internal_key(self, client):
        assert client.post("/api/currency/refresh").status_code == 401
        response = client.post("/api/currency/refresh", headers={"x-internal-key": "test-internal-key"})
        assert response.status_code == 200

    def test_detect_uses_timezone_param(self, client):
        data = client.get("/api/currency/detect?timezone=Asia/Tokyo").json()
        assert data["currency"] == "JPY"

    def test_geo_from_vercel_headers(self, client):
        data = client.get("/api/geo", headers={"x-vercel-ip-country": "CL", "x-vercel-ip-timezone": "America/Santiago"}).json()
        assert data == {"country": "CL", "continent": None, "timezone": "America/Santiago", "region": None, "source": "vercel"}
