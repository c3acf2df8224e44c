from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: Optional[str] = None  # Webhooks and payment flows write across users

    # Clerk
    clerk_secret_key: Optional[str] = None
    clerk_webhook_secret: Optional[str] = None  # whsec_... from the Clerk dashboard
    clerk_jwks_url: str = ""
    clerk_api_url: str = "https://api.clerk.com/v1"
    clerk_authorized_parties: str = ""  # comma separated, empty disables the azp check

    # Bold
    bold_api_key: Optional[str] = None
    bold_secret_key: str = ""
    bold_webhook_secret_key: str = ""
    bold_currency: str = "COP"

    # PayPal
    paypal_client_id: Optional[str] = None
    paypal_client_secret: Optional[str] = None
    paypal_webhook_id: Optional[str] = None
    paypal_base_url: str = "https://api-m.paypal.com"  # https://api-m.sandbox.paypal.com for testing
    paypal_cop_per_usd: float = 4000.0

    # Resend
    resend_api_key: Optional[str] = None
    resend_api_url: str = "https://api.resend.com"
    email_from: str = "MotorManía <noreply@motormaniacolombia.com>"

    # Meta Conversions API
    meta_pixel_id: Optional[str] = None
    meta_capi_token: Optional[str] = None
    fb_test_event_code: Optional[str] = None
    meta_graph_version: str = "v18.0"

    # Exchange rates / geolocation
    exchange_rate_api_key: Optional[str] = None
    exchange_rate_api_url: str = "https://v6.exchangerate-api.com/v6"
    exchange_rate_cache_seconds: int = 6 * 60 * 60
    geo_cache_seconds: int = 30 * 60
    geo_timeout_seconds: float = 3.0

    # Internal calls between our own endpoints and cron jobs
    internal_api_key: str = ""

    # Site
    site_url: str = "http://localhost:3000"
    season_end: str = "2026-12-31T23:59:59+00:00"
    support_email: str = "soporte@motormaniacolombia.com"

    # App
    app_name: str = "motormania-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    public_rate_limit: str = "30/minute"
    pending_cleanup_enabled: bool = False

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_authorized_parties(self) -> List[str]:
        return [p.strip() for p in self.clerk_authorized_parties.split(",") if p.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
