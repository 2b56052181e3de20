"""
Runtime configuration.
Credentials and endpoints come from environment variables or a ``.env`` file.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # --- App ---
    debug: bool = False
    http_timeout_seconds: float = 30.0

    # --- Card ledger (Stripe) ---
    stripe_api_key: str = ""
    stripe_base_url: str = "https://api.stripe.com"

    # --- Wallet ledger (PayPal) ---
    paypal_client_id: str = ""
    paypal_client_secret: str = ""
    paypal_base_url: str = "https://api-m.paypal.com"

    # --- FX ---
    fx_base_url: str = "https://api.exchangerate.host"

    # --- Warehouse (BigQuery) ---
    google_cloud_project_id: str | None = None
    google_cloud_credentials: str | None = None  # service-account JSON
    bigquery_events_table: str | None = None
    bigquery_dev_events_table: str | None = None
    events_timezone: str = "UTC"
    owned_domains: list[str] = []  # JSON list, e.g. ["example.com"]

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
