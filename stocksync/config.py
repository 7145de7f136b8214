"""Runtime settings read from the environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from stocksync.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2024-07"
DEFAULT_VENDOR_URL = "https://customerapi.eetgroup.com"
DEFAULT_FILTER_CONFIG = "config/product-filter.json"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(slots=True)
class Settings:
    shop_domain: str
    access_token: str
    feed_path: str
    environment: str = "development"
    api_version: str = DEFAULT_API_VERSION
    filter_config_path: str = DEFAULT_FILTER_CONFIG
    vendor_username: str | None = None
    vendor_password: str | None = None
    vendor_base_url: str = DEFAULT_VENDOR_URL
    vendor_batch_size: int = 999
    item_delay: float = 0.2
    page_delay: float = 0.1
    batch_delay: float = 0.1
    page_size: int = 250
    metafield_namespace: str = "supplier"
    tag_brand: bool = True
    fetch_documents: bool = False
    database_url: str | None = None
    report_dir: str | None = None
    log_dir: str | None = None
    logging_enabled: bool = True
    log_level: str = "INFO"

    @property
    def graphql_url(self) -> str:
        domain = self.shop_domain.removeprefix("https://").rstrip("/")
        return f"https://{domain}/admin/api/{self.api_version}/graphql.json"

    @property
    def has_vendor_credentials(self) -> bool:
        return bool(self.vendor_username and self.vendor_password)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        environment = env.get("PRODUCTION", "development")
        if environment == "development":
            shop_domain = env.get("SHOPIFY_TEST_STORE_ADMIN_URL")
            access_token = env.get("SHOPIFY_TEST_STORE_ADMIN_API")
        else:
            shop_domain = env.get("SHOPIFY_PRODUCTION_STORE_ADMIN_URL")
            access_token = env.get("SHOPIFY_PRODUCTION_STORE_ADMIN_API")
        if not shop_domain or not access_token:
            raise ConfigError(
                f"Missing Shopify configuration for {environment} environment",
                details={"environment": environment},
            )
        feed_path = env.get("FEED_PATH") or env.get("EET_PRICE")
        if not feed_path:
            raise ConfigError("FEED_PATH (or EET_PRICE) must point at the vendor feed file")

        settings = cls(
            shop_domain=shop_domain,
            access_token=access_token,
            feed_path=feed_path,
            environment=environment,
            api_version=env.get("SHOPIFY_API_VERSION", DEFAULT_API_VERSION),
            filter_config_path=env.get("FILTER_CONFIG", DEFAULT_FILTER_CONFIG),
            vendor_username=env.get("EET_USERNAME") or None,
            vendor_password=env.get("EET_PASSWORD") or None,
            vendor_base_url=env.get("EET_BASE_URL", DEFAULT_VENDOR_URL),
            vendor_batch_size=_int(env, "EET_BATCH_SIZE", 999),
            item_delay=_float(env, "ITEM_DELAY", 0.2),
            page_delay=_float(env, "PAGE_DELAY", 0.1),
            batch_delay=_float(env, "BATCH_DELAY", 0.1),
            metafield_namespace=env.get("METAFIELD_NAMESPACE", "supplier"),
            tag_brand=env.get("TAG_BRAND", "true").lower() in _TRUTHY,
            fetch_documents=env.get("FETCH_DOCUMENTS", "false").lower() in _TRUTHY,
            database_url=env.get("DATABASE_URL") or None,
            report_dir=env.get("REPORT_DIR") or None,
            log_dir=env.get("LOG_DIR") or None,
            logging_enabled=env.get("LOGGING", "true").lower() != "false",
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
        if not 1 <= settings.vendor_batch_size <= 999:
            raise ConfigError("EET_BATCH_SIZE must be between 1 and 999")
        return settings


def _int(env, key: str, default: int) -> int:
    raw = env.get(key)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc


def _float(env, key: str, default: float) -> float:
    raw = env.get(key)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc
