from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # Port scanner
    scan_timeout_ms: int = Field(2000, gt=0, alias="SCAN_TIMEOUT_MS")
    scan_max_ports: int = Field(100, gt=0, alias="SCAN_MAX_PORTS")
    scan_max_concurrent_probes: int = Field(0, ge=0, alias="SCAN_MAX_CONCURRENT_PROBES")

    # Upstream services
    ip_lookup_url: str = Field("http://ip-api.com/json/", alias="IP_LOOKUP_URL")
    ip_lookup_timeout_s: float = Field(5.0, gt=0, alias="IP_LOOKUP_TIMEOUT_S")
    analyze_timeout_s: float = Field(8.0, gt=0, alias="ANALYZE_TIMEOUT_S")
    custom_detect_timeout_s: float = Field(5.0, gt=0, alias="CUSTOM_DETECT_TIMEOUT_S")
    find_emails_timeout_s: float = Field(20.0, gt=0, alias="FIND_EMAILS_TIMEOUT_S")
    pagespeed_api_url: str = Field(
        "https://www.googleapis.com/pagespeedonline/v5/runPagespeed", alias="PAGESPEED_API_URL"
    )
    pagespeed_api_key: str | None = Field(None, alias="PAGESPEED_API_KEY")
    pagespeed_timeout_s: float = Field(60.0, gt=0, alias="PAGESPEED_TIMEOUT_S")

    # Mail
    smtp_host: str = Field("localhost", alias="SMTP_HOST")
    smtp_port: int = Field(587, alias="SMTP_PORT")
    smtp_user: str | None = Field(None, alias="SMTP_USER")
    smtp_pass: str | None = Field(None, alias="SMTP_PASS")
    smtp_timeout_s: float = Field(30.0, gt=0, alias="SMTP_TIMEOUT_S")
    email_from: str = Field("webtools@localhost", alias="EMAIL_FROM")
    templates_dir: str = Field("emails", alias="TEMPLATES_DIR")

    database_url: str = Field("sqlite:///./webtools.db", alias="DATABASE_URL")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_file: str | None = Field(None, alias="LOG_FILE")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
