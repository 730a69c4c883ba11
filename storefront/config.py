"""Application configuration from environment."""
from pathlib import Path

from dotenv import load_dotenv
from pydantic import field_validator
from pydantic_settings import BaseSettings
from functools import lru_cache

# Load .env from project root (parent of storefront/) so env vars are available everywhere
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=_env_path)

TRICITY_CITIES = ("Chandigarh", "Mohali", "Panchkula")


class Settings(BaseSettings):
    app_name: str = "Verma and Company Storefront"
    app_env: str = "development"
    debug: bool = True

    database_url: str = "sqlite:///./storefront.db"

    jwt_secret_key: str = "jwt-secret-change-me"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 24 * 7

    @field_validator("jwt_secret_key")
    @classmethod
    def strip_jwt_secret(cls, v: str) -> str:
        return (v or "").strip()

    # "memory" keeps pending signups in-process (single instance / tests); "redis" shares them across instances
    kv_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    store_purge_interval_seconds: int = 60

    @field_validator("kv_backend")
    @classmethod
    def known_backend(cls, v: str) -> str:
        v = (v or "memory").strip().lower()
        if v not in ("memory", "redis"):
            raise ValueError("KV_BACKEND must be 'memory' or 'redis'")
        return v

    signup_otp_expire_minutes: int = 5
    signup_record_ttl_seconds: int = 3600
    verification_code_expire_minutes: int = 10
    allowed_cities: list[str] = list(TRICITY_CITIES)
    # Dev/test only: return generated codes in responses and enable /test-verify-otp
    expose_otp: bool = False

    sendgrid_api_key: str = ""
    sendgrid_from_email: str = "noreply@vermaandco.com"
    sendgrid_from_name: str = "Verma and Company."

    mailgun_api_key: str = ""
    mailgun_domain: str = ""
    mailgun_base_url: str = "https://api.mailgun.net"
    mailgun_from_email: str = "noreply@vermaandco.com"
    mailgun_from_name: str = "Verma and Company."

    @field_validator("mailgun_api_key", "mailgun_domain", "mailgun_base_url", "mailgun_from_email", mode="before")
    @classmethod
    def strip_mailgun(cls, v: str) -> str:
        return (v or "").strip()

    admin_email: str = ""
    admin_password: str = ""
    admin_name: str = "Admin User"
    admin_phone: str = "9999999999"
    admin_city: str = "Chandigarh"

    class Config:
        env_file = str(_env_path)
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()
