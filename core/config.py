"""
Application settings, read from the environment and ``.env``.

Nested groups use ``__``: ``VIVENU__API_KEY``, ``PAYFAC__HMAC_KEY``, ``HTTP__TIMEOUT``.
"""
from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class HttpSettings(BaseModel):
    timeout: float = 10.0
    # Only transport errors are retried; 0 leaves retries to the caller.
    max_retries: int = 0
    retry_delay: float = 0.5


class VivenuSettings(BaseModel):
    base_url: str = "https://vivenu.com"
    api_key: Optional[str] = None
    gateway_secret: Optional[str] = None
    webhook_secret: Optional[str] = None


class StartButtonSettings(BaseModel):
    base_url: str = "https://api.startbutton.tech"
    secret_key: Optional[str] = None  # initialize
    private_key: Optional[str] = None  # status and refunds
    partner: str = "Paystack"


class PayfacSettings(BaseModel):
    base_url: str = "https://api.payfac.example"
    api_key: Optional[str] = None
    terminal_id: Optional[str] = None
    hmac_key: Optional[str] = None  # hex-encoded
    null_representation: str = ""
    success_status: str = "Completed"


class Settings(BaseSettings):
    # app
    PROJECT_NAME: str = Field(default="Vivenu Payment Gateway")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="development")

    APP_URL: str = Field(default="http://localhost:8080")
    MERCHANT_NAME: str = Field(default="")
    PAYMENT_PROVIDER: Literal["startbutton", "payfac"] = Field(default="startbutton")
    DEFAULT_CURRENCY: str = Field(default="GHS")

    http: HttpSettings = Field(default_factory=HttpSettings)
    vivenu: VivenuSettings = Field(default_factory=VivenuSettings)
    startbutton: StartButtonSettings = Field(default_factory=StartButtonSettings)
    payfac: PayfacSettings = Field(default_factory=PayfacSettings)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("DEFAULT_CURRENCY")
    @classmethod
    def _upper_currency(cls, v: str) -> str:
        u = (v or "").strip().upper()
        if len(u) != 3 or not u.isalpha():
            raise ValueError("DEFAULT_CURRENCY must be ISO-4217 alpha-3")
        return u

    @field_validator("APP_URL")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    return Settings()
