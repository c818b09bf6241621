from functools import lru_cache
import json

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_list_value(value: str) -> list[str]:
    if not value:
        return []
    if isinstance(value, str):
        raw = value.strip()
        if raw == "":
            return []
        try:
            parsed = json.loads(raw)
            if isinstance(parsed, list):
                return [str(item).strip() for item in parsed if str(item).strip()]
        except ValueError:
            pass
        return [item.strip() for item in raw.split(",") if item.strip()]
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


def _parse_models_value(value: str) -> dict[str, list[str]]:
    """Parse ``AI_ALLOWED_MODELS``.

    Accepts JSON (``{"openai": ["gpt-4o-mini"]}``) or the compact form
    ``openai:gpt-4o-mini|gpt-4o,claude:claude-3-5-haiku-20241022``.
    """
    raw = (value or "").strip()
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        return {str(k).strip().lower(): _parse_list_value(v) for k, v in parsed.items()}

    result: dict[str, list[str]] = {}
    for chunk in raw.split(","):
        if ":" not in chunk:
            continue
        provider, models = chunk.split(":", 1)
        result[provider.strip().lower()] = [m.strip() for m in models.split("|") if m.strip()]
    return result


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        validate_by_name=True,
        populate_by_name=True,
    )
    database_url: str = ""

    jwt_secret: str = ""
    jwt_audience: str = ""

    docs_enabled: bool = Field(default=True)
    openapi_enabled: bool = Field(default=True)
    expose_error_details: bool = False
    log_level: str = "INFO"
    log_json: bool = False

    default_currency: str = "BRL"
    default_language: str = "portuguese"

    openai_api_key: str = ""
    anthropic_api_key: str = ""
    groq_api_key: str = ""

    ai_expense_provider: str = "mock"
    ai_expense_model: str = ""
    ai_allowed_providers_raw: str = Field(
        default="mock,openai,claude,groq",
        validation_alias=AliasChoices("AI_ALLOWED_PROVIDERS"),
    )
    ai_allowed_models_raw: str = Field(
        default="",
        validation_alias=AliasChoices("AI_ALLOWED_MODELS"),
    )
    enable_ai_overrides: bool = False
    ai_temperature: float = 0.1
    ai_max_tokens: int = 1000
    ai_timeout_seconds: float = 8.0
    # Outer bound on the whole model round trip; 0 disables it.
    ai_expense_call_timeout_seconds: float = 0.0
    ai_debug_store_raw: bool = False

    @field_validator("default_currency", mode="before")
    @classmethod
    def _upper_currency(cls, value):
        if isinstance(value, str) and value.strip():
            return value.strip().upper()
        return "BRL"

    @property
    def ai_allowed_providers(self) -> list[str]:
        return [p.lower() for p in _parse_list_value(self.ai_allowed_providers_raw)]

    @property
    def ai_allowed_models(self) -> dict[str, list[str]]:
        return _parse_models_value(self.ai_allowed_models_raw)

@lru_cache

def get_settings() -> Settings:
    return Settings()
