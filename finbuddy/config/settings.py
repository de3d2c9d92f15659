"""
Configuration Management for FinBuddy

Every setting is read from the environment (or a local .env file)
through pydantic-settings, one class per concern: session tokens, the
AI gateway, text-to-speech, the spreadsheet backend and the app itself.

DESIGN DECISION: Each concern loads on first access, so the Streamlit
app can run against in-memory storage without Google credentials and
the API can start without Sheets settings it never touches.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuthSettings(BaseSettings):
    """Session verification for tokens issued by the hosted backend."""

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    jwt_secret: str = Field(
        ...,
        description="Secret used by the backend to sign access tokens"
    )
    jwt_audience: str = Field(
        default="authenticated",
        description="Expected 'aud' claim of access tokens"
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="Signing algorithm of access tokens"
    )


class LLMSettings(BaseSettings):
    """LLM gateway configuration (OpenAI-compatible chat completions)."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Bearer key for the LLM gateway"
    )
    base_url: str = Field(
        default="https://ai.gateway.lovable.dev/v1",
        description="Base URL of the chat completions API"
    )
    model_name: str = Field(
        default="google/gemini-2.5-flash",
        description="Model to use for advisor requests"
    )
    chat_model_name: str = Field(
        default="google/gemini-2.5-flash",
        description="Model to use for the conversational assistant"
    )
    max_tokens: int = Field(
        default=4096,
        ge=100,
        le=16384,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )
    timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="HTTP timeout for a single gateway call"
    )

    @property
    def completions_url(self) -> str:
        return self.base_url.rstrip("/") + "/chat/completions"


class SpeechSettings(BaseSettings):
    """Text-to-speech for assistant replies (ElevenLabs)."""

    model_config = SettingsConfigDict(
        env_prefix="ELEVENLABS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="ElevenLabs API key"
    )
    base_url: str = Field(
        default="https://api.elevenlabs.io/v1",
        description="Base URL of the text-to-speech API"
    )
    voice_id: str = Field(
        default="JBFqnCBsd6RMkjVDRZzb",
        description="Voice used when the request names none"
    )
    model_id: str = Field(
        default="eleven_multilingual_v2",
        description="Speech model"
    )
    stability: float = Field(default=0.5, ge=0.0, le=1.0)
    similarity_boost: float = Field(default=0.75, ge=0.0, le=1.0)
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for a single synthesis call"
    )

    def speech_url(self, voice_id: str) -> str:
        return f"{self.base_url.rstrip('/')}/text-to-speech/{voice_id}"


class GoogleSheetsSettings(BaseSettings):
    """Spreadsheet backend: one worksheet per table plus the audit log."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file with access to the spreadsheet"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Spreadsheet holding every FinBuddy table"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Worksheet that receives audit events"
    )
    worksheet_rows: int = Field(
        default=2000,
        ge=100,
        description="Initial row count for newly created table worksheets"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """A missing key file only warns; containers often mount it after start."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Service account key {v} does not exist yet. "
                "Sheets storage will fail until it is present."
            )
        return v


class AppSettings(BaseSettings):
    """
    App-wide settings: environment, logging, storage backend, the HTTP
    surface and bill reminders.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="development, staging or production"
    )
    debug_mode: bool = Field(
        default=False,
        description="Verbose logs and auto-reload of the API server"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    # Storage backend: "sheets" for Google Sheets, "memory" for local runs
    storage_backend: str = Field(
        default="sheets",
        pattern="^(sheets|memory)$",
        description="Which storage backend to use"
    )

    # User the Streamlit app acts as when no access token is entered
    # (in-memory backend only)
    local_user_id: str = Field(
        default="local-user",
        min_length=1,
        description="User id for local, sign-in free runs"
    )

    # HTTP surface
    cors_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    # Bill reminders
    bill_reminder_days: int = Field(
        default=3,
        ge=0,
        le=60,
        description="How many days ahead a bill counts as upcoming"
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


class Settings(BaseSettings):
    """
    Entry point to every settings group.

    Groups are properties so each is validated only when first used.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def llm(self) -> LLMSettings:
        return LLMSettings()

    @property
    def speech(self) -> SpeechSettings:
        return SpeechSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings.

    Cached; tests that change the environment call
    get_settings.cache_clear() afterwards.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try to load every settings group.

    Returns {group: loaded_ok}, plus "<group>_error" with the reason
    for groups that failed. The Settings page shows this table.
    """
    results = {}

    settings = get_settings()

    for name in ("auth", "llm", "speech", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
