from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str
    database_ssl: bool = False

    # JWT (tenant-scoped bearer tokens)
    secret_key: str
    access_token_expire_minutes: int = 60
    algorithm: str = "HS256"

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Env
    env: str = "development"

    # Availability engine
    slot_granularity_minutes: int = 15
    default_duration_minutes: int = 30
    min_duration_minutes: int = 5
    scan_horizon_days: int = 14
    scan_chunk_days: int = 7
    scan_target_dates: int = 5
    scan_preview_slots: int = 4
    # Only used when a location row carries no timezone
    default_timezone: str = "America/Argentina/Buenos_Aires"
    default_phone_region: str = "AR"

    # WhatsApp Cloud API. Leave token empty to disable notifications.
    whatsapp_api_url: str = "https://graph.facebook.com/v19.0"
    whatsapp_phone_number_id: str = ""
    whatsapp_token: str = ""
    whatsapp_template_appointment_created: str = "appointment_created"
    whatsapp_language_code: str = "es"

    # Google Calendar. Leave token empty to disable calendar sync.
    google_calendar_api_url: str = "https://www.googleapis.com/calendar/v3"
    google_calendar_token: str = ""

    # Outbound HTTP
    http_timeout_seconds: float = 10.0

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def whatsapp_enabled(self) -> bool:
        return bool(self.whatsapp_token and self.whatsapp_phone_number_id)

    @property
    def calendar_sync_enabled(self) -> bool:
        return bool(self.google_calendar_token)


settings = Settings()
