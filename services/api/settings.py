# services/api/settings.py
from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field
import base64
from typing import List, Optional
from pathlib import Path

class Settings(BaseSettings):
    # Storage settings
    # Default to Google Sheets; override via .env (STORAGE_BACKEND=memory) for local runs
    storage_backend: str = "sheets"
    google_sa_json: str = ""
    google_sa_json_base64: str = ""
    sheets_spreadsheet_id: str = ""

    # Optional JSON file {"<sheet>": [[header...], [row...], ...]} used to seed the memory backend
    memory_seed_file: str = ""

    # Read cache
    cache_ttl_seconds: float = 120.0
    cache_maxsize: int = 256

    # Per-call timeout for backing store calls (0 = rely on the transport)
    sheets_timeout_seconds: float = 0.0

    # Re-read the id cell just before a cell write and refuse if the row moved
    verify_row_before_write: bool = True

    # JSON file {"<sheet>": {"<logical field>": "<Header Text>"}}
    field_map_file: str = ""

    # Downstream automation job (Apps Script web app). Empty = notifications disabled.
    notify_url: str = ""
    notify_timeout_seconds: float = 10.0

    # Auth
    api_keys_sheet: str = "api_keys"
    api_key_cache_seconds: float = 300.0
    # No default: bearer tokens are rejected until JWT_SECRET is set
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"

    # CORS settings
    allowed_origins: str = "http://localhost:5173"

    # Requests per minute, per client IP and path
    rate_limit_read: int = 100
    rate_limit_write: int = 30

    log_level: str = Field(default="INFO", description="Root logging level")

    model_config = ConfigDict(
        # Always load .env from the same folder as this settings.py
        env_file=str(Path(__file__).resolve().parent / ".env"),
        extra="ignore",
    )


    def resolved_google_sa_json(self) -> str:
        """
        Return the service account JSON (path or inline JSON).
        If GOOGLE_SA_JSON_BASE64 is set, decode it and return the JSON text.
        Otherwise return GOOGLE_SA_JSON as-is.
        """
        if self.google_sa_json_base64:
            return base64.b64decode(self.google_sa_json_base64).decode("utf-8")

        return self.google_sa_json

    def get_origins_list(self) -> List[str]:
        """Parse comma-separated origins into a list."""
        if not self.allowed_origins:
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


_settings_instance: Optional[Settings] = None

def get_settings() -> Settings:
    """Singleton pattern for settings."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
