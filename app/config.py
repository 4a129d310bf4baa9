"""Application settings loaded from environment variables."""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DEFAULT_EMAIL_FROM = "AsthmaGuard <onboarding@resend.dev>"
DEFAULT_OPENWEATHER_BASE_URL = "https://api.openweathermap.org/data/2.5"


def _optional(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


@dataclass
class Settings:
    """Runtime configuration handed to each collaborator's constructor."""
    openweather_api_key: Optional[str] = None
    openweather_base_url: str = DEFAULT_OPENWEATHER_BASE_URL
    resend_api_key: Optional[str] = None
    email_from: str = DEFAULT_EMAIL_FROM
    postgres_url: Optional[str] = None
    database_path: str = "asthmaguard.db"
    subscription_store: Optional[str] = None
    http_timeout_seconds: float = 10.0
    allow_origins: List[str] = field(default_factory=lambda: ["*"])
    debug: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current process environment."""
        return cls(
            openweather_api_key=_optional("OPENWEATHER_API_KEY"),
            openweather_base_url=os.getenv("OPENWEATHER_BASE_URL", DEFAULT_OPENWEATHER_BASE_URL),
            resend_api_key=_optional("RESEND_API_KEY"),
            email_from=os.getenv("EMAIL_FROM", DEFAULT_EMAIL_FROM),
            postgres_url=_optional("POSTGRES_URL"),
            database_path=os.getenv("DATABASE_PATH", "asthmaguard.db"),
            subscription_store=_optional("SUBSCRIPTION_STORE"),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "10")),
            allow_origins=os.getenv("ALLOW_ORIGINS", "*").split(","),
            debug=os.getenv("DEBUG", "False").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
