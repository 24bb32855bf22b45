"""Configuration for the chat client using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_PACKAGE_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _PACKAGE_DIR.parent.parent  # src/gemini_chat/ → project root


class Settings(BaseSettings):
    """All settings, loaded from environment variables and the project .env file."""

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Firebase Authentication (Identity Toolkit REST API)
    # ------------------------------------------------------------------
    firebase_api_key: str = ""
    firebase_project_id: str = ""
    identity_toolkit_url: str = "https://identitytoolkit.googleapis.com/v1"

    # ------------------------------------------------------------------
    # Document store; "memory" keeps everything in-process (development)
    # ------------------------------------------------------------------
    document_store: Literal["firestore", "memory"] = "firestore"
    firestore_database: str = "(default)"
    google_application_credentials: Path | None = None

    # ------------------------------------------------------------------
    # Gemini
    # ------------------------------------------------------------------
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-pro"

    # ------------------------------------------------------------------
    # Google sign-in (OpenID Connect)
    # Leave google_client_id empty to disable federated sign-in.
    # ------------------------------------------------------------------
    google_client_id: str = ""
    google_redirect_uri: str = "http://localhost:8000/auth/google/callback"

    # ------------------------------------------------------------------
    # HTTP / logging
    # ------------------------------------------------------------------
    http_timeout_seconds: float = 30.0
    log_level: str = "INFO"
    log_json: bool = False

    # ------------------------------------------------------------------
    # Observability: "off", "logfire" or "otel"
    # ------------------------------------------------------------------
    observability: str = "off"
    otel_service_name: str = "gemini-chat"
    otel_exporter_otlp_endpoint: str = "http://localhost:4318"
    otel_console_exporter: bool = False

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------
    def validate_runtime(self) -> None:
        """Check that all required values are present.

        Call this at application startup (not at import time) so that
        tests can override settings before validation runs.
        """
        if not self.firebase_api_key:
            raise ValueError("FIREBASE_API_KEY not set. Add it to .env")
        if not self.gemini_api_key:
            raise ValueError("GEMINI_API_KEY not set. Add it to .env")
        if self.document_store == "firestore" and not self.firebase_project_id:
            raise ValueError("FIREBASE_PROJECT_ID not set (required for DOCUMENT_STORE=firestore)")
        if self.google_application_credentials and not self.google_application_credentials.exists():
            raise FileNotFoundError(
                f"Service account file not found at {self.google_application_credentials}"
            )

    @property
    def federated_sign_in_enabled(self) -> bool:
        return bool(self.google_client_id)


@lru_cache
def get_settings() -> Settings:
    """Return the cached Settings singleton."""
    return Settings()
