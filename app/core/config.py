from functools import lru_cache
from typing import Annotated, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def parse_id_list(raw: Optional[str]) -> List[str]:
    """Splits a comma-separated allow-list, trimming entries and dropping blanks."""
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables (and `.env`)."""

    # --- Access control ---
    # Comma-separated in the environment: ADMIN_UIDS=uid1,uid2
    admin_uids: Annotated[List[str], NoDecode] = []
    super_admin_uids: Annotated[List[str], NoDecode] = []

    # --- Namespacing ---
    app_id: str = "gurudwara-local"

    # --- Outbound email (SendGrid) ---
    sendgrid_api_key: Optional[str] = None
    sendgrid_from: str = "no-reply@example.com"

    # --- Firebase ---
    firebase_api_key: Optional[str] = None
    firebase_auth_domain: Optional[str] = None
    firebase_messaging_sender_id: Optional[str] = None
    firebase_app_id: Optional[str] = None
    gcp_project_id: Optional[str] = None
    gcp_storage_bucket: Optional[str] = None

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("admin_uids", "super_admin_uids", mode="before")
    @classmethod
    def split_id_list(cls, v):
        if isinstance(v, str):
            return parse_id_list(v)
        return v

    @field_validator("sendgrid_api_key", "firebase_api_key", mode="before")
    @classmethod
    def blank_is_unset(cls, v):
        return v or None

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v):
        return v.upper()

    def public_client_config(self) -> dict:
        """Firebase web config handed to browser clients."""
        return {
            "apiKey": self.firebase_api_key,
            "authDomain": self.firebase_auth_domain,
            "projectId": self.gcp_project_id,
            "storageBucket": self.gcp_storage_bucket,
            "messagingSenderId": self.firebase_messaging_sender_id,
            "appId": self.firebase_app_id,
        }


@lru_cache
def get_settings() -> Settings:
    return Settings()
