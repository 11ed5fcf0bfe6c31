from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Centralized application settings.

    This keeps environment-variable handling in one place so other modules can
    depend on strongly-typed attributes instead of calling os.getenv
    directly.
    """

    # Identity store selection: "memory" (default) or "gotrue".
    identity_backend: str = os.getenv("IDENTITY_BACKEND", "memory")

    # GoTrue (Supabase Auth) endpoint and service-role key. Only used when
    # IDENTITY_BACKEND=gotrue.
    gotrue_url: Optional[str] = os.getenv("GOTRUE_URL")
    gotrue_service_key: Optional[str] = os.getenv("GOTRUE_SERVICE_KEY")
    identity_timeout_seconds: float = float(os.getenv("IDENTITY_TIMEOUT_SECONDS", "10"))

    # Optional database configuration for SQL-backed repositories.
    database_url: Optional[str] = os.getenv("DATABASE_URL")
    use_sql_repos: bool = os.getenv("USE_SQL_REPOS", "false").lower() == "true"
    store_timeout_seconds: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "10"))

    # Whether an email whose last whitelist entry was rejected may be invited
    # again. Approved emails can never be re-invited.
    allow_reinvite_after_rejection: bool = (
        os.getenv("ALLOW_REINVITE_AFTER_REJECTION", "true").lower() == "true"
    )

    # GoTrue rejects passwords shorter than 6 characters by default.
    min_password_length: int = int(os.getenv("MIN_PASSWORD_LENGTH", "6"))

    # Optional first admin created on startup when no admin profile exists.
    bootstrap_admin_email: Optional[str] = os.getenv("BOOTSTRAP_ADMIN_EMAIL")
    bootstrap_admin_password: Optional[str] = os.getenv("BOOTSTRAP_ADMIN_PASSWORD")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # CORS configuration: comma-separated origins (e.g. "https://app.example.com,https://admin.example.com").
    # Default is "*" (allow all) which is acceptable for local development but
    # should be tightened in production.
    cors_allow_origins: str = os.getenv("CORS_ALLOW_ORIGINS", "*")


settings = Settings()
