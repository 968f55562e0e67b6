"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
service starts in a development setup without any configuration.  In
a production deployment you should at least override ``SECRET_KEY``,
``ENVIRONMENT`` and the storage credentials.
"""

import os
from dataclasses import dataclass
from typing import List


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes"}


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Global IT Zone API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    # ``development`` exposes internal error details in 500 responses.
    environment: str = os.getenv("ENVIRONMENT", "development")
    debug: bool = _env_bool("DEBUG")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")

    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    algorithm: str = os.getenv("ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))

    # Path to the SQLite database.  Relative paths are resolved
    # against the project root by ``core.db``.
    database_url: str = os.getenv("DATABASE_URL", "catalog.db")

    frontend_url: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
    # Comma‑separated list of extra origins allowed by CORS.
    cors_origins: str = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    # Local image storage, used when Cloudinary is not configured.
    upload_dir: str = os.getenv("UPLOAD_DIR", "uploads")
    max_images_per_request: int = int(os.getenv("MAX_IMAGES_PER_REQUEST", "5"))

    # Per‑IP request budget in slowapi notation; empty disables limiting.
    rate_limit: str = os.getenv("RATE_LIMIT", "100 per 15 minutes")

    cloudinary_cloud_name: str = os.getenv("CLOUDINARY_CLOUD_NAME", "")
    cloudinary_api_key: str = os.getenv("CLOUDINARY_API_KEY", "")
    cloudinary_api_secret: str = os.getenv("CLOUDINARY_API_SECRET", "")
    cloudinary_folder: str = os.getenv("CLOUDINARY_FOLDER", "products")

    public_base_url: str = os.getenv("PUBLIC_BASE_URL", "")
    keep_alive_url: str = os.getenv("KEEP_ALIVE_URL", "")
    keep_alive_interval_seconds: int = int(os.getenv("KEEP_ALIVE_INTERVAL_SECONDS", "600"))
    keep_alive_timezone: str = os.getenv("KEEP_ALIVE_TIMEZONE", "Asia/Kolkata")
    keep_alive_start_hour: int = int(os.getenv("KEEP_ALIVE_START_HOUR", "5"))
    keep_alive_end_hour: int = int(os.getenv("KEEP_ALIVE_END_HOUR", "17"))

    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "5000"))

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def allowed_origins(self) -> List[str]:
        """Deduplicated CORS allow‑list, frontend URL first."""
        origins = [self.frontend_url]
        origins.extend(o.strip() for o in self.cors_origins.split(",") if o.strip())
        return list(dict.fromkeys(origins))

    @property
    def cloudinary_enabled(self) -> bool:
        return bool(self.cloudinary_cloud_name and self.cloudinary_api_key and self.cloudinary_api_secret)


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables
# must be set before this module is imported.
settings = Settings()
