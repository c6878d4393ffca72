# services/api/lens_api/config.py

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Development-only signing key. create_app() refuses it when ENVIRONMENT=production.
DEV_IMAGE_SECRET_KEY = "dev-image-secret-change-me"

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENVIRONMENT: str = "development"

    DATABASE_URL: str = "sqlite:///./lens.db"
    DB_CREATE_ALL: bool = False  # dev convenience; the metadata schema is owned elsewhere

    # -------------------------
    # Image access tokens
    # -------------------------
    IMAGE_SECRET_KEY: str = DEV_IMAGE_SECRET_KEY
    IMAGE_TOKEN_TTL_MS: int = 60_000

    # Front-end origins allowed to pull protected images.
    # CLIENT_URL is prepended to ALLOWED_ORIGINS when set.
    CLIENT_URL: str | None = None
    ALLOWED_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:5174"]
    ORIGIN_MATCH_MODE: Literal["origin", "prefix"] = "origin"

    # -------------------------
    # Storage
    # -------------------------
    STORAGE_BACKEND: Literal["local", "s3"] = "local"
    IMAGE_STORE_DIR: str = "/data/images"
    S3_BUCKET: str | None = None
    S3_PREFIX: str = "sankhanil-lens"
    AWS_REGION: str | None = None
    AWS_ACCESS_KEY_ID: str | None = None
    AWS_SECRET_ACCESS_KEY: str | None = None

    # -------------------------
    # Rendering
    # -------------------------
    WATERMARK_TEXT: str = "SANKHANIL"
    WATERMARK_FONT_PATH: str = "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf"
    THUMBNAIL_MAX_DIM: int = 400
    JPEG_QUALITY: int = 85
    MAX_IMAGE_PIXELS: int = 100_000_000

    # -------------------------
    # Rate limiting (metadata routes only)
    # -------------------------
    REDIS_URL: str | None = None
    RATE_LIMIT_PER_WINDOW: int = 1000
    RATE_LIMIT_WINDOW_SEC: int = 15 * 60
    RATE_LIMIT_FAIL_OPEN: bool = True
    # Key on the first X-Forwarded-For hop; only behind a proxy that overwrites it
    TRUST_PROXY_HEADERS: bool = False

    VIEW_COUNTER_DRAIN_TIMEOUT_SEC: float = 5.0

    def allowed_origins(self) -> list[str]:
        out = []
        if self.CLIENT_URL:
            out.append(self.CLIENT_URL)
        for o in self.ALLOWED_ORIGINS:
            if o and o not in out:
                out.append(o)
        return out

    def uses_dev_secret(self) -> bool:
        return self.IMAGE_SECRET_KEY == DEV_IMAGE_SECRET_KEY
