"""Application configuration via environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]

    # Firebase Realtime Database. Also exposed to the browser through /env.js.
    firebase_api_key: str = ""
    firebase_auth_domain: str = ""
    firebase_database_url: str = ""  # https://<project>-default-rtdb.firebaseio.com
    firebase_project_id: str = ""
    firebase_storage_bucket: str = ""
    firebase_messaging_sender_id: str = ""
    firebase_app_id: str = ""
    gemini_api_key: str = ""

    # Server-side only: database secret or ID token passed as ?auth=
    firebase_auth_token: str = ""

    # Collection the posts live under
    blogs_collection: str = "blogs"

    # Timeout for one-shot store requests (None = wait forever)
    store_timeout_seconds: float | None = 15.0

    # Use the store's server-side increment for upvotes when available
    atomic_upvotes: bool = True

    # Local fallback store (JSON key-value file)
    local_storage_path: str = ".minimalblog/local-storage.json"

    # Shared admin code (empty = publishing disabled)
    secret_code: str = ""

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
