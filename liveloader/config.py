"""Application configuration from environment variables."""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Database
    database_url: str = "sqlite:///./liveloader.db"

    # Redis (Celery broker + result backend)
    redis_url: str = "redis://redis:6379/0"

    # Archive API
    archive_base_url: str = "https://archive.org"
    archive_timeout: int = 30
    archive_retry_attempts: int = 3
    archive_retry_delay: float = 1.0  # seconds, multiplied by attempt number
    archive_page_size: int = 500  # advancedsearch rows per page (max 10000)
    archive_rate_limit: int = 60  # requests per minute

    # Import
    import_batch_size: int = 100
    import_audio_format: str = "flac"  # flac or mp3
    import_writer: str = "orm"  # orm or bulk
    import_song_url_extension: str = "flac"

    # Track matching
    fuzzy_threshold: int = 75
    fuzzy_candidate_limit: int = 5
    phonetic_max_distance: int = 2
    artist_catalog_dir: str = "config/artists"  # One YAML file per artist key

    # Artist mappings: [{"artist_name": ..., "collection_id": ..., "category_id": ...}]
    artist_mappings: list[dict] = []

    # Locks
    lock_dir: str = "var/locks"
    stale_lock_hours: int = 24

    # Jobs
    job_retention_days: int = 7
    job_error_limit: int = 10

    # Logging
    log_level: str = "info"
    log_path: str = ""

    @property
    def mapped_collections(self) -> list[str]:
        return [m["collection_id"] for m in self.artist_mappings if m.get("collection_id")]

    class Config:
        env_file = ".env"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
