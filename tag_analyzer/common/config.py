from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TAG_ANALYZER_", env_file=".env", extra="ignore"
    )

    # Dataset location
    data_dir: str = "data"
    archive_name: str = "archive.zip"
    extract_dir_name: str = "unzipped"

    # CSV layout (trending videos export)
    title_column: str = "title"
    tags_column: str = "tags"
    views_column: str = "views"
    likes_column: str = "likes"
    tag_separator: str = "|"

    # Analysis knobs
    top_k: int = Field(default=10, ge=1)
    benchmark_runs: int = Field(default=3, ge=1)
    min_expected_videos: int = 100_000

    # Canonical logs are INFO events; keep the console quiet by default
    log_level: str = "WARNING"


settings = Settings()
