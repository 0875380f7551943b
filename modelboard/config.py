from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Dict, Optional


def _default_source_priority() -> Dict[str, int]:
    return {
        "artificial_analysis": 3,
        "epoch_ai": 2,
        "lmarena": 1,
        "openrouter": 2,
        "litellm": 1,
    }


class Settings(BaseSettings):
    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./modelboard.db")
    debug: bool = Field(default=False)

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)

    # Application
    app_name: str = Field(default="Modelboard")
    app_version: str = Field(default="0.1.0")
    api_prefix: str = Field(default="/api/v1")

    # Staged merge validation
    merge_max_score_change: float = Field(default=30.0)  # absolute points
    merge_max_price_change_ratio: float = Field(default=3.0)  # either direction
    merge_score_min: float = Field(default=0.0)
    merge_score_max: float = Field(default=100.0)

    # Higher wins when several sources report the same (model, metric)
    merge_source_priority: Dict[str, int] = Field(default_factory=_default_source_priority)

    # Terminal staging rows older than this are purged after each run
    staging_retention_days: int = Field(default=30)

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore"
    }


settings = Settings()
