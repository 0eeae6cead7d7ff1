"""Environment-driven configuration with Pydantic v2."""

from typing import List, Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3010, ge=1024, le=65535)
    debug: bool = Field(default=False)

    # Security
    cors_origins: List[str] = Field(default=["http://localhost:5173"])

    # Database Configuration
    database_url: str = Field(default="sqlite+aiosqlite:///./data/workflows.db")
    database_echo: bool = Field(default=False)
    database_pool_size: int = Field(default=20, ge=5, le=100)
    database_max_overflow: int = Field(default=30, ge=10, le=100)

    # Job Queue
    queue_idle_gap: float = Field(default=1.0, ge=1.0, le=60.0)  # seconds between dequeues, 1s minimum
    job_result_retention: int = Field(default=3600, ge=0)  # seconds a terminal result stays queryable
    cleanup_interval: int = Field(default=300, ge=1)

    # Scheduler
    scheduler_enabled: bool = Field(default=True)
    scheduler_interval: int = Field(default=60, ge=1)

    # Connectors
    http_timeout: float = Field(default=30.0, gt=0.0, le=30.0)
    http_user_agent: str = Field(default="AutoFlow-Workflow-Engine/1.0")
    slack_bot_token: Optional[str] = Field(default=None)
    slack_api_url: str = Field(default="https://slack.com/api/chat.postMessage")
    slack_simulated_latency: float = Field(default=0.5, ge=0.0)
    data_store_simulated_latency: float = Field(default=0.8, ge=0.0)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for SQLite."""
        if v and v.startswith("sqlite"):
            if ":///" in v:
                db_path = v.split("///")[1]
                if db_path and db_path != ":memory:":
                    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.debug

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
