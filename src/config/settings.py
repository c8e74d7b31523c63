"""Application settings using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="learning-hub", description="Application name")
    app_version: str = Field(default="0.1.0", description="Application version")
    environment: Literal["development", "staging", "production", "testing"] = Field(
        default="development", description="Environment name"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # API Server
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_workers: int = Field(default=1, description="Number of workers")
    api_reload: bool = Field(default=True, description="Enable auto-reload")

    # Redis
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL",
    )
    redis_max_connections: int = Field(default=10, description="Max Redis connections")
    redis_socket_timeout: float = Field(default=5.0, description="Redis socket timeout")
    redis_socket_connect_timeout: float = Field(
        default=5.0, description="Redis connect timeout"
    )
    redis_retry_on_timeout: bool = Field(default=True, description="Retry on timeout")
    redis_health_check_interval: int = Field(
        default=30, description="Health check interval"
    )

    # Cassandra
    cassandra_hosts: list[str] = Field(
        default=["localhost"], description="Cassandra hosts"
    )
    cassandra_port: int = Field(default=9042, description="Cassandra port")
    cassandra_keyspace: str = Field(
        default="learning_hub", description="Cassandra keyspace"
    )
    cassandra_username: str | None = Field(default=None, description="Cassandra user")
    cassandra_password: str | None = Field(
        default=None, description="Cassandra password"
    )
    cassandra_protocol_version: int = Field(default=4, description="Protocol version")
    cassandra_connect_timeout: float = Field(
        default=10.0, description="Connect timeout"
    )
    cassandra_request_timeout: float = Field(
        default=10.0, description="Request timeout"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="DEBUG", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", description="Log format"
    )
    log_include_caller_info: bool = Field(
        default=True, description="Include caller info"
    )
    log_dir: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=10 * 1024 * 1024, description="Max size per log file (10MB default)"
    )
    log_file_backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )
    log_requests: bool = Field(
        default=True, description="Log HTTP request start/finish"
    )
    log_exclude_paths: list[str] = Field(
        default=["/health", "/health/live", "/health/ready"],
        description="Paths to exclude from request logging",
    )

    # CORS
    cors_origins: list[str] = Field(default=["*"], description="CORS origins")
    cors_allow_credentials: bool = Field(default=True, description="Allow credentials")
    cors_allow_methods: list[str] = Field(default=["*"], description="Allowed methods")
    cors_allow_headers: list[str] = Field(default=["*"], description="Allowed headers")
    cors_max_age: int = Field(default=600, description="CORS max age")

    # Gamification
    gamification_points_per_level: int = Field(
        default=1000, gt=0, description="Points required per level"
    )
    gamification_max_level: int = Field(
        default=10, ge=1, description="Highest reachable level"
    )
    gamification_max_cas_retries: int = Field(
        default=5, ge=1, description="Compare-and-set attempts before giving up"
    )
    gamification_retry_base_delay: float = Field(
        default=0.01, ge=0, description="Initial backoff between CAS attempts (s)"
    )

    # Quizzes
    quiz_default_max_attempts: int = Field(
        default=3, ge=1, description="Attempts allowed when a quiz declares none"
    )
    quiz_default_passing_score: int = Field(
        default=70, ge=0, le=100, description="Passing score when a quiz declares none"
    )

    # Enrollments
    enrollment_slot_stale_after_seconds: float = Field(
        default=60.0, gt=0, description="Age (s) after which an orphaned ACTIVE slot is reclaimed"
    )

    # Completion events
    events_redelivery_attempts: int = Field(
        default=5, ge=1, description="Background redelivery attempts per handler"
    )
    events_redelivery_base_delay: float = Field(
        default=0.5, ge=0, description="Initial backoff for redelivery (s)"
    )

    # Leaderboard
    leaderboard_week_start_day: int = Field(
        default=0, ge=0, le=6, description="Weekday the weekly period starts (0=Mon)"
    )
    leaderboard_reset_hour: int = Field(
        default=0, ge=0, le=23, description="UTC hour the weekly period starts"
    )
    leaderboard_default_limit: int = Field(
        default=20, ge=1, description="Default number of leaderboard entries"
    )
    leaderboard_max_limit: int = Field(
        default=100, ge=1, description="Maximum number of leaderboard entries"
    )
    leaderboard_queue_size: int = Field(
        default=10000, ge=1, description="Pending leaderboard updates before dropping"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment == "testing"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
