"""
Configuration module for the stack status tools.

Loads configuration from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from retry import Backoff


@dataclass
class DatabaseConfig:
    """PostgreSQL database configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "stack_status"
    user: str = "operator"
    password: str = field(default="", repr=False)  # Never log password
    min_pool_size: int = 1
    max_pool_size: int = 5

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        password = os.getenv("DB_PASSWORD", "")
        if not password:
            raise ValueError(
                "DB_PASSWORD environment variable must be set. "
                "Database password cannot be empty."
            )

        return cls(
            host=os.getenv("DB_HOST", "localhost"),
            port=int(os.getenv("DB_PORT", "5432")),
            database=os.getenv("DB_NAME", "stack_status"),
            user=os.getenv("DB_USER", "operator"),
            password=password,
            min_pool_size=int(os.getenv("DB_MIN_POOL_SIZE", "1")),
            max_pool_size=int(os.getenv("DB_MAX_POOL_SIZE", "5")),
        )


@dataclass
class RetryConfig:
    """Backoff used when a status write conflicts with another writer."""

    steps: int = 5
    duration: float = 0.01  # seconds
    factor: float = 1.0
    jitter: float = 0.1  # +10% max
    cap: float = 0.0  # 0 = uncapped

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            steps=int(os.getenv("STATUS_RETRY_STEPS", "5")),
            duration=float(os.getenv("STATUS_RETRY_DURATION", "0.01")),
            factor=float(os.getenv("STATUS_RETRY_FACTOR", "1.0")),
            jitter=float(os.getenv("STATUS_RETRY_JITTER", "0.1")),
            cap=float(os.getenv("STATUS_RETRY_CAP", "0")),
        )

    def to_backoff(self) -> Backoff:
        if self.steps < 1:
            raise ValueError("STATUS_RETRY_STEPS must be at least 1")
        return Backoff(
            steps=self.steps,
            duration=self.duration,
            factor=self.factor,
            jitter=self.jitter,
            cap=self.cap,
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(log_level=os.getenv("LOG_LEVEL", "INFO").upper())


@dataclass
class Config:
    """Main configuration object."""

    database: DatabaseConfig
    retry: RetryConfig
    logging: LoggingConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            database=DatabaseConfig.from_env(),
            retry=RetryConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            database=DatabaseConfig(),
            retry=RetryConfig(),
            logging=LoggingConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
