"""
Review Insights Configuration Module
====================================

Centralized configuration management using environment variables.
Supports both .env files and system environment variables.

Environment Variables:
    LLM_ENABLED: Use the text-generation oracle at all (default: true)
    LLM_PROVIDER: "openai", "anthropic" or empty for auto-detection
    LLM_MODEL: Model name override (default: provider default)
    LLM_TIMEOUT_SECONDS: Per-call timeout (default: 30)
    LLM_MAX_CONCURRENCY: Simultaneous oracle calls per request (default: 4)
    LLM_MAX_TOKENS: Completion token cap (default: 1000)

    INSIGHT_CLUSTER_SAMPLE: Reviews sent to the oracle for clustering (default: 80)
    INSIGHT_SYNTHESIS_SAMPLE: Reviews per cluster sent for synthesis (default: 20)
    INSIGHT_MAX_INSIGHTS: Maximum insights returned (default: 5)
    INSIGHT_REFINE_MIN_CLUSTER: Cluster size that triggers refinement (default: 10)
    INSIGHT_REFINE_MIN_SUBCLUSTER: Minimum size of a split sub-cluster (default: 5)
    INSIGHT_RECENT_DAYS: Window counted as "recent" for theme ranking (default: 30)
    INSIGHT_TFIDF_FALLBACK: Use TF-IDF + k-means before keyword fallback (default: false)

    LOG_LEVEL, LOG_FORMAT, LOG_FILE, LOG_JSON: Logging options
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv


# Load environment variables from .env file if present
env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)
else:
    load_dotenv()


def get_env(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    """
    Get environment variable with optional default and required validation.

    Args:
        key: Environment variable name
        default: Default value if not set
        required: If True, raises ValueError when not set

    Returns:
        Environment variable value or default

    Raises:
        ValueError: If required=True and variable is not set
    """
    value = os.getenv(key, default)
    if required and value is None:
        raise ValueError(f"Required environment variable '{key}' is not set")
    return value


def get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be an integer, got: {value}")


def get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be a float, got: {value}")


def get_env_bool(key: str, default: bool) -> bool:
    """Get environment variable as boolean."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


@dataclass
class LLMConfig:
    """Text-generation oracle configuration."""

    enabled: bool = field(default_factory=lambda: get_env_bool("LLM_ENABLED", True))

    # Empty string = auto-detect from available API keys
    provider: str = field(default_factory=lambda: get_env("LLM_PROVIDER", ""))
    model: Optional[str] = field(default_factory=lambda: get_env("LLM_MODEL"))

    timeout_seconds: float = field(default_factory=lambda: get_env_float("LLM_TIMEOUT_SECONDS", 30.0))
    max_concurrency: int = field(default_factory=lambda: get_env_int("LLM_MAX_CONCURRENCY", 4))
    max_tokens: int = field(default_factory=lambda: get_env_int("LLM_MAX_TOKENS", 1000))

    def __post_init__(self):
        """Validate configuration."""
        if self.provider and self.provider not in ("openai", "anthropic"):
            raise ValueError(f"LLM_PROVIDER must be 'openai' or 'anthropic', got: {self.provider}")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.max_concurrency <= 0:
            raise ValueError("max_concurrency must be positive")


@dataclass
class InsightConfig:
    """Theme discovery and insight ranking configuration."""

    # Oracle request bounds
    cluster_sample_size: int = field(default_factory=lambda: get_env_int("INSIGHT_CLUSTER_SAMPLE", 80))
    synthesis_sample_size: int = field(default_factory=lambda: get_env_int("INSIGHT_SYNTHESIS_SAMPLE", 20))

    max_insights: int = field(default_factory=lambda: get_env_int("INSIGHT_MAX_INSIGHTS", 5))

    # Refinement thresholds
    refine_min_cluster_size: int = field(default_factory=lambda: get_env_int("INSIGHT_REFINE_MIN_CLUSTER", 10))
    refine_min_subcluster_size: int = field(
        default_factory=lambda: get_env_int("INSIGHT_REFINE_MIN_SUBCLUSTER", 5)
    )

    recent_days: int = field(default_factory=lambda: get_env_int("INSIGHT_RECENT_DAYS", 30))

    tfidf_fallback: bool = field(default_factory=lambda: get_env_bool("INSIGHT_TFIDF_FALLBACK", False))

    def __post_init__(self):
        """Validate configuration."""
        if self.cluster_sample_size <= 0 or self.synthesis_sample_size <= 0:
            raise ValueError("sample sizes must be positive")
        if self.max_insights <= 0:
            raise ValueError("max_insights must be positive")
        if self.refine_min_subcluster_size > self.refine_min_cluster_size:
            raise ValueError("refine_min_subcluster_size cannot exceed refine_min_cluster_size")


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    format: str = field(default_factory=lambda: get_env(
        "LOG_FORMAT",
        "%(asctime)s [%(levelname)-8s] %(name)-36s | %(message)s"
    ))
    log_file: Optional[str] = field(default_factory=lambda: get_env("LOG_FILE"))

    # Structured logging
    json_logs: bool = field(default_factory=lambda: get_env_bool("LOG_JSON", False))


@dataclass
class Settings:
    """Main application settings container."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    insights: InsightConfig = field(default_factory=InsightConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Application metadata
    app_name: str = "review-insights"
    app_version: str = "0.1.0"


def load_settings() -> Settings:
    """
    Load and validate all application settings.

    Raises:
        ValueError: If configuration is invalid
    """
    return Settings()


# Global settings instance (lazy-loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


class _SettingsProxy:
    """Proxy class for lazy settings access."""

    def __getattr__(self, name):
        return getattr(get_settings(), name)


settings = _SettingsProxy()
