"""
Configuration management for NoteFerry using Pydantic.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Any, ClassVar, List, Optional, cast

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Setup Logging ---
log = logging.getLogger(__name__)

DEFAULT_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
    "--disable-features=VizDisplayCompositor",
    "--disable-web-security",
    "--no-first-run",
    "--disable-extensions",
    "--disable-default-apps",
    "--disable-gpu",
]

# --- Nested Configuration Models ---


class FetchConfig(BaseModel):
    """Plain HTTP fetching."""

    timeout: float = Field(default=10.0, gt=0, description="HTTP request timeout in seconds.")
    retries: int = Field(default=2, ge=0, description="Retry attempts after the first request fails.")
    retry_delay: float = Field(default=1.0, ge=0, description="Fixed delay between retries in seconds.")
    user_agent: Optional[str] = Field(
        default=None,
        description="User-Agent override. When unset each platform's device profile decides.",
    )
    max_redirects: int = Field(default=10, ge=0, description="Redirects followed when resolving short links.")


class BrowserConfig(BaseModel):
    """Headless browser rendering."""

    enabled: bool = Field(default=True, description="Allow the headless browser strategy at all.")
    headless: bool = True
    navigation_timeout_ms: int = Field(default=8000, gt=0, description="Bound on a single navigation.")
    settle_timeout_ms: int = Field(default=3000, ge=0, description="Bound on waiting for network idle.")
    profile_pause_ms: int = Field(default=1000, ge=0, description="Pause before retrying with the next profile.")
    launch_args: List[str] = Field(default_factory=lambda: list(DEFAULT_LAUNCH_ARGS))


class ExtractionSettings(BaseModel):
    """Configuration for the extraction chain."""

    max_images: int = Field(default=9, ge=1, le=9, description="Maximum images kept per result.")
    sufficient_images: int = Field(
        default=3,
        ge=1,
        description="Meta-tag images that make further image sources unnecessary.",
    )
    body_fallback_chars: int = Field(default=2000, gt=0, description="Cap for whole-page body fallback.")
    max_attempts: int = Field(default=2, ge=1, description="Attempts per strategy for transient failures.")
    retry_base_delay: float = Field(default=1.0, ge=0, description="Base delay for strategy retries.")
    stamp_unknown_dates: bool = Field(
        default=False,
        description="Stamp the extraction time as published date where the page carries none.",
    )
    ai_first_platforms: List[str] = Field(
        default_factory=lambda: ["xiaohongshu"],
        description="Platforms routed through AI-enhanced extraction first in smart mode.",
    )

    @model_validator(mode="after")
    def validate_thresholds(self) -> ExtractionSettings:
        if self.sufficient_images > self.max_images:
            raise ValueError("sufficient_images must not exceed max_images")
        return self


class AIConfig(BaseModel):
    """Language-model enrichment."""

    enabled: bool = Field(
        default_factory=lambda: os.getenv("ENABLE_AI", "true").lower() != "false",
        description="Master switch for every AI capability.",
    )
    api_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY"),
        description="API key for an OpenAI-compatible endpoint.",
    )
    base_url: Optional[str] = Field(default_factory=lambda: os.getenv("LLM_API_BASE_URL"))
    model: str = Field(default_factory=lambda: os.getenv("LLM_MODEL", "gpt-4o-mini"))
    temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    request_timeout: float = Field(default=30.0, gt=0)
    max_attempts: int = Field(default=3, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)
    html_char_limit: int = Field(default=8000, gt=0)
    summary_input_chars: int = Field(default=2000, gt=0)
    title_input_chars: int = Field(default=500, gt=0)
    categorize_input_chars: int = Field(default=1000, gt=0)

    @field_validator("api_key", "base_url", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class CacheConfig(BaseModel):
    """AI result cache."""

    enabled: bool = True
    max_entries: int = Field(default=1000, ge=1)
    ttl_hours: float = Field(default=24.0, gt=0)


class ServerConfig(BaseModel):
    """Configuration for the HTTP endpoint."""

    host: str = Field(default="127.0.0.1", description="Host for the web server.")
    port: int = Field(default=8000, description="Port for the web server.")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])


class MonitoringConfig(BaseModel):
    """Configuration for logging."""

    log_level: str = Field(default="INFO", description="Logging level (e.g., DEBUG, INFO, WARNING).")
    log_file: str | None = Field(
        default=None,
        description="Path to log file. If None, logs to console.",
    )
    json_logs: bool = Field(default=False, description="Render console logs as JSON.")

    @field_validator("log_file", mode="before")
    @classmethod
    def create_parent_dir(cls, v: str | Path | None) -> str | None:
        if v is None:
            return None
        path = Path(v)
        path.parent.mkdir(parents=True, exist_ok=True)
        return str(path)


class EnvironmentConfig(BaseModel):
    headless_browser: Optional[bool] = Field(
        default=None,
        description="Force headless browser availability. When unset it is detected from the host.",
    )


# --- Main Configuration Class ---


class Config(BaseSettings):
    project_name: str = "NoteFerry"
    version: str = "0.1.0"
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    ai: AIConfig = Field(default_factory=AIConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    environment: EnvironmentConfig = Field(default_factory=EnvironmentConfig)

    model_config = SettingsConfigDict(env_prefix="NOTEFERRY_", env_nested_delimiter="__", case_sensitive=False)

    @classmethod
    def from_yaml(cls, path: Path) -> Config:
        log.debug("Loading configuration from YAML file: %s", path)
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found or is not a file: {path}")
        with open(path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
        if not yaml_data:
            log.warning("Configuration file is empty: %s. Using default settings.", path)
            return cls.model_validate({})
        return cls.model_validate(yaml_data)


def find_config_file() -> Path | None:
    current_dir = Path.cwd()
    paths_to_check = [
        current_dir / "noteferry.yaml",
        current_dir / "config.yaml",
        current_dir / "config.yml",
    ]
    for path in paths_to_check:
        if path.exists():
            return path

    return None


# --- Lazy Configuration Loader ---


class LazyConfig:
    """
    A proxy for the Config object that delays loading and validation until an
    attribute is first accessed, so a broken config file cannot crash imports.
    """

    _config: ClassVar[Config | None] = None
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __getattr__(self, name: str) -> Any:
        if self.__class__._config is None:
            with self.__class__._lock:
                if self.__class__._config is None:
                    self.__class__._config = self._load_config_with_fallback()
        return getattr(self.__class__._config, name)

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._config = None

    def _load_config_with_fallback(self) -> Config:
        """Load configuration from file or fall back to defaults."""
        config_path = find_config_file()
        if config_path:
            try:
                log.info("Lazy loading configuration from: %s", config_path)
                return Config.from_yaml(config_path)
            except (ValidationError, FileNotFoundError, yaml.YAMLError) as e:
                log.error(
                    "Failed to load or validate configuration from '%s': %s. "
                    "Falling back to default settings.",
                    config_path,
                    e,
                    exc_info=log.getEffectiveLevel() <= logging.DEBUG,
                )
        else:
            log.info("No config file found. Using default settings for lazy load.")

        try:
            return Config()
        except ValidationError as e:
            log.critical("Default configuration is invalid: %s", e, exc_info=True)
            raise RuntimeError(f"Default configuration is invalid, cannot start: {e}") from e


settings: "Config" = cast("Config", LazyConfig())
