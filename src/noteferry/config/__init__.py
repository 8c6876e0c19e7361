from noteferry.config.config import (
    AIConfig,
    BrowserConfig,
    CacheConfig,
    Config,
    EnvironmentConfig,
    ExtractionSettings,
    FetchConfig,
    MonitoringConfig,
    ServerConfig,
    find_config_file,
    settings,
)

__all__ = [
    "AIConfig",
    "BrowserConfig",
    "CacheConfig",
    "Config",
    "EnvironmentConfig",
    "ExtractionSettings",
    "FetchConfig",
    "MonitoringConfig",
    "ServerConfig",
    "find_config_file",
    "settings",
]
