"""
Configuration module for sikil.

Exports the main components for convenient imports.
"""

from .loader import load_config
from .schema import AgentDirConfig, AppConfig, CacheConfig, LoggingConfig

__all__ = [
    "load_config",
    "AgentDirConfig",
    "AppConfig",
    "CacheConfig",
    "LoggingConfig",
]
