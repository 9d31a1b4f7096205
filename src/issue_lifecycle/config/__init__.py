"""Configuration loading and validation."""

from .loader import load_config
from .policies import PolicyRegistry
from .schema import (
    BotConfig,
    GitHubConfig,
    LifecyclePolicy,
    LoggingConfig,
    OrgConfig,
    RepoConfig,
    RuntimeConfig,
    ZenHubConfig,
)

__all__ = [
    # Loader
    "load_config",
    "PolicyRegistry",
    # Root config
    "BotConfig",
    # Top-level configs
    "OrgConfig",
    "RepoConfig",
    "LifecyclePolicy",
    "LoggingConfig",
    "RuntimeConfig",
    # Provider-specific configs
    "GitHubConfig",
    "ZenHubConfig",
]
