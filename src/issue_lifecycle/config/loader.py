"""Configuration loader with YAML parsing and environment variable substitution."""

import os
import re
from pathlib import Path

import structlog
import yaml

from .schema import BotConfig

log = structlog.get_logger()


def substitute_env_vars(text: str) -> str:
    """
    Replace ${VAR_NAME} patterns with environment variable values.

    Args:
        text: Text containing ${VAR_NAME} patterns

    Returns:
        Text with environment variables substituted

    Raises:
        ValueError: If a referenced environment variable is not found
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(f"Environment variable {var_name} not found")
        return value

    return re.sub(r"\$\{([^}]+)\}", replacer, text)


def load_config(path: Path) -> BotConfig:
    """
    Load configuration from YAML file with environment variable substitution.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated BotConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If environment variables are missing or config is invalid
        ValidationError: If config doesn't match schema
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open() as f:
        raw_yaml = f.read()

    yaml_with_env = substitute_env_vars(raw_yaml)
    config_dict = yaml.safe_load(yaml_with_env) or {}

    config = BotConfig.model_validate(config_dict)

    validate_config(config)

    return config


def validate_config(config: BotConfig) -> None:
    """
    Perform additional cross-field validation.

    Lifecycle records may only claim repositories listed under ``orgs``.
    Records whose stale delay is not below the close delay are accepted
    but reported, since the stale path can then never lead to closure.

    Args:
        config: Configuration to validate

    Raises:
        ValueError: If a lifecycle record names an unconfigured repository
    """
    configured = set(config.repo_names())

    for policy in config.lifecycle:
        for repo in policy.repos:
            if repo not in configured:
                raise ValueError(f"Lifecycle record claims unconfigured repository {repo}")

        inverted = policy.inverted_delays()
        if inverted:
            log.warning(
                "policy_delay_inverted",
                repos=policy.repos or ["<default>"],
                variants=inverted,
            )

    if not config.lifecycle:
        log.warning("no_lifecycle_policies")
