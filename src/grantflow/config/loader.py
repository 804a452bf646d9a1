"""Configuration loading from TOML files and environment variables."""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import SecretStr

from grantflow.config.models import GrantflowConfig
from grantflow.config.paths import get_config_path


def _get_default_config_paths() -> list[Path]:
    """Get ordered list of default config file locations."""
    return [
        Path("config.toml"),  # Current directory
        get_config_path(),  # ~/.grantflow/config.toml (or GRANTFLOW_HOME)
        Path("/etc/grantflow/config.toml"),  # System-wide
    ]


def _set_from_env(
    section: dict[str, Any], key: str, env_var: str, secret: bool = False
) -> None:
    """Set a value from environment if not already set."""
    if section.get(key) is None:
        value = os.environ.get(env_var)
        if value:
            section[key] = SecretStr(value) if secret else value


def _resolve_env(config: dict[str, Any]) -> dict[str, Any]:
    """Fill provider client credentials from the environment."""
    provider = config.setdefault("provider", {})
    if isinstance(provider, dict):
        _set_from_env(provider, "client_id", "GOOGLE_CLIENT_ID")
        _set_from_env(provider, "client_secret", "GOOGLE_CLIENT_SECRET", secret=True)
    return config


def find_config_path(path: Path | None = None) -> Path | None:
    """Resolve the config file to load, or None if none exists.

    Raises:
        FileNotFoundError: If an explicit path was given and does not exist.
    """
    if path is not None:
        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        return config_path

    for default_path in _get_default_config_paths():
        expanded = default_path.expanduser()
        if expanded.exists():
            return expanded
    return None


def load_config(path: Path | None = None) -> GrantflowConfig:
    """Load configuration from TOML file.

    Args:
        path: Explicit path to config file. If None, searches default locations.

    Returns:
        Validated GrantflowConfig instance.

    Raises:
        FileNotFoundError: If no config file is found.
        ValueError: If config file is invalid.
    """
    config_path = find_config_path(path)
    if config_path is None:
        searched = ", ".join(str(p) for p in _get_default_config_paths())
        raise FileNotFoundError(f"No config file found. Searched: {searched}")

    with config_path.open("rb") as f:
        raw_config = tomllib.load(f)

    return GrantflowConfig.model_validate(_resolve_env(raw_config))


def get_default_config() -> GrantflowConfig:
    """Get a default configuration, still honouring environment credentials."""
    return GrantflowConfig.model_validate(_resolve_env({}))


def load_config_or_default(path: Path | None = None) -> GrantflowConfig:
    """Load the config file if one exists, else fall back to defaults.

    An explicit ``path`` must exist.
    """
    if find_config_path(path) is None:
        return get_default_config()
    return load_config(path)
