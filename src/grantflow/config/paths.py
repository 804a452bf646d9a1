"""Centralized path management for grantflow.

All state (config, credentials, logs) lives under one base directory, which
can be overridden with the GRANTFLOW_HOME environment variable.

Default locations:
- Linux/macOS: ~/.grantflow
- Windows: %USERPROFILE%\\.grantflow
"""

import os
from functools import lru_cache
from pathlib import Path

ENV_VAR = "GRANTFLOW_HOME"


@lru_cache(maxsize=1)
def get_grantflow_home() -> Path:
    """Get the base directory for all grantflow data.

    Resolution order:
    1. GRANTFLOW_HOME environment variable (if set)
    2. Platform default (~/.grantflow)
    """
    if env_home := os.environ.get(ENV_VAR):
        return Path(env_home).expanduser().resolve()

    return Path.home() / ".grantflow"


def get_config_path() -> Path:
    """Get the default config file path."""
    return get_grantflow_home() / "config.toml"


def get_credentials_path() -> Path:
    """Get the credential store path."""
    return get_grantflow_home() / "credentials.json"


def get_logs_path() -> Path:
    """Get the JSONL log directory."""
    return get_grantflow_home() / "logs"


def get_all_paths() -> dict[str, Path]:
    """Get all grantflow paths, for display."""
    return {
        "home": get_grantflow_home(),
        "config": get_config_path(),
        "credentials": get_credentials_path(),
        "logs": get_logs_path(),
    }
