"""Configuration module."""

from grantflow.config.loader import (
    get_default_config,
    load_config,
    load_config_or_default,
)
from grantflow.config.models import (
    GrantflowConfig,
    HandshakeConfig,
    PlatformConfig,
    ProviderConfig,
    RelayConfig,
)
from grantflow.config.paths import (
    get_config_path,
    get_credentials_path,
    get_grantflow_home,
    get_logs_path,
)

__all__ = [
    "GrantflowConfig",
    "HandshakeConfig",
    "PlatformConfig",
    "ProviderConfig",
    "RelayConfig",
    "get_config_path",
    "get_credentials_path",
    "get_default_config",
    "get_grantflow_home",
    "get_logs_path",
    "load_config",
    "load_config_or_default",
]
