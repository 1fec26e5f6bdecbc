from .loader import load_config
from .types import ArgosConfig, ConfigError, Settings, UnsupportedConfigFormatError

__all__ = [
    "load_config",
    "ArgosConfig",
    "Settings",
    "ConfigError",
    "UnsupportedConfigFormatError",
]
