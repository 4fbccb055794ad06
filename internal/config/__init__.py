from .config import (
    SANDBOX_PROVIDERS,
    Config,
    apply_env,
    default_config,
    expand_config_home,
    load_from_file,
)

__all__ = [
    "SANDBOX_PROVIDERS",
    "Config",
    "apply_env",
    "default_config",
    "expand_config_home",
    "load_from_file",
]
