from .loader import ConfigError, load_runner_config, load_yaml_config
from .models import LoggingConfig, RunnerConfig, RunVars

__all__ = [
    "ConfigError",
    "LoggingConfig",
    "RunVars",
    "RunnerConfig",
    "load_runner_config",
    "load_yaml_config",
]
