from .keys import CONFIG_KEYS, ConfigKey
from .loader import (
    DEFAULT_CONFIG_TEMPLATE,
    apply_config_rows,
    describe_config_keys,
    load_config,
    resolve_config,
    set_config_value,
    validate_config_value,
)
from .models import (
    CLIENT_SKILLS_DIRS,
    ConfigError,
    FactLifecycleConfig,
    FactsetsConfig,
    FreshnessConfig,
    MaintenanceConfig,
    SnapshotConfig,
    WorkerConfig,
)

__all__ = [
    "CLIENT_SKILLS_DIRS",
    "CONFIG_KEYS",
    "ConfigError",
    "ConfigKey",
    "DEFAULT_CONFIG_TEMPLATE",
    "FactLifecycleConfig",
    "FactsetsConfig",
    "FreshnessConfig",
    "MaintenanceConfig",
    "SnapshotConfig",
    "WorkerConfig",
    "apply_config_rows",
    "describe_config_keys",
    "load_config",
    "resolve_config",
    "set_config_value",
    "validate_config_value",
]
