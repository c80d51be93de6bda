"""Environment Management — environments, scoped overrides, active selection, and layered config/variable resolution."""
from .models import Environment, EnvVariable, EnvServiceConfig, EnvOverride, OverrideScope
from .environment_store import EnvironmentStore, ImportValidationError, StorageNotification, export_filename
from .resolver import resolve_service_config, resolve_variables, resolve_variable_map, find_override

__all__ = [
    "Environment", "EnvVariable", "EnvServiceConfig", "EnvOverride", "OverrideScope",
    "EnvironmentStore", "ImportValidationError", "StorageNotification", "export_filename",
    "resolve_service_config", "resolve_variables", "resolve_variable_map", "find_override",
]
