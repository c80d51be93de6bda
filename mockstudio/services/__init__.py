"""Mock service glue — launch configuration and request preparation on top of environment resolution."""
from .launcher import ServiceConfig, LaunchConfig, resolve_launch_config, real_base_url
from .dispatcher import RequestDefinition, prepare_request

__all__ = [
    "ServiceConfig", "LaunchConfig", "resolve_launch_config", "real_base_url",
    "RequestDefinition", "prepare_request",
]
