"""
Service launch configuration.

A mock group carries its own ServiceConfig. Before its listener starts, the
active environment's resolved config is laid over it, so the same group can
listen on a different port or proxy to a different backend per environment.
"""

import logging
from typing import Any, Optional

from pydantic import Field, field_validator

from mockstudio.config.settings import settings
from mockstudio.environments.models import CamelModel, port_as_str
from mockstudio.environments.environment_store import EnvironmentStore

logger = logging.getLogger(__name__)


class ServiceConfig(CamelModel):
    """A mock group's own listener and real-backend settings."""
    port: Optional[int] = None
    prefix: Optional[str] = None
    running: bool = False
    real_protocol: Optional[str] = None  # http | https
    real_host: Optional[str] = None
    real_port: Optional[str] = None
    real_prefix: Optional[str] = None
    proxy_enabled: bool = False
    proxy_target: Optional[str] = None

    @field_validator("real_port", mode="before")
    @classmethod
    def coerce_real_port(cls, v: Any) -> Any:
        return port_as_str(v)


class LaunchConfig(CamelModel):
    """Fully resolved settings handed to the mock server for one service."""
    service_id: int
    project_id: Optional[int] = None
    environment_id: Optional[int] = None
    port: int
    prefix: str = ""
    real_base_url: Optional[str] = None
    proxy_enabled: bool = False
    proxy_target: Optional[str] = None
    config: ServiceConfig = Field(default_factory=ServiceConfig)


def real_base_url(cfg: ServiceConfig) -> Optional[str]:
    """<protocol>://<host>[:<port>]<prefix>, or None without a real host."""
    host = (cfg.real_host or "").strip()
    if not host:
        return None
    protocol = (cfg.real_protocol or "http").strip().rstrip(":/") or "http"
    url = f"{protocol}://{host}"
    if cfg.real_port:
        url += f":{cfg.real_port}"
    prefix = (cfg.real_prefix or "").strip()
    if prefix:
        url += prefix if prefix.startswith("/") else f"/{prefix}"
    return url


def resolve_launch_config(store: EnvironmentStore, base: ServiceConfig, service_id: int,
                          project_id: Optional[int] = None,
                          default_port: Optional[int] = None,
                          default_prefix: Optional[str] = None) -> LaunchConfig:
    """
    Overlay the active environment's resolved config on a group's own config.

    A port or prefix left unset everywhere falls back to default_port and
    default_prefix, which come from Settings when not given.
    """
    if default_port is None:
        default_port = settings.default_port
    if default_prefix is None:
        default_prefix = settings.default_prefix
    overlay = store.resolve_service_config(service_id, project_id).set_fields()
    effective = base.model_copy(update=overlay)
    port = effective.port if effective.port is not None else default_port
    prefix = effective.prefix if effective.prefix is not None else default_prefix
    if overlay:
        logger.debug(f"Service {service_id}: environment overrides {sorted(overlay)}")
    return LaunchConfig(
        service_id=service_id,
        project_id=project_id,
        environment_id=store.active_environment.id if store.active_environment else None,
        port=port,
        prefix=prefix,
        real_base_url=real_base_url(effective),
        proxy_enabled=effective.proxy_enabled,
        proxy_target=effective.proxy_target,
        config=effective,
    )
