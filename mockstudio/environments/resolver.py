"""
Resolution Engine — effective service config and `{{variable}}` substitution.

Three precedence layers, applied in order with later layers winning:
    1. global   — the environment's own serviceConfig / variables
    2. project  — the override with scope "project" for the owning project
    3. service  — the override with scope "service" for the target service

Everything here is a pure function of an Environment snapshot. Nothing is
mutated, nothing raises: a missing environment, override or variable simply
contributes nothing.
"""

import re
from typing import Dict, Iterable, List, Optional

from mockstudio.environments.models import (
    Environment, EnvOverride, EnvServiceConfig, EnvVariable, OverrideScope,
)

# {{identifier}} with an ASCII letters/digits/underscore identifier
VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}", re.ASCII)


def find_override(env: Environment, scope: OverrideScope,
                  target_id: Optional[int]) -> Optional[EnvOverride]:
    """
    Return the override for (scope, target_id), or None.

    Duplicate (scope, target_id) pairs should not exist; if they do, the
    first one in list order wins.
    """
    if target_id is None:
        return None
    for override in env.overrides:
        if override.scope == scope and override.target_id == target_id:
            return override
    return None


def _layers(env: Environment, service_id: Optional[int],
            project_id: Optional[int]) -> List[Optional[EnvOverride]]:
    return [
        find_override(env, OverrideScope.PROJECT, project_id),
        find_override(env, OverrideScope.SERVICE, service_id),
    ]


def resolve_service_config(env: Optional[Environment], service_id: Optional[int],
                           project_id: Optional[int] = None) -> EnvServiceConfig:
    """Merge global → project → service config, per field."""
    if env is None:
        return EnvServiceConfig()

    merged: Dict[str, object] = {}
    if env.service_config:
        merged.update(env.service_config.set_fields())
    for override in _layers(env, service_id, project_id):
        if override and override.service_config:
            merged.update(override.service_config.set_fields())
    return EnvServiceConfig(**merged)


def _enabled(variables: Optional[Iterable[EnvVariable]]) -> Dict[str, str]:
    return {v.key: v.value for v in (variables or ()) if v.enabled}


def resolve_variable_map(env: Optional[Environment], service_id: Optional[int] = None,
                         project_id: Optional[int] = None) -> Dict[str, str]:
    """Flat key → value map of enabled variables across all three layers."""
    if env is None:
        return {}
    var_map = _enabled(env.variables)
    for override in _layers(env, service_id, project_id):
        if override:
            var_map.update(_enabled(override.variables))
    return var_map


def substitute(text: str, var_map: Dict[str, str]) -> str:
    """
    Replace every `{{name}}` whose name is in var_map, in a single pass.

    Unknown tokens are left verbatim. Substituted values are not re-scanned.
    """
    if not var_map or "{{" not in text:
        return text
    return VARIABLE_PATTERN.sub(lambda m: var_map.get(m.group(1), m.group(0)), text)


def resolve_variables(env: Optional[Environment], text: str,
                      service_id: Optional[int] = None,
                      project_id: Optional[int] = None) -> str:
    """Substitute `{{name}}` tokens in text using the layered variable map."""
    if env is None:
        return text
    return substitute(text, resolve_variable_map(env, service_id, project_id))
