"""
Environment data model.

Python attributes are snake_case; the persisted and exported JSON uses the
camelCase spelling (createdAt, serviceConfig, targetId, ...). Both spellings
are accepted on input.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model with camelCase aliases."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json_dict(self) -> Dict[str, Any]:
        """Dump in the persisted form. Unset (None) fields are omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def port_as_str(v: Any) -> Any:
    """Ports are stored as strings; accept an integer from JSON clients."""
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


class OverrideScope(str, Enum):
    PROJECT = "project"
    SERVICE = "service"


class EnvVariable(CamelModel):
    """A single `{{key}}` substitution value."""
    key: str
    value: str = ""
    description: str = ""
    enabled: bool = True


class EnvServiceConfig(CamelModel):
    """
    Sparse network configuration for a mock service.

    Every field is optional. A field is *set* when it holds a value, including
    falsy ones such as 0 or "". None means unset and is never copied by a merge.
    """
    port: Optional[int] = None
    prefix: Optional[str] = None
    real_host: Optional[str] = None
    real_port: Optional[str] = None
    real_prefix: Optional[str] = None

    @field_validator("real_port", mode="before")
    @classmethod
    def coerce_real_port(cls, v: Any) -> Any:
        return port_as_str(v)

    def set_fields(self) -> Dict[str, Any]:
        """Fields that carry a value, keyed by attribute name."""
        return {
            name: getattr(self, name)
            for name in type(self).model_fields
            if getattr(self, name) is not None
        }

    def is_empty(self) -> bool:
        return not self.set_fields()


class EnvOverride(CamelModel):
    """Project- or service-scoped partial config and variables."""
    scope: OverrideScope
    target_id: int  # weak reference to a project or service owned elsewhere
    target_name: str = ""
    service_config: Optional[EnvServiceConfig] = None
    variables: Optional[List[EnvVariable]] = None


class Environment(CamelModel):
    """A named deployment context (Dev, Staging, Prod...)."""
    id: Optional[int] = None
    name: str
    color: Optional[str] = None
    variables: List[EnvVariable] = Field(default_factory=list)
    service_config: Optional[EnvServiceConfig] = None
    overrides: List[EnvOverride] = Field(default_factory=list)
    created_at: int = 0
    updated_at: int = 0

    @field_validator("overrides", "variables", mode="before")
    @classmethod
    def none_as_empty(cls, v: Union[List[Any], None]) -> List[Any]:
        return [] if v is None else v
