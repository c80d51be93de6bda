"""
Request preparation for mock and real dispatch.

URL, header keys, header values and body are substituted against one
variable map, built once per request from the active environment.
"""

import json
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field

from mockstudio.environments.environment_store import EnvironmentStore
from mockstudio.environments.resolver import substitute


class RequestDefinition(BaseModel):
    """A request as authored, before variable substitution."""
    method: str = "GET"
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Optional[Union[str, Dict[str, Any], list]] = None


def _body_text(body: Union[str, Dict[str, Any], list, None]) -> Optional[str]:
    if body is None or isinstance(body, str):
        return body
    return json.dumps(body, ensure_ascii=False)


def prepare_request(store: EnvironmentStore, request: RequestDefinition,
                    service_id: Optional[int] = None,
                    project_id: Optional[int] = None) -> RequestDefinition:
    """Return a copy of request with `{{variables}}` substituted."""
    var_map = store.resolve_variable_map(service_id, project_id)

    def resolve(text: str) -> str:
        return substitute(text, var_map)

    body = _body_text(request.body)
    return RequestDefinition(
        method=request.method,
        url=resolve(request.url),
        headers={resolve(k): resolve(v) for k, v in request.headers.items()},
        body=resolve(body) if body is not None else None,
    )
