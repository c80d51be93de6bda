"""
Mock Studio — Environment API Routes
Environment CRUD, active selection, export/import, layered resolution, storage notifications.
"""

import logging
from typing import Optional, List, Dict, Any

from fastapi import APIRouter, HTTPException, Query, Request, Depends, UploadFile, File
from fastapi.responses import Response
from pydantic import BaseModel, Field

from mockstudio.environments.models import CamelModel, Environment
from mockstudio.environments.environment_store import (
    EnvironmentStore, ImportValidationError, export_filename,
)
from mockstudio.services.dispatcher import RequestDefinition, prepare_request
from mockstudio.services.launcher import ServiceConfig, resolve_launch_config

logger = logging.getLogger(__name__)

router = APIRouter()


def get_store(request: Request) -> EnvironmentStore:
    """The process-wide store, attached to the app at startup."""
    return request.app.state.environment_store


# ── Request Models ────────────────────────────────────────────────

class ActiveSelection(BaseModel):
    id: Optional[int] = None

class ResolveServiceConfigRequest(CamelModel):
    service_id: int
    project_id: Optional[int] = None

class ResolveVariablesRequest(CamelModel):
    text: str
    service_id: Optional[int] = None
    project_id: Optional[int] = None

class ResolveRequestRequest(CamelModel):
    request: RequestDefinition
    service_id: Optional[int] = None
    project_id: Optional[int] = None

class ResolveLaunchRequest(CamelModel):
    service_id: int
    project_id: Optional[int] = None
    config: ServiceConfig = Field(default_factory=ServiceConfig)


def _env_out(env: Optional[Environment]) -> Optional[Dict[str, Any]]:
    return env.to_json_dict() if env else None


# ══════════════════════════════════════════════════════════════════
# ENVIRONMENTS
# ══════════════════════════════════════════════════════════════════

@router.get("/environments", tags=["Environments"])
async def list_environments(store: EnvironmentStore = Depends(get_store)):
    """List all environments and the active id."""
    envs = store.list()
    return {
        "count": len(envs),
        "active_id": store.active_id,
        "environments": [e.to_json_dict() for e in envs],
    }


@router.post("/environments", tags=["Environments"])
async def save_environment(env: Environment, store: EnvironmentStore = Depends(get_store)):
    """Create an environment, or replace the one with the same id."""
    return store.save(env).to_json_dict()


# ── Static /environments/* routes MUST come before /environments/{env_id} ──

@router.get("/environments/export", tags=["Environments"])
async def export_environments(store: EnvironmentStore = Depends(get_store)):
    """Download all environments as pretty-printed JSON."""
    return Response(
        content=store.export_json(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@router.post("/environments/import", tags=["Environments"])
async def import_environments(file: UploadFile = File(...),
                              store: EnvironmentStore = Depends(get_store)):
    """Import an exported environments file. Rejected in full on any error."""
    content = await file.read()
    try:
        imported = store.import_json(content)
    except ImportValidationError as e:
        logger.warning(f"Rejected import of '{file.filename}': {e}")
        raise HTTPException(400, str(e))
    return {"count": len(imported), "environments": [e.to_json_dict() for e in imported]}


@router.get("/environments/active", tags=["Environments"])
async def get_active_environment(store: EnvironmentStore = Depends(get_store)):
    """The active id and, if it exists, the active environment."""
    return {"active_id": store.active_id, "environment": _env_out(store.active_environment)}


@router.put("/environments/active", tags=["Environments"])
async def set_active_environment(req: ActiveSelection, store: EnvironmentStore = Depends(get_store)):
    """Select an environment, or clear the selection with null."""
    store.set_active(req.id)
    return {"active_id": store.active_id, "environment": _env_out(store.active_environment)}


# ── Parameterized /environments/{env_id} routes ──────────────────────────

@router.get("/environments/{env_id}", tags=["Environments"])
async def get_environment(env_id: int, store: EnvironmentStore = Depends(get_store)):
    """Get a single environment."""
    env = store.get(env_id)
    if not env:
        raise HTTPException(404, f"Environment '{env_id}' not found")
    return env.to_json_dict()


@router.put("/environments/{env_id}", tags=["Environments"])
async def replace_environment(env_id: int, env: Environment,
                              store: EnvironmentStore = Depends(get_store)):
    """Save an environment under the id from the path."""
    return store.save(env.model_copy(update={"id": env_id})).to_json_dict()


@router.delete("/environments/{env_id}", tags=["Environments"])
async def delete_environment(env_id: int, store: EnvironmentStore = Depends(get_store)):
    """Delete an environment. Unknown ids are a no-op."""
    deleted = store.delete(env_id)
    return {"deleted": deleted, "env_id": env_id, "active_id": store.active_id}


@router.get("/environments/{env_id}/orphans", tags=["Environments"])
async def list_orphaned_overrides(env_id: int,
                                  project_ids: List[int] = Query(default=[]),
                                  service_ids: List[int] = Query(default=[]),
                                  store: EnvironmentStore = Depends(get_store)):
    """Overrides whose project/service no longer exists among the given ids."""
    if not store.get(env_id):
        raise HTTPException(404, f"Environment '{env_id}' not found")
    orphans = store.orphaned_overrides(env_id, project_ids, service_ids)
    return {"count": len(orphans), "overrides": [o.to_json_dict() for o in orphans]}


# ══════════════════════════════════════════════════════════════════
# RESOLUTION
# ══════════════════════════════════════════════════════════════════

@router.post("/resolve/service-config", tags=["Resolution"])
async def resolve_service_config(req: ResolveServiceConfigRequest,
                                 store: EnvironmentStore = Depends(get_store)):
    """Effective service config for the active environment."""
    return store.resolve_service_config(req.service_id, req.project_id).to_json_dict()


@router.post("/resolve/variables", tags=["Resolution"])
async def resolve_variables(req: ResolveVariablesRequest,
                            store: EnvironmentStore = Depends(get_store)):
    """Substitute `{{name}}` tokens in text."""
    return {"text": store.resolve_variables(req.text, req.service_id, req.project_id)}


@router.post("/resolve/request", tags=["Resolution"])
async def resolve_request(req: ResolveRequestRequest,
                          store: EnvironmentStore = Depends(get_store)):
    """Substitute variables in a request's URL, headers and body."""
    prepared = prepare_request(store, req.request, req.service_id, req.project_id)
    return prepared.model_dump(mode="json")


@router.post("/resolve/launch", tags=["Resolution"])
async def resolve_launch(req: ResolveLaunchRequest, request: Request,
                         store: EnvironmentStore = Depends(get_store)):
    """Listener and real-backend settings for a mock service under the active environment."""
    cfg = request.app.state.settings
    launch = resolve_launch_config(
        store, req.config, req.service_id, req.project_id,
        default_port=cfg.default_port, default_prefix=cfg.default_prefix,
    )
    return launch.to_json_dict()


# ══════════════════════════════════════════════════════════════════
# NOTIFICATIONS
# ══════════════════════════════════════════════════════════════════

@router.get("/notifications", tags=["System"])
async def list_notifications(store: EnvironmentStore = Depends(get_store)):
    """Storage write failures recorded since the last clear."""
    notes = store.notifications
    return {"count": len(notes), "notifications": [n.model_dump(mode="json") for n in notes]}


@router.delete("/notifications", tags=["System"])
async def clear_notifications(store: EnvironmentStore = Depends(get_store)):
    return {"cleared": store.clear_notifications()}
