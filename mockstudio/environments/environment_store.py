"""
Environment Store — owns the environment list and the active-environment selector.
- Load/save through a key/value persistence adapter (two JSON blobs)
- Active environment selection (none, or one id)
- Layered resolution of service config and `{{variables}}` for the active environment
- JSON export / import with fresh ids
Built once at process start and handed to every consumer.
"""

import json
import logging
import random
import time
from collections import deque
from datetime import datetime
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from mockstudio.environments.models import Environment, EnvOverride, EnvServiceConfig, OverrideScope
from mockstudio.environments import resolver
from mockstudio.storage.kv_store import KeyValueStore, StorageError, StorageWriteError

logger = logging.getLogger(__name__)

DEFAULT_ENVIRONMENTS_KEY = "mock-api-environments"
DEFAULT_ACTIVE_KEY = "mock-api-active-env"

# Upper bound of the random offset added to the millisecond clock for new ids
ID_RANDOM_OFFSET = 1000


def now_ms() -> int:
    return int(time.time() * 1000)


def export_filename(timestamp_ms: Optional[int] = None) -> str:
    """Download name for an export: environments-<unix-ms>.json."""
    return f"environments-{timestamp_ms if timestamp_ms is not None else now_ms()}.json"


class ImportValidationError(ValueError):
    """Import payload rejected; nothing was applied."""


class StorageNotification(BaseModel):
    """Non-blocking report of a failed persistence write."""
    level: str = "warning"
    operation: str
    message: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


# ══════════════════════════════════════════════════════════════════════════════
# Environment Store
# ══════════════════════════════════════════════════════════════════════════════

class EnvironmentStore:
    """
    Environment list + active selector, persisted as two JSON blobs.

    Resolution methods read the in-memory state only and never write.
    Persistence writes are fire-and-forget: a failure is logged and recorded
    as a notification, never raised to the caller.
    """

    def __init__(self, storage: KeyValueStore,
                 environments_key: str = DEFAULT_ENVIRONMENTS_KEY,
                 active_key: str = DEFAULT_ACTIVE_KEY,
                 max_notifications: int = 50,
                 autoload: bool = True):
        self._storage = storage
        self._environments_key = environments_key
        self._active_key = active_key
        self._environments: List[Environment] = []
        self._active_id: Optional[int] = None
        self._notifications: Deque[StorageNotification] = deque(maxlen=max_notifications)
        self._listeners: List[Callable[[StorageNotification], None]] = []
        if autoload:
            self.load()

    @classmethod
    def from_settings(cls, storage: KeyValueStore, settings) -> "EnvironmentStore":
        return cls(
            storage,
            environments_key=settings.environments_key,
            active_key=settings.active_environment_key,
            max_notifications=settings.max_notifications,
        )

    @property
    def storage(self) -> KeyValueStore:
        return self._storage

    # ── Persistence ───────────────────────────────────────────────

    def _read_json(self, key: str) -> Any:
        try:
            raw = self._storage.get(key)
        except StorageError as e:
            logger.warning(f"[STORAGE] Read of '{key}' failed, starting empty: {e}")
            return None
        if raw is None or raw == "":
            return None
        try:
            return json.loads(raw)
        except (ValueError, RecursionError) as e:
            logger.warning(f"[STORAGE] Corrupt JSON under '{key}', starting empty: {e}")
            return None

    def _load_environments(self) -> List[Environment]:
        data = self._read_json(self._environments_key)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning(f"[STORAGE] '{self._environments_key}' is not a JSON array, starting empty")
            return []
        envs = []
        for i, item in enumerate(data):
            try:
                envs.append(Environment.model_validate(item))
            except ValidationError as e:
                logger.warning(f"[STORAGE] Skipping invalid environment at index {i}: {e.error_count()} error(s)")
        return envs

    def _load_active_id(self) -> Optional[int]:
        data = self._read_json(self._active_key)
        if isinstance(data, int) and not isinstance(data, bool):
            return data
        if data is not None:
            logger.warning(f"[STORAGE] Ignoring non-integer active environment id: {data!r}")
        return None

    def _notify(self, operation: str, error: StorageError):
        note = StorageNotification(operation=operation, message=str(error))
        logger.warning(f"[STORAGE] {operation} failed: {error}")
        self._notifications.append(note)
        for listener in list(self._listeners):
            try:
                listener(note)
            except Exception:
                logger.exception(f"[STORAGE] Notification listener {listener!r} failed")

    def _persist_environments(self):
        try:
            payload = json.dumps([e.to_json_dict() for e in self._environments])
            self._storage.set(self._environments_key, payload)
        except (TypeError, ValueError) as e:
            self._notify("save environments", StorageWriteError(f"Serialization failed: {e}"))
        except StorageError as e:
            self._notify("save environments", e)

    def _persist_active_id(self):
        try:
            if self._active_id is None:
                self._storage.remove(self._active_key)
            else:
                self._storage.set(self._active_key, json.dumps(self._active_id))
        except StorageError as e:
            self._notify("save active environment", e)

    def load(self):
        """(Re)load environments and the active id from storage."""
        self._environments = self._load_environments()
        self._active_id = self._load_active_id()
        logger.debug(f"Loaded {len(self._environments)} environments, active={self._active_id}")

    # ── Notifications ─────────────────────────────────────────────

    @property
    def notifications(self) -> List[StorageNotification]:
        return list(self._notifications)

    def clear_notifications(self) -> int:
        count = len(self._notifications)
        self._notifications.clear()
        return count

    def subscribe(self, listener: Callable[[StorageNotification], None]):
        """Register a callback invoked for every storage write failure."""
        self._listeners.append(listener)

    # ── Environment CRUD ──────────────────────────────────────────

    def list(self) -> List[Environment]:
        """All environments in insertion order."""
        return list(self._environments)

    def get(self, env_id: Optional[int]) -> Optional[Environment]:
        if env_id is None:
            return None
        return next((e for e in self._environments if e.id == env_id), None)

    def _index_of(self, env_id: Optional[int]) -> int:
        if env_id is None:
            return -1
        return next((i for i, e in enumerate(self._environments) if e.id == env_id), -1)

    def _new_id(self) -> int:
        used = {e.id for e in self._environments}
        # a dangling active id must not be handed to a new environment
        used.add(self._active_id)
        candidate = now_ms() + random.randint(0, ID_RANDOM_OFFSET)
        while candidate in used:
            candidate += 1
        return candidate

    def save(self, env: Environment) -> Environment:
        """
        Replace the environment with the same id, or append a new one.

        A replace keeps the stored createdAt and refreshes updatedAt. An
        unknown or missing id creates a new environment with a fresh id.
        """
        stored = env.model_copy(deep=True)
        ts = now_ms()
        idx = self._index_of(env.id)
        if idx != -1:
            stored.created_at = self._environments[idx].created_at
            stored.updated_at = ts
            self._environments[idx] = stored
            logger.info(f"Updated environment {stored.id} '{stored.name}'")
        else:
            stored.id = self._new_id()
            stored.created_at = ts
            stored.updated_at = ts
            self._environments.append(stored)
            logger.info(f"Created environment {stored.id} '{stored.name}'")
        self._persist_environments()
        return stored

    def delete(self, env_id: int) -> bool:
        """Delete an environment. Deleting an unknown id is a no-op."""
        idx = self._index_of(env_id)
        if idx == -1:
            return False
        removed = self._environments.pop(idx)
        if self._active_id == env_id:
            self._active_id = None
            self._persist_active_id()
        self._persist_environments()
        logger.info(f"Deleted environment {env_id} '{removed.name}'")
        return True

    # ── Active Environment ────────────────────────────────────────

    @property
    def active_id(self) -> Optional[int]:
        return self._active_id

    @property
    def active_environment(self) -> Optional[Environment]:
        """The selected environment, or None if nothing (or a dangling id) is selected."""
        return self.get(self._active_id)

    def set_active(self, env_id: Optional[int]):
        """Select an environment by id, or clear the selection with None."""
        self._active_id = env_id
        self._persist_active_id()
        if env_id is not None and self.get(env_id) is None:
            logger.warning(f"Active environment {env_id} does not exist; resolution is a no-op")

    # ── Resolution ────────────────────────────────────────────────

    def resolve_service_config(self, service_id: int,
                               project_id: Optional[int] = None) -> EnvServiceConfig:
        return resolver.resolve_service_config(self.active_environment, service_id, project_id)

    def resolve_variables(self, text: str, service_id: Optional[int] = None,
                          project_id: Optional[int] = None) -> str:
        return resolver.resolve_variables(self.active_environment, text, service_id, project_id)

    def resolve_variable_map(self, service_id: Optional[int] = None,
                             project_id: Optional[int] = None) -> Dict[str, str]:
        return resolver.resolve_variable_map(self.active_environment, service_id, project_id)

    # ── Overrides ─────────────────────────────────────────────────

    def orphaned_overrides(self, env_id: int,
                           project_ids: Iterable[int],
                           service_ids: Iterable[int]) -> List[EnvOverride]:
        """Overrides whose target no longer exists in the given id registries."""
        env = self.get(env_id)
        if not env:
            return []
        known = {
            OverrideScope.PROJECT: set(project_ids),
            OverrideScope.SERVICE: set(service_ids),
        }
        return [o for o in env.overrides if o.target_id not in known[o.scope]]

    # ── Export / Import ───────────────────────────────────────────

    def export_json(self) -> str:
        """All environments as pretty-printed JSON."""
        return json.dumps([e.to_json_dict() for e in self._environments],
                          indent=2, ensure_ascii=False)

    def import_json(self, payload: Union[str, bytes, List[Any], Any]) -> List[Environment]:
        """
        Import environments from an export.

        The whole payload is validated before anything is saved; a non-array
        root or any invalid element rejects the import. Every imported
        environment gets a fresh id.
        """
        if isinstance(payload, (str, bytes, bytearray)):
            try:
                payload = json.loads(payload)
            except (ValueError, RecursionError) as e:
                raise ImportValidationError(f"Import file is not valid JSON: {e}") from e
        if not isinstance(payload, list):
            raise ImportValidationError("Import file must contain a JSON array of environments")

        parsed = []
        for i, item in enumerate(payload):
            try:
                parsed.append(Environment.model_validate(item))
            except ValidationError as e:
                raise ImportValidationError(f"Invalid environment at index {i}: {e}") from e

        imported = []
        for env in parsed:
            fresh = env.model_copy(update={"id": None})
            imported.append(self.save(fresh))
        logger.info(f"Imported {len(imported)} environments")
        return imported
