"""
Shared fixtures for the Mock Studio test suite.
"""
import sys
import os
import pytest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Set env vars before any imports that read them; keeps tests off the filesystem
os.environ["STORAGE_BACKEND"] = "memory"
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from mockstudio.environments.models import (  # noqa: E402
    Environment, EnvVariable, EnvServiceConfig, EnvOverride, OverrideScope,
)


def project_override(target_id, service_config=None, variables=None, name=""):
    return EnvOverride(
        scope=OverrideScope.PROJECT, target_id=target_id, target_name=name,
        service_config=service_config, variables=variables,
    )


def service_override(target_id, service_config=None, variables=None, name=""):
    return EnvOverride(
        scope=OverrideScope.SERVICE, target_id=target_id, target_name=name,
        service_config=service_config, variables=variables,
    )


@pytest.fixture
def kv_store():
    """Fresh in-memory key/value store."""
    from mockstudio.storage import MemoryStore
    return MemoryStore()


@pytest.fixture
def environment_store(kv_store):
    """Fresh EnvironmentStore over an empty in-memory backend."""
    from mockstudio.environments.environment_store import EnvironmentStore
    return EnvironmentStore(kv_store)


@pytest.fixture
def dev_environment():
    """
    "Dev": global port 3000 and token=A; project 7 sets prefix /api and token=B;
    service 42 sets port 4000.
    """
    return Environment(
        name="Dev",
        color="#22c55e",
        variables=[
            EnvVariable(key="token", value="A"),
            EnvVariable(key="host", value="dev.local", description="API host"),
        ],
        service_config=EnvServiceConfig(port=3000),
        overrides=[
            project_override(7, EnvServiceConfig(prefix="/api"),
                             [EnvVariable(key="token", value="B")], name="Shop"),
            service_override(42, EnvServiceConfig(port=4000), name="Orders"),
        ],
    )


@pytest.fixture
def active_dev_store(environment_store, dev_environment):
    """Store with "Dev" saved and selected."""
    saved = environment_store.save(dev_environment)
    environment_store.set_active(saved.id)
    return environment_store
