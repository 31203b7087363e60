"""Application reconciliation: deploy, read, update and destroy."""

from charmsync.applications.client import ApplicationsClient
from charmsync.applications.models import (
    CharmResource,
    ConfigEntry,
    CreateApplicationInput,
    CreateApplicationResponse,
    ExposeConfig,
    ReadApplicationResponse,
    UpdateApplicationInput,
    config_value_to_string,
)

__all__ = [
    "ApplicationsClient",
    "CharmResource",
    "ConfigEntry",
    "CreateApplicationInput",
    "CreateApplicationResponse",
    "ExposeConfig",
    "ReadApplicationResponse",
    "UpdateApplicationInput",
    "config_value_to_string",
]
