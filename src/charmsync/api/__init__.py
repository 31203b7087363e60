"""Controller API contract and wire types."""

from charmsync.api.base import (
    ApplicationAPI,
    CharmsAPI,
    Connection,
    Controller,
    MachineManagerAPI,
    ModelConfigAPI,
    ResourcesAPI,
    StatusAPI,
)
from charmsync.api.types import (
    RESOURCE_ORIGIN_STORE,
    RESOURCE_ORIGIN_UPLOAD,
    ModelType,
    PendingResource,
    ServerVersion,
    StorageDirective,
    parse_storage_directive,
)

__all__ = [
    "RESOURCE_ORIGIN_STORE",
    "RESOURCE_ORIGIN_UPLOAD",
    "ApplicationAPI",
    "CharmsAPI",
    "Connection",
    "Controller",
    "MachineManagerAPI",
    "ModelConfigAPI",
    "ModelType",
    "PendingResource",
    "ResourcesAPI",
    "ServerVersion",
    "StatusAPI",
    "StorageDirective",
    "parse_storage_directive",
]
