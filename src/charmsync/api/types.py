"""Wire-level value types exchanged with the controller API."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from charmsync.charms.models import CharmID, CharmOrigin
from charmsync.core.errors import NotValidError

RESOURCE_ORIGIN_STORE = "store"
RESOURCE_ORIGIN_UPLOAD = "upload"


class ModelType(str, Enum):
    IAAS = "iaas"
    CAAS = "caas"


@dataclass(frozen=True)
class StorageDirective:
    """Storage request for a store label: pool, size in MiB and instance count."""

    pool: str = ""
    size: int = 0
    count: int = 1

    def __str__(self) -> str:
        parts = [self.pool] if self.pool else []
        parts.append(str(self.count))
        if self.size:
            parts.append(f"{self.size}M")
        return ",".join(parts)


_SIZE_SUFFIXES = {"M": 1, "G": 1024, "T": 1024 * 1024, "P": 1024 * 1024 * 1024}


def parse_storage_directive(value: str) -> StorageDirective:
    """Parse ``[pool,][count,][size]`` such as ``ebs,2,10G``."""
    pool = ""
    count = 0
    size = 0
    for raw in value.split(","):
        token = raw.strip()
        if not token:
            continue
        if token.isdigit():
            if count:
                raise NotValidError(f'storage directive "{value}" not valid, count given twice')
            count = int(token)
            continue
        suffix = token[-1].upper()
        if suffix in _SIZE_SUFFIXES and token[:-1].replace(".", "", 1).isdigit():
            if size:
                raise NotValidError(f'storage directive "{value}" not valid, size given twice')
            size = int(float(token[:-1]) * _SIZE_SUFFIXES[suffix])
            continue
        if pool:
            raise NotValidError(f'storage directive "{value}" not valid, pool given twice')
        pool = token
    return StorageDirective(pool=pool, size=size, count=count or 1)


@dataclass(frozen=True)
class PendingResource:
    """
    A charm resource to be registered (store) or uploaded (upload) around
    deploy time. Store resources carry a revision, -1 meaning latest in the
    channel. Upload resources carry the caller's local reference.
    """

    name: str
    type: str
    origin: str
    revision: int = -1
    reference: str = ""
    path: str = ""


@dataclass(frozen=True)
class PendingResourceUpload:
    name: str
    filename: str
    type: str


@dataclass(frozen=True)
class ApplicationResource:
    name: str
    origin: str
    revision: int = -1
    type: str = ""


@dataclass(frozen=True)
class ApplicationResources:
    resources: list[ApplicationResource] = field(default_factory=list)


@dataclass(frozen=True)
class ExposedEndpoint:
    expose_to_spaces: list[str] = field(default_factory=list)
    expose_to_cidrs: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class UnitStatus:
    machine: str = ""


@dataclass(frozen=True)
class ApplicationStatus:
    charm: str
    units: dict[str, UnitStatus] = field(default_factory=dict)
    scale: int = 0
    exposed: bool = False
    exposed_endpoints: dict[str, ExposedEndpoint] = field(default_factory=dict)
    endpoint_bindings: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class StorageDetails:
    storage_tag: str
    kind: str
    attachments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FilesystemDetails:
    filesystem_tag: str
    storage_tag: str | None
    pool: str = ""
    size_mib: int = 0
    unit_attachments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VolumeDetails:
    volume_tag: str
    storage_tag: str | None
    pool: str = ""
    size_mib: int = 0
    unit_attachments: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FullStatus:
    applications: dict[str, ApplicationStatus] = field(default_factory=dict)
    storage: list[StorageDetails] = field(default_factory=list)
    filesystems: list[FilesystemDetails] = field(default_factory=list)
    volumes: list[VolumeDetails] = field(default_factory=list)


@dataclass(frozen=True)
class BaseInfo:
    name: str
    channel: str


@dataclass(frozen=True)
class ApplicationInfo:
    name: str
    charm: str
    base: BaseInfo
    channel: str = ""
    constraints: str = ""
    principal: bool = True


@dataclass(frozen=True)
class ApplicationInfoResult:
    result: ApplicationInfo | None = None
    error: str | None = None


@dataclass(frozen=True)
class ApplicationGetResults:
    """Config entries are ``{"value": ..., "source": "default"|"user"|...}``."""

    application_config: dict[str, dict[str, Any]] = field(default_factory=dict)
    charm_config: dict[str, dict[str, Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class DeployArgs:
    charm_id: CharmID
    application_name: str
    num_units: int
    charm_origin: CharmOrigin
    config: dict[str, str] = field(default_factory=dict)
    constraints: str = ""
    resources: dict[str, str] = field(default_factory=dict)
    storage: dict[str, StorageDirective] = field(default_factory=dict)
    placement: list[str] = field(default_factory=list)
    endpoint_bindings: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DeployFromRepositoryArgs:
    charm_name: str
    application_name: str
    base: str
    channel: str
    revision: int
    config_yaml: str
    num_units: int
    trust: bool = False
    constraints: str = ""
    endpoint_bindings: dict[str, str] = field(default_factory=dict)
    placement: list[str] = field(default_factory=list)
    resources: dict[str, str] = field(default_factory=dict)
    storage: dict[str, StorageDirective] = field(default_factory=dict)


@dataclass(frozen=True)
class DeployInfo:
    name: str
    charm: str = ""
    architecture: str = ""
    base: str = ""
    channel: str = ""
    revision: int = -1


@dataclass(frozen=True)
class SetCharmConfig:
    application_name: str
    charm_id: CharmID
    resource_ids: dict[str, str] = field(default_factory=dict)
    storage_directives: dict[str, StorageDirective] = field(default_factory=dict)
    force: bool = False


@dataclass(frozen=True)
class AddMachineParams:
    base: str = ""
    constraints: str = ""
    placement: str = ""
    disks: list[StorageDirective] = field(default_factory=list)
    jobs: tuple[str, ...] = ("host-units",)


@dataclass(frozen=True)
class AddMachineResult:
    machine: str = ""
    error: str | None = None


@dataclass(frozen=True)
class ServerVersion:
    major: int
    minor: int = 0
    patch: int = 0

    @classmethod
    def parse(cls, value: str) -> "ServerVersion":
        numbers = []
        for part in value.split("-")[0].split("."):
            if not part.isdigit():
                raise NotValidError(f'version "{value}" not valid')
            numbers.append(int(part))
        if not numbers:
            raise NotValidError(f'version "{value}" not valid')
        numbers += [0] * (3 - len(numbers))
        return cls(*numbers[:3])
