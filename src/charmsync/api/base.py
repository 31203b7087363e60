"""
Contract of the controller API consumed by charmsync.

The RPC client itself, connection pooling and the model-type cache are
external collaborators; charmsync only depends on these protocols. Methods
raise whatever the transport raises; callers pass those errors through
``classify_error``.
"""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from charmsync.api.types import (
    AddMachineParams,
    AddMachineResult,
    ApplicationGetResults,
    ApplicationInfoResult,
    ApplicationResources,
    DeployArgs,
    DeployFromRepositoryArgs,
    DeployInfo,
    ExposedEndpoint,
    FullStatus,
    ModelType,
    PendingResource,
    PendingResourceUpload,
    ServerVersion,
    SetCharmConfig,
)
from charmsync.charms.models import CharmID, CharmInfo, CharmOrigin, CharmURL, ResolvedCharm


class ApplicationAPI(Protocol):
    def applications_info(self, applications: Sequence[str]) -> list[ApplicationInfoResult]:
        ...

    def deploy(self, args: DeployArgs) -> None:
        ...

    def deploy_from_repository(
        self, args: DeployFromRepositoryArgs
    ) -> tuple[DeployInfo, list[PendingResourceUpload], list[Exception]]:
        ...

    def get(self, application: str) -> ApplicationGetResults:
        ...

    def get_charm_url_origin(self, application: str) -> tuple[CharmURL, CharmOrigin]:
        ...

    def set_charm(self, config: SetCharmConfig) -> None:
        ...

    def set_config(self, application: str, config: dict[str, str]) -> None:
        ...

    def unset_application_config(self, application: str, keys: Sequence[str]) -> None:
        ...

    def set_constraints(self, application: str, constraints: str) -> None:
        ...

    def merge_bindings(self, application: str, bindings: dict[str, str]) -> None:
        ...

    def expose(self, application: str, exposed_endpoints: dict[str, ExposedEndpoint] | None) -> None:
        ...

    def unexpose(self, application: str, endpoints: Sequence[str]) -> None:
        ...

    def scale_application(self, application: str, scale: int) -> None:
        ...

    def add_units(
        self,
        application: str,
        num_units: int,
        placement: Sequence[str] | None = None,
    ) -> list[str]:
        ...

    def destroy_units(self, units: Sequence[str], *, destroy_storage: bool) -> None:
        ...

    def destroy_applications(self, applications: Sequence[str], *, destroy_storage: bool) -> None:
        ...


class CharmsAPI(Protocol):
    def resolve_charms(self, charms: Sequence[tuple[CharmURL, CharmOrigin]]) -> list[ResolvedCharm]:
        ...

    def add_charm(self, url: CharmURL, origin: CharmOrigin, force: bool = False) -> CharmOrigin:
        ...

    def charm_info(self, url: str) -> CharmInfo:
        ...

    def is_subordinate(self, name: str, channel: str) -> bool:
        ...


class ResourcesAPI(Protocol):
    def add_pending_resources(
        self,
        application: str,
        charm_id: CharmID,
        resources: Sequence[PendingResource],
    ) -> list[str]:
        ...

    def upload_pending_resource(
        self,
        application: str,
        resource: PendingResource,
        filename: str,
        payload: bytes,
    ) -> str:
        ...

    def upload(
        self,
        application: str,
        name: str,
        filename: str,
        pending_id: str,
        payload: bytes,
    ) -> None:
        ...

    def list_resources(self, applications: Sequence[str]) -> list[ApplicationResources]:
        ...


class ModelConfigAPI(Protocol):
    def model_get(self) -> dict[str, Any]:
        ...

    def get_model_constraints(self) -> str:
        ...


class StatusAPI(Protocol):
    def status(self, patterns: Sequence[str] | None = None, *, include_storage: bool = False) -> FullStatus:
        ...


class MachineManagerAPI(Protocol):
    def add_machines(self, machines: Sequence[AddMachineParams]) -> list[AddMachineResult]:
        ...


class Connection(Protocol):
    """An open API connection to one model."""

    applications: ApplicationAPI
    charms: CharmsAPI
    resources: ResourcesAPI
    model_config: ModelConfigAPI
    status: StatusAPI
    machines: MachineManagerAPI

    def best_api_version(self, facade: str) -> int:
        ...

    def server_version(self) -> ServerVersion:
        ...

    def close(self) -> None:
        ...


class Controller(Protocol):
    """Connection factory and model-type lookup, owned by the caller."""

    def connect(self, model_id: str) -> Connection:
        ...

    def model_type(self, model_id: str) -> ModelType:
        ...
