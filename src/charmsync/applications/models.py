"""Input and output structures for application reconciliation."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Union

import yaml

from charmsync.api.types import ModelType, StorageDirective
from charmsync.charms.bases import Base, parse_base
from charmsync.charms.models import UNSPECIFIED_REVISION, parse_channel, parse_charm_url
from charmsync.core.errors import NotValidError

TRUST_CONFIG_KEY = "trust"

ConfigValue = Union[bool, int, float, str]

_APPLICATION_NAME_RE = re.compile(r"^[a-z][a-z0-9]*(-[a-z0-9]*[a-z][a-z0-9]*)*$")


def config_value_to_string(value: ConfigValue) -> str:
    """
    Canonical string form of a config value.

    bool → "true"/"false", int → decimal, float → fixed point with zero
    decimals, str unchanged.
    """
    # bool first: it is a subclass of int
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return f"{value:.0f}"
    if isinstance(value, str):
        return value
    raise NotValidError(f"config value {value!r} of type {type(value).__name__} not valid")


@dataclass(frozen=True)
class ConfigEntry:
    """A config value as read back, with whether it is the charm default."""

    value: ConfigValue
    is_default: bool = False

    def __str__(self) -> str:
        return config_value_to_string(self.value)


def equal_config_entries(a: object, b: object) -> bool:
    """Values are equal only when they also share the same type."""
    return type(a) is type(b) and a == b


@dataclass(frozen=True)
class CharmResource:
    """
    A caller's reference for one charm resource.

    A revision number means the resource comes from the store; anything
    else is an OCI image reference the client uploads, with optional
    registry credentials.
    """

    revision: str = ""
    oci_image_url: str = ""
    registry_user: str = ""
    registry_password: str = ""

    @classmethod
    def from_value(cls, value: "CharmResource | int | str") -> "CharmResource":
        if isinstance(value, CharmResource):
            return value
        if isinstance(value, int):
            return cls(revision=str(value))
        text = value.strip()
        if text.lstrip("-").isdigit():
            return cls(revision=text)
        return cls(oci_image_url=text)

    def __str__(self) -> str:
        if self.revision:
            return self.revision
        return self.oci_image_url

    def upload_payload(self) -> bytes:
        """YAML image details sent as the body of a resource upload."""
        details = {"registrypath": self.oci_image_url}
        if self.registry_user:
            details["username"] = self.registry_user
        if self.registry_password:
            details["password"] = self.registry_password
        return yaml.safe_dump(details, sort_keys=True).encode("utf-8")


def resources_as_string_map(resources: dict[str, CharmResource]) -> dict[str, str]:
    """Resource name → revision number or image reference, as the API wants."""
    return {name: str(resource) for name, resource in resources.items()}


@dataclass(frozen=True)
class ExposeConfig:
    """Comma separated endpoints, spaces and CIDRs to expose."""

    endpoints: str = ""
    spaces: str = ""
    cidrs: str = ""


def split_comma_delimited_list(value: str | None) -> list[str]:
    return [token.strip() for token in (value or "").split(",") if token.strip()]


def validate_application_name(name: str) -> str:
    if not _APPLICATION_NAME_RE.match(name or ""):
        raise NotValidError(f'application name "{name}" not valid')
    return name


def constraint_value(constraints: str, key: str) -> str:
    """Value of ``key`` in a ``key=value key=value`` constraints string."""
    for token in (constraints or "").split():
        name, _, value = token.partition("=")
        if name == key:
            return value
    return ""


@dataclass(frozen=True)
class CreateApplicationInput:
    """Desired state of an application, as supplied by the caller."""

    model_id: str
    charm_name: str
    application_name: str = ""
    charm_channel: str = ""
    charm_base: str = ""
    charm_revision: int = UNSPECIFIED_REVISION
    units: int = 1
    trust: bool = False
    expose: ExposeConfig | None = None
    config: dict[str, str] = field(default_factory=dict)
    placement: str = ""
    machines: list[str] = field(default_factory=list)
    constraints: str = ""
    endpoint_bindings: dict[str, str] = field(default_factory=dict)
    resources: dict[str, CharmResource] = field(default_factory=dict)
    storage: dict[str, StorageDirective] = field(default_factory=dict)

    def validate_and_transform(self) -> "DeploySpec":
        """Validate caller input and normalise it for both deploy dialects."""
        app_name = validate_application_name(self.application_name or self.charm_name)
        base = parse_base(self.charm_base) if self.charm_base else None

        url = parse_charm_url(self.charm_name)
        revision = self.charm_revision
        if url.revision != UNSPECIFIED_REVISION:
            if revision != UNSPECIFIED_REVISION:
                raise NotValidError("cannot specify revision in a charm name")
            revision = url.revision
        if revision != UNSPECIFIED_REVISION and parse_channel(self.charm_channel).empty:
            raise NotValidError("specifying a revision requires a channel for future upgrades")

        placement: list[str] = []
        if self.placement:
            placement.extend(sorted(d.strip() for d in self.placement.split(",") if d.strip()))
        placement.extend(m.strip() for m in self.machines if m.strip())

        return DeploySpec(
            application_name=app_name,
            charm_name=self.charm_name,
            charm_channel=self.charm_channel,
            charm_base=base,
            charm_revision=self.charm_revision,
            units=self.units,
            trust=self.trust,
            expose=self.expose,
            config=dict(self.config),
            placement=placement,
            constraints=self.constraints,
            endpoint_bindings=dict(self.endpoint_bindings),
            resources={k: CharmResource.from_value(v) for k, v in self.resources.items()},
            storage=dict(self.storage),
        )


@dataclass(frozen=True)
class DeploySpec:
    """Validated create input shared by both deploy dialects."""

    application_name: str
    charm_name: str
    charm_channel: str
    charm_base: Base | None
    charm_revision: int
    units: int
    trust: bool
    expose: ExposeConfig | None
    config: dict[str, str]
    placement: list[str]
    constraints: str
    endpoint_bindings: dict[str, str]
    resources: dict[str, CharmResource]
    storage: dict[str, StorageDirective]


@dataclass(frozen=True)
class CreateApplicationResponse:
    app_name: str
    model_type: ModelType


@dataclass(frozen=True)
class ReadApplicationResponse:
    """Observed application state, rebuilt from scratch on every read."""

    name: str
    channel: str
    revision: int
    base: str
    model_type: ModelType
    units: int
    trust: bool
    config: dict[str, ConfigEntry]
    constraints: str
    expose: ExposeConfig | None
    principal: bool
    placement: str
    machines: list[str]
    endpoint_bindings: dict[str, str]
    storage: dict[str, StorageDirective]
    resources: dict[str, str]


@dataclass(frozen=True)
class UpdateApplicationInput:
    """Partial desired state: None / empty fields mean unchanged."""

    model_id: str
    app_name: str
    units: int | None = None
    revision: int | None = None
    channel: str = ""
    trust: bool | None = None
    expose: ExposeConfig | None = None
    unexpose: list[str] = field(default_factory=list)
    config: dict[str, ConfigValue] | None = None
    unset_config: list[str] = field(default_factory=list)
    base: str = ""
    constraints: str | None = None
    endpoint_bindings: dict[str, str] = field(default_factory=dict)
    storage_directives: dict[str, StorageDirective] = field(default_factory=dict)
    resources: dict[str, CharmResource] = field(default_factory=dict)
    add_machines: list[str] = field(default_factory=list)
    remove_machines: list[str] = field(default_factory=list)
