"""Charm identity value types: channels, charm URLs, origins and resource metadata."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace

from charmsync.charms.bases import Base
from charmsync.core.errors import NotValidError

UNSPECIFIED_REVISION = -1

CHARM_RISKS = ("stable", "candidate", "beta", "edge")

SCHEMA_CHARMHUB = "ch"
SCHEMA_LOCAL = "local"

SOURCE_CHARMHUB = "charm-hub"
SOURCE_LOCAL = "local"

RESOURCE_TYPE_FILE = "file"
RESOURCE_TYPE_CONTAINER_IMAGE = "oci-image"
RESOURCE_TYPES = (RESOURCE_TYPE_FILE, RESOURCE_TYPE_CONTAINER_IMAGE)

_NAME_RE = re.compile(r"^[a-z][a-z0-9]*(-[a-z0-9]*[a-z][a-z0-9]*)*$")
_REVISION_SUFFIX_RE = re.compile(r"^(?P<name>.+?)-(?P<revision>\d+)$")


@dataclass(frozen=True)
class Channel:
    """A charm channel: ``[track/]risk[/branch]``."""

    track: str = ""
    risk: str = ""
    branch: str = ""

    @property
    def empty(self) -> bool:
        return not (self.track or self.risk or self.branch)

    def __str__(self) -> str:
        parts = [p for p in (self.track, self.risk, self.branch) if p]
        return "/".join(parts)


def parse_channel(value: str) -> Channel:
    """
    Parse a charm channel string.

    ``""`` gives an empty channel. A single component is a risk when it names
    one, otherwise a track at the stable risk.
    """
    value = (value or "").strip()
    if not value:
        return Channel()

    parts = value.split("/")
    if len(parts) == 1:
        if parts[0] in CHARM_RISKS:
            return Channel(risk=parts[0])
        return Channel(track=parts[0], risk="stable")
    if len(parts) == 2:
        if parts[0] in CHARM_RISKS:
            return Channel(risk=parts[0], branch=parts[1])
        track, risk, branch = parts[0], parts[1], ""
    elif len(parts) == 3:
        track, risk, branch = parts
    else:
        raise NotValidError(f'channel "{value}" not valid')

    if not track:
        raise NotValidError(f'channel "{value}" not valid, empty track')
    if risk not in CHARM_RISKS:
        raise NotValidError(f'channel "{value}" not valid, unknown risk "{risk}"')
    return Channel(track=track, risk=risk, branch=branch)


@dataclass(frozen=True)
class CharmURL:
    """A charm URL such as ``ch:amd64/jammy/postgresql-429``."""

    name: str
    schema: str = SCHEMA_CHARMHUB
    revision: int = UNSPECIFIED_REVISION
    architecture: str = ""
    series: str = ""

    def with_revision(self, revision: int) -> "CharmURL":
        return replace(self, revision=revision)

    def __str__(self) -> str:
        path = [p for p in (self.architecture, self.series) if p]
        name = self.name
        if self.revision != UNSPECIFIED_REVISION:
            name = f"{name}-{self.revision}"
        path.append(name)
        return f"{self.schema}:{'/'.join(path)}"


def parse_charm_url(value: str) -> CharmURL:
    """Parse a charm URL, defaulting the schema to CharmHub."""
    value = (value or "").strip()
    if not value:
        raise NotValidError("charm url not valid, empty")

    schema, sep, path = value.partition(":")
    if not sep:
        schema, path = SCHEMA_CHARMHUB, value
    if schema not in (SCHEMA_CHARMHUB, SCHEMA_LOCAL):
        raise NotValidError(f'charm url "{value}" not valid, unknown schema "{schema}"')

    segments = path.split("/")
    if len(segments) > 3 or not all(segments):
        raise NotValidError(f'charm url "{value}" not valid')
    last = segments[-1]
    architecture = segments[0] if len(segments) == 3 else ""
    series = segments[-2] if len(segments) >= 2 else ""

    revision = UNSPECIFIED_REVISION
    match = _REVISION_SUFFIX_RE.match(last)
    if match:
        last = match.group("name")
        revision = int(match.group("revision"))

    if not _NAME_RE.match(last):
        raise NotValidError(f'charm name "{last}" not valid')
    return CharmURL(
        name=last,
        schema=schema,
        revision=revision,
        architecture=architecture,
        series=series,
    )


@dataclass(frozen=True)
class Platform:
    architecture: str
    base: Base | None = None


@dataclass(frozen=True)
class CharmOrigin:
    """
    Exactly which charm build is pinned.

    ``revision`` is None when unpinned. ``id`` and ``hash`` identify a build
    already known to the controller; clearing them forces re-resolution.
    """

    source: str = SOURCE_CHARMHUB
    type: str = "charm"
    id: str = ""
    hash: str = ""
    revision: int | None = None
    track: str | None = None
    risk: str = ""
    branch: str | None = None
    architecture: str = ""
    base: Base | None = None

    @property
    def channel(self) -> Channel:
        return Channel(track=self.track or "", risk=self.risk, branch=self.branch or "")


def make_origin(schema: str, revision: int, channel: Channel, platform: Platform) -> CharmOrigin:
    """Build the origin used to ask the controller to resolve a charm."""
    if schema == SCHEMA_LOCAL:
        source = SOURCE_LOCAL
    elif schema == SCHEMA_CHARMHUB:
        source = SOURCE_CHARMHUB
    else:
        raise NotValidError(f'charm schema "{schema}" not valid')
    return CharmOrigin(
        source=source,
        revision=None if revision == UNSPECIFIED_REVISION else revision,
        track=channel.track or None,
        risk=channel.risk,
        branch=channel.branch or None,
        architecture=platform.architecture,
        base=platform.base,
    )


@dataclass(frozen=True)
class CharmID:
    url: str
    origin: CharmOrigin


@dataclass(frozen=True)
class ResolvedCharm:
    url: CharmURL
    origin: CharmOrigin
    supported_bases: list[Base] = field(default_factory=list)
    error: Exception | None = None


@dataclass(frozen=True)
class ResourceMeta:
    """A resource declared in charm metadata."""

    name: str
    type: str = RESOURCE_TYPE_FILE
    path: str = ""
    description: str = ""


@dataclass(frozen=True)
class CharmInfo:
    url: str
    resources: dict[str, ResourceMeta] = field(default_factory=dict)
    subordinate: bool = False


def validate_resource_type(value: str) -> str:
    if value not in RESOURCE_TYPES:
        raise NotValidError(f'resource type "{value}" not valid')
    return value
