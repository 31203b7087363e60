"""Charm identity types and base selection."""

from charmsync.charms.bases import (
    Base,
    bases_contain,
    intersect_bases,
    parse_base,
    resolve_base,
    supported_workload_bases,
)
from charmsync.charms.models import (
    UNSPECIFIED_REVISION,
    Channel,
    CharmID,
    CharmInfo,
    CharmOrigin,
    CharmURL,
    Platform,
    ResolvedCharm,
    ResourceMeta,
    make_origin,
    parse_channel,
    parse_charm_url,
)

__all__ = [
    "UNSPECIFIED_REVISION",
    "Base",
    "Channel",
    "CharmID",
    "CharmInfo",
    "CharmOrigin",
    "CharmURL",
    "Platform",
    "ResolvedCharm",
    "ResourceMeta",
    "bases_contain",
    "intersect_bases",
    "make_origin",
    "parse_base",
    "parse_channel",
    "parse_charm_url",
    "resolve_base",
    "supported_workload_bases",
]
