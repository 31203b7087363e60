"""
Operating system bases and base selection.

A base is an OS plus a channel (``ubuntu@22.04``, ``ubuntu@22.04/edge``).
Two bases are compatible when OS and channel track match; risk is ignored.
``resolve_base`` picks the base a charm is deployed with.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

import structlog

from charmsync.core.errors import NotSupportedError, NotValidError

logger = structlog.get_logger()

DEFAULT_BASE_RISK = "stable"
BASE_RISKS = ("stable", "candidate", "beta", "edge")


@dataclass(frozen=True)
class Base:
    """An OS/version pair such as ``ubuntu@22.04``."""

    os: str
    track: str = ""
    risk: str = ""

    @property
    def empty(self) -> bool:
        return not self.os

    def is_compatible(self, other: "Base") -> bool:
        return self.os == other.os and self.track == other.track

    def channel(self) -> str:
        if self.risk and self.risk != DEFAULT_BASE_RISK:
            return f"{self.track}/{self.risk}"
        return self.track

    def __str__(self) -> str:
        if self.empty:
            return ""
        if not self.track:
            return self.os
        return f"{self.os}@{self.channel()}"


def parse_base(value: str) -> Base:
    """Parse ``os@track[/risk]``. An empty string gives an empty base."""
    value = (value or "").strip()
    if not value:
        return Base(os="")
    os_name, sep, channel = value.partition("@")
    if not sep or not os_name or not channel:
        raise NotValidError(f'base "{value}" not valid, expected "<os>@<channel>"')
    track, _, risk = channel.partition("/")
    if not track:
        raise NotValidError(f'base "{value}" not valid, missing track')
    if risk and risk not in BASE_RISKS:
        raise NotValidError(f'base "{value}" not valid, unknown risk "{risk}"')
    return Base(os=os_name.lower(), track=track, risk=risk or DEFAULT_BASE_RISK)


def bases_contain(look_for: Base | None, bases: Iterable[Base]) -> bool:
    """Return True when a compatible base is in ``bases``. Empty never matches."""
    if look_for is None or look_for.empty:
        return False
    return any(look_for.is_compatible(b) for b in bases)


def intersect_bases(charm_bases: Iterable[Base], supported: Sequence[Base]) -> list[Base]:
    """Charm bases that are also supported workload bases, de-duplicated."""
    result: list[Base] = []
    for base in charm_bases:
        if bases_contain(base, supported) and not bases_contain(base, result):
            result.append(base)
    return result


def _sort_key(base: Base) -> tuple[str, tuple[int, ...], str]:
    numeric: list[int] = []
    for part in base.track.split("."):
        numeric.append(int(part) if part.isdigit() else -1)
    return (base.os, tuple(numeric), base.track)


_CURRENT_WORKLOAD_BASES = (
    Base("ubuntu", "20.04", DEFAULT_BASE_RISK),
    Base("ubuntu", "22.04", DEFAULT_BASE_RISK),
    Base("ubuntu", "24.04", DEFAULT_BASE_RISK),
)

# Older controllers still accept these.
_LEGACY_WORKLOAD_BASES = (
    Base("ubuntu", "18.04", DEFAULT_BASE_RISK),
    Base("ubuntu", "16.04", DEFAULT_BASE_RISK),
    Base("ubuntu", "14.04", DEFAULT_BASE_RISK),
    Base("ubuntu", "12.04", DEFAULT_BASE_RISK),
    Base("windows"),
    Base("centos", "7", DEFAULT_BASE_RISK),
)


def supported_workload_bases(controller_major: int) -> list[Base]:
    """Workload bases accepted by a controller of the given major version."""
    bases = list(_CURRENT_WORKLOAD_BASES)
    if 0 < controller_major < 3:
        bases.extend(_LEGACY_WORKLOAD_BASES)
    return bases


def resolve_base(
    *,
    input_base: Base | None,
    suggested_base: Base | None,
    charm_bases: Sequence[Base],
    supported_bases: Sequence[Base],
    model_config: dict[str, Any],
    default_lts: Base | None = None,
) -> Base:
    """
    Select the base to deploy a charm with.

    Order of preference:
    1. A user supplied base, which must be supported by the charm and be a
       supported workload base. Otherwise it is an error; no substitution.
    2. The model's ``default-base`` when explicitly set and supported.
    3. The suggested base from charm resolution.
    4. The platform LTS default.
    5. The first supported base, ordered by OS then numeric track.

    Raises:
        NotSupportedError: if no charm base is a supported workload base, or
            the user supplied base is not in that intersection.
    """
    logger.debug(
        "resolving_base",
        input_base=str(input_base or ""),
        suggested_base=str(suggested_base or ""),
        charm_bases=[str(b) for b in charm_bases],
    )

    candidates = intersect_bases(charm_bases, supported_bases)
    if not candidates:
        raise NotSupportedError(
            "This charm has no bases supported by the charm and in the list of "
            "workload bases for the current controller version.",
            {"charm_bases": [str(b) for b in charm_bases]},
        )

    if bases_contain(input_base, candidates):
        return input_base  # type: ignore[return-value]
    if input_base is not None and not input_base.empty:
        raise NotSupportedError(
            f'base "{input_base}" either not supported by the charm, or an '
            "unsupported workload base with the current controller version.",
            {"supported": [str(b) for b in candidates]},
        )

    default_base_value = model_config.get("default-base")
    if default_base_value:
        default_base = parse_base(str(default_base_value))
        if bases_contain(default_base, candidates):
            return default_base

    if bases_contain(suggested_base, candidates):
        return suggested_base  # type: ignore[return-value]

    if bases_contain(default_lts, candidates):
        return default_lts  # type: ignore[return-value]

    return sorted(candidates, key=_sort_key)[0]
