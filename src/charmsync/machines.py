"""
Bare machine creation.

Controllers mishandle concurrent AddMachines calls, so every call made by
this process goes through one lock.
"""

from __future__ import annotations

import threading

import structlog

from charmsync.api.base import MachineManagerAPI
from charmsync.api.types import AddMachineParams, parse_storage_directive
from charmsync.charms.bases import parse_base
from charmsync.core.errors import RemoteError, classified_errors, classify_message

logger = structlog.get_logger()

_create_lock = threading.Lock()


def machine_params(base: str = "", constraints: str = "", placement: str = "", disks: str = "") -> AddMachineParams:
    """Validate machine input and build the AddMachines parameters."""
    if base:
        # Only validates; the controller takes the string form
        parse_base(base)
    directives = [parse_storage_directive(disks)] if disks else []
    return AddMachineParams(base=base, constraints=constraints, placement=placement, disks=directives)


def add_machine(api: MachineManagerAPI, params: AddMachineParams) -> str:
    """Create one machine and return its id."""
    with _create_lock:
        with classified_errors():
            results = api.add_machines([params])

    if len(results) != 1:
        raise RemoteError(f"expected one machine result, received {len(results)}")
    result = results[0]
    if result.error:
        raise classify_message(result.error)
    logger.info("machine_added", machine=result.machine, base=params.base)
    return result.machine
