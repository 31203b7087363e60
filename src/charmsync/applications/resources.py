"""
Charm resource planning, registration and upload.

Every resource a charm declares is either registered from the store (at the
caller's revision, or -1 for the channel's latest) or uploaded by the client
when the caller supplied an OCI image reference instead of a revision. Only
container images can be uploaded.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

import structlog

from charmsync.api.base import ResourcesAPI
from charmsync.api.types import (
    RESOURCE_ORIGIN_STORE,
    RESOURCE_ORIGIN_UPLOAD,
    ApplicationResource,
    PendingResource,
    PendingResourceUpload,
)
from charmsync.applications.models import CharmResource
from charmsync.charms.models import (
    RESOURCE_TYPE_CONTAINER_IMAGE,
    UNSPECIFIED_REVISION,
    CharmID,
    ResourceMeta,
    validate_resource_type,
)
from charmsync.core.errors import NotFoundError, NotSupportedError, classified_errors

logger = structlog.get_logger()


@dataclass(frozen=True)
class RegisteredResource:
    """Controller-side id of a pending resource and whether it was uploaded."""

    resource_id: str
    pending_upload: bool = False


def _parse_revision(reference: CharmResource) -> int | None:
    try:
        return int(str(reference))
    except ValueError:
        return None


def plan_pending_resources(
    declared: Mapping[str, ResourceMeta],
    requested: Mapping[str, CharmResource],
) -> list[PendingResource]:
    """
    Decide how each declared resource is provided, ordered by name.

    Resources the caller did not mention come from the store at the
    channel's latest revision. Integer references pin a store revision.
    Anything else is uploaded from the caller's reference.
    """
    plan: list[PendingResource] = []
    for meta in sorted(declared.values(), key=lambda m: m.name):
        reference = requested.get(meta.name)
        if reference is None:
            plan.append(
                PendingResource(
                    name=meta.name,
                    type=meta.type,
                    origin=RESOURCE_ORIGIN_STORE,
                    revision=UNSPECIFIED_REVISION,
                    path=meta.path,
                )
            )
            continue

        revision = _parse_revision(reference)
        if revision is not None:
            plan.append(
                PendingResource(
                    name=meta.name,
                    type=meta.type,
                    origin=RESOURCE_ORIGIN_STORE,
                    revision=revision,
                    path=meta.path,
                )
            )
            continue

        plan.append(
            PendingResource(
                name=meta.name,
                type=meta.type,
                origin=RESOURCE_ORIGIN_UPLOAD,
                reference=str(reference),
                path=meta.path,
            )
        )
    return plan


def ensure_uploadable(name: str, resource_type: str) -> None:
    """Only container images may be uploaded; uploading one implies its metadata."""
    validate_resource_type(resource_type)
    if resource_type != RESOURCE_TYPE_CONTAINER_IMAGE:
        raise NotSupportedError(
            f'only container resources can be uploaded; resource "{name}" is of type "{resource_type}"',
            {"resource": name, "type": resource_type},
        )


def add_pending_resources(
    api: ResourcesAPI,
    application: str,
    declared: Mapping[str, ResourceMeta],
    requested: Mapping[str, CharmResource],
    charm_id: CharmID,
) -> dict[str, RegisteredResource]:
    """
    Register every declared resource with the controller.

    Uploads are sent one at a time; store resources are registered in a
    single call. Errors are classified; callers decide whether
    ``AlreadyExistsError`` (another actor registered the same resources)
    counts as success.
    """
    registered: dict[str, RegisteredResource] = {}
    from_store: list[PendingResource] = []

    for pending in plan_pending_resources(declared, requested):
        if pending.origin == RESOURCE_ORIGIN_STORE:
            from_store.append(pending)
            continue

        ensure_uploadable(pending.name, pending.type)
        payload = requested[pending.name].upload_payload()
        with classified_errors():
            resource_id = api.upload_pending_resource(application, pending, pending.reference, payload)
        logger.debug("resource_upload_registered", application=application, resource=pending.name)
        registered[pending.name] = RegisteredResource(resource_id=resource_id, pending_upload=True)

    if not from_store:
        return registered

    with classified_errors():
        resource_ids = api.add_pending_resources(application, charm_id, from_store)
    for pending, resource_id in zip(from_store, resource_ids):
        registered[pending.name] = RegisteredResource(resource_id=resource_id)
    logger.debug(
        "store_resources_registered",
        application=application,
        resources={p.name: p.revision for p in from_store},
    )
    return registered


def resource_ids(registered: Mapping[str, RegisteredResource]) -> dict[str, str]:
    return {name: r.resource_id for name, r in registered.items()}


def upload_existing_pending_resources(
    api: ResourcesAPI,
    application: str,
    pending_uploads: Sequence[PendingResourceUpload] | None,
    requested: Mapping[str, CharmResource],
) -> None:
    """Upload local resources the controller left pending after a repository deploy."""
    for pending in pending_uploads or ():
        ensure_uploadable(pending.name, pending.type)
        reference = requested.get(pending.name)
        if reference is None:
            raise NotFoundError(f"resource {pending.name} not found in input resources")
        with classified_errors():
            api.upload(application, pending.name, pending.filename, "", reference.upload_payload())
        logger.info("resource_uploaded", application=application, resource=pending.name)


def upgrade_resources(
    declared: Mapping[str, ResourceMeta],
    current: Mapping[str, ApplicationResource],
    requested: Mapping[str, CharmResource],
    *,
    charm_changed: bool,
) -> dict[str, ResourceMeta]:
    """
    Declared resources to re-register during an update.

    Without a charm change only resources the caller names are touched. With
    a charm change, resources that are requested, new to the application, or
    not previously uploaded by a user are refreshed as well.
    """
    selected: dict[str, ResourceMeta] = {}
    for name, meta in declared.items():
        if name in requested:
            selected[name] = meta
            continue
        if not charm_changed:
            continue
        existing = current.get(name)
        if existing is None or existing.origin != RESOURCE_ORIGIN_UPLOAD:
            selected[name] = meta
    return selected
