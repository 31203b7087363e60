"""Applying a partial desired state to an existing application."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

import structlog

from charmsync.api.base import Connection
from charmsync.api.types import ApplicationResource, ApplicationStatus, ModelType, SetCharmConfig
from charmsync.applications.deploy import process_expose
from charmsync.applications.models import (
    TRUST_CONFIG_KEY,
    UpdateApplicationInput,
    config_value_to_string,
)
from charmsync.applications.reader import model_default_space
from charmsync.applications.resources import add_pending_resources, resource_ids, upgrade_resources
from charmsync.charms.bases import bases_contain, parse_base
from charmsync.charms.models import CharmID, parse_channel
from charmsync.config.settings import Settings
from charmsync.core.errors import (
    AlreadyExistsError,
    NotFoundError,
    NotSupportedError,
    NotValidError,
    RemoteError,
    classified_errors,
    classify_error,
)
from charmsync.logging import bind_context

logger = structlog.get_logger()


def compute_updated_bindings(
    model_default: str,
    current: dict[str, str],
    requested: dict[str, str],
) -> dict[str, str]:
    """
    Full binding map to merge into the application.

    An empty requested space means the effective default space: the new
    application default when one is requested, otherwise the model default.
    Endpoints left out of the request keep their space, unless they followed
    the old application default, in which case they follow the new one.
    """
    for endpoint in requested:
        if endpoint not in current:
            raise NotValidError(f'endpoint "{endpoint}" does not exist')

    old_default = current.get("", "")
    default_space = requested.get("") or model_default

    bindings: dict[str, str] = {}
    for endpoint, space in current.items():
        if endpoint in requested:
            bindings[endpoint] = requested[endpoint] or default_space
        elif space == old_default:
            bindings[endpoint] = default_space
        else:
            bindings[endpoint] = space
    return bindings


def compute_charm_id(conn: Connection, update: UpdateApplicationInput) -> CharmID:
    """
    Resolve and add the charm the application is being refreshed to.

    A new revision drops the origin id and hash so the controller looks the
    revision up instead of reusing the build it already has.
    """
    with classified_errors():
        old_url, old_origin = conn.applications.get_charm_url_origin(update.app_name)

    url = old_url
    origin = old_origin
    if update.revision is not None:
        url = old_url.with_revision(update.revision)
        origin = replace(origin, revision=update.revision, id="", hash="")
    if update.channel:
        channel = parse_channel(update.channel)
        changes: dict[str, Any] = {"risk": channel.risk}
        if channel.track:
            changes["track"] = channel.track
        if channel.branch:
            changes["branch"] = channel.branch
        origin = replace(origin, **changes)
    if update.base:
        origin = replace(origin, base=parse_base(update.base))

    with classified_errors():
        resolved = conn.charms.resolve_charms([(url, origin)])
    if len(resolved) != 1:
        raise RemoteError(f"expected only one resolution, received {len(resolved)}")
    charm = resolved[0]
    if charm.error is not None:
        raise classify_error(charm.error)

    if old_origin.architecture != charm.origin.architecture:
        raise NotSupportedError(
            f'the new charm does not support the current architecture "{old_origin.architecture}"',
            {"architecture": charm.origin.architecture},
        )
    if not bases_contain(origin.base, charm.supported_bases):
        raise NotSupportedError(
            f'the new charm does not support the current operating system "{origin.base}"',
            {"supported_bases": [str(b) for b in charm.supported_bases]},
        )

    with classified_errors():
        added = conn.charms.add_charm(charm.url, origin, False)
    logger.info("charm_added", application=update.app_name, charm=str(charm.url))
    return CharmID(url=str(charm.url), origin=added)


def _current_resources(conn: Connection, application: str) -> dict[str, ApplicationResource]:
    with classified_errors():
        listed = conn.resources.list_resources([application])
    return {r.name: r for group in listed for r in group.resources}


def update_charm_and_resources(conn: Connection, update: UpdateApplicationInput) -> None:
    """Refresh the charm and/or re-register resources, then SetCharm."""
    charm_changed = update.revision is not None or bool(update.channel) or bool(update.base)
    if not charm_changed and not update.resources:
        return
    if update.revision is not None and update.channel:
        raise NotValidError("revision and channel cannot be changed in the same update")

    if charm_changed:
        charm_id = compute_charm_id(conn, update)
    else:
        # Resources only: keep the charm exactly as deployed
        with classified_errors():
            url, origin = conn.applications.get_charm_url_origin(update.app_name)
        charm_id = CharmID(url=str(url), origin=origin)

    with classified_errors():
        declared = conn.charms.charm_info(charm_id.url).resources
    to_register = upgrade_resources(
        declared,
        _current_resources(conn, update.app_name),
        update.resources,
        charm_changed=charm_changed,
    )
    ids: dict[str, str] = {}
    if to_register:
        try:
            registered = add_pending_resources(
                conn.resources, update.app_name, to_register, update.resources, charm_id
            )
        except AlreadyExistsError:
            logger.debug("resources_already_registered", application=update.app_name)
            registered = {}
        ids = resource_ids(registered)

    with classified_errors():
        conn.applications.set_charm(
            SetCharmConfig(
                application_name=update.app_name,
                charm_id=charm_id,
                resource_ids=ids,
                storage_directives=dict(update.storage_directives),
            )
        )
    logger.info("charm_set", application=update.app_name, charm=charm_id.url, resources=sorted(ids))


def _update_units(
    conn: Connection,
    update: UpdateApplicationInput,
    app_status: ApplicationStatus,
    model_type: ModelType,
) -> None:
    if update.units is None:
        return
    app = update.app_name
    if model_type == ModelType.CAAS:
        with classified_errors():
            conn.applications.scale_application(app, update.units)
        logger.info("application_scaled", application=app, scale=update.units)
        return

    delta = update.units - len(app_status.units)
    if delta > 0:
        with classified_errors():
            conn.applications.add_units(app, delta)
        logger.info("units_added", application=app, count=delta)
    elif delta < 0:
        doomed = list(app_status.units)[: -delta]
        with classified_errors():
            conn.applications.destroy_units(doomed, destroy_storage=True)
        logger.info("units_destroyed", application=app, units=doomed)


def _update_machines(conn: Connection, update: UpdateApplicationInput, app_status: ApplicationStatus) -> None:
    app = update.app_name
    if update.add_machines:
        with classified_errors():
            conn.applications.add_units(app, len(update.add_machines), placement=list(update.add_machines))
        logger.info("units_placed", application=app, machines=update.add_machines)

    if update.remove_machines:
        machine_units = {unit.machine: name for name, unit in app_status.units.items()}
        doomed = []
        for machine in update.remove_machines:
            if machine not in machine_units:
                raise NotFoundError(f"no units deployed on machine: {machine}")
            doomed.append(machine_units[machine])
        with classified_errors():
            conn.applications.destroy_units(doomed, destroy_storage=True)
        logger.info("units_destroyed", application=app, units=doomed)


def update_application(
    conn: Connection,
    update: UpdateApplicationInput,
    model_type: ModelType,
    settings: Settings | None = None,
) -> None:
    """
    Apply ``update`` to a deployed application.

    Charm and resource changes go first since config keys can differ
    between revisions. Then config, bindings, expose, constraints, units and
    machine placement, in that order. Nothing is rolled back on failure.
    """
    app = update.app_name
    log = bind_context(application=app, model_id=update.model_id)

    with classified_errors():
        status = conn.status.status()
    app_status = status.applications.get(app)
    if app_status is None:
        raise RemoteError(f"no status returned for application: {app}")

    config: dict[str, str] | None = None
    if update.config is not None:
        config = {key: config_value_to_string(value) for key, value in update.config.items()}
    if update.trust is not None:
        config = config or {}
        config[TRUST_CONFIG_KEY] = "true" if update.trust else "false"

    update_charm_and_resources(conn, update)

    if config is not None:
        with classified_errors():
            conn.applications.set_config(app, config)
        log.info("config_set", keys=sorted(config))

    for key in update.unset_config:
        with classified_errors():
            try:
                conn.applications.unset_application_config(app, [key])
            except Exception as exc:
                # The key may have been dropped by a new charm revision
                if "unknown option" not in str(exc):
                    raise
                log.debug("config_unset_unknown_option", key=key)

    if update.endpoint_bindings:
        with classified_errors():
            model_config = conn.model_config.model_get()
        bindings = compute_updated_bindings(
            model_default_space(model_config, settings),
            app_status.endpoint_bindings,
            update.endpoint_bindings,
        )
        with classified_errors():
            conn.applications.merge_bindings(app, bindings)
        log.info("bindings_merged", bindings=bindings)

    if update.unexpose:
        with classified_errors():
            conn.applications.unexpose(app, list(update.unexpose))
        log.info("application_unexposed", endpoints=update.unexpose)

    if update.expose is not None:
        process_expose(conn.applications, app, update.expose)

    if update.constraints is not None:
        with classified_errors():
            conn.applications.set_constraints(app, update.constraints)
        log.info("constraints_set", constraints=update.constraints)

    _update_units(conn, update, app_status, model_type)

    if model_type == ModelType.IAAS:
        _update_machines(conn, update, app_status)
