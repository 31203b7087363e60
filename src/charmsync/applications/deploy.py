"""
Deploy orchestration.

Two dialects exist depending on what the controller's Application facade
offers. Newer controllers take the whole desired state in one
DeployFromRepository call and resolve everything server side. Older ones
need the charm resolved, its base pinned, the charm added and resources
registered locally before Deploy is issued; that sequence runs inside the
retry loop because a same-named application may still be tearing down.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol

import structlog
import yaml

from charmsync.api.base import ApplicationAPI, Connection
from charmsync.api.types import DeployArgs, DeployFromRepositoryArgs, ExposedEndpoint
from charmsync.applications.models import (
    TRUST_CONFIG_KEY,
    DeploySpec,
    ExposeConfig,
    constraint_value,
    resources_as_string_map,
    split_comma_delimited_list,
)
from charmsync.applications.resources import (
    add_pending_resources,
    resource_ids,
    upload_existing_pending_resources,
)
from charmsync.charms.bases import parse_base, resolve_base, supported_workload_bases
from charmsync.charms.models import (
    UNSPECIFIED_REVISION,
    CharmID,
    Platform,
    make_origin,
    parse_channel,
    parse_charm_url,
)
from charmsync.config.settings import Settings, get_settings
from charmsync.core.errors import (
    AlreadyExistsError,
    ApplicationPartiallyCreatedError,
    CharmSyncError,
    ErrorKind,
    NotSupportedError,
    NotValidError,
    classified_errors,
    classify_error,
    classify_message,
    is_kind,
)
from charmsync.core.retry import RetryPolicy, call_with_retry

logger = structlog.get_logger()

APPLICATION_FACADE = "Application"


class Deployer(Protocol):
    def deploy(self, spec: DeploySpec) -> str:
        ...


class RepositoryDeployer:
    """Single-call deploy; the controller resolves charm, base and resources."""

    def __init__(self, conn: Connection):
        self.conn = conn

    def deploy(self, spec: DeploySpec) -> str:
        app_name = spec.application_name
        config_yaml = ""
        if spec.config:
            config_yaml = yaml.safe_dump({app_name: spec.config}, sort_keys=True)

        args = DeployFromRepositoryArgs(
            charm_name=spec.charm_name,
            application_name=app_name,
            base=str(spec.charm_base or ""),
            channel=spec.charm_channel,
            revision=spec.charm_revision,
            config_yaml=config_yaml,
            num_units=spec.units,
            trust=spec.trust,
            constraints=spec.constraints,
            endpoint_bindings=dict(spec.endpoint_bindings),
            placement=list(spec.placement),
            resources=resources_as_string_map(spec.resources),
            storage=dict(spec.storage),
        )
        logger.info("deploy_from_repository", application=app_name, charm=spec.charm_name)

        with classified_errors():
            info, pending_uploads, errors = self.conn.applications.deploy_from_repository(args)
        if errors:
            raise _join_errors(errors)

        try:
            upload_existing_pending_resources(
                self.conn.resources, app_name, pending_uploads, spec.resources
            )
        except CharmSyncError as exc:
            raise ApplicationPartiallyCreatedError(app_name, exc) from exc

        logger.info(
            "application_deployed",
            application=info.name or app_name,
            base=info.base,
            channel=info.channel,
            revision=info.revision,
        )
        return info.name or app_name


def _join_errors(errors: list[Exception]) -> CharmSyncError:
    if len(errors) == 1:
        return classify_error(errors[0])
    return classify_message("; ".join(str(e) for e in errors), {"errors": len(errors)})


class LegacyDeployer:
    """
    Client-side resolution followed by AddCharm, resource registration and
    Deploy, retried while the controller reports not found or already exists.
    """

    def __init__(
        self,
        conn: Connection,
        settings: Settings | None = None,
        policy: RetryPolicy | None = None,
        cancel: threading.Event | None = None,
    ):
        self.conn = conn
        self.settings = settings or get_settings()
        self.policy = policy
        self.cancel = cancel

    def _architecture(self, spec: DeploySpec) -> str:
        arch = constraint_value(spec.constraints, "arch")
        if arch:
            return arch
        with classified_errors():
            model_constraints = self.conn.model_config.get_model_constraints()
        return constraint_value(model_constraints, "arch") or self.settings.default_architecture

    def deploy(self, spec: DeploySpec) -> str:
        app_name = spec.application_name
        channel = parse_channel(spec.charm_channel)
        url = parse_charm_url(spec.charm_name)

        # Input validation already rejected a literal revision alongside an explicit one
        revision = spec.charm_revision
        if url.revision != UNSPECIFIED_REVISION:
            revision = url.revision

        with classified_errors():
            subordinate = self.conn.charms.is_subordinate(url.name, str(channel))
        num_units = 0 if subordinate else spec.units

        platform = Platform(architecture=self._architecture(spec), base=spec.charm_base)
        origin = make_origin(url.schema, revision, channel, platform)

        with classified_errors():
            resolved = self.conn.charms.resolve_charms([(url.with_revision(revision), origin)])
        if not resolved:
            raise NotValidError(f"charm {url.name} could not be resolved")
        charm = resolved[0]
        if charm.error is not None:
            raise classify_error(charm.error)
        if charm.origin.type == "bundle":
            raise NotSupportedError(
                f"deploying bundles is not supported, {charm.url.name} is a bundle",
                {"charm": charm.url.name},
            )

        with classified_errors():
            model_config = self.conn.model_config.model_get()
            server_version = self.conn.server_version()
        base = resolve_base(
            input_base=spec.charm_base,
            suggested_base=charm.origin.base,
            charm_bases=charm.supported_bases,
            supported_bases=supported_workload_bases(server_version.major),
            model_config=model_config,
            default_lts=parse_base(self.settings.default_lts_base),
        )
        resolved_origin = replace(charm.origin, base=base)
        logger.debug(
            "charm_resolved",
            application=app_name,
            charm=str(charm.url),
            base=str(base),
            architecture=resolved_origin.architecture,
        )

        config = dict(spec.config)
        config[TRUST_CONFIG_KEY] = "true" if spec.trust else "false"

        def attempt() -> None:
            try:
                with classified_errors():
                    charm_origin = self.conn.charms.add_charm(charm.url, resolved_origin, False)
            except AlreadyExistsError:
                charm_origin = resolved_origin
            charm_id = CharmID(url=str(charm.url), origin=charm_origin)

            with classified_errors():
                info = self.conn.charms.charm_info(str(charm.url))
            try:
                registered = add_pending_resources(
                    self.conn.resources, app_name, info.resources, spec.resources, charm_id
                )
            except AlreadyExistsError:
                logger.debug("resources_already_registered", application=app_name)
                registered = {}

            args = DeployArgs(
                charm_id=charm_id,
                application_name=app_name,
                num_units=num_units,
                charm_origin=charm_origin,
                config=config,
                constraints=spec.constraints,
                resources=resource_ids(registered),
                storage=dict(spec.storage),
                placement=list(spec.placement),
                endpoint_bindings=dict(spec.endpoint_bindings),
            )
            with classified_errors():
                self.conn.applications.deploy(args)

        def on_attempt(error: BaseException, attempt_number: int, next_delay: float) -> None:
            logger.warning(
                "deploy_retry",
                application=app_name,
                attempt=attempt_number,
                next_delay=next_delay,
                error=str(error),
            )

        call_with_retry(
            attempt,
            is_retryable=lambda e: is_kind(e, ErrorKind.NOT_FOUND, ErrorKind.ALREADY_EXISTS),
            on_attempt=on_attempt,
            policy=self.policy,
            cancel=self.cancel,
            description=f"deploy {app_name}",
        )
        logger.info("application_deployed", application=app_name, charm=str(charm.url), base=str(base))
        return app_name


def select_deployer(
    conn: Connection,
    settings: Settings | None = None,
    policy: RetryPolicy | None = None,
    cancel: threading.Event | None = None,
) -> Deployer:
    """Pick the deploy dialect from the controller's Application facade version."""
    settings = settings or get_settings()
    version = conn.best_api_version(APPLICATION_FACADE)
    if version >= settings.repository_deploy_min_version:
        logger.debug("deploy_dialect_selected", dialect="repository", facade_version=version)
        return RepositoryDeployer(conn)
    logger.debug("deploy_dialect_selected", dialect="legacy", facade_version=version)
    return LegacyDeployer(conn, settings=settings, policy=policy, cancel=cancel)


def expose_request(expose: ExposeConfig) -> dict[str, ExposedEndpoint] | None:
    """
    Build the Expose request body.

    None means expose every endpoint to the world. Spaces and CIDRs without
    endpoints apply to the wildcard endpoint ``""``.
    """
    endpoints = split_comma_delimited_list(expose.endpoints)
    spaces = split_comma_delimited_list(expose.spaces)
    cidrs = split_comma_delimited_list(expose.cidrs)
    if not (endpoints or spaces or cidrs):
        return None
    if not endpoints:
        endpoints = [""]
    return {
        endpoint: ExposedEndpoint(expose_to_spaces=list(spaces), expose_to_cidrs=list(cidrs))
        for endpoint in endpoints
    }


def process_expose(api: ApplicationAPI, application: str, expose: ExposeConfig | None) -> None:
    if expose is None:
        return
    with classified_errors():
        api.expose(application, expose_request(expose))
    logger.info("application_exposed", application=application)


def deploy_application(
    conn: Connection,
    spec: DeploySpec,
    settings: Settings | None = None,
    policy: RetryPolicy | None = None,
    cancel: threading.Event | None = None,
) -> str:
    """
    Deploy with the dialect the controller supports, then apply expose.

    Raises:
        ApplicationPartiallyCreatedError: the deploy went through but
            exposing the application failed. Nothing is rolled back.
    """
    deployer = select_deployer(conn, settings=settings, policy=policy, cancel=cancel)
    app_name = deployer.deploy(spec)
    try:
        process_expose(conn.applications, app_name, spec.expose)
    except CharmSyncError as exc:
        raise ApplicationPartiallyCreatedError(app_name, exc) from exc
    return app_name
