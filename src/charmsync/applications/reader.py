"""
Reading application state back from the controller.

``read_application`` builds one snapshot. ``read_application_with_retry``
polls until a snapshot is converged: storage details are populated and, for
principal machine-model applications, every unit has a machine.
"""

from __future__ import annotations

import threading
from typing import Any, Iterable

import structlog

from charmsync.api.base import Connection
from charmsync.api.types import (
    RESOURCE_ORIGIN_UPLOAD,
    ApplicationGetResults,
    ApplicationStatus,
    FilesystemDetails,
    FullStatus,
    ModelType,
    StorageDetails,
    StorageDirective,
    VolumeDetails,
)
from charmsync.applications.models import (
    TRUST_CONFIG_KEY,
    ConfigEntry,
    ExposeConfig,
    ReadApplicationResponse,
)
from charmsync.charms.models import parse_charm_url
from charmsync.config.settings import Settings, get_settings
from charmsync.core.errors import (
    ApplicationNotFoundError,
    CharmSyncError,
    ErrorKind,
    OperationCancelledError,
    PendingConvergenceError,
    RemoteError,
    StorageNotFoundError,
    classified_errors,
    classify_error,
    is_kind,
)
from charmsync.core.retry import RetryPolicy, call_with_retry

logger = structlog.get_logger()

STORAGE_TAG_PREFIX = "storage-"
DEFAULT_CIDRS = ("0.0.0.0/0", "::/0")
DEFAULT_SPACE_CONFIG_KEY = "default-space"

# Status errors meaning the storage of a fresh application is not ready yet
STORAGE_PENDING_MARKERS = (
    "filesystem for storage instance",
    "volume for storage instance",
    "cannot convert storage details",
)

RETRYABLE_READ_KINDS = (
    ErrorKind.NOT_FOUND,
    ErrorKind.STORAGE_NOT_FOUND,
    ErrorKind.PENDING_CONVERGENCE,
    ErrorKind.UNREACHABLE,
)


def storage_label(storage_tag: str) -> str:
    """``storage-data-0`` → ``data``."""
    label = storage_tag
    if label.startswith(STORAGE_TAG_PREFIX):
        label = label[len(STORAGE_TAG_PREFIX):]
    if label.endswith("-0"):
        label = label[:-2]
    return label


def storage_directives(
    storage: Iterable[StorageDetails],
    filesystems: Iterable[FilesystemDetails],
    volumes: Iterable[VolumeDetails],
) -> dict[str, StorageDirective]:
    """Storage directives keyed by label, rebuilt from filesystem and volume detail."""
    filesystems = list(filesystems)
    volumes = list(volumes)
    directives: dict[str, StorageDirective] = {}

    for details in storage:
        if details.kind == "filesystem":
            candidates: list[FilesystemDetails | VolumeDetails] = list(filesystems)
        elif details.kind == "block":
            candidates = list(volumes)
        else:
            continue

        counters: dict[str, int] = {}
        for item in candidates:
            if item.storage_tag is None:
                logger.debug("storage_detail_unlinked", storage=details.storage_tag)
                continue
            if item.storage_tag != details.storage_tag:
                continue
            label = storage_label(details.storage_tag)
            counters[label] = counters.get(label, 0) + 1
            directives[label] = StorageDirective(pool=item.pool, size=item.size_mib, count=counters[label])
    return directives


def _unit_keys(app_status: ApplicationStatus) -> set[str]:
    # Attachments may be keyed by unit name or by unit tag
    keys = set()
    for unit in app_status.units:
        keys.add(unit)
        keys.add("unit-" + unit.replace("/", "-"))
    return keys


def application_storage_directives(
    status: FullStatus, app_status: ApplicationStatus
) -> dict[str, StorageDirective]:
    """Storage directives of one application, filtered out of a whole-model status."""
    units = _unit_keys(app_status)
    return storage_directives(
        [s for s in status.storage if units.intersection(s.attachments)],
        [f for f in status.filesystems if units.intersection(f.unit_attachments)],
        [v for v in status.volumes if units.intersection(v.unit_attachments)],
    )


def _fetch_status(
    conn: Connection, application: str, controller_major: int
) -> tuple[ApplicationStatus, dict[str, StorageDirective]]:
    if controller_major == 4:
        # Pattern filtering does not narrow storage on 4.x controllers
        with classified_errors():
            status = conn.status.status(include_storage=True)
        app_status = status.applications.get(application)
        if app_status is None:
            raise RemoteError(f"no status returned for application: {application}")
        return app_status, application_storage_directives(status, app_status)

    try:
        status = conn.status.status([application], include_storage=True)
    except CharmSyncError:
        raise
    except Exception as exc:
        if any(marker in str(exc) for marker in STORAGE_PENDING_MARKERS):
            raise StorageNotFoundError(application, {"reason": str(exc)}) from exc
        logger.error("status_failed", application=application, error=str(exc))
        raise classify_error(exc) from exc

    app_status = status.applications.get(application)
    if app_status is None:
        raise RemoteError(f"no status returned for application: {application}")
    return app_status, storage_directives(status.storage, status.filesystems, status.volumes)


def _trust_value(value: Any) -> bool:
    """Read the trust flag; only a boolean or its string spelling counts."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    logger.warning("unexpected_trust_value", value=repr(value))
    return False


def _config_entries(results: ApplicationGetResults) -> tuple[dict[str, ConfigEntry], bool]:
    config: dict[str, ConfigEntry] = {}
    trust = False
    for key, entry in results.application_config.items():
        if "value" not in entry:
            continue
        if key == TRUST_CONFIG_KEY:
            trust = _trust_value(entry["value"])
            continue
        config[key] = ConfigEntry(value=entry["value"], is_default=entry.get("source") == "default")
    for key, entry in results.charm_config.items():
        if "value" in entry:
            config[key] = ConfigEntry(value=entry["value"], is_default=entry.get("source") == "default")
    return config, trust


def _expose_config(app_status: ApplicationStatus) -> ExposeConfig | None:
    if not app_status.exposed:
        return None
    endpoints: list[str] = []
    spaces = ""
    cidrs = ""
    for name in sorted(app_status.exposed_endpoints):
        endpoint = app_status.exposed_endpoints[name]
        if name:
            endpoints.append(name)
        if not spaces:
            spaces = ",".join(endpoint.expose_to_spaces)
        if not cidrs:
            cidrs = ",".join(c for c in endpoint.expose_to_cidrs if c not in DEFAULT_CIDRS)
    return ExposeConfig(endpoints=",".join(endpoints), spaces=spaces, cidrs=cidrs)


def model_default_space(model_config: dict[str, Any], settings: Settings | None = None) -> str:
    space = model_config.get(DEFAULT_SPACE_CONFIG_KEY)
    if space:
        return str(space)
    return (settings or get_settings()).default_space


def diverging_bindings(bindings: dict[str, str], model_default: str) -> dict[str, str]:
    """
    Bindings worth reporting.

    The ``""`` entry is the application default; it is reported only when it
    differs from the model default. Endpoints are reported only when bound to
    a space other than the application default.
    """
    app_default = bindings.get("") or model_default
    result: dict[str, str] = {}
    if app_default != model_default:
        result[""] = app_default
    for endpoint, space in bindings.items():
        if endpoint and space != app_default:
            result[endpoint] = space
    return result


def read_application(
    conn: Connection,
    application: str,
    model_type: ModelType,
    settings: Settings | None = None,
) -> ReadApplicationResponse:
    """
    Read one snapshot of an application.

    Raises:
        ApplicationNotFoundError: the controller does not know the application
        StorageNotFoundError: the application exists but storage detail does
            not yet
    """
    with classified_errors():
        results = conn.applications.applications_info([application])
    if len(results) > 1:
        raise RemoteError(f"more than one result for application: {application}")
    if not results or results[0].error is not None or results[0].result is None:
        if results and results[0].error is not None:
            logger.debug("applications_info_error", application=application, error=results[0].error)
        raise ApplicationNotFoundError(application)
    info = results[0].result

    with classified_errors():
        controller_major = conn.server_version().major
    app_status, storage = _fetch_status(conn, application, controller_major)

    machines = sorted({unit.machine for unit in app_status.units.values() if unit.machine})
    units = app_status.scale if model_type == ModelType.CAAS else len(app_status.units)

    url = parse_charm_url(app_status.charm)

    with classified_errors():
        app_config = conn.applications.get(application)
        model_config = conn.model_config.model_get()
        listed = conn.resources.list_resources([application])
    config, trust = _config_entries(app_config)

    resources: dict[str, str] = {}
    for group in listed:
        for resource in group.resources:
            if resource.origin == RESOURCE_ORIGIN_UPLOAD:
                resources[resource.name] = "-1"
            else:
                resources[resource.name] = str(resource.revision)

    track = info.base.channel.partition("/")[0]
    return ReadApplicationResponse(
        name=url.name,
        channel=info.channel,
        revision=url.revision,
        base=f"{info.base.name}@{track}",
        model_type=model_type,
        units=units,
        trust=trust,
        config=config,
        constraints=info.constraints,
        expose=_expose_config(app_status),
        principal=info.principal,
        placement=",".join(machines),
        machines=machines,
        endpoint_bindings=diverging_bindings(
            app_status.endpoint_bindings, model_default_space(model_config, settings)
        ),
        storage=storage,
        resources=resources,
    )


def check_converged(snapshot: ReadApplicationResponse) -> None:
    """Raise ``PendingConvergenceError`` while the snapshot is still settling."""
    for label, directive in snapshot.storage.items():
        if not directive.pool or not directive.size:
            raise PendingConvergenceError(f'storage label "{label}" missing detail')

    # Subordinates only get machines once related to a principal
    if snapshot.model_type != ModelType.IAAS or not snapshot.principal or snapshot.units == 0:
        return
    if not snapshot.machines:
        raise PendingConvergenceError("no machines found in output")
    if len(snapshot.machines) != snapshot.units:
        raise PendingConvergenceError(
            f"expected {snapshot.units} machines, got {len(snapshot.machines)}"
        )


def is_retryable_read_error(error: BaseException) -> bool:
    return is_kind(error, *RETRYABLE_READ_KINDS)


def read_application_with_retry(
    conn: Connection,
    application: str,
    model_type: ModelType,
    settings: Settings | None = None,
    policy: RetryPolicy | None = None,
    cancel: threading.Event | None = None,
) -> ReadApplicationResponse | None:
    """
    Poll until a converged snapshot is read.

    Not found, pending storage, unconverged snapshots and an unreachable
    controller are retried. Any other error stops polling: it is logged and
    the last snapshot read successfully is returned, which may be None.

    Raises:
        The last retryable error once attempts are exhausted.
        OperationCancelledError: when ``cancel`` is set.
    """
    settings = settings or get_settings()
    last: list[ReadApplicationResponse] = []

    def attempt() -> ReadApplicationResponse:
        snapshot = read_application(conn, application, model_type, settings)
        last[:] = [snapshot]
        check_converged(snapshot)
        return snapshot

    def on_attempt(error: BaseException, attempt_number: int, next_delay: float) -> None:
        if attempt_number % settings.retry_log_every:
            return
        event = "waiting_for_application"
        if attempt_number != settings.retry_log_every:
            event = "still_waiting_for_application"
        logger.debug(event, application=application, attempt=attempt_number, error=str(error))

    try:
        return call_with_retry(
            attempt,
            is_retryable=is_retryable_read_error,
            on_attempt=on_attempt,
            policy=policy,
            cancel=cancel,
            description=f"read {application}",
        )
    except OperationCancelledError:
        raise
    except CharmSyncError as exc:
        if is_retryable_read_error(exc):
            raise
        logger.error(
            "read_application_failed",
            application=application,
            error=str(exc),
            error_kind=exc.kind.value,
        )
        return last[0] if last else None
