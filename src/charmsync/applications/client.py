"""
ApplicationsClient: create, read, update and destroy applications.

Each call opens its own model connection through the caller's controller
and closes it before returning.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

import structlog

from charmsync.api.base import Connection, Controller
from charmsync.applications.deploy import deploy_application
from charmsync.applications.models import (
    CreateApplicationInput,
    CreateApplicationResponse,
    ReadApplicationResponse,
    UpdateApplicationInput,
)
from charmsync.applications.reader import read_application, read_application_with_retry
from charmsync.applications.updater import update_application
from charmsync.config.settings import Settings, get_settings
from charmsync.core.errors import classified_errors
from charmsync.core.retry import RetryPolicy

logger = structlog.get_logger()


class ApplicationsClient:
    """Reconciles applications in the models reachable through ``controller``."""

    def __init__(
        self,
        controller: Controller,
        settings: Settings | None = None,
        policy: RetryPolicy | None = None,
    ):
        self.controller = controller
        self.settings = settings or get_settings()
        self.policy = policy or RetryPolicy(
            attempts=self.settings.retry_attempts,
            initial_delay=self.settings.retry_initial_delay,
            multiplier=self.settings.retry_backoff_multiplier,
            max_delay=self.settings.retry_max_delay,
        )

    @contextmanager
    def _connection(self, model_id: str) -> Iterator[Connection]:
        with classified_errors():
            conn = self.controller.connect(model_id)
        try:
            yield conn
        finally:
            conn.close()

    def create(
        self,
        spec: CreateApplicationInput,
        cancel: threading.Event | None = None,
    ) -> CreateApplicationResponse:
        """
        Deploy an application.

        Safe to call again with the same input after a failure: charm and
        resource registration tolerate already existing entries.
        """
        deploy_spec = spec.validate_and_transform()
        with classified_errors():
            model_type = self.controller.model_type(spec.model_id)

        logger.info(
            "creating_application",
            model_id=spec.model_id,
            application=deploy_spec.application_name,
            charm=spec.charm_name,
            channel=spec.charm_channel,
        )
        with self._connection(spec.model_id) as conn:
            app_name = deploy_application(
                conn, deploy_spec, settings=self.settings, policy=self.policy, cancel=cancel
            )
        return CreateApplicationResponse(app_name=app_name, model_type=model_type)

    def read(self, model_id: str, app_name: str) -> ReadApplicationResponse:
        with classified_errors():
            model_type = self.controller.model_type(model_id)
        with self._connection(model_id) as conn:
            return read_application(conn, app_name, model_type, self.settings)

    def read_with_retry(
        self,
        model_id: str,
        app_name: str,
        cancel: threading.Event | None = None,
    ) -> ReadApplicationResponse | None:
        """Read until the application has converged; see ``read_application_with_retry``."""
        with classified_errors():
            model_type = self.controller.model_type(model_id)
        with self._connection(model_id) as conn:
            return read_application_with_retry(
                conn,
                app_name,
                model_type,
                settings=self.settings,
                policy=self.policy,
                cancel=cancel,
            )

    def update(self, update: UpdateApplicationInput) -> None:
        with classified_errors():
            model_type = self.controller.model_type(update.model_id)
        logger.info("updating_application", model_id=update.model_id, application=update.app_name)
        with self._connection(update.model_id) as conn:
            update_application(conn, update, model_type, self.settings)

    def destroy(self, model_id: str, app_name: str) -> None:
        """Destroy the application along with its storage."""
        with self._connection(model_id) as conn:
            with classified_errors():
                conn.applications.destroy_applications([app_name], destroy_storage=True)
        logger.info("application_destroyed", model_id=model_id, application=app_name)
