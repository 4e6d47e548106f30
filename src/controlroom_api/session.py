"""Caller-owned Control Room session.

A session binds a :class:`~controlroom_api.restapi.ControlRoomClient` to the
header obtained at login, so operations can be called without passing the
Control Room URL or the header around.
"""

import datetime as dt
import os
from collections.abc import Iterable
from typing import Any

import httpx
import structlog

from . import config, daterange, restapi
from .credentials import AuthHeader, Credential
from .errors import AuthError, ControlRoomError
from .metrics import RequestMetrics
from .restapi.client import ErrorHandler, JSONBody

logger = structlog.get_logger(__name__)


class ControlRoomSession:
    """An authenticated client plus its ``X-Authorization`` header.

    Can be used as a context manager; leaving the block logs out and
    closes the HTTP client.
    """

    def __init__(self, client: restapi.ControlRoomClient, header: AuthHeader):
        self.client = client
        self.header = header

    @classmethod
    def login(
        cls,
        client: restapi.ControlRoomClient,
        credential: Credential,
        username_override: str | None = None,
    ) -> "ControlRoomSession":
        """Authenticate and return a session.

        Raises:
            ControlRoomError: The error the client reported if the login
                failed.
        """
        header = client.authenticate(credential, username_override=username_override)
        if header is None:
            raise client.last_error or AuthError("Authentication failed")
        return cls(client, header)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.logout()
        self.client.close()

    @property
    def last_error(self) -> ControlRoomError | None:
        return self.client.last_error

    def logout(self) -> bool:
        return self.client.invalidate(self.header)

    def invoke(
        self,
        operation: str | restapi.Operation,
        params: dict[str, Any] | None = None,
        body: JSONBody | None = None,
        path_params: dict[str, Any] | None = None,
    ) -> Any:
        return self.client.invoke(
            self.header,
            operation,
            params=params,
            body=body,
            path_params=path_params,
        )

    def search_audit_messages(
        self,
        shortcut: daterange.DateShortcut | str | None = None,
        begin_date: dt.date | None = None,
        end_date: dt.date | None = None,
        **kwargs: Any,
    ) -> list[dict[str, Any]] | None:
        return self.client.search_audit_messages(
            self.header, shortcut, begin_date, end_date, **kwargs
        )

    def search_bot_run_data(
        self,
        shortcut: daterange.DateShortcut | str | None = None,
        begin_date: dt.date | None = None,
        end_date: dt.date | None = None,
        **kwargs: Any,
    ) -> Any:
        return self.client.search_bot_run_data(
            self.header, shortcut, begin_date, end_date, **kwargs
        )

    def search_task_log_data(
        self,
        bot_name: str,
        shortcut: daterange.DateShortcut | str | None = None,
        begin_date: dt.date | None = None,
        end_date: dt.date | None = None,
        **kwargs: Any,
    ) -> Any:
        return self.client.search_task_log_data(
            self.header, bot_name, shortcut, begin_date, end_date, **kwargs
        )

    def deploy_automation(
        self,
        file_id: int | str,
        run_as_user_ids: Iterable[int | str],
        **kwargs: Any,
    ) -> str | None:
        return self.client.deploy_automation(
            self.header, file_id, run_as_user_ids, **kwargs
        )


def create_session_from_config(
    client_config: config.ClientConfig,
    on_error: ErrorHandler | None = None,
    metrics: RequestMetrics | None = None,
    transport: httpx.BaseTransport | None = None,
) -> ControlRoomSession:
    """Construct a client from validated config and log in."""
    client = restapi.ControlRoomClient(
        base_url=client_config.control_room_url,
        timeout=client_config.timeout,
        on_error=on_error,
        metrics=metrics,
        transport=transport,
    )
    logger.info("Created Control Room client", base_url=client.base_url)
    try:
        return ControlRoomSession.login(client, client_config.load_credential())
    except (ControlRoomError, FileNotFoundError):
        client.close()
        raise


def create_session(
    config_path: str | None = None,
    **kwargs: Any,
) -> ControlRoomSession:
    """Create a session using a config path or the environment default."""
    resolved_path = config_path or os.environ.get(
        config.CONFIG_ENV_VAR,
        "controlroom.json",
    )
    client_config = config.load_config(resolved_path)
    config.configure_logging(client_config.log_level)
    return create_session_from_config(client_config, **kwargs)
