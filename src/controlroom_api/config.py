"""Configuration and logging setup for the Control Room client."""

import json
import logging
import pathlib

import pydantic
import structlog

from . import restapi
from .credentials import Credential
from .errors import ValidationError

CONFIG_ENV_VAR = "CONTROLROOM_CONFIG_PATH"


class ClientConfig(pydantic.BaseModel):
    """Configuration for a Control Room session."""

    control_room_url: str = pydantic.Field(description="Base URL of the Control Room")
    username: str = pydantic.Field(description="Login name, optionally DOMAIN\\user")
    password_file: str | None = pydantic.Field(
        None,
        description="Path to file containing the password",
    )
    api_key_file: str | None = pydantic.Field(
        None,
        description="Path to file containing the API key",
    )
    timeout: float = pydantic.Field(
        restapi.DEFAULT_TIMEOUT,
        description="Request timeout in seconds",
        gt=0,
    )
    log_level: str = pydantic.Field("INFO", description="Logging level")

    @pydantic.model_validator(mode="after")
    def check_exactly_one_secret_file(self) -> "ClientConfig":
        if (self.password_file is None) == (self.api_key_file is None):
            msg = "Exactly one of password_file or api_key_file must be set"
            raise ValueError(msg)
        return self

    def load_credential(self) -> Credential:
        """Read the configured secret file into a fresh Credential.

        Raises:
            FileNotFoundError: If the secret file does not exist.
        """
        secret_file = self.api_key_file or self.password_file
        path = pathlib.Path(secret_file)
        if not path.exists():
            msg = f"Secret file not found: {secret_file}"
            raise FileNotFoundError(msg)
        secret = path.read_text().strip()
        if self.api_key_file is not None:
            return Credential.create(self.username, api_key=secret)
        return Credential.create(self.username, password=secret)


def configure_logging(log_level_name: str) -> None:
    """Configure structlog for logfmt output."""
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg"),
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def load_config(config_path: str) -> ClientConfig:
    """Load configuration from JSON file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValidationError: If the file is not JSON or does not describe a
            valid :class:`ClientConfig`.
    """
    path = pathlib.Path(config_path)
    if not path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    try:
        with path.open("r") as f:
            data = json.load(f)
        return ClientConfig.model_validate(data)
    except json.JSONDecodeError as exc:
        msg = f"Configuration file is not valid JSON: {config_path}"
        raise ValidationError(msg, details=str(exc)) from exc
    except pydantic.ValidationError as exc:
        msg = f"Invalid configuration in {config_path}"
        raise ValidationError(msg, details=str(exc)) from exc
