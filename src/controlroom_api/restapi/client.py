"""Control Room REST API client.

Provides an HTTP client with bearer-token authentication, thread safety and
a uniform error channel: request failures are logged, stored as
``last_error`` and passed to an optional ``on_error`` callback instead of
being raised.
"""

import datetime as dt
import json
import threading
import time
from collections.abc import Callable, Iterable
from typing import Any

import httpx
import pydantic
import structlog

from .. import daterange
from ..credentials import AuthHeader, Credential
from ..errors import (
    ApiError,
    AuthError,
    ControlRoomError,
    TransportError,
    ValidationError,
)
from ..metrics import RequestMetrics
from . import catalog, types
from .catalog import HttpMethod, Operation

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0

DEFAULT_PAGE_LIMIT = 1000

ErrorHandler = Callable[[ControlRoomError], None]

JSONBody = dict[str, Any] | list[Any] | pydantic.BaseModel


class ControlRoomEndpoint(pydantic.BaseModel):
    """Validated base URL of a Control Room."""

    model_config = pydantic.ConfigDict(frozen=True)

    base_url: pydantic.AnyHttpUrl

    @classmethod
    def create(cls, base_url: str) -> "ControlRoomEndpoint":
        """Validate a base URL.

        Raises:
            ValidationError: If the URL is not an absolute http(s) URL.
        """
        try:
            return cls(base_url=base_url)
        except pydantic.ValidationError as exc:
            msg = f"Invalid Control Room URL: {base_url!r}"
            raise ValidationError(msg, details=str(exc)) from exc

    @property
    def url(self) -> str:
        """Base URL without a trailing slash."""
        return str(self.base_url).rstrip("/")


class ControlRoomClient:
    """HTTP client for the Control Room REST API.

    Builds requests from the operation catalog, attaches the
    ``X-Authorization`` header and parses JSON responses. Business
    operations never raise on request failure; they return ``None`` and
    report a :class:`~controlroom_api.errors.ControlRoomError` through the
    error channel.

    Thread-safe through thread-local storage of httpx.Client instances and
    of the last reported error. Can be used as a context manager.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        on_error: ErrorHandler | None = None,
        metrics: RequestMetrics | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the REST API client.

        Args:
            base_url: Control Room URL (e.g., "https://cr.example.com").
            timeout: Request timeout in seconds (default: 30.0).
            on_error: Called with every reported error.
            metrics: Optional request instrumentation.
            transport: Optional httpx transport, mainly for tests.

        Raises:
            ValidationError: If base_url is not a valid http(s) URL or
                timeout is not positive.
        """
        if timeout <= 0:
            msg = "timeout must be positive"
            raise ValidationError(msg)

        self.endpoint = ControlRoomEndpoint.create(base_url)
        self.base_url = self.endpoint.url
        self._timeout = timeout
        self._on_error = on_error
        self._metrics = metrics
        self._transport = transport

        self._headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }

        self._local = threading.local()

    @property
    def client(self) -> httpx.Client:
        """Get or create the thread-local httpx client."""
        if not hasattr(self._local, "client") or self._local.client.is_closed:
            self._local.client = httpx.Client(
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._local.client

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close the thread-local HTTP client if open."""
        if hasattr(self._local, "client") and not self._local.client.is_closed:
            self._local.client.close()

    # -----------------------------------------------------------------
    # Error channel
    # -----------------------------------------------------------------

    @property
    def last_error(self) -> ControlRoomError | None:
        """Error reported by the most recent operation in this thread."""
        return getattr(self._local, "last_error", None)

    def _reset_error(self) -> None:
        self._local.last_error = None

    def _report(self, error: ControlRoomError) -> None:
        logger.error(
            "Control Room operation failed",
            error_type=type(error).__name__,
            error=str(error),
            status_code=error.status_code,
            status_text=error.status_text,
        )
        self._local.last_error = error
        if self._on_error is not None:
            self._on_error(error)

    # -----------------------------------------------------------------
    # Request building and execution
    # -----------------------------------------------------------------

    def build_request(
        self,
        operation: str | Operation,
        header: AuthHeader | None = None,
        params: dict[str, Any] | None = None,
        body: JSONBody | None = None,
        path_params: dict[str, Any] | None = None,
    ) -> httpx.Request:
        """Compose the HTTP request for a catalog operation.

        GET operations send only the query parameters that were supplied,
        in catalog order. POST operations always carry a JSON body, ``{}``
        when none is given.

        Raises:
            ValidationError: On unknown operations, unknown or misplaced
                parameters, or missing path parameters.
        """
        op = catalog.get_operation(operation)
        url = f"{self.base_url}{op.render_path(path_params)}"

        headers = dict(self._headers)
        if header is not None:
            headers.update(header.as_dict())

        if op.http_method is HttpMethod.GET:
            if body is not None:
                msg = f"Operation {op.name!r} is a GET and takes no body"
                raise ValidationError(msg)
            query = _build_query(op, params)
            return self.client.build_request(
                "GET",
                url,
                headers=headers,
                params=query or None,
            )

        if params:
            msg = f"Operation {op.name!r} is a POST and takes no query parameters"
            raise ValidationError(msg)
        # json.dumps escapes a domain separator as DOMAIN\\user, which is the
        # form the authentication endpoint requires.
        content = json.dumps(_body_to_json(body), separators=(",", ":"))
        return self.client.build_request(
            "POST",
            url,
            headers=headers,
            content=content.encode(),
        )

    def _execute(
        self,
        op: Operation,
        request: httpx.Request,
        status_error: type[ControlRoomError] = ApiError,
        transport_error: type[ControlRoomError] = TransportError,
    ) -> httpx.Response | None:
        """Send a request, reporting failures through the error channel."""
        start_time = time.time()
        logger.debug(
            "Making API request",
            operation=op.name,
            method=request.method,
            path=request.url.path,
        )
        error: ControlRoomError
        try:
            response = self.client.send(request)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            failed = exc.response
            error = status_error(
                f"{op.name} failed with HTTP {failed.status_code}",
                status_code=failed.status_code,
                status_text=failed.reason_phrase,
                details=failed.text,
            )
        except httpx.HTTPError as exc:
            error = transport_error(
                f"{op.name} request failed: {exc}",
                status_text=type(exc).__name__,
                details=str(exc),
            )
        else:
            duration = time.time() - start_time
            logger.debug(
                "API request completed",
                operation=op.name,
                status_code=response.status_code,
                duration_seconds=round(duration, 3),
            )
            # Outcome is recorded by _finish once the body has been parsed
            return response

        duration = time.time() - start_time
        self._observe(op, type(error).__name__, duration)
        self._report(error)
        return None

    def _observe(self, op: Operation, outcome: str, duration: float) -> None:
        if self._metrics is not None:
            self._metrics.observe(op.name, outcome, duration)

    def _finish(
        self,
        op: Operation,
        response: httpx.Response,
        error: ControlRoomError | None = None,
    ) -> None:
        """Record the outcome of a request whose response was received."""
        outcome = "success" if error is None else type(error).__name__
        self._observe(op, outcome, response.elapsed.total_seconds())
        if error is not None:
            self._report(error)

    def _parse(
        self,
        op: Operation,
        response: httpx.Response,
        model: type[pydantic.BaseModel] | None = None,
    ) -> Any:
        """Decode a 2xx response, unwrapping the envelope and validating it.

        Raises:
            ApiError: If the body is not JSON or does not match ``model``.
        """
        if not response.content:
            data = None
        else:
            try:
                data = response.json()
            except ValueError as exc:
                msg = f"{op.name} returned invalid JSON"
                raise ApiError(
                    msg,
                    status_code=response.status_code,
                    status_text=response.reason_phrase,
                    details=str(exc),
                ) from exc
        if op.result_key is not None and isinstance(data, dict):
            data = data.get(op.result_key, [])
        if model is None:
            return data
        try:
            return model.model_validate(data)
        except pydantic.ValidationError as exc:
            msg = f"{op.name} response is not a valid {model.__name__}"
            raise ApiError(
                msg,
                status_code=response.status_code,
                status_text=response.reason_phrase,
                details=str(exc),
            ) from exc

    def _invoke(
        self,
        header: AuthHeader,
        operation: str | Operation,
        params: dict[str, Any] | None = None,
        body: JSONBody | None = None,
        path_params: dict[str, Any] | None = None,
        model: type[pydantic.BaseModel] | None = None,
    ) -> Any:
        try:
            op = catalog.get_operation(operation)
            request = self.build_request(
                op,
                header,
                params=params,
                body=body,
                path_params=path_params,
            )
        except ValidationError as exc:
            self._report(exc)
            return None

        response = self._execute(op, request)
        if response is None:
            return None
        try:
            data = self._parse(op, response, model)
        except ApiError as exc:
            self._finish(op, response, exc)
            return None
        self._finish(op, response)
        return data

    # -----------------------------------------------------------------
    # Authentication
    # -----------------------------------------------------------------

    def authenticate(
        self,
        credential: Credential,
        username_override: str | None = None,
    ) -> AuthHeader | None:
        """Exchange a credential for an ``X-Authorization`` header.

        The credential is cleared when this returns, whether the login
        succeeded or not.

        Args:
            credential: Username plus password or API key.
            username_override: Username to transmit instead of the
                credential's own, still using the credential's secret.

        Returns:
            The bearer header, or ``None`` if the login failed (see
            :attr:`last_error`).
        """
        self._reset_error()
        op = catalog.OPERATIONS["authenticate"]
        username = (
            username_override if username_override is not None else credential.username
        )
        secret_field = "apiKey" if credential.uses_api_key else "password"

        try:
            with credential.secret_scope() as secret:
                request = self.build_request(
                    op,
                    body={"username": username, secret_field: secret},
                )
                response = self._execute(
                    op,
                    request,
                    status_error=AuthError,
                    transport_error=AuthError,
                )
        except ValidationError as exc:
            self._report(exc)
            return None
        if response is None:
            return None

        try:
            auth = self._parse(op, response, types.RawAuthResponse)
        except ApiError as exc:
            error = AuthError(
                "Authentication response did not contain a token",
                status_code=exc.status_code,
                status_text=exc.status_text,
                details=exc.details,
            )
            self._finish(op, response, error)
            return None

        self._finish(op, response)
        logger.info("Authenticated", username=username, auth_type=secret_field)
        return AuthHeader.from_token(auth.token)

    def invalidate(self, header: AuthHeader) -> bool:
        """Log out, invalidating the token server-side.

        Returns:
            ``True`` on success, ``False`` if the logout failed (see
            :attr:`last_error`).
        """
        self._reset_error()
        op = catalog.OPERATIONS["logout"]
        request = self.build_request(op, header)
        response = self._execute(
            op,
            request,
            status_error=AuthError,
            transport_error=AuthError,
        )
        if response is None:
            return False
        self._finish(op, response)
        logger.info("Logged out")
        return True

    # -----------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------

    def invoke(
        self,
        header: AuthHeader,
        operation: str | Operation,
        params: dict[str, Any] | None = None,
        body: JSONBody | None = None,
        path_params: dict[str, Any] | None = None,
    ) -> Any:
        """Call any catalog operation.

        Args:
            header: Header from :meth:`authenticate`.
            operation: Catalog name (e.g. "list_users") or Operation.
            params: Query parameters for GET operations.
            body: JSON body for POST operations.
            path_params: Values for path placeholders such as ``user_id``.

        Returns:
            The ``list`` collection for enveloped operations, the parsed
            body otherwise, or ``None`` on failure.
        """
        self._reset_error()
        return self._invoke(
            header,
            operation,
            params=params,
            body=body,
            path_params=path_params,
        )

    def _resolve_range(
        self,
        shortcut: daterange.DateShortcut | str | None,
        begin_date: dt.date | None,
        end_date: dt.date | None,
        picker: daterange.DatePicker | None,
        now: dt.datetime | None,
    ) -> daterange.DateRange | None:
        try:
            return daterange.resolve(
                shortcut,
                begin_date,
                end_date,
                now=now,
                picker=picker,
            )
        except ValidationError as exc:
            self._report(exc)
            return None

    def search_audit_messages(
        self,
        header: AuthHeader,
        shortcut: daterange.DateShortcut | str | None = None,
        begin_date: dt.date | None = None,
        end_date: dt.date | None = None,
        *,
        picker: daterange.DatePicker | None = None,
        now: dt.datetime | None = None,
    ) -> list[dict[str, Any]] | None:
        """Search audit messages created within a date range.

        Returns:
            Audit entries, newest first, or ``None`` on failure or when the
            interactive pick was cancelled.
        """
        self._reset_error()
        date_range = self._resolve_range(shortcut, begin_date, end_date, picker, now)
        if date_range is None:
            return None
        begin, end = date_range.format(daterange.DateFormat.AUDIT)
        body = types.AuditSearchBody.for_range(begin, end)
        return self._invoke(header, "list_audit_messages", body=body)

    def search_bot_run_data(
        self,
        header: AuthHeader,
        shortcut: daterange.DateShortcut | str | None = None,
        begin_date: dt.date | None = None,
        end_date: dt.date | None = None,
        *,
        limit: int = DEFAULT_PAGE_LIMIT,
        page_number: int = 0,
        picker: daterange.DatePicker | None = None,
        now: dt.datetime | None = None,
    ) -> Any:
        """Fetch Bot Insight run data for a date range."""
        self._reset_error()
        date_range = self._resolve_range(shortcut, begin_date, end_date, picker, now)
        if date_range is None:
            return None
        begin, end = date_range.format(daterange.DateFormat.BOT_INSIGHT)
        params = {
            "fromDate": begin,
            "toDate": end,
            "limit": limit,
            "pageNumber": page_number,
        }
        return self._invoke(header, "bot_run_data", params=params)

    def search_task_log_data(
        self,
        header: AuthHeader,
        bot_name: str,
        shortcut: daterange.DateShortcut | str | None = None,
        begin_date: dt.date | None = None,
        end_date: dt.date | None = None,
        *,
        limit: int = DEFAULT_PAGE_LIMIT,
        page_number: int = 0,
        picker: daterange.DatePicker | None = None,
        now: dt.datetime | None = None,
    ) -> Any:
        """Fetch the business task log data a bot recorded in a date range."""
        self._reset_error()
        date_range = self._resolve_range(shortcut, begin_date, end_date, picker, now)
        if date_range is None:
            return None
        begin, end = date_range.format(daterange.DateFormat.BOT_INSIGHT)
        params = {
            "botName": bot_name,
            "fromDate": begin,
            "toDate": end,
            "limit": limit,
            "pageNumber": page_number,
        }
        return self._invoke(header, "task_log_data", params=params)

    def deploy_automation(
        self,
        header: AuthHeader,
        file_id: int | str,
        run_as_user_ids: Iterable[int | str],
        pool_ids: Iterable[int | str] | None = None,
        bot_input: dict[str, Any] | None = None,
    ) -> str | None:
        """Start an automation on the given runners.

        Args:
            header: Header from :meth:`authenticate`.
            file_id: Repository file ID of the bot.
            run_as_user_ids: IDs of the runner users to run as.
            pool_ids: Optional device pool IDs.
            bot_input: Optional bot input variables.

        Returns:
            The deployment ID, or ``None`` on failure.
        """
        self._reset_error()
        try:
            body = types.DeployBody(
                file_id=file_id,
                run_as_user_ids=list(run_as_user_ids),
                pool_ids=list(pool_ids) if pool_ids is not None else None,
                bot_input=bot_input,
            )
        except pydantic.ValidationError as exc:
            self._report(ValidationError("Invalid deployment request", details=str(exc)))
            return None

        deployment = self._invoke(
            header,
            "deploy_automation",
            body=body,
            model=types.RawDeployResponse,
        )
        if deployment is None:
            return None
        logger.info(
            "Automation deployed",
            file_id=file_id,
            deployment_id=deployment.deployment_id,
        )
        return deployment.deployment_id


def _build_query(op: Operation, params: dict[str, Any] | None) -> dict[str, Any]:
    """Keep supplied (non-None) query parameters in catalog order."""
    params = params or {}
    unknown = sorted(set(params) - set(op.query_params))
    if unknown:
        msg = f"Operation {op.name!r} does not accept: {', '.join(unknown)}"
        raise ValidationError(msg)
    return {
        name: params[name] for name in op.query_params if params.get(name) is not None
    }


def _body_to_json(body: JSONBody | None) -> Any:
    if body is None:
        return {}
    if isinstance(body, pydantic.BaseModel):
        return body.model_dump(by_alias=True, exclude_none=True)
    return body
