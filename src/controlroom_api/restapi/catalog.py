"""Static catalog of Control Room operations.

Each vendor endpoint the client knows about is described as data: its path,
HTTP method, the query parameters it accepts (in the order they are sent)
and whether its results are wrapped in a ``list`` envelope.
"""

import enum
import string

import pydantic

from ..errors import ValidationError


class HttpMethod(str, enum.Enum):
    GET = "GET"
    POST = "POST"


class Operation(pydantic.BaseModel):
    """A single Control Room endpoint."""

    model_config = pydantic.ConfigDict(frozen=True)

    name: str
    path: str
    http_method: HttpMethod
    query_params: tuple[str, ...] = ()
    # Key of the wrapped result collection, None when the raw body is returned
    result_key: str | None = None

    @property
    def path_fields(self) -> tuple[str, ...]:
        """Names of the ``{placeholder}`` fields in the path."""
        return tuple(
            field for _, field, _, _ in string.Formatter().parse(self.path) if field
        )

    def render_path(self, path_params: dict[str, object] | None = None) -> str:
        """Fill path placeholders.

        Raises:
            ValidationError: If a placeholder has no value.
        """
        path_params = path_params or {}
        missing = [field for field in self.path_fields if field not in path_params]
        if missing:
            msg = f"Operation {self.name!r} needs path parameters: {', '.join(missing)}"
            raise ValidationError(msg)
        return self.path.format(**path_params)


BOT_INSIGHT_QUERY = ("fromDate", "toDate", "limit", "pageNumber")

_OPERATIONS = (
    Operation(
        name="authenticate",
        path="/v1/authentication",
        http_method=HttpMethod.POST,
    ),
    Operation(
        name="logout",
        path="/v1/authentication/logout",
        http_method=HttpMethod.POST,
    ),
    Operation(
        name="list_audit_messages",
        path="/v1/audit/messages/list",
        http_method=HttpMethod.POST,
        result_key="list",
    ),
    Operation(
        name="license_details",
        path="/v2/license/details",
        http_method=HttpMethod.GET,
    ),
    Operation(
        name="list_license_products",
        path="/v2/license/product/list",
        http_method=HttpMethod.GET,
    ),
    Operation(
        name="bot_run_data",
        path="/v2/botinsight/data/api/getbotrundata",
        http_method=HttpMethod.GET,
        query_params=BOT_INSIGHT_QUERY,
    ),
    Operation(
        name="task_log_data",
        path="/v2/botinsight/data/api/gettasklogdata",
        http_method=HttpMethod.GET,
        query_params=("botName", *BOT_INSIGHT_QUERY),
    ),
    Operation(
        name="list_run_as_users",
        path="/v1/devices/runasusers/list",
        http_method=HttpMethod.POST,
        result_key="list",
    ),
    Operation(
        name="list_devices",
        path="/v2/devices/list",
        http_method=HttpMethod.POST,
        result_key="list",
    ),
    Operation(
        name="list_device_pools",
        path="/v2/devices/pools/list",
        http_method=HttpMethod.POST,
        result_key="list",
    ),
    Operation(
        name="list_work_item_models",
        path="/v3/wlm/workitemmodels/list",
        http_method=HttpMethod.POST,
        result_key="list",
    ),
    Operation(
        name="list_wlm_automations",
        path="/v3/wlm/automations/list",
        http_method=HttpMethod.POST,
        result_key="list",
    ),
    Operation(
        name="deploy_automation",
        path="/v3/automations/deploy",
        http_method=HttpMethod.POST,
    ),
    Operation(
        name="list_repository_files",
        path="/v2/repository/file/list",
        http_method=HttpMethod.POST,
        result_key="list",
    ),
    Operation(
        name="list_users",
        path="/v1/usermanagement/users/list",
        http_method=HttpMethod.POST,
        result_key="list",
    ),
    Operation(
        name="list_roles",
        path="/v1/usermanagement/roles/list",
        http_method=HttpMethod.POST,
        result_key="list",
    ),
    Operation(
        name="create_user",
        path="/v1/usermanagement/users",
        http_method=HttpMethod.POST,
    ),
    Operation(
        name="get_user",
        path="/v1/usermanagement/users/{user_id}",
        http_method=HttpMethod.GET,
    ),
)

OPERATIONS: dict[str, Operation] = {op.name: op for op in _OPERATIONS}


def get_operation(operation: str | Operation) -> Operation:
    """Look up an operation by name (instances are passed through).

    Raises:
        ValidationError: If the name is not in the catalog.
    """
    if isinstance(operation, Operation):
        return operation
    try:
        return OPERATIONS[operation]
    except KeyError:
        msg = f"Unknown operation {operation!r}"
        raise ValidationError(msg) from None
