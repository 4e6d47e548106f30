"""Raw API payload types for the Control Room REST API.

Pydantic models for the request and response bodies the client builds or
parses itself. Everything returned from the generic catalog operations is
passed through as plain JSON.
"""

import pydantic
from pydantic import BaseModel


class RawAuthResponse(BaseModel):
    """Body returned by ``/v1/authentication``.

    Only the token is used; the user record that comes with it is ignored.
    """

    token: str


class RawDeployResponse(BaseModel):
    """Body returned by ``/v3/automations/deploy``."""

    deployment_id: str = pydantic.Field(alias="deploymentId")


class SortField(BaseModel):
    field: str
    direction: str = "desc"


class FilterOperand(BaseModel):
    operator: str
    field: str
    value: str


class FilterGroup(BaseModel):
    operator: str = "and"
    operands: list[FilterOperand]


class Page(BaseModel):
    length: int = 1000
    offset: int = 0


class AuditSearchBody(BaseModel):
    """Server-side filter for ``/v1/audit/messages/list``.

    Sorted newest first, restricted to ``begin < createdOn < end``.
    """

    sort: list[SortField]
    filter: FilterGroup
    page: Page

    @classmethod
    def for_range(cls, begin: str, end: str) -> "AuditSearchBody":
        return cls(
            sort=[SortField(field="createdOn", direction="desc")],
            filter=FilterGroup(
                operator="and",
                operands=[
                    FilterOperand(operator="gt", field="createdOn", value=begin),
                    FilterOperand(operator="lt", field="createdOn", value=end),
                ],
            ),
            page=Page(length=1000, offset=0),
        )


class DeployBody(BaseModel):
    """Body for ``/v3/automations/deploy``."""

    file_id: int | str = pydantic.Field(serialization_alias="fileId")
    run_as_user_ids: list[int | str] = pydantic.Field(
        serialization_alias="runAsUserIds",
    )
    pool_ids: list[int | str] | None = pydantic.Field(
        None,
        serialization_alias="poolIds",
    )
    bot_input: dict[str, object] | None = pydantic.Field(
        None,
        serialization_alias="botInput",
    )
