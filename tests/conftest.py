"""Shared fixtures: an in-memory Control Room behind httpx.MockTransport."""

import httpx
import pytest

from controlroom_api.restapi import client

BASE_URL = "https://cr.example.com"


class FakeControlRoom:
    """Records requests and answers them from a per-path routing table.

    Unrouted paths answer 404.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self._routes: dict[str, tuple[int, object, Exception | None]] = {}

    def route(
        self,
        path: str,
        status_code: int = 200,
        json: object = None,
        exc: Exception | None = None,
    ) -> None:
        self._routes[path] = (status_code, json, exc)

    def route_text(self, path: str, status_code: int, text: str) -> None:
        self._routes[path] = (status_code, text, None)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status_code, payload, exc = self._routes.get(
            request.url.path,
            (404, {"message": "not found"}, None),
        )
        if exc is not None:
            raise exc
        if isinstance(payload, str):
            return httpx.Response(status_code, text=payload)
        if payload is None:
            return httpx.Response(status_code)
        return httpx.Response(status_code, json=payload)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def control_room() -> FakeControlRoom:
    return FakeControlRoom()


@pytest.fixture
def cr_client(control_room: FakeControlRoom) -> client.ControlRoomClient:
    """Client wired to the fake Control Room."""
    api_client = client.ControlRoomClient(
        base_url=BASE_URL,
        transport=httpx.MockTransport(control_room),
    )
    yield api_client
    api_client.close()
