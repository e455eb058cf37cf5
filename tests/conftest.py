import json
from pathlib import Path
from typing import Callable, List, Optional

import httpx
import pytest

from openapi_connector.connector import OpenApiConnector

FIXTURES = Path(__file__).parent / "fixtures"
PETSTORE_JSON = FIXTURES / "2.0" / "petstore.json"
PETSTORE_YAML = FIXTURES / "2.0" / "petstore.yaml"
PETSTORE_YML = FIXTURES / "2.0" / "petstore.yml"
CIRCULAR_JSON = FIXTURES / "2.0" / "circular.json"
PING_JSON = FIXTURES / "3.0" / "ping.json"
PING_YAML = FIXTURES / "3.0" / "ping.yaml"
PETSTORE3_YAML = FIXTURES / "3.0" / "petstore.yaml"


def load_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def echo(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query.decode("ascii"),
            "headers": dict(request.headers),
            "body": request.content.decode("utf-8"),
        },
    )


def ping_app(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/ping":
        return httpx.Response(
            200,
            json={
                "greeting": "Hello from LoopBack",
                "url": "/ping",
                "headers": dict(request.headers),
            },
        )
    if path == "/greet" and request.method == "POST":
        payload = json.loads(request.content or b"{}")
        return httpx.Response(
            200,
            json={"hello": request.url.params.get("name"), "requestId": payload.get("requestId")},
        )
    if path.startswith("/greet/") and request.method == "PUT":
        return echo(request)
    return httpx.Response(404, json={"error": "not found"})


def pet_store(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path.startswith("/v2/pet/") and request.method == "GET":
        pet_id = int(path.rsplit("/", 1)[-1])
        if request.headers.get("accept") == "application/xml":
            return httpx.Response(
                200,
                text=f"<Pet><id>{pet_id}</id><name>doggie</name></Pet>",
                headers={"content-type": "application/xml"},
            )
        if pet_id == 404:
            return httpx.Response(404, json={"message": "Pet not found"})
        return httpx.Response(200, json={"id": pet_id, "name": "doggie", "photoUrls": []})
    return echo(request)


class MockApi:
    """Records requests and answers them with ``responder``."""

    def __init__(self, responder: Optional[Callable[[httpx.Request], httpx.Response]] = None):
        self.responder = responder or echo
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.fixture
def petstore_api() -> MockApi:
    return MockApi(pet_store)


@pytest.fixture
def ping_api() -> MockApi:
    return MockApi(ping_app)


@pytest.fixture
def make_connector():
    def factory(spec, api: Optional[MockApi] = None, **settings) -> OpenApiConnector:
        api = api or MockApi()
        return OpenApiConnector(
            spec=spec,
            http_client_options={"transport": api.transport},
            **settings,
        )

    return factory
