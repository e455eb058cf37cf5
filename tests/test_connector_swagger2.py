import asyncio
import json
import re
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import httpx
import pytest

from openapi_connector.connector import OpenApiConnector
from openapi_connector.errors import (
    ConnectorError,
    NoSpecProvidedError,
    OperationNotFoundError,
    SpecResolutionError,
)
from openapi_connector.methods import MethodTable
from openapi_connector.models import HttpResponse

from conftest import PETSTORE_JSON, PETSTORE_YAML, MockApi, load_json, pet_store


@pytest.mark.asyncio
async def test_missing_spec_is_rejected():
    connector = OpenApiConnector()

    with pytest.raises(NoSpecProvidedError):
        await connector.connect()


@pytest.mark.asyncio
async def test_reports_error_for_invalid_document(make_connector):
    connector = make_connector({"swagger": {"version": "2.0"}})

    with pytest.raises(SpecResolutionError):
        await connector.connect()
    assert not connector.connected


@pytest.mark.asyncio
@pytest.mark.parametrize("spec", [str(PETSTORE_JSON), str(PETSTORE_YAML), PETSTORE_JSON])
async def test_generates_methods_from_local_files(make_connector, spec):
    connector = make_connector(spec)
    methods = await connector.connect()

    assert isinstance(methods, MethodTable)
    assert "getPetById" in methods
    assert set(connector.apis) == {"pet", "store", "user"}
    assert connector.dialect == "swagger2"


@pytest.mark.asyncio
async def test_generates_methods_from_spec_mapping(make_connector):
    connector = make_connector(load_json(PETSTORE_JSON))
    await connector.connect()

    assert callable(connector.methods.getPetById)
    assert connector.api["swagger"] == "2.0"


@pytest.mark.asyncio
async def test_generates_methods_from_spec_url():
    spec_text = PETSTORE_JSON.read_text(encoding="utf-8")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v2/swagger.json":
            return httpx.Response(200, text=spec_text)
        return pet_store(request)

    connector = OpenApiConnector(
        spec="http://petstore.swagger.io/v2/swagger.json",
        http_client_options={"transport": httpx.MockTransport(handler)},
    )
    methods = await connector.connect()

    response = await methods.getPetById({"petId": 1})
    assert response.status == 200
    assert response.body["id"] == 1


@pytest.mark.asyncio
async def test_method_names(make_connector):
    connector = make_connector(str(PETSTORE_JSON))
    methods = await connector.connect()

    assert {"getPetById", "pet_getPetById", "login_user", "loginUser", "user_login_user"} <= set(methods)
    assert {"listInventory", "getInventory", "store_listInventory", "storeListInventory"} <= set(methods)
    assert methods["login_user"] is methods["loginUser"]
    assert methods.getPetById is methods["pet_getPetById"]
    assert set(connector.apis["user"]) == {"login_user", "loginUser"}
    assert connector.apis["store"].listInventory is methods.getInventory


@pytest.mark.asyncio
async def test_method_table_is_read_only(make_connector):
    connector = make_connector(str(PETSTORE_JSON))
    methods = await connector.connect()

    with pytest.raises(TypeError):
        methods["getPetById"] = None
    with pytest.raises(AttributeError):
        methods.getPetById = None
    with pytest.raises(AttributeError):
        methods.noSuchMethod


@pytest.mark.asyncio
async def test_invokes_operation(make_connector, petstore_api):
    connector = make_connector(str(PETSTORE_JSON), petstore_api)
    methods = await connector.connect()

    response = await methods.getPetById({"petId": 1})

    assert isinstance(response, HttpResponse)
    assert response.status == 200
    assert response.body == {"id": 1, "name": "doggie", "photoUrls": []}
    assert str(petstore_api.last.url) == "http://petstore.swagger.io/v2/pet/1"
    assert petstore_api.last.headers["user-agent"] == "openapi-connector/0.1.0"


@pytest.mark.asyncio
async def test_camel_case_and_verbatim_names_send_identical_requests(make_connector, petstore_api):
    connector = make_connector(str(PETSTORE_JSON), petstore_api)
    methods = await connector.connect()

    await methods.login_user({"username": "a", "password": "b"})
    await methods.loginUser({"username": "a", "password": "b"})

    first, second = petstore_api.requests
    assert first.url == second.url
    assert first.method == second.method
    assert dict(first.headers) == dict(second.headers)


@pytest.mark.asyncio
async def test_supports_a_request_for_xml_content(make_connector, petstore_api):
    connector = make_connector(str(PETSTORE_JSON), petstore_api)
    methods = await connector.connect()

    response = await methods.getPetById({"petId": 1}, {"responseContentType": "application/xml"})

    assert response.status == 200
    assert response.headers["content-type"] == "application/xml"
    assert response.body == "<Pet><id>1</id><name>doggie</name></Pet>"


@pytest.mark.asyncio
async def test_callback_convention(make_connector, petstore_api):
    connector = make_connector(str(PETSTORE_JSON), petstore_api)
    methods = await connector.connect()
    results = []

    task = methods.getPetById.with_callback({"petId": 1}, callback=lambda err, res: results.append((err, res)))
    await task

    assert len(results) == 1
    error, response = results[0]
    assert error is None
    assert response.status == 200


@pytest.mark.asyncio
async def test_callback_receives_errors(make_connector):
    def failing(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    connector = make_connector(str(PETSTORE_JSON), MockApi(failing))
    methods = await connector.connect()
    results = []

    await methods.getPetById.with_callback({"petId": 1}, callback=lambda err, res: results.append((err, res)))

    error, response = results[0]
    assert isinstance(error, ConnectorError)
    assert response is None


def test_callback_convention_without_running_loop(make_connector, petstore_api):
    connector = make_connector(str(PETSTORE_JSON), petstore_api)
    methods = asyncio.run(connector.connect())
    results = []

    returned = methods.getPetById.with_callback({"petId": 1}, callback=lambda err, res: results.append((err, res)))

    assert returned is None
    assert results[0][1].status == 200


class PetHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def do_GET(self):
        match = re.fullmatch(r"/v2/pet/(\d+)", self.path)
        if not match:
            self.send_error(404)
            return
        payload = json.dumps({"id": int(match.group(1)), "name": "doggie"}).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        self.wfile.write(payload)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def pet_server():
    server = ThreadingHTTPServer(("127.0.0.1", 0), PetHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server.server_address[1]
    server.shutdown()
    server.server_close()


def test_repeated_callback_calls_without_running_loop(pet_server):
    spec = load_json(PETSTORE_JSON)
    spec["host"] = f"127.0.0.1:{pet_server}"
    spec["schemes"] = ["http"]
    connector = OpenApiConnector(spec=spec, http_client_options={"trust_env": False})
    methods = asyncio.run(connector.connect())
    results = []

    methods.getPetById.with_callback({"petId": 1}, callback=lambda err, res: results.append((err, res)))
    methods.getPetById.with_callback({"petId": 2}, callback=lambda err, res: results.append((err, res)))

    assert [err for err, _ in results] == [None, None]
    assert [res.body["id"] for _, res in results] == [1, 2]


@pytest.mark.asyncio
async def test_positional_body_last(make_connector, petstore_api):
    connector = make_connector(str(PETSTORE_JSON), petstore_api, positional="bodyLast")
    methods = await connector.connect()

    await methods.addPet("req-9", {"name": "doggie", "photoUrls": []})

    request = petstore_api.last
    assert request.method == "POST"
    assert request.headers["x-request-id"] == "req-9"
    assert json.loads(request.content) == {"name": "doggie", "photoUrls": []}


@pytest.mark.asyncio
async def test_positional_and_named_invocations_match(make_connector):
    named_api, positional_api = MockApi(pet_store), MockApi(pet_store)
    named = await make_connector(str(PETSTORE_JSON), named_api).connect()
    positional = await make_connector(str(PETSTORE_JSON), positional_api, positional=True).connect()
    pet = {"name": "doggie", "photoUrls": []}

    await named.addPet({"pet": pet, "X-Request-Id": "r"})
    await positional.addPet(pet, "r")

    first, second = named_api.last, positional_api.last
    assert first.url == second.url
    assert first.content == second.content
    assert dict(first.headers) == dict(second.headers)


@pytest.mark.asyncio
async def test_execute_matches_generated_method(make_connector, petstore_api):
    connector = make_connector(str(PETSTORE_JSON), petstore_api)
    methods = await connector.connect()

    via_method = await methods.getPetById({"petId": 5})
    via_execute = await connector.execute("getPetById", {"petId": 5})

    assert via_execute.status == via_method.status
    assert via_execute.body == via_method.body
    assert petstore_api.requests[0].url == petstore_api.requests[1].url


@pytest.mark.asyncio
async def test_execute_unknown_operation(make_connector):
    connector = make_connector(str(PETSTORE_JSON))

    with pytest.raises(OperationNotFoundError):
        await connector.execute("noSuchOperation")


@pytest.mark.asyncio
async def test_transform_response(make_connector, petstore_api):
    connector = make_connector(str(PETSTORE_JSON), petstore_api, transform_response=True)
    methods = await connector.connect()

    assert await methods.getPetById({"petId": 1}) == {"id": 1, "name": "doggie", "photoUrls": []}

    with pytest.raises(ConnectorError) as excinfo:
        await methods.getPetById({"petId": 404})
    assert str(excinfo.value) == "404 Not Found"
    assert excinfo.value.details.status == 404
    assert excinfo.value.status == 404


@pytest.mark.asyncio
async def test_execute_does_not_transform(make_connector, petstore_api):
    connector = make_connector(str(PETSTORE_JSON), petstore_api, transform_response=True)

    response = await connector.execute("getPetById", {"petId": 404})

    assert isinstance(response, HttpResponse)
    assert response.status == 404


@pytest.mark.asyncio
async def test_callback_ignores_transform_errors(make_connector, petstore_api):
    connector = make_connector(str(PETSTORE_JSON), petstore_api, transform_response=True)
    methods = await connector.connect()
    results = []

    await methods.getPetById.with_callback({"petId": 404}, callback=lambda err, res: results.append((err, res)))

    error, response = results[0]
    assert error is None
    assert response.status == 404


@pytest.mark.asyncio
async def test_custom_async_transform(make_connector, petstore_api):
    async def pet_name(response, operation_spec):
        return (operation_spec["operationId"], response.body["name"])

    connector = make_connector(str(PETSTORE_JSON), petstore_api, transform_response=pet_name)
    methods = await connector.connect()

    assert await methods.getPetById({"petId": 1}) == ("getPetById", "doggie")


@pytest.mark.asyncio
async def test_custom_naming_policy(make_connector):
    def upper_names(tag, operation_spec, existing_names=None):
        return operation_spec["operationId"].upper()

    connector = make_connector(str(PETSTORE_JSON), map_to_methods=upper_names)
    methods = await connector.connect()

    assert "GETPETBYID" in methods
    assert "getPetById" not in methods
    assert "GETPETBYID" in connector.apis["pet"]


@pytest.mark.asyncio
async def test_concurrent_connect_resolves_once(make_connector, monkeypatch):
    from openapi_connector import connector as connector_module

    calls = []
    original = connector_module.SpecResolver.resolve

    async def counting_resolve(self, spec, **kwargs):
        calls.append(spec)
        await asyncio.sleep(0)
        return await original(self, spec, **kwargs)

    monkeypatch.setattr(connector_module.SpecResolver, "resolve", counting_resolve)
    connector = make_connector(str(PETSTORE_JSON))

    first, second = await asyncio.gather(connector.connect(), connector.connect())

    assert first is second
    assert len(calls) == 1
    assert await connector.connect() is first


@pytest.mark.asyncio
async def test_failed_connect_can_be_retried(make_connector):
    connector = make_connector({"swagger": "2.0"})

    with pytest.raises(SpecResolutionError):
        await connector.connect()

    connector.settings.spec = load_json(PETSTORE_JSON)
    methods = await connector.connect()
    assert "getPetById" in methods


@pytest.mark.asyncio
async def test_defined_models_receive_operations(make_connector, petstore_api):
    class PetService:
        pass

    class LateService:
        pass

    connector = make_connector(str(PETSTORE_JSON), petstore_api)
    connector.define("PetService", PetService)
    methods = await connector.connect()
    connector.define("LateService", LateService)

    assert PetService.operations is methods
    assert LateService.operations is methods
    response = await PetService.operations.getPetById({"petId": 1})
    assert response.status == 200


@pytest.mark.asyncio
async def test_async_context_manager(make_connector, petstore_api):
    async with make_connector(str(PETSTORE_JSON), petstore_api) as connector:
        assert connector.connected
        response = await connector.methods.getPetById({"petId": 2})
        assert response.body["id"] == 2


@pytest.mark.asyncio
async def test_methods_require_connect(make_connector):
    connector = make_connector(str(PETSTORE_JSON))

    with pytest.raises(ConnectorError):
        connector.methods
