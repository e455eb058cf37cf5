"""OpenAPI connector: turns a specification into callable operation methods."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from .binder import ArgumentBinder
from .cache import ResponseCache
from .config import ConnectorSettings
from .converter import convert_to_openapi3
from .errors import ConnectorError, NoSpecProvidedError
from .hooks import ObserverRegistry
from .indexer import get_operation_spec, index_operations
from .invocation import OperationMethod, ResponseTransform, transform_response
from .logging import redact_payload
from .methods import MethodTable, build_method_tables
from .models import HttpResponse, Operation, spec_dialect
from .pipeline import InterceptorPipeline
from .registry import ModelRegistry
from .request_builder import RequestBuilder, find_server_url
from .spec_resolver import SpecResolver
from .transport import HttpTransport

logger = logging.getLogger(__name__)

USER_AGENT_PREFIX = "openapi-connector"


class OpenApiConnector:
    """
    Data source connector backed by an OpenAPI specification.

    After ``connect()`` every operation of the document is reachable through
    ``methods`` (flat names) and ``apis`` (per-tag names). Each call runs the
    before-execute observers, the response cache, the HTTP transport and the
    after-execute observers, in that order.
    """

    def __init__(
        self,
        settings: Optional[ConnectorSettings] = None,
        registry: Optional[ModelRegistry] = None,
        **overrides: Any,
    ) -> None:
        if settings is None:
            settings = ConnectorSettings(**overrides)
        elif overrides:
            settings = type(settings)(**{**dict(settings), **overrides})
        self.settings = settings
        self.registry = registry or ModelRegistry()
        self.hooks = ObserverRegistry()
        self.transport = HttpTransport(settings.http_client_options)
        self.cache = ResponseCache(settings.cache, self.registry, source_name=self._source_name())
        self.pipeline = InterceptorPipeline(
            self.hooks,
            self.cache,
            self.transport,
            user_agent=f"{USER_AGENT_PREFIX}/{settings.client_version}",
        )

        self.api: Optional[Dict[str, Any]] = None
        self.request_builder: Optional[RequestBuilder] = None
        self._methods: Optional[MethodTable] = None
        self._apis: Dict[str, MethodTable] = {}
        self._connecting: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self._methods is not None

    @property
    def dialect(self) -> Optional[str]:
        if self.api is None:
            return None
        return spec_dialect(self.api)

    @property
    def methods(self) -> MethodTable:
        if self._methods is None:
            raise ConnectorError("Connector is not connected; call connect() first")
        return self._methods

    @property
    def apis(self) -> Dict[str, MethodTable]:
        if self._methods is None:
            raise ConnectorError("Connector is not connected; call connect() first")
        return self._apis

    async def connect(self) -> MethodTable:
        """Resolve the specification and build the method tables once."""
        if self._methods is not None:
            return self._methods
        if self._connecting is None:
            self._connecting = asyncio.ensure_future(self._connect())
        return await self._connecting

    async def _connect(self) -> MethodTable:
        try:
            source = self.settings.spec_source()
            if source is None:
                raise NoSpecProvidedError("No OpenAPI specification provided")

            validate = self.settings.validate_spec
            resolver = SpecResolver(self.settings.http_client_options)
            api = await resolver.resolve(source, validate_schema=validate, validate_spec=validate)
            logger.info("Loaded OpenAPI specification from %s", self._source_name())

            if self.settings.force_openapi30 and api.get("swagger") == "2.0":
                api = convert_to_openapi3(api)
                logger.info("Upgraded Swagger 2.0 specification to OpenAPI 3.0")

            self.api = api
            base_url = find_server_url(api, self._spec_url())
            self.request_builder = RequestBuilder(api, base_url, self.settings.authorizations)
            self._methods, self._apis = self._build_methods(api)
        except BaseException:
            self._connecting = None
            raise

        for name, model in self.registry.items():
            logger.debug("Attaching operations to model %s", name)
            self.attach(model)
        return self._methods

    def _build_methods(self, api: Dict[str, Any]) -> Tuple[MethodTable, Dict[str, MethodTable]]:
        transform = self._transform()
        shared: Dict[Tuple[str, str], OperationMethod] = {}
        operations_by_tag: Dict[str, Dict[str, OperationMethod]] = {}

        for tag, operations in index_operations(api).items():
            operations_by_tag[tag] = {}
            for operation_id, operation in operations.items():
                key = (operation.path, operation.method)
                if key not in shared:
                    binder = ArgumentBinder(operation, self.settings.positional)
                    shared[key] = OperationMethod(self, operation, binder, transform)
                operations_by_tag[tag][operation_id] = shared[key]

        methods, apis = build_method_tables(operations_by_tag, self.settings.map_to_methods)
        logger.info("Registered %d methods across %d tags", len(methods), len(apis))
        return methods, apis

    def _transform(self) -> Optional[ResponseTransform]:
        configured = self.settings.transform_response
        if configured is True:
            return transform_response
        if callable(configured) and not isinstance(configured, bool):
            return configured
        return None

    async def send(
        self, operation: Operation, params: Dict[str, Any], options: Dict[str, Any]
    ) -> HttpResponse:
        """Build the request for ``operation`` and run it through the pipeline."""
        if self.request_builder is None:
            raise ConnectorError("Connector is not connected; call connect() first")
        logger.debug(
            "Invoking %s params=%s", operation.operation_id, redact_payload(params)
        )
        request = self.request_builder.build(operation, params, options)
        return await self.pipeline.execute(request)

    async def execute(
        self,
        operation_id: str,
        parameters: Optional[Dict[str, Any]] = None,
        options: Optional[Dict[str, Any]] = None,
    ) -> HttpResponse:
        """Invoke an operation by id with named parameters, without transforming the response."""
        await self.connect()
        operation = get_operation_spec(self.api, operation_id)
        params, opts = ArgumentBinder(operation).bind(parameters, options)
        return await self.send(operation, params, opts)

    def observe(self, event: str, handler: Any) -> None:
        self.hooks.observe(event, handler)

    def remove_observers(self, event: str) -> None:
        self.hooks.remove_observers(event)

    def clear_observers(self) -> None:
        self.hooks.clear_observers()

    def define(self, name: str, model: Any) -> Any:
        self.registry.define(name, model)
        if self._methods is not None:
            self.attach(model)
        return model

    def attach(self, model: Any) -> None:
        """Expose the method table on ``model`` as ``model.operations``."""
        setattr(model, "operations", self.methods)

    async def close(self) -> None:
        await self.transport.aclose()

    aclose = close

    async def __aenter__(self) -> "OpenApiConnector":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _source_name(self) -> str:
        source = self.settings.spec_source()
        if isinstance(source, (str, bytes)) or hasattr(source, "__fspath__"):
            return str(source)
        if isinstance(source, dict):
            return str((source.get("info") or {}).get("title") or "<inline>")
        return "<inline>"

    def _spec_url(self) -> Optional[str]:
        if self.settings.url:
            return self.settings.url
        source = self.settings.spec_source()
        if isinstance(source, str) and source.startswith(("http://", "https://")):
            return source
        return None
