"""OpenAPI spec loader, dereferencer and validator."""

from __future__ import annotations

import copy
import json
import logging
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx
import yaml
from jsonschema.exceptions import ValidationError as SchemaValidationError
from openapi_spec_validator import validate as validate_openapi
from openapi_spec_validator.exceptions import OpenAPISpecValidatorError
from prance.util.resolver import RefResolver, keep_ref_on_recursion
from prance.util.url import ResolutionError

from .errors import (
    InvalidSpecTypeError,
    SpecResolutionError,
    SpecValidationError,
    UnsupportedFormatError,
)


logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")

_FILE_FORMATS = {".json": "json", ".yaml": "yaml", ".yml": "yaml"}
_IN_MEMORY_URL = "file:///__openapi_connector__.json"
_OPENAPI_VERSION = re.compile(r"^3\.[01]\.\d+$")
_PATH_TEMPLATE = re.compile(r"{([^}/]+)}")


class SpecResolver:
    def __init__(self, http_client_options: Optional[Dict[str, Any]] = None) -> None:
        self.http_client_options = dict(http_client_options or {})

    async def resolve(
        self,
        spec: Any,
        *,
        validate_schema: bool = False,
        validate_spec: bool = False,
    ) -> Dict[str, Any]:
        document, base_url = await self.load(spec)
        self._check_structure(document)
        if validate_schema:
            self._validate_schema(document, base_url)
        resolved = self._dereference(document, base_url)
        if validate_spec:
            self._validate_semantics(resolved)
        return resolved

    async def validate(self, spec: Any) -> Dict[str, Any]:
        """Strictly validate a spec against the meta-schema and semantic rules."""
        document, base_url = await self.load(spec)
        self._validate_schema(document, base_url)
        self._check_structure(document)
        resolved = self._dereference(document, base_url)
        self._validate_semantics(resolved)
        return resolved

    async def load(self, spec: Any) -> Tuple[Dict[str, Any], str]:
        if isinstance(spec, Mapping):
            return copy.deepcopy(dict(spec)), _IN_MEMORY_URL
        if isinstance(spec, str) and spec.startswith(("http://", "https://")):
            return await self._load_url(spec), spec
        if isinstance(spec, (str, Path)):
            return self._load_file(Path(spec))
        raise InvalidSpecTypeError(
            f"Unsupported specification type: {type(spec).__name__}. "
            "Expected a URL, a file path or a mapping."
        )

    async def _load_url(self, url: str) -> Dict[str, Any]:
        options = {"timeout": 30, **self.http_client_options}
        try:
            async with httpx.AsyncClient(**options) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise SpecResolutionError(f"Failed to fetch OpenAPI spec: {url} ({exc})") from exc

        if response.status_code != 200:
            logger.warning("Failed to fetch OpenAPI spec: %s (%s)", url, response.status_code)
            raise SpecResolutionError(
                f"Failed to fetch OpenAPI spec: {url} ({response.status_code})"
            )
        logger.debug("Fetched OpenAPI spec from %s", url)
        return _parse_text(response.text, url)

    def _load_file(self, path: Path) -> Tuple[Dict[str, Any], str]:
        fmt = _FILE_FORMATS.get(path.suffix.lower())
        if fmt is None:
            raise UnsupportedFormatError(
                f"Unsupported spec file format: {path}. Use .json, .yaml or .yml"
            )
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SpecResolutionError(f"Cannot read spec file {path}: {exc}") from exc
        logger.debug("Reading OpenAPI spec from %s", path)
        return _parse_text(text, str(path), fmt), path.resolve().as_uri()

    def _check_structure(self, document: Dict[str, Any]) -> None:
        swagger = document.get("swagger")
        openapi = document.get("openapi")
        if swagger is None and openapi is None:
            raise SpecResolutionError("Document is not a valid OpenAPI definition")
        if swagger is not None:
            if not isinstance(swagger, str):
                raise SpecResolutionError("Swagger version number must be a string")
            if swagger != "2.0":
                raise SpecResolutionError(
                    f"Unrecognized Swagger version: {swagger}. Expected 2.0"
                )
        else:
            if not isinstance(openapi, str):
                raise SpecResolutionError("OpenAPI version number must be a string")
            if not _OPENAPI_VERSION.match(openapi):
                raise SpecResolutionError(f"Unsupported OpenAPI version: {openapi}")
        if "paths" not in document:
            if not (openapi and openapi.startswith("3.1") and "webhooks" in document):
                raise SpecResolutionError("Document is missing the required 'paths' section")

    def _dereference(self, document: Dict[str, Any], base_url: str) -> Dict[str, Any]:
        resolver = RefResolver(
            document,
            base_url,
            recursion_limit=1,
            recursion_limit_handler=keep_ref_on_recursion,
        )
        try:
            resolver.resolve_references()
        except (ResolutionError, ValueError, OSError) as exc:
            raise SpecResolutionError(f"Cannot dereference spec: {exc}") from exc
        return resolver.specs

    def _validate_schema(self, document: Dict[str, Any], base_url: str) -> None:
        base_uri = "" if base_url == _IN_MEMORY_URL else base_url
        try:
            validate_openapi(document, base_uri=base_uri)
        except SchemaValidationError as exc:
            raise SpecValidationError(
                f"Specification is not valid: {exc.message}", [exc.message]
            ) from exc
        except OpenAPISpecValidatorError as exc:
            raise SpecValidationError(
                "Unable to detect the specification version", [str(exc)]
            ) from exc

    def _validate_semantics(self, spec: Dict[str, Any]) -> None:
        errors = semantic_errors(spec)
        if errors:
            raise SpecValidationError(
                f"Specification is not valid: {errors[0]}", errors
            )


def semantic_errors(spec: Dict[str, Any]) -> List[str]:
    errors: List[str] = []
    seen_ids: Dict[str, str] = {}

    for path, path_item in (spec.get("paths") or {}).items():
        if not isinstance(path_item, dict):
            continue
        shared = path_item.get("parameters") or []
        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if not isinstance(operation, dict):
                continue
            where = f"{method.upper()} {path}"

            operation_id = operation.get("operationId")
            if operation_id:
                if operation_id in seen_ids:
                    errors.append(
                        f"Duplicate operationId {operation_id!r} in {where} "
                        f"and {seen_ids[operation_id]}"
                    )
                else:
                    seen_ids[operation_id] = where

            own = operation.get("parameters") or []
            errors.extend(_duplicate_parameters(own, where))
            errors.extend(_duplicate_parameters(shared, where))
            parameters = _merge_parameters(shared, own)
            errors.extend(_path_parameter_errors(path, parameters, where))

            body = [p for p in parameters if p.get("in") == "body"]
            if len(body) > 1:
                errors.append(f"{where} has {len(body)} body parameters. Only one is allowed.")
            if body and any(p.get("in") == "formData" for p in parameters):
                errors.append(f"{where} has body and formData parameters. Only one or the other is allowed.")

    schemas = dict(spec.get("definitions") or {})
    schemas.update((spec.get("components") or {}).get("schemas") or {})
    for name, schema in schemas.items():
        errors.extend(_required_property_errors(name, schema))

    return errors


def _merge_parameters(shared: List[Any], own: List[Any]) -> List[Dict[str, Any]]:
    merged: Dict[Tuple[Any, Any], Dict[str, Any]] = {}
    for parameter in [*shared, *own]:
        if isinstance(parameter, dict):
            merged[(parameter.get("name"), parameter.get("in"))] = parameter
    return list(merged.values())


def _duplicate_parameters(parameters: List[Any], where: str) -> List[str]:
    errors = []
    seen = set()
    for parameter in parameters:
        if not isinstance(parameter, dict) or "$ref" in parameter:
            continue
        key = (parameter.get("name"), parameter.get("in"))
        if key in seen:
            errors.append(f"{where} has duplicate parameter {key[1]} {key[0]!r}")
        seen.add(key)
    return errors


def _path_parameter_errors(
    path: str, parameters: List[Dict[str, Any]], where: str
) -> List[str]:
    errors = []
    placeholders = _PATH_TEMPLATE.findall(path)
    declared = {p.get("name"): p for p in parameters if p.get("in") == "path"}
    for name in placeholders:
        if name not in declared:
            errors.append(f"{where} is missing path parameter {name!r}")
    for name, parameter in declared.items():
        if name not in placeholders:
            errors.append(f"{where} declares path parameter {name!r} that is not in the path")
        elif parameter.get("required") is not True:
            errors.append(f"{where} path parameter {name!r} must be required")
    return errors


def _required_property_errors(name: str, schema: Any) -> List[str]:
    if not isinstance(schema, dict):
        return []
    properties = schema.get("properties")
    required = schema.get("required")
    if not isinstance(properties, dict) or not isinstance(required, list):
        return []
    return [
        f"Schema {name!r} requires property {prop!r} which is not defined"
        for prop in required
        if prop not in properties
    ]


def _parse_text(text: str, source: str, fmt: Optional[str] = None) -> Dict[str, Any]:
    try:
        if fmt == "json" or (fmt is None and text.lstrip().startswith("{")):
            document = json.loads(text)
        else:
            document = yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as exc:
        raise SpecResolutionError(f"Cannot parse spec from {source}: {exc}") from exc
    if not isinstance(document, dict):
        raise SpecResolutionError(f"Spec from {source} is not a mapping")
    return document
