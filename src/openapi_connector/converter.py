"""Upgrade Swagger 2.0 documents to OpenAPI 3.0."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from .spec_resolver import HTTP_METHODS

logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.0.0"
BODY_NAME_EXTENSION = "x-codegen-request-body-name"

_REF_PREFIXES = (
    ("#/definitions/", "#/components/schemas/"),
    ("#/parameters/", "#/components/parameters/"),
    ("#/responses/", "#/components/responses/"),
    ("#/securityDefinitions/", "#/components/securitySchemes/"),
)

_SCHEMA_KEYS = (
    "type",
    "format",
    "items",
    "default",
    "maximum",
    "exclusiveMaximum",
    "minimum",
    "exclusiveMinimum",
    "maxLength",
    "minLength",
    "pattern",
    "maxItems",
    "minItems",
    "uniqueItems",
    "enum",
    "multipleOf",
)

_OAUTH2_FLOWS = {
    "implicit": "implicit",
    "password": "password",
    "application": "clientCredentials",
    "accessCode": "authorizationCode",
}


class Swagger2Converter:
    """Convert a resolved Swagger 2.0 document to an OpenAPI 3.0 one.

    Circular references left in place by the resolver are rewritten to
    their ``components`` locations.
    """

    def __init__(self, spec: Dict[str, Any]) -> None:
        self.spec = spec
        self.warnings: List[str] = []
        self.consumes: List[str] = list(spec.get("consumes") or [])
        self.produces: List[str] = list(spec.get("produces") or [])

    def convert(self) -> Dict[str, Any]:
        spec = self.spec
        converted: Dict[str, Any] = {
            key: value
            for key, value in spec.items()
            if key.startswith("x-") or key in ("info", "tags", "security", "externalDocs")
        }
        converted["openapi"] = OPENAPI_VERSION
        converted.setdefault("info", {"title": "", "version": ""})
        converted["servers"] = self._servers()
        converted["paths"] = {
            path: self._path_item(path_item)
            for path, path_item in (spec.get("paths") or {}).items()
        }
        components = self._components()
        if components:
            converted["components"] = components
        return rewrite_refs(converted)

    def _servers(self) -> List[Dict[str, Any]]:
        host = self.spec.get("host")
        base_path = self.spec.get("basePath") or ""
        if not host:
            return [{"url": base_path or "/"}]
        schemes = self.spec.get("schemes") or ["http"]
        return [{"url": f"{scheme}://{host}{base_path}"} for scheme in schemes]

    def _components(self) -> Dict[str, Any]:
        components: Dict[str, Any] = {}
        if self.spec.get("definitions"):
            components["schemas"] = dict(self.spec["definitions"])
        if self.spec.get("parameters"):
            components["parameters"] = {
                name: self._parameter(parameter)
                for name, parameter in self.spec["parameters"].items()
                if parameter.get("in") not in ("body", "formData")
            }
        if self.spec.get("responses"):
            components["responses"] = {
                name: self._response(response, self.produces)
                for name, response in self.spec["responses"].items()
            }
        if self.spec.get("securityDefinitions"):
            components["securitySchemes"] = {
                name: self._security_scheme(name, scheme)
                for name, scheme in self.spec["securityDefinitions"].items()
            }
        return components

    def _path_item(self, path_item: Any) -> Any:
        if not isinstance(path_item, dict):
            return path_item
        converted: Dict[str, Any] = {}
        shared = path_item.get("parameters") or []
        for key, value in path_item.items():
            if key in HTTP_METHODS and isinstance(value, dict):
                converted[key] = self._operation(value, shared)
            elif key != "parameters":
                converted[key] = value
        plain = [p for p in shared if p.get("in") not in ("body", "formData")]
        if plain:
            converted["parameters"] = [self._parameter(p) for p in plain]
        return converted

    def _operation(self, operation: Dict[str, Any], shared: List[Dict[str, Any]]) -> Dict[str, Any]:
        converted: Dict[str, Any] = {
            key: value
            for key, value in operation.items()
            if key not in ("parameters", "responses", "consumes", "produces", "schemes")
        }
        consumes = list(operation.get("consumes") or self.consumes)
        produces = list(operation.get("produces") or self.produces) or ["application/json"]

        parameters: List[Dict[str, Any]] = []
        body: Optional[Dict[str, Any]] = None
        form: List[Dict[str, Any]] = []
        for parameter in operation.get("parameters") or []:
            location = parameter.get("in")
            if location == "body":
                body = parameter
            elif location == "formData":
                form.append(parameter)
            else:
                parameters.append(self._parameter(parameter))

        # Body and form parameters declared on the path item still feed the request body.
        own = {(p.get("name"), p.get("in")) for p in operation.get("parameters") or []}
        for parameter in shared:
            if (parameter.get("name"), parameter.get("in")) in own:
                continue
            if parameter.get("in") == "body" and body is None:
                body = parameter
            elif parameter.get("in") == "formData":
                form.append(parameter)

        if parameters:
            converted["parameters"] = parameters
        if body is not None:
            converted["requestBody"] = self._body(body, consumes)
            converted[BODY_NAME_EXTENSION] = body.get("name")
        elif form:
            converted["requestBody"] = self._form(form, consumes)

        converted["responses"] = {
            status: self._response(response, produces)
            for status, response in (operation.get("responses") or {}).items()
        }
        return converted

    def _parameter(self, parameter: Dict[str, Any]) -> Dict[str, Any]:
        if "$ref" in parameter and len(parameter) == 1:
            return dict(parameter)
        converted = {
            key: value
            for key, value in parameter.items()
            if key not in _SCHEMA_KEYS and key not in ("collectionFormat", "allowEmptyValue")
        }
        converted["schema"] = _schema_from_parameter(parameter)
        if parameter.get("allowEmptyValue"):
            converted["allowEmptyValue"] = True
        if parameter.get("type") == "array":
            style, explode = self._collection_format(parameter)
            if style:
                converted["style"] = style
                converted["explode"] = explode
        return converted

    def _collection_format(self, parameter: Dict[str, Any]) -> Tuple[Optional[str], bool]:
        collection_format = parameter.get("collectionFormat") or "csv"
        location = parameter.get("in")
        if collection_format == "multi":
            return "form", True
        if collection_format == "csv":
            return ("form" if location == "query" else "simple"), False
        if collection_format == "ssv":
            return "spaceDelimited", False
        if collection_format == "pipes":
            return "pipeDelimited", False
        self.warnings.append(
            f"collectionFormat {collection_format!r} of {parameter.get('name')} has no equivalent"
        )
        return None, False

    def _body(self, parameter: Dict[str, Any], consumes: List[str]) -> Dict[str, Any]:
        schema = parameter.get("schema") or {}
        body: Dict[str, Any] = {
            "content": {
                media_type: {"schema": schema}
                for media_type in consumes or ["application/json"]
            }
        }
        if parameter.get("description"):
            body["description"] = parameter["description"]
        if parameter.get("required"):
            body["required"] = True
        return body

    def _form(self, parameters: List[Dict[str, Any]], consumes: List[str]) -> Dict[str, Any]:
        has_file = any(p.get("type") == "file" for p in parameters)
        if has_file or "multipart/form-data" in consumes:
            media_type = "multipart/form-data"
        else:
            media_type = "application/x-www-form-urlencoded"

        schema: Dict[str, Any] = {
            "type": "object",
            "properties": {p["name"]: _schema_from_parameter(p) for p in parameters},
        }
        required = [p["name"] for p in parameters if p.get("required")]
        if required:
            schema["required"] = required
        return {"content": {media_type: {"schema": schema}}}

    def _response(self, response: Any, produces: List[str]) -> Any:
        if not isinstance(response, dict) or "$ref" in response:
            return response
        converted = {
            key: value for key, value in response.items() if key not in ("schema", "examples")
        }
        converted.setdefault("description", "")
        if response.get("schema") is not None:
            examples = response.get("examples") or {}
            content: Dict[str, Any] = {}
            for media_type in produces:
                entry: Dict[str, Any] = {"schema": response["schema"]}
                if media_type in examples:
                    entry["example"] = examples[media_type]
                content[media_type] = entry
            converted["content"] = content
        if response.get("headers"):
            converted["headers"] = {
                name: {"schema": _schema_from_parameter(header), **_description(header)}
                for name, header in response["headers"].items()
            }
        return converted

    def _security_scheme(self, name: str, scheme: Dict[str, Any]) -> Dict[str, Any]:
        scheme_type = scheme.get("type")
        converted: Dict[str, Any]
        if scheme_type == "basic":
            converted = {"type": "http", "scheme": "basic"}
        elif scheme_type == "apiKey":
            converted = {"type": "apiKey", "name": scheme.get("name"), "in": scheme.get("in")}
        elif scheme_type == "oauth2":
            flow_name = _OAUTH2_FLOWS.get(scheme.get("flow", ""), "implicit")
            flow: Dict[str, Any] = {"scopes": scheme.get("scopes") or {}}
            if scheme.get("authorizationUrl"):
                flow["authorizationUrl"] = scheme["authorizationUrl"]
            if scheme.get("tokenUrl"):
                flow["tokenUrl"] = scheme["tokenUrl"]
            converted = {"type": "oauth2", "flows": {flow_name: flow}}
        else:
            logger.warning("Unknown security scheme type %r for %s", scheme_type, name)
            converted = dict(scheme)
        converted.update(_description(scheme))
        converted.update({k: v for k, v in scheme.items() if k.startswith("x-")})
        return converted


def convert_to_openapi3(spec: Dict[str, Any]) -> Dict[str, Any]:
    """Return the OpenAPI 3.0 form of a Swagger 2.0 document."""
    converter = Swagger2Converter(spec)
    converted = converter.convert()
    for warning in converter.warnings:
        logger.warning("Swagger 2.0 upgrade: %s", warning)
    return converted


def rewrite_refs(value: Any) -> Any:
    if isinstance(value, dict):
        rewritten = {key: rewrite_refs(item) for key, item in value.items()}
        ref = rewritten.get("$ref")
        if isinstance(ref, str):
            rewritten["$ref"] = _rewrite_ref(ref)
        return rewritten
    if isinstance(value, list):
        return [rewrite_refs(item) for item in value]
    return value


def _rewrite_ref(ref: str) -> str:
    for old, new in _REF_PREFIXES:
        if ref.startswith(old):
            return new + ref[len(old):]
    return ref


def _schema_from_parameter(parameter: Dict[str, Any]) -> Dict[str, Any]:
    schema = {key: parameter[key] for key in _SCHEMA_KEYS if key in parameter}
    if schema.get("type") == "file":
        schema["type"] = "string"
        schema["format"] = "binary"
    return schema


def _description(value: Dict[str, Any]) -> Dict[str, Any]:
    if value.get("description"):
        return {"description": value["description"]}
    return {}
