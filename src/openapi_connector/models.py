"""Internal models for operations, requests and responses."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


SWAGGER_V2 = "swagger2"
OPENAPI_V3 = "openapi3"


def spec_dialect(spec: Dict[str, Any]) -> str:
    if spec.get("swagger") == "2.0":
        return SWAGGER_V2
    return OPENAPI_V3


@dataclass(frozen=True)
class Parameter:
    name: str
    location: str
    required: bool = False
    schema: Dict[str, Any] = field(default_factory=dict)
    collection_format: Optional[str] = None
    style: Optional[str] = None
    explode: Optional[bool] = None

    @classmethod
    def from_spec(cls, raw: Dict[str, Any]) -> "Parameter":
        location = raw.get("in", "query")
        schema = raw.get("schema")
        if schema is None:
            # Swagger 2.0 non-body parameters carry their type inline.
            schema = {
                key: value
                for key, value in raw.items()
                if key in ("type", "format", "items", "enum", "default")
            }
        return cls(
            name=raw.get("name", ""),
            location=location,
            required=bool(raw.get("required", location == "path")),
            schema=schema or {},
            collection_format=raw.get("collectionFormat"),
            style=raw.get("style"),
            explode=raw.get("explode"),
        )


@dataclass(frozen=True)
class Operation:
    operation_id: str
    method: str
    path: str
    dialect: str
    spec: Dict[str, Any]
    parameters: Tuple[Parameter, ...] = ()
    tags: Tuple[str, ...] = ()
    consumes: Tuple[str, ...] = ()
    produces: Tuple[str, ...] = ()
    request_body: Optional[Dict[str, Any]] = None
    security: Optional[List[Dict[str, Any]]] = None

    @property
    def body_parameter(self) -> Optional[Parameter]:
        for parameter in self.parameters:
            if parameter.location == "body":
                return parameter
        return None

    def request_content_types(self) -> List[str]:
        if self.dialect == SWAGGER_V2:
            return list(self.consumes)
        content = (self.request_body or {}).get("content") or {}
        return list(content.keys())


@dataclass
class HttpRequest:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Any] = None
    form: Optional[Dict[str, Any]] = None
    files: Optional[Dict[str, Any]] = None
    operation_id: Optional[str] = None


@dataclass
class HttpResponse:
    url: str
    status: int
    status_text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)
    text: str = ""
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @classmethod
    def build(
        cls, url: str, status: int, status_text: str, headers: Dict[str, str], text: str
    ) -> "HttpResponse":
        return cls(
            url=url,
            status=status,
            status_text=status_text,
            headers=headers,
            text=text,
            body=_parse_body(headers, text),
        )

    def to_cache(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "status": self.status,
            "statusText": self.status_text,
            "headers": dict(self.headers),
            "text": self.text,
            "body": self.body,
        }

    @classmethod
    def from_cache(cls, value: Dict[str, Any]) -> "HttpResponse":
        # Entries written without a body are re-parsed from their text.
        if "body" not in value:
            return cls.build(
                url=value.get("url", ""),
                status=int(value.get("status", 200)),
                status_text=value.get("statusText", ""),
                headers=dict(value.get("headers") or {}),
                text=value.get("text", ""),
            )
        return cls(
            url=value.get("url", ""),
            status=int(value.get("status", 200)),
            status_text=value.get("statusText", ""),
            headers=dict(value.get("headers") or {}),
            text=value.get("text", ""),
            body=value["body"],
        )


def _parse_body(headers: Dict[str, str], text: str) -> Any:
    content_type = ""
    for key, value in headers.items():
        if key.lower() == "content-type":
            content_type = value.lower()
            break
    if text and ("json" in content_type):
        try:
            return json.loads(text)
        except ValueError:
            return text
    return text
