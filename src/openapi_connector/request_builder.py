"""Build concrete HTTP requests from operations and bound arguments."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, urlencode, urljoin, urlsplit

from .auth import AuthorizationInjector
from .models import SWAGGER_V2, HttpRequest, Operation, Parameter, spec_dialect


logger = logging.getLogger(__name__)

FORM_URLENCODED = "application/x-www-form-urlencoded"
MULTIPART_FORM = "multipart/form-data"

_COLLECTION_SEPARATORS = {"csv": ",", "ssv": " ", "tsv": "\t", "pipes": "|"}
_STYLE_SEPARATORS = {"form": ",", "spaceDelimited": " ", "pipeDelimited": "|"}


def find_server_url(spec: Mapping[str, Any], spec_url: Optional[str] = None) -> str:
    """Compute the base URL requests are sent to."""
    parsed = urlsplit(spec_url) if spec_url and spec_url.startswith("http") else None

    if spec_dialect(dict(spec)) == SWAGGER_V2:
        schemes = spec.get("schemes") or []
        if parsed and (not schemes or parsed.scheme in schemes):
            scheme = parsed.scheme
        else:
            scheme = schemes[0] if schemes else "http"
        host = spec.get("host") or (parsed.netloc if parsed else "localhost")
        base_path = spec.get("basePath") or ""
        return f"{scheme}://{host}{base_path}".rstrip("/")

    url = ""
    servers = spec.get("servers") or []
    if servers and isinstance(servers[0], dict):
        server = servers[0]
        url = server.get("url") or ""
        for name, variable in (server.get("variables") or {}).items():
            url = url.replace("{" + name + "}", str((variable or {}).get("default", "")))
    if parsed:
        url = urljoin(spec_url, url or "/")
    return url.rstrip("/")


class RequestBuilder:
    def __init__(
        self,
        spec: Mapping[str, Any],
        base_url: str,
        authorizations: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.spec = spec
        self.base_url = base_url.rstrip("/")
        self.authorizations = dict(authorizations or {})

    def build(
        self,
        operation: Operation,
        params: Mapping[str, Any],
        options: Optional[Mapping[str, Any]] = None,
    ) -> HttpRequest:
        options = options or {}
        path = operation.path
        query: List[Tuple[str, str]] = []
        headers: Dict[str, str] = {}
        cookies: Dict[str, str] = {}
        form: Dict[str, Any] = {}
        files: Dict[str, Any] = {}
        body: Any = None

        for parameter in operation.parameters:
            value = params.get(parameter.name)
            if value is None:
                value = parameter.schema.get("default")
            if value is None:
                if parameter.required:
                    logger.debug(
                        "Required parameter %s missing for %s",
                        parameter.name,
                        operation.operation_id,
                    )
                continue

            location = parameter.location
            if location == "body":
                body = value
            elif location == "path":
                path = path.replace("{" + parameter.name + "}", quote(_stringify(value), safe=""))
            elif location == "query":
                query.extend(_serialize_query(parameter, value, operation.dialect))
            elif location == "header":
                headers[parameter.name] = _join(value, ",")
            elif location == "cookie":
                cookies[parameter.name] = _join(value, ",")
            elif location == "formData":
                if _is_file(value):
                    files[parameter.name] = value
                else:
                    form[parameter.name] = value

        request = HttpRequest(
            method=operation.method.upper(),
            url="",
            headers=headers,
            operation_id=operation.operation_id,
        )

        if operation.dialect == SWAGGER_V2:
            self._swagger2_body(request, operation, body, form, files, options)
        else:
            self._openapi3_body(request, operation, options)

        if options.get("responseContentType"):
            request.headers["Accept"] = str(options["responseContentType"])

        authorizations = {**self.authorizations, **(options.get("authorizations") or {})}
        injector = AuthorizationInjector(self.spec, authorizations)
        auth_headers, auth_query, auth_cookies = injector.build_auth(operation)
        request.headers.update(auth_headers)
        query.extend(auth_query.items())
        cookies.update(auth_cookies)

        if cookies:
            request.headers["Cookie"] = "; ".join(f"{key}={value}" for key, value in cookies.items())

        request.url = self.base_url + path
        if query:
            request.url += "?" + urlencode(query, quote_via=quote)
        return request

    def _swagger2_body(
        self,
        request: HttpRequest,
        operation: Operation,
        body: Any,
        form: Dict[str, Any],
        files: Dict[str, Any],
        options: Mapping[str, Any],
    ) -> None:
        requested = options.get("requestContentType")
        if body is not None:
            content_type = requested or (operation.consumes[0] if operation.consumes else "application/json")
            request.headers["Content-Type"] = content_type
            request.body = _encode_payload(body, content_type)
            return

        if not form and not files:
            return
        consumes = operation.consumes
        content_type = requested or (
            MULTIPART_FORM if files or MULTIPART_FORM in consumes else FORM_URLENCODED
        )
        self._apply_form(request, content_type, form, files)

    def _openapi3_body(
        self, request: HttpRequest, operation: Operation, options: Mapping[str, Any]
    ) -> None:
        body = options.get("requestBody")
        if body is None:
            return
        content_types = operation.request_content_types()
        content_type = options.get("requestContentType") or (
            content_types[0] if content_types else "application/json"
        )
        if isinstance(body, Mapping) and content_type in (FORM_URLENCODED, MULTIPART_FORM):
            form = {key: value for key, value in body.items() if not _is_file(value)}
            files = {key: value for key, value in body.items() if _is_file(value)}
            self._apply_form(request, content_type, form, files)
            return
        request.headers["Content-Type"] = content_type
        request.body = _encode_payload(body, content_type)

    def _apply_form(
        self,
        request: HttpRequest,
        content_type: str,
        form: Dict[str, Any],
        files: Dict[str, Any],
    ) -> None:
        if content_type == MULTIPART_FORM or files:
            # httpx writes the multipart boundary into the Content-Type header.
            request.form = {key: _stringify(value) for key, value in form.items()}
            request.files = files
            return
        request.headers["Content-Type"] = content_type
        request.body = urlencode(
            [(key, _join(value, ",")) for key, value in form.items()], quote_via=quote
        )


def _serialize_query(parameter: Parameter, value: Any, dialect: str) -> List[Tuple[str, str]]:
    name = parameter.name
    if dialect == SWAGGER_V2:
        if isinstance(value, (list, tuple)):
            collection_format = parameter.collection_format or "csv"
            if collection_format == "multi":
                return [(name, _stringify(item)) for item in value]
            separator = _COLLECTION_SEPARATORS.get(collection_format, ",")
            return [(name, _join(value, separator))]
        return [(name, _stringify(value))]

    style = parameter.style or "form"
    explode = parameter.explode if parameter.explode is not None else style == "form"
    if isinstance(value, Mapping):
        if style == "deepObject":
            return [(f"{name}[{key}]", _stringify(item)) for key, item in value.items()]
        if explode:
            return [(str(key), _stringify(item)) for key, item in value.items()]
        flat = [part for key, item in value.items() for part in (str(key), _stringify(item))]
        return [(name, ",".join(flat))]
    if isinstance(value, (list, tuple)):
        if explode:
            return [(name, _stringify(item)) for item in value]
        return [(name, _join(value, _STYLE_SEPARATORS.get(style, ",")))]
    return [(name, _stringify(value))]


def _encode_payload(body: Any, content_type: str) -> Any:
    if isinstance(body, (str, bytes)):
        return body
    if content_type == FORM_URLENCODED and isinstance(body, Mapping):
        return urlencode([(key, _join(value, ",")) for key, value in body.items()], quote_via=quote)
    return json.dumps(body)


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def _join(value: Any, separator: str) -> str:
    if isinstance(value, (list, tuple)):
        return separator.join(_stringify(item) for item in value)
    return _stringify(value)


def _is_file(value: Any) -> bool:
    return isinstance(value, bytes) or hasattr(value, "read")
