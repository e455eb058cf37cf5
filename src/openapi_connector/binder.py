"""Bind call arguments to operation parameters."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any, Dict, List, Sequence, Tuple, Union

from .models import SWAGGER_V2, Operation

JSON_CONTENT_TYPE = "application/json"
REQUEST_BODY = "requestBody"


class ArgumentBinder:
    def __init__(self, operation: Operation, positional: Union[bool, str] = False) -> None:
        self.operation = operation
        self.positional = positional
        self.swagger20 = operation.dialect == SWAGGER_V2
        self.body_last = self.swagger20 and positional == "bodyLast"
        self.arg_names = self._arg_names()

    def _arg_names(self) -> List[str]:
        names = [
            parameter.name
            for parameter in self.operation.parameters
            if not (self.body_last and parameter.location == "body")
        ]
        if self.swagger20:
            body = self.operation.body_parameter
            if self.body_last and body is not None:
                names.append(body.name)
        elif self.operation.request_body:
            names.append(REQUEST_BODY)
        return names

    def bind(self, *args: Any, **kwargs: Any) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        """Return the ``(parameters, options)`` pair for a call."""
        if self.positional:
            params, options = self._bind_positional(args)
        else:
            params = dict(args[0] or {}) if args else {}
            options = dict(args[1] or {}) if len(args) > 1 else {}
        params.update(kwargs)
        self._encode_body(params, options)
        return params, options

    def _bind_positional(
        self, args: Sequence[Any]
    ) -> Tuple[Dict[str, Any], Dict[str, Any]]:
        count = len(self.arg_names)
        params: Dict[str, Any] = {}
        options: Dict[str, Any] = {}
        if len(args) > count and isinstance(args[count], Mapping):
            options = dict(args[count])

        for index, name in enumerate(self.arg_names):
            if not name or index >= len(args):
                continue
            if not self.swagger20 and index == count - 1 and name == REQUEST_BODY:
                continue
            params[name] = args[index]

        if not self.swagger20 and self.operation.request_body and len(args) >= count:
            options[REQUEST_BODY] = args[count - 1]
        return params, options

    def _encode_body(self, params: Dict[str, Any], options: Dict[str, Any]) -> None:
        if self.swagger20:
            body = self.operation.body_parameter
            if body is not None and params.get(body.name) is not None:
                params[body.name] = encode_body(
                    params[body.name], self.operation.request_content_types(), options
                )
        elif options.get(REQUEST_BODY) is not None:
            options[REQUEST_BODY] = encode_body(
                options[REQUEST_BODY], self.operation.request_content_types(), options
            )


def encode_body(value: Any, content_types: List[str], options: Mapping[str, Any]) -> Any:
    """Serialize a body value to JSON text when JSON is the content type.

    Strings are encoded too, so ``"abc"`` is sent as ``"\\"abc\\""``; pass
    ``bytes`` to send an already-serialized payload untouched.
    """
    if isinstance(value, bytes):
        return value
    if (
        options.get("requestContentType") == JSON_CONTENT_TYPE
        or not content_types
        or JSON_CONTENT_TYPE in content_types
    ):
        return json.dumps(value)
    return value
