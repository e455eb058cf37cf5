"""OpenAPI operation indexer."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Tuple

from .errors import OperationNotFoundError
from .models import SWAGGER_V2, Operation, Parameter, spec_dialect
from .spec_resolver import HTTP_METHODS


logger = logging.getLogger(__name__)

DEFAULT_TAG = "default"

_NON_WORD = re.compile(r"[^\w]")


def operation_id(operation: Dict[str, Any], path: str, method: str) -> str:
    declared = operation.get("operationId")
    if isinstance(declared, str) and re.sub(r"\s", "", declared):
        return _NON_WORD.sub("_", declared)
    return f"{method.lower()}{_NON_WORD.sub('_', path)}"


def iter_operations(spec: Dict[str, Any]) -> List[Operation]:
    operations: List[Operation] = []
    dialect = spec_dialect(spec)
    paths = spec.get("paths") or {}

    for path, path_item in paths.items():
        if not isinstance(path_item, dict):
            continue
        shared_parameters = path_item.get("parameters") or []
        for method in HTTP_METHODS:
            raw = path_item.get(method)
            if not isinstance(raw, dict):
                continue
            operations.append(
                _build_operation(spec, dialect, path, method, raw, shared_parameters)
            )

    return operations


def index_operations(spec: Dict[str, Any]) -> Dict[str, Dict[str, Operation]]:
    """Group operations by tag, keyed by their computed operation id."""
    tagged: Dict[str, Dict[str, Operation]] = {}
    for operation in iter_operations(spec):
        for tag in operation.tags or (DEFAULT_TAG,):
            operations_for_tag = tagged.setdefault(tag, {})
            if operation.operation_id in operations_for_tag:
                logger.warning(
                    "Duplicate operation id %s under tag %s; keeping the first one",
                    operation.operation_id,
                    tag,
                )
                continue
            operations_for_tag[operation.operation_id] = operation
    return tagged


def get_operation_spec(spec: Dict[str, Any], name: str) -> Operation:
    for operation in iter_operations(spec):
        if operation.operation_id == name:
            return operation
    raise OperationNotFoundError(name)


def _build_operation(
    spec: Dict[str, Any],
    dialect: str,
    path: str,
    method: str,
    raw: Dict[str, Any],
    shared_parameters: List[Dict[str, Any]],
) -> Operation:
    op_id = operation_id(raw, path, method)
    op_spec = dict(raw)
    if op_spec.get("operationId") is None:
        op_spec["operationId"] = op_id

    tags = tuple(tag for tag in (raw.get("tags") or []) if isinstance(tag, str))
    consumes: Tuple[str, ...] = ()
    produces: Tuple[str, ...] = ()
    if dialect == SWAGGER_V2:
        consumes = tuple(raw.get("consumes", spec.get("consumes")) or ())
        produces = tuple(raw.get("produces", spec.get("produces")) or ())

    return Operation(
        operation_id=op_id,
        method=method,
        path=path,
        dialect=dialect,
        spec=op_spec,
        parameters=_merge_parameters(shared_parameters, raw.get("parameters") or []),
        tags=tags,
        consumes=consumes,
        produces=produces,
        request_body=raw.get("requestBody"),
        security=raw.get("security", spec.get("security")),
    )


def _merge_parameters(
    shared: List[Dict[str, Any]], own: List[Dict[str, Any]]
) -> Tuple[Parameter, ...]:
    merged: Dict[Tuple[str, str], Parameter] = {}
    for raw in [*shared, *own]:
        if not isinstance(raw, dict) or not raw.get("name"):
            continue
        parameter = Parameter.from_spec(raw)
        key = (parameter.name, parameter.location)
        # An operation-level parameter overrides the path-level one in place.
        merged[key] = parameter
    return tuple(merged.values())
