"""Method tables exposing generated operations by name."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .invocation import OperationMethod
from .naming import map_to_methods, normalize_methods

logger = logging.getLogger(__name__)

NamingPolicy = Callable[..., Any]


class MethodTable(Mapping):
    """Read-only mapping of method names, also reachable as attributes."""

    def __init__(self, methods: Optional[Dict[str, OperationMethod]] = None) -> None:
        object.__setattr__(self, "_methods", dict(methods or {}))

    def __getitem__(self, name: str) -> OperationMethod:
        return self._methods[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._methods)

    def __len__(self) -> int:
        return len(self._methods)

    def __getattr__(self, name: str) -> OperationMethod:
        try:
            return self._methods[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("MethodTable is read-only")

    def __dir__(self) -> List[str]:
        return sorted(set(super().__dir__()) | set(self._methods))

    def __repr__(self) -> str:
        return f"MethodTable({sorted(self._methods)})"


def build_method_tables(
    operations_by_tag: Dict[str, Dict[str, OperationMethod]],
    policy: Optional[NamingPolicy] = None,
) -> Tuple[MethodTable, Dict[str, MethodTable]]:
    """Return the flat method table and the per-tag tables.

    The first operation registered under a name keeps it.
    """
    policy = policy or map_to_methods
    methods: Dict[str, OperationMethod] = {}
    apis: Dict[str, MethodTable] = {}
    existing_names: List[str] = []

    for tag, operations in operations_by_tag.items():
        tag_methods: Dict[str, OperationMethod] = {}
        for operation_id, method in operations.items():
            operation_spec = method.operation.spec

            names = normalize_methods(policy(tag, operation_spec, existing_names))
            for name in names:
                if name in methods:
                    logger.debug(
                        "Method name %s already taken; skipping for %s", name, operation_id
                    )
                    continue
                methods[name] = method

            for name in normalize_methods(policy(None, operation_spec)):
                tag_methods.setdefault(name, method)

        apis[tag] = MethodTable(tag_methods)

    return MethodTable(methods), apis
