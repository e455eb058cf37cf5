"""Derive method names for OpenAPI operations.

Each operation is exposed under several names:
  - x-operation-name            -> as is, plus its camelCase form
  - operationId                 -> as is, plus its camelCase form
  - {tag}_{x-operation-name}    -> as is, plus camelCase of the combined name
  - {tag}_{operationId}         -> as is, plus camelCase of the operationId

Examples (tag "pet", operationId "get_pet_by_id"):
  get_pet_by_id, getPetById, pet_get_pet_by_id
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

_WORDS = re.compile(
    r"[A-Z]?[a-z]+(?=[^A-Za-z0-9]|[A-Z]|$)"
    r"|[A-Z]+(?=[^A-Za-z0-9]|[A-Z][a-z]|$)"
    r"|[A-Z]?[a-z]+"
    r"|[A-Z]+"
    r"|\d+"
)


def split_words(name: str) -> List[str]:
    """Split on separators, case changes and digit runs."""
    return _WORDS.findall(name)


def camel_case(name: Optional[str]) -> str:
    """Convert ``name`` to camelCase, e.g. ``get_pet-by id`` -> ``getPetById``."""
    if not name:
        return ""
    words = split_words(str(name))
    if not words:
        return ""
    head, *rest = words
    return head.lower() + "".join(word.capitalize() for word in rest)


def map_to_methods(
    tag: Optional[str],
    operation_spec: Dict[str, Any],
    existing_names: Optional[List[str]] = None,
) -> List[str]:
    """Return the method names for an operation.

    ``tag`` is None when computing names scoped to a tag. When
    ``existing_names`` is given, names already taken are dropped and the
    surviving names are appended to it.
    """
    methods: List[str] = []

    def add_methods(*names: Optional[str]) -> None:
        for name in names:
            if not name or name in methods:
                break
            methods.append(name)

    op_name = operation_spec.get("x-operation-name")
    op_id = operation_spec.get("operationId")

    add_methods(op_name, camel_case(op_name))
    add_methods(op_id, camel_case(op_id))

    if tag and op_name:
        name = f"{tag}_{op_name}"
        add_methods(name, camel_case(name))
    if tag and op_id:
        name = f"{tag}_{op_id}"
        add_methods(name, camel_case(op_id))

    if existing_names is None:
        return methods

    kept: List[str] = []
    for method in methods:
        if method in existing_names:
            continue
        existing_names.append(method)
        kept.append(method)
    return kept


def normalize_methods(method_names: Any) -> List[str]:
    if isinstance(method_names, str):
        return [method_names]
    if isinstance(method_names, (list, tuple)):
        return list(method_names)
    return []
