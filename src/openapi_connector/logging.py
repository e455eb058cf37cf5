"""Logging setup and redaction of credentials in logged request data."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit


REDACTED = "***REDACTED***"

_SENSITIVE_KEYS = re.compile(
    r"(token|secret|api[_-]?key|password|authorization|cookie)", re.IGNORECASE
)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # httpx logs every request URL at INFO, query-string credentials included.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def is_sensitive(key: Any) -> bool:
    return bool(_SENSITIVE_KEYS.search(str(key)))


def redact_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy ``payload`` with credential-like values masked, nested mappings included."""
    return {key: _redact_value(key, value) for key, value in payload.items()}


def _redact_value(key: Any, value: Any) -> Any:
    if is_sensitive(key):
        return REDACTED
    if isinstance(value, Mapping):
        return redact_payload(value)
    return value


def redact_headers(headers: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: REDACTED if is_sensitive(key) else value for key, value in headers.items()}


def redact_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (key, REDACTED if is_sensitive(key) else value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, quote_via=quote, safe="*")))
