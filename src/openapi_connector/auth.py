"""Apply security scheme credentials to outgoing requests."""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, Mapping, Optional, Tuple

from .models import Operation


logger = logging.getLogger(__name__)


def security_schemes(spec: Mapping[str, Any]) -> Dict[str, Any]:
    if spec.get("swagger") == "2.0":
        return dict(spec.get("securityDefinitions") or {})
    return dict((spec.get("components") or {}).get("securitySchemes") or {})


class AuthorizationInjector:
    def __init__(self, spec: Mapping[str, Any], authorizations: Optional[Mapping[str, Any]]) -> None:
        self.schemes = security_schemes(spec)
        self.authorizations = dict(authorizations or {})

    def build_auth(
        self, operation: Operation
    ) -> Tuple[Dict[str, str], Dict[str, str], Dict[str, str]]:
        """Return the headers, query parameters and cookies to add."""
        headers: Dict[str, str] = {}
        query: Dict[str, str] = {}
        cookies: Dict[str, str] = {}

        if not self.authorizations:
            return headers, query, cookies

        for requirement in operation.security or []:
            for name in requirement or {}:
                scheme = self.schemes.get(name)
                credentials = self.authorizations.get(name)
                if not isinstance(scheme, dict) or credentials is None:
                    continue
                self._apply(operation, name, scheme, credentials, headers, query, cookies)

        return headers, query, cookies

    def _apply(
        self,
        operation: Operation,
        name: str,
        scheme: Dict[str, Any],
        credentials: Any,
        headers: Dict[str, str],
        query: Dict[str, str],
        cookies: Dict[str, str],
    ) -> None:
        scheme_type = scheme.get("type")

        if scheme_type == "apiKey":
            value = _credential_value(credentials)
            if value is None:
                return
            key_name = scheme.get("name", name)
            location = scheme.get("in", "header")
            if location == "query":
                query[key_name] = value
            elif location == "cookie":
                cookies[key_name] = value
            else:
                headers[key_name] = value
        elif scheme_type == "basic" or (
            scheme_type == "http" and str(scheme.get("scheme", "")).lower() == "basic"
        ):
            headers["Authorization"] = _basic_auth(credentials)
        elif scheme_type == "http" and str(scheme.get("scheme", "")).lower() == "bearer":
            token = _credential_value(credentials)
            if token:
                headers["Authorization"] = f"Bearer {token}"
        elif scheme_type in ("oauth2", "openIdConnect"):
            token = (credentials or {}).get("token") if isinstance(credentials, dict) else None
            if token and token.get("access_token"):
                token_type = token.get("token_type") or "Bearer"
                if token_type.lower() == "bearer":
                    token_type = "Bearer"
                headers["Authorization"] = f"{token_type} {token['access_token']}"
        else:
            logger.warning(
                "Unsupported security scheme %s (%s) for operation %s",
                name,
                scheme_type,
                operation.operation_id,
            )


def _credential_value(credentials: Any) -> Optional[str]:
    if isinstance(credentials, dict):
        credentials = credentials.get("value")
    if credentials is None:
        return None
    return str(credentials)


def _basic_auth(credentials: Any) -> str:
    if isinstance(credentials, dict) and "header" in credentials and "username" not in credentials:
        return str(credentials["header"])
    username = (credentials or {}).get("username", "")
    password = (credentials or {}).get("password", "")
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"
