"""Exceptions raised by the OpenAPI connector."""

from __future__ import annotations

from typing import Any, List, Optional


class ConnectorError(Exception):
    pass


class SpecResolutionError(ConnectorError):
    """The specification could not be fetched, parsed or dereferenced."""


class UnsupportedFormatError(SpecResolutionError):
    pass


class InvalidSpecTypeError(SpecResolutionError):
    pass


class SpecValidationError(ConnectorError):
    def __init__(self, message: str, errors: Optional[List[str]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class NoSpecProvidedError(ConnectorError):
    pass


class OperationNotFoundError(ConnectorError):
    def __init__(self, operation_id: str) -> None:
        super().__init__(f"Operation not found: {operation_id}")
        self.operation_id = operation_id


class ObserverError(ConnectorError):
    """A "before execute" or "after execute" observer failed."""

    def __init__(self, event: str, message: str) -> None:
        super().__init__(f"{event} observer failed: {message}")
        self.event = event


class CacheError(ConnectorError):
    pass


class TransportError(ConnectorError):
    pass


class HttpError(ConnectorError):
    """Raised by the default response transform for status codes >= 400."""

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.details = details

    @property
    def status(self) -> Optional[int]:
        return getattr(self.details, "status", None)
