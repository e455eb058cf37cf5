"""Configuration for the OpenAPI connector."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Callable, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CacheSettings(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    # A cache handle exposing get/set, or the name of a model in the registry.
    model: Any
    ttl: float = Field(gt=0, description="Time-to-live of cached responses, in seconds")

    @field_validator("model")
    @classmethod
    def _require_model(cls, value: Any) -> Any:
        if value is None or value == "":
            raise ValueError('"cache.model" setting is required')
        return value


class ConnectorSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="OPENAPI_CONNECTOR_",
        case_sensitive=False,
        arbitrary_types_allowed=True,
    )

    url: Optional[str] = Field(default=None)
    spec: Any = Field(default=None)
    validate_spec: bool = Field(default=False)
    force_openapi30: bool = Field(default=False)
    positional: Union[bool, Literal["bodyLast"]] = Field(default=False)
    transform_response: Union[bool, Callable[..., Any]] = Field(default=False)
    http_client_options: Dict[str, Any] = Field(default_factory=dict)
    authorizations: Dict[str, Any] = Field(default_factory=dict)
    cache: Optional[CacheSettings] = Field(default=None)
    map_to_methods: Optional[Callable[..., Any]] = Field(default=None)

    client_version: str = Field(default="0.1.0")
    log_level: str = Field(default="INFO")
    database_url: str = Field(default="")

    def spec_source(self) -> Any:
        if self.spec is not None:
            return self.spec
        return self.url


@lru_cache(maxsize=1)
def get_settings() -> ConnectorSettings:
    return ConnectorSettings()
