import pytest
from pydantic import ValidationError

from openapi_connector.config import CacheSettings, ConnectorSettings
from openapi_connector.connector import OpenApiConnector


def test_defaults():
    settings = ConnectorSettings()

    assert settings.spec is None
    assert settings.validate_spec is False
    assert settings.positional is False
    assert settings.transform_response is False
    assert settings.cache is None
    assert settings.spec_source() is None


def test_spec_takes_precedence_over_url():
    assert ConnectorSettings(url="http://a/spec.json").spec_source() == "http://a/spec.json"
    assert ConnectorSettings(url="http://a/spec.json", spec="b.yaml").spec_source() == "b.yaml"


def test_environment_prefix(monkeypatch):
    monkeypatch.setenv("OPENAPI_CONNECTOR_URL", "http://petstore.swagger.io/v2/swagger.json")
    monkeypatch.setenv("OPENAPI_CONNECTOR_VALIDATE_SPEC", "true")
    monkeypatch.setenv("OPENAPI_CONNECTOR_POSITIONAL", "bodyLast")

    settings = ConnectorSettings()

    assert settings.spec_source() == "http://petstore.swagger.io/v2/swagger.json"
    assert settings.validate_spec is True
    assert settings.positional == "bodyLast"


def test_positional_accepts_only_bool_or_body_last():
    assert ConnectorSettings(positional=True).positional is True

    with pytest.raises(ValidationError):
        ConnectorSettings(positional="bodyFirst")


@pytest.mark.parametrize("model", [None, ""])
def test_cache_model_is_required(model):
    with pytest.raises(ValidationError) as excinfo:
        CacheSettings(model=model, ttl=10)

    assert '"cache.model" setting is required' in str(excinfo.value)


@pytest.mark.parametrize("ttl", [0, -1])
def test_cache_ttl_must_be_positive(ttl):
    with pytest.raises(ValidationError):
        CacheSettings(model="ResponseCache", ttl=ttl)


def test_connector_overrides_are_applied_to_given_settings():
    base = ConnectorSettings(spec="a.json", validate_spec=True)

    connector = OpenApiConnector(base, spec="b.json")

    assert connector.settings.spec == "b.json"
    assert connector.settings.validate_spec is True
    assert base.spec == "a.json"


def test_invalid_cache_settings_fail_at_construction():
    with pytest.raises(ValidationError):
        OpenApiConnector(spec="a.json", cache={"model": "ResponseCache"})
