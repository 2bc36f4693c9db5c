import pytest
from pydantic import ValidationError

from dispatch_engine.config import GatewayCredentials, Settings


def test_allowed_origins_accepts_comma_separated_string():
    s = Settings(allowed_origins="https://a.example, https://b.example")
    assert s.allowed_origins == ["https://a.example", "https://b.example"]


def test_allowed_origins_accepts_json_array():
    s = Settings(allowed_origins='["https://a.example"]')
    assert s.allowed_origins == ["https://a.example"]


def test_allowed_origins_empty():
    assert Settings(allowed_origins="").allowed_origins == []


def test_timeout_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(provider_timeout_seconds=0)


def test_credentials_are_trimmed():
    s = Settings(bulksms_token_id=" id ", bulksms_token_secret=" secret ", bulkgate_api_key=" key ")
    creds = s.credentials()
    assert creds.bulksms_token_id == "id"
    assert creds.bulksms_token_secret == "secret"
    assert creds.bulkgate_api_key == "key"


def test_bulkgate_bearer_token():
    creds = GatewayCredentials(bulkgate_api_key="abcdef")
    assert creds.bulkgate_uses_bearer
    assert creds.bulkgate_application() == ("abcdef", "abcdef")


def test_bulkgate_application_pair():
    creds = GatewayCredentials(bulkgate_api_key="12345:token:with:colons")
    assert not creds.bulkgate_uses_bearer
    assert creds.bulkgate_application() == ("12345", "token:with:colons")


def test_credentials_repr_hides_secrets():
    creds = GatewayCredentials(bulksms_token_id="id", bulksms_token_secret="very-secret", bulkgate_api_key="key")
    assert repr(creds) == "GatewayCredentials(bulksms=set, bulkgate=set)"
    assert "very-secret" not in repr(creds)


def test_gateway_override_is_normalized():
    assert Settings(gateway_override=" FORCE_BULKGATE ").gateway_override == "force_bulkgate"


def test_unknown_gateway_override_is_rejected():
    with pytest.raises(ValidationError):
        Settings(gateway_override="round_robin")


def test_fields_bind_to_upper_cased_environment_names(monkeypatch):
    monkeypatch.setenv("PROVIDER_TIMEOUT_SECONDS", "3")
    monkeypatch.setenv("BULKGATE_API_KEY", "env-key")

    s = Settings()

    assert s.provider_timeout_seconds == 3.0
    assert s.credentials().bulkgate_api_key == "env-key"
    assert all(f.json_schema_extra is None for f in Settings.model_fields.values())
