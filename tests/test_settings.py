"""Tests for application settings."""

import pytest
from pydantic import ValidationError

from demo_security.config import Settings

from .conftest import CLIENT_ID, TENANT_ID


def make_settings(**overrides):
    values = {"tenant_id": TENANT_ID, "client_id": CLIENT_ID}
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestSettings:
    def test_v2_defaults(self):
        settings = make_settings()

        assert settings.expected_issuer == f"https://login.microsoftonline.com/{TENANT_ID}/v2.0"
        assert settings.openid_config_url == (
            f"https://login.microsoftonline.com/{TENANT_ID}/v2.0/.well-known/openid-configuration"
        )
        assert settings.accepted_audiences == [CLIENT_ID, f"api://{CLIENT_ID}"]
        assert settings.greeting_authorities_list == [
            "SCOPE_Greeting.Read",
            "APPROLE_Greeting.Read",
        ]

    def test_v1_endpoints(self):
        settings = make_settings(token_version="v1.0")

        assert settings.expected_issuer == f"https://sts.windows.net/{TENANT_ID}/"
        assert settings.oidc_authority == f"https://login.microsoftonline.com/{TENANT_ID}"

    def test_overrides(self):
        settings = make_settings(
            authority="https://login.example.com/tenant/",
            issuer_uri="https://issuer.example.com",
            audience="api://greetings",
        )

        assert settings.openid_config_url == (
            "https://login.example.com/tenant/.well-known/openid-configuration"
        )
        assert settings.expected_issuer == "https://issuer.example.com"
        assert settings.accepted_audiences == ["api://greetings"]

    def test_strips_identifiers(self):
        settings = make_settings(tenant_id=f"  {TENANT_ID} ", client_id=f"{CLIENT_ID}\n")

        assert settings.tenant_id == TENANT_ID
        assert settings.client_id == CLIENT_ID

    @pytest.mark.parametrize(
        "overrides",
        [
            {"tenant_id": "  "},
            {"client_id": ""},
            {"token_version": "v3.0"},
            {"log_level": "chatty"},
            {"greeting_template": "Hello!"},
        ],
    )
    def test_rejects_invalid_values(self, overrides):
        with pytest.raises(ValidationError):
            make_settings(**overrides)

    def test_tenant_id_required(self, monkeypatch):
        monkeypatch.delenv("TENANT_ID", raising=False)

        with pytest.raises(ValidationError):
            Settings(_env_file=None, client_id=CLIENT_ID)

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("JWKS_CACHE_TTL", "60")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings(_env_file=None)

        assert settings.jwks_cache_ttl == 60
        assert settings.log_level == "DEBUG"
        assert settings.tenant_id == TENANT_ID

    def test_cors_origins_list(self):
        settings = make_settings(cors_origins="https://a.example.com, ,https://b.example.com")

        assert settings.cors_origins_list == ["https://a.example.com", "https://b.example.com"]
