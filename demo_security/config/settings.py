"""
Configuration management for the resource server using Pydantic Settings.
A single cached instance is shared across the application.
"""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses Pydantic Settings for validation and type safety.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default="Demo Security API", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Root logging level")

    # Server settings
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Azure AD settings
    tenant_id: str = Field(
        ...,
        description="Azure AD Tenant ID (GUID or domain name like contoso.onmicrosoft.com)",
    )
    client_id: str = Field(
        ...,
        description="Application (client) ID of the API app registration",
    )
    audience: Optional[str] = Field(
        default=None,
        description="Accepted audience (aud claim). If not set, client_id and api://client_id are accepted",
    )
    token_version: str = Field(
        default="v2.0",
        description="Azure AD access token version (v1.0 or v2.0)",
    )

    # Authority, issuer and key set endpoints
    authority: Optional[str] = Field(
        default=None,
        description="Authority URL. If not provided, will be constructed from tenant_id",
    )
    issuer_uri: Optional[str] = Field(
        default=None,
        description="Expected issuer (iss claim). If not provided, derived from token_version",
    )
    jwk_set_uri: Optional[str] = Field(
        default=None,
        description="JWKS endpoint. If set, OpenID discovery is skipped",
    )

    # JWT decoding
    jwks_cache_ttl: int = Field(
        default=86400,  # 24 hours
        description="Time to live for JWKS cache in seconds",
    )
    jwks_min_refresh_interval: int = Field(
        default=300,
        description="Minimum seconds between forced JWKS refreshes for unknown key IDs",
    )
    clock_skew_seconds: int = Field(
        default=60,
        description="Allowed clock skew when checking exp, nbf and iat",
    )
    http_timeout: float = Field(default=30.0, description="Outbound HTTP timeout in seconds")

    # Authority mapping
    scope_authority_prefix: str = Field(
        default="SCOPE_",
        description="Prefix added to each scope from the scp/scope claim",
    )
    role_authority_prefix: str = Field(
        default="APPROLE_",
        description="Prefix added to each app role from the roles claim",
    )

    # Route authorities
    greeting_authorities: str = Field(
        default="SCOPE_Greeting.Read APPROLE_Greeting.Read",
        description="Space-separated authorities, any of which grants access to /greeting",
    )
    admin_authority: str = Field(
        default="APPROLE_Admin",
        description="Authority required for /admin/greeting",
    )

    greeting_template: str = Field(
        default="Hello, {name}!",
        description="Template for greeting content; {name} is replaced by the caller's name",
    )

    # CORS settings
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:8000",
        description="Comma-separated list of allowed CORS origins",
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @field_validator("tenant_id")
    @classmethod
    def validate_tenant_id(cls, v: str) -> str:
        """Validate tenant ID is not empty."""
        if not v or v.strip() == "":
            raise ValueError("tenant_id must be provided")
        return v.strip()

    @field_validator("client_id")
    @classmethod
    def validate_client_id(cls, v: str) -> str:
        """Validate client ID is not empty."""
        if not v or v.strip() == "":
            raise ValueError("client_id must be provided")
        return v.strip()

    @field_validator("token_version")
    @classmethod
    def validate_token_version(cls, v: str) -> str:
        v = v.strip()
        if v not in ("v1.0", "v2.0"):
            raise ValueError("token_version must be 'v1.0' or 'v2.0'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("greeting_template")
    @classmethod
    def validate_greeting_template(cls, v: str) -> str:
        if "{name}" not in v:
            raise ValueError("greeting_template must contain a {name} placeholder")
        return v

    @property
    def oidc_authority(self) -> str:
        """Get the OpenID Connect authority URL."""
        if self.authority:
            return self.authority.rstrip("/")
        # v1.0 tokens don't use version in the authority URL
        if self.token_version == "v1.0":
            return f"https://login.microsoftonline.com/{self.tenant_id}"
        return f"https://login.microsoftonline.com/{self.tenant_id}/{self.token_version}"

    @property
    def openid_config_url(self) -> str:
        """Get the OpenID configuration document URL."""
        return f"{self.oidc_authority}/.well-known/openid-configuration"

    @property
    def expected_issuer(self) -> str:
        """
        Get the expected issuer for token validation.
        For v1.0 tokens: https://sts.windows.net/{tenant_id}/
        For v2.0 tokens: https://login.microsoftonline.com/{tenant_id}/v2.0
        """
        if self.issuer_uri:
            return self.issuer_uri
        if self.token_version == "v1.0":
            return f"https://sts.windows.net/{self.tenant_id}/"
        return f"https://login.microsoftonline.com/{self.tenant_id}/{self.token_version}"

    @property
    def accepted_audiences(self) -> List[str]:
        """
        Audiences a token may be issued for.

        Azure AD puts the bare client ID in v2.0 tokens and the Application ID URI
        (api://{client_id}) in v1.0 tokens, so both are accepted unless an explicit
        audience is configured.
        """
        if self.audience:
            return [self.audience]
        return [self.client_id, f"api://{self.client_id}"]

    @property
    def greeting_authorities_list(self) -> List[str]:
        return self.greeting_authorities.split()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings instance (cached with lru_cache).

    Returns:
        Settings: The application settings instance
    """
    return Settings()
