"""Shared fixtures: signing keys, token factory, validator and API client."""

import os
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

TENANT_ID = "11111111-2222-3333-4444-555555555555"
CLIENT_ID = "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee"
CALLER_APP_ID = "99999999-8888-7777-6666-555555555555"
KID = "test-kid-1"
ISSUER_V2 = f"https://login.microsoftonline.com/{TENANT_ID}/v2.0"
OPENID_CONFIG_URL = f"{ISSUER_V2}/.well-known/openid-configuration"
JWKS_URL = f"https://login.microsoftonline.com/{TENANT_ID}/discovery/v2.0/keys"

# demo_security.main reads settings at import time
os.environ["TENANT_ID"] = TENANT_ID
os.environ["CLIENT_ID"] = CLIENT_ID

from demo_security.auth import get_jwt_validator  # noqa: E402
from demo_security.auth.jwt_validator import JWTValidator  # noqa: E402
from demo_security.config import Settings  # noqa: E402


def _generate_private_pem() -> bytes:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def _public_jwk(private_pem: bytes, kid: str) -> Dict[str, Any]:
    public_pem = jwk.construct(private_pem, algorithm="RS256").public_key().to_pem()
    key = jwk.construct(public_pem, algorithm="RS256").to_dict()
    key["kid"] = kid
    key["use"] = "sig"
    # Azure AD key sets usually omit 'alg'
    key.pop("alg", None)
    return key


def standard_claims(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """A valid v2.0 delegated token for the greeting API."""
    now = int(time.time())
    claims = {
        "aud": CLIENT_ID,
        "iss": ISSUER_V2,
        "iat": now - 60,
        "nbf": now - 60,
        "exp": now + 3600,
        "sub": "subject-123",
        "oid": "00000000-0000-0000-0000-00000000000a",
        "tid": TENANT_ID,
        "azp": CALLER_APP_ID,
        "name": "Test User",
        "preferred_username": "testuser@contoso.com",
        "scp": "Greeting.Read",
        "ver": "2.0",
    }
    if overrides:
        claims.update(overrides)
    return claims


def app_only_claims(roles, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """A client-credentials token: roles but no scp and no user claims."""
    claims = standard_claims({"roles": roles, "sub": CALLER_APP_ID, "oid": CALLER_APP_ID})
    for claim in ("scp", "name", "preferred_username"):
        claims.pop(claim)
    if overrides:
        claims.update(overrides)
    return claims


@pytest.fixture(scope="session")
def private_pem() -> bytes:
    return _generate_private_pem()


@pytest.fixture(scope="session")
def other_private_pem() -> bytes:
    return _generate_private_pem()


@pytest.fixture(scope="session")
def jwks(private_pem) -> Dict[str, Any]:
    return {"keys": [_public_jwk(private_pem, KID)]}


@pytest.fixture
def make_token(private_pem):
    def _make(claims: Dict[str, Any], kid: Optional[str] = KID, key: Optional[bytes] = None) -> str:
        headers = {"kid": kid} if kid else {}
        return jwt.encode(claims, key or private_pem, algorithm="RS256", headers=headers)

    return _make


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, tenant_id=TENANT_ID, client_id=CLIENT_ID)


@pytest.fixture
def validator(settings, jwks) -> JWTValidator:
    """Validator with the test key set already cached."""
    validator = JWTValidator(settings)
    validator._jwks_cache = jwks
    validator._jwks_cache_time = datetime.now(timezone.utc)
    return validator


@pytest.fixture
def client(validator):
    from fastapi.testclient import TestClient

    from demo_security.main import app

    app.dependency_overrides[get_jwt_validator] = lambda: validator
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
