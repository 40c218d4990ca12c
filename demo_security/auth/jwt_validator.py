"""
JWT access token validation for Azure AD (Entra ID) issued tokens.

The validator discovers the tenant's signing keys through OpenID Connect
metadata, caches them, and checks signature, issuer, audience and lifetime
of incoming bearer tokens.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
from jose import ExpiredSignatureError, JWTError, jwk, jwt

from demo_security.config import Settings, get_settings

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ["RS256"]


class TokenValidationError(ValueError):
    """
    Raised when a bearer token cannot be accepted.

    ``error`` is the OAuth 2.0 error code reported to the client in the
    WWW-Authenticate header (RFC 6750).
    """

    def __init__(self, description: str, error: str = "invalid_token") -> None:
        super().__init__(description)
        self.error = error
        self.description = description

    @property
    def is_provider_failure(self) -> bool:
        return self.error == "temporarily_unavailable"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JWTValidator:
    """
    JWT validator for Azure AD access tokens.

    Handles fetching JWKS (JSON Web Key Set), caching signing keys,
    and validating JWT tokens according to OpenID Connect standards.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._jwks_cache: Dict[str, Any] = {}
        self._jwks_cache_time: Optional[datetime] = None
        self._last_forced_refresh: Optional[datetime] = None
        self._openid_config: Optional[Dict[str, Any]] = None
        self._http_client = http_client
        self._lock = asyncio.Lock()
        logger.info("JWTValidator initialized")

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.http_timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client when shutting down."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
            logger.info("JWTValidator HTTP client closed")

    async def _get_json(self, url: str, what: str) -> Dict[str, Any]:
        try:
            logger.info(f"Fetching {what} from {url}")
            response = await self.http_client.get(url)
            response.raise_for_status()
            document = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to fetch {what}: {e}")
            raise TokenValidationError(
                f"Unable to fetch {what}: {e}", error="temporarily_unavailable"
            ) from e
        if not isinstance(document, dict):
            raise TokenValidationError(
                f"Unexpected {what} document", error="temporarily_unavailable"
            )
        return document

    async def _fetch_openid_config(self) -> Dict[str, Any]:
        """
        Fetch OpenID Connect configuration document.

        Returns:
            Dict containing OpenID configuration metadata
        """
        if self._openid_config is not None:
            return self._openid_config

        config = await self._get_json(self.settings.openid_config_url, "OpenID configuration")

        issuer = config.get("issuer")
        if issuer and issuer != self.settings.expected_issuer:
            # Tenants configured by domain name advertise a GUID based issuer
            logger.warning(
                f"OpenID configuration issuer {issuer} differs from "
                f"expected issuer {self.settings.expected_issuer}"
            )

        self._openid_config = config
        logger.info("OpenID configuration fetched successfully")
        return config

    async def _jwks_uri(self) -> str:
        if self.settings.jwk_set_uri:
            return self.settings.jwk_set_uri
        openid_config = await self._fetch_openid_config()
        jwks_uri = openid_config.get("jwks_uri")
        if not jwks_uri:
            raise TokenValidationError(
                "jwks_uri not found in OpenID configuration", error="temporarily_unavailable"
            )
        return jwks_uri

    def _cache_is_fresh(self) -> bool:
        if not self._jwks_cache or self._jwks_cache_time is None:
            return False
        cache_age = _utcnow() - self._jwks_cache_time
        return cache_age < timedelta(seconds=self.settings.jwks_cache_ttl)

    async def _fetch_jwks(self, force: bool = False) -> Dict[str, Any]:
        """
        Fetch JSON Web Key Set (JWKS) from Azure AD.
        Cached for jwks_cache_ttl seconds unless a refresh is forced.

        Returns:
            Dict containing JWKS keys
        """
        async with self._lock:
            if not force and self._cache_is_fresh():
                logger.debug("Using cached JWKS")
                return self._jwks_cache

            jwks_uri = await self._jwks_uri()
            jwks = await self._get_json(jwks_uri, "JWKS")
            if not isinstance(jwks.get("keys"), list):
                raise TokenValidationError(
                    "JWKS document has no 'keys' array", error="temporarily_unavailable"
                )

            self._jwks_cache = jwks
            self._jwks_cache_time = _utcnow()
            logger.info(f"JWKS fetched and cached successfully ({len(jwks['keys'])} keys)")
            return self._jwks_cache

    def _can_force_refresh(self) -> bool:
        if self._last_forced_refresh is None:
            return True
        elapsed = _utcnow() - self._last_forced_refresh
        return elapsed >= timedelta(seconds=self.settings.jwks_min_refresh_interval)

    @staticmethod
    def _find_key(jwks: Dict[str, Any], kid: str) -> Optional[Dict[str, Any]]:
        for key in jwks.get("keys", []):
            if key.get("kid") == kid:
                return key
        return None

    def get_unverified_header(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.get_unverified_header(token)
        except JWTError as e:
            raise TokenValidationError(f"Invalid token format: {e}") from e

    async def _get_signing_key(self, token: str) -> Dict[str, Any]:
        """
        Get the signing key for a token based on its 'kid' header.

        Signing keys roll over; a kid missing from the cached set triggers
        one rate-limited refresh before the token is rejected.

        Args:
            token: The JWT token string

        Returns:
            Dict containing the signing key
        """
        unverified_header = self.get_unverified_header(token)

        alg = unverified_header.get("alg")
        if alg not in SUPPORTED_ALGORITHMS:
            raise TokenValidationError(f"Unsupported signing algorithm: {alg}")

        kid = unverified_header.get("kid")
        if not kid:
            raise TokenValidationError("Token header missing 'kid' (key ID)")

        cached_at = self._jwks_cache_time
        key = self._find_key(await self._fetch_jwks(), kid)
        # A key set fetched by this call is already current
        refetched = self._jwks_cache_time != cached_at
        if key is None and not refetched and self._can_force_refresh():
            logger.info(f"Signing key {kid} not cached, refreshing JWKS")
            self._last_forced_refresh = _utcnow()
            key = self._find_key(await self._fetch_jwks(force=True), kid)

        if key is None:
            raise TokenValidationError(f"Unable to find signing key with kid: {kid}")

        logger.debug(f"Found matching signing key for kid: {kid}")
        return dict(key)

    async def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate a bearer token issued by Azure AD.

        Performs:
        - Signature verification using JWKS
        - Issuer validation
        - Audience validation
        - Expiration, not-before and issued-at validation (with clock skew)
        - Token version and tenant checks

        Args:
            token: The JWT token string (Bearer token without 'Bearer ' prefix)

        Returns:
            Dict containing the validated token claims

        Raises:
            TokenValidationError: If token validation fails
        """
        signing_key = await self._get_signing_key(token)

        # Azure AD keys don't always advertise their algorithm
        signing_key.setdefault("alg", "RS256")

        try:
            public_key = jwk.construct(signing_key).to_pem()
        except Exception as e:
            logger.error(f"Failed to construct public key from JWK: {e}")
            raise TokenValidationError(f"Unable to construct public key: {e}") from e

        try:
            payload = jwt.decode(
                token,
                public_key,
                algorithms=SUPPORTED_ALGORITHMS,
                issuer=self.settings.expected_issuer,
                options={
                    "verify_signature": True,
                    # Audience is checked against several accepted values below
                    "verify_aud": False,
                    "verify_iss": True,
                    "verify_exp": True,
                    "verify_nbf": True,
                    "verify_iat": True,
                    "leeway": self.settings.clock_skew_seconds,
                },
            )
        except ExpiredSignatureError as e:
            logger.warning(f"JWT validation failed: {e}")
            raise TokenValidationError("Token has expired") from e
        except JWTError as e:
            logger.warning(f"JWT validation failed: {e}")
            raise TokenValidationError(f"Token validation failed: {e}") from e

        self._validate_audience(payload)
        self._validate_claims(payload)

        logger.info(f"Token validated successfully for subject: {payload.get('sub', 'unknown')}")
        return payload

    def _validate_audience(self, payload: Dict[str, Any]) -> None:
        aud = payload.get("aud")
        if isinstance(aud, str):
            audiences: List[str] = [aud]
        elif isinstance(aud, list):
            audiences = [a for a in aud if isinstance(a, str)]
        else:
            raise TokenValidationError("Token is missing the 'aud' claim")

        accepted = self.settings.accepted_audiences
        if not any(a in accepted for a in audiences):
            raise TokenValidationError(
                f"Invalid audience {aud}. Expected one of {accepted}"
            )

    def _validate_claims(self, payload: Dict[str, Any]) -> None:
        """
        Perform Azure AD specific claims validation.

        Args:
            payload: Decoded token payload

        Raises:
            TokenValidationError: If custom validation fails
        """
        # Both "v1.0" and "1.0" should match
        token_ver = payload.get("ver")
        expected_ver = self.settings.token_version.lstrip("v")
        if token_ver and str(token_ver) != expected_ver:
            raise TokenValidationError(
                f"Token version mismatch. Expected {expected_ver}, got {token_ver}"
            )

        # Only comparable when tenant_id is a GUID, not a domain name
        tid = payload.get("tid")
        tenant_id = self.settings.tenant_id
        if tid and "-" in tenant_id and "." not in tenant_id and tid != tenant_id:
            raise TokenValidationError(
                f"Token tenant ID mismatch. Expected {tenant_id}, got {tid}"
            )

        logger.debug("Custom claims validation passed")


_validator_instance: Optional[JWTValidator] = None


def get_jwt_validator() -> JWTValidator:
    """
    Get the shared JWT validator instance.

    Returns:
        JWTValidator: The process-wide validator
    """
    global _validator_instance
    if _validator_instance is None:
        _validator_instance = JWTValidator()
    return _validator_instance
