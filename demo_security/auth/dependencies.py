"""
Authentication and authorization dependencies for FastAPI routes.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from demo_security.auth.authorities import AuthoritiesConverter, get_authorities_converter
from demo_security.auth.jwt_validator import (
    JWTValidator,
    TokenValidationError,
    get_jwt_validator,
)
from demo_security.models.principal import AuthenticatedPrincipal

logger = logging.getLogger(__name__)

# HTTP Bearer token extractor
security = HTTPBearer(
    scheme_name="Bearer",
    description="JWT access token issued by Azure AD",
    auto_error=False,
)


def _challenge_text(value: str) -> str:
    # error_description allows printable ASCII except '"' and '\\' (RFC 6750 section 3)
    return "".join(c if " " <= c <= "~" and c not in '"\\' else "?" for c in value)


def _bearer_challenge(error: Optional[str] = None, description: Optional[str] = None) -> str:
    """Build an RFC 6750 WWW-Authenticate header value."""
    params = []
    if error:
        params.append(f'error="{error}"')
    if description:
        escaped = _challenge_text(description)
        params.append(f'error_description="{escaped}"')
    if not params:
        return "Bearer"
    return "Bearer " + ", ".join(params)


async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """
    Dependency to extract the raw bearer token from the Authorization header.

    Raises:
        HTTPException: 401 if no bearer token was sent
    """
    if not credentials or not credentials.credentials:
        logger.warning("No authorization credentials provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication credentials",
            headers={"WWW-Authenticate": _bearer_challenge()},
        )
    return credentials.credentials


async def get_token_payload(
    token: str = Depends(get_bearer_token),
    validator: JWTValidator = Depends(get_jwt_validator),
) -> Dict[str, Any]:
    """
    Dependency to validate the bearer token and return its claims.

    Args:
        token: Raw bearer token
        validator: Token validator

    Returns:
        Dict containing validated token claims

    Raises:
        HTTPException: 401 if the token is invalid, 503 if Azure AD is unreachable
    """
    try:
        return await validator.validate_token(token)

    except TokenValidationError as e:
        if e.is_provider_failure:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Authentication service unavailable",
            )
        logger.warning(f"Token validation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid authentication credentials: {e.description}",
            headers={"WWW-Authenticate": _bearer_challenge(e.error, e.description)},
        )


async def get_current_principal(
    payload: Dict[str, Any] = Depends(get_token_payload),
    converter: AuthoritiesConverter = Depends(get_authorities_converter),
) -> AuthenticatedPrincipal:
    """
    Dependency to build the authenticated principal from validated claims.

    Args:
        payload: Validated JWT token payload
        converter: Maps scopes and roles to authorities

    Returns:
        AuthenticatedPrincipal: Caller identity with granted authorities
    """
    principal = AuthenticatedPrincipal.from_token_payload(
        payload, authorities=converter.convert(payload)
    )
    logger.info(f"Principal authenticated: {principal.display_name}")
    return principal


def _forbidden(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=message,
        headers={"WWW-Authenticate": _bearer_challenge("insufficient_scope", message)},
    )


def require_authority(required_authority: str):
    """
    Dependency factory to require a specific authority.

    Args:
        required_authority: Prefixed authority (e.g., "SCOPE_Greeting.Read", "APPROLE_Admin")

    Returns:
        Dependency function that returns the principal when the authority is present

    Usage:
        @app.get("/admin/greeting")
        async def admin_greeting(
            principal: AuthenticatedPrincipal = Depends(require_authority("APPROLE_Admin"))
        ):
            ...
    """

    async def authority_checker(
        principal: AuthenticatedPrincipal = Depends(get_current_principal),
    ) -> AuthenticatedPrincipal:
        if not principal.has_authority(required_authority):
            logger.warning(
                f"Required authority '{required_authority}' not found. "
                f"Principal: {principal.display_name}, Authorities: {principal.authorities}"
            )
            raise _forbidden(f"Required authority '{required_authority}' not present")
        return principal

    return authority_checker


def require_any_authority(*required_authorities: str):
    """
    Dependency factory to require at least one of the specified authorities.

    Lets a route accept both delegated user tokens (SCOPE_*) and app-only
    tokens (APPROLE_*).
    """
    if not required_authorities:
        raise ValueError("At least one authority is required")

    async def authority_checker(
        principal: AuthenticatedPrincipal = Depends(get_current_principal),
    ) -> AuthenticatedPrincipal:
        if not principal.has_any_authority(*required_authorities):
            logger.warning(
                f"None of the required authorities {list(required_authorities)} found. "
                f"Principal: {principal.display_name}, Authorities: {principal.authorities}"
            )
            raise _forbidden(
                f"Required one of authorities: {', '.join(required_authorities)}"
            )
        return principal

    return authority_checker


def require_scope(scope: str):
    """Require a delegated scope, e.g. require_scope("Greeting.Read")."""
    return require_authority(get_authorities_converter().scope_authority(scope))


def require_role(role: str):
    """Require an app role, e.g. require_role("Admin")."""
    return require_authority(get_authorities_converter().role_authority(role))
