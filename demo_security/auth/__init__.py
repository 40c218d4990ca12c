"""Authentication package initialization."""

from .authorities import AuthoritiesConverter, get_authorities_converter
from .dependencies import (
    get_bearer_token,
    get_current_principal,
    get_token_payload,
    require_any_authority,
    require_authority,
    require_role,
    require_scope,
)
from .jwt_validator import JWTValidator, TokenValidationError, get_jwt_validator

__all__ = [
    "AuthoritiesConverter",
    "JWTValidator",
    "TokenValidationError",
    "get_authorities_converter",
    "get_bearer_token",
    "get_current_principal",
    "get_jwt_validator",
    "get_token_payload",
    "require_any_authority",
    "require_authority",
    "require_role",
    "require_scope",
]
