"""
Conversion of validated token claims into granted authorities.

Delegated scopes become SCOPE_<scope> and app roles become APPROLE_<role>,
so routes can be guarded uniformly whether the caller is a signed-in user
or a daemon application using client credentials.
"""

from typing import Any, Dict, List, Optional

from demo_security.config import Settings, get_settings
from demo_security.models.principal import parse_roles, parse_scopes


class AuthoritiesConverter:
    """Maps the 'scp'/'scope' and 'roles' claims to prefixed authorities."""

    def __init__(self, scope_prefix: str = "SCOPE_", role_prefix: str = "APPROLE_") -> None:
        self.scope_prefix = scope_prefix
        self.role_prefix = role_prefix

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthoritiesConverter":
        return cls(
            scope_prefix=settings.scope_authority_prefix,
            role_prefix=settings.role_authority_prefix,
        )

    def convert(self, payload: Dict[str, Any]) -> List[str]:
        """
        Derive authorities from a claims payload.

        Scopes come first, then roles. Duplicates are dropped while keeping
        the first occurrence.
        """
        authorities: List[str] = []
        seen = set()
        candidates = [f"{self.scope_prefix}{scope}" for scope in parse_scopes(payload)]
        candidates += [f"{self.role_prefix}{role}" for role in parse_roles(payload)]
        for authority in candidates:
            if authority not in seen:
                seen.add(authority)
                authorities.append(authority)
        return authorities

    def scope_authority(self, scope: str) -> str:
        return f"{self.scope_prefix}{scope}"

    def role_authority(self, role: str) -> str:
        return f"{self.role_prefix}{role}"


_converter_instance: Optional[AuthoritiesConverter] = None


def get_authorities_converter() -> AuthoritiesConverter:
    """Get the shared converter built from application settings."""
    global _converter_instance
    if _converter_instance is None:
        _converter_instance = AuthoritiesConverter.from_settings(get_settings())
    return _converter_instance
