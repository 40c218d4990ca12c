"""
Principal model for callers authenticated with an Azure AD access token.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def parse_scopes(payload: Dict[str, Any]) -> List[str]:
    # Delegated tokens carry 'scp' as a space-separated string
    for claim in ("scp", "scope"):
        if claim in payload:
            value = payload[claim]
            if isinstance(value, str):
                return value.split()
            if isinstance(value, list):
                return [s for s in value if isinstance(s, str) and s]
            return []
    return []


def parse_roles(payload: Dict[str, Any]) -> List[str]:
    roles = payload.get("roles", [])
    if isinstance(roles, str):
        return [roles] if roles else []
    if isinstance(roles, list):
        return [r for r in roles if isinstance(r, str) and r]
    return []


def _timestamp(payload: Dict[str, Any], claim: str) -> Optional[datetime]:
    value = payload.get(claim)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


class AuthenticatedPrincipal(BaseModel):
    """
    Represents the caller identified by a validated Azure AD token.

    For delegated (user) tokens the identity comes from the user claims and
    permissions from 'scp'. For app-only (client credentials) tokens there are
    no scopes and permissions come from the 'roles' claim.
    """

    subject: str = Field(..., description="Unique principal identifier (sub claim)")
    name: Optional[str] = Field(None, description="Display name")
    email: Optional[str] = Field(None, description="Email address (if available)")
    preferred_username: Optional[str] = Field(None, description="Preferred username")

    tenant_id: Optional[str] = Field(None, description="Azure AD tenant ID")
    object_id: Optional[str] = Field(None, description="Object ID in Azure AD")
    app_id: Optional[str] = Field(None, description="Application ID that requested the token")

    scopes: List[str] = Field(default_factory=list, description="Delegated scopes")
    roles: List[str] = Field(default_factory=list, description="App roles")
    authorities: List[str] = Field(
        default_factory=list, description="Authorities derived from scopes and roles"
    )

    issued_at: Optional[datetime] = Field(None, description="Token issued at time (UTC)")
    expires_at: Optional[datetime] = Field(None, description="Token expiration time (UTC)")

    @classmethod
    def from_token_payload(
        cls,
        payload: Dict[str, Any],
        authorities: Optional[List[str]] = None,
    ) -> "AuthenticatedPrincipal":
        """
        Create AuthenticatedPrincipal from a validated JWT payload.

        Args:
            payload: Decoded JWT token payload
            authorities: Authorities derived from the payload, if already computed

        Returns:
            AuthenticatedPrincipal instance
        """
        # v1.0 tokens: upn, unique_name
        # v2.0 tokens: email, preferred_username
        email = (
            payload.get("email")
            or payload.get("upn")
            or payload.get("unique_name")
            or payload.get("preferred_username")
        )

        return cls(
            subject=payload.get("sub") or payload.get("oid") or "unknown",
            name=payload.get("name"),
            email=email,
            preferred_username=payload.get("preferred_username") or payload.get("upn"),
            tenant_id=payload.get("tid"),
            object_id=payload.get("oid"),
            app_id=payload.get("azp") or payload.get("appid"),
            scopes=parse_scopes(payload),
            roles=parse_roles(payload),
            authorities=list(authorities or []),
            issued_at=_timestamp(payload, "iat"),
            expires_at=_timestamp(payload, "exp"),
        )

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes

    def has_role(self, role: str) -> bool:
        return role in self.roles

    def has_any_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)

    def has_authority(self, authority: str) -> bool:
        """
        Check if the principal was granted a specific authority.

        Args:
            authority: Prefixed authority (e.g., "SCOPE_Greeting.Read", "APPROLE_Admin")

        Returns:
            bool: True if the authority is present
        """
        return authority in self.authorities

    def has_any_authority(self, *authorities: str) -> bool:
        return any(authority in self.authorities for authority in authorities)

    @property
    def is_app_only(self) -> bool:
        """True for client-credentials tokens, which carry roles but no scopes."""
        return not self.scopes and bool(self.roles)

    @property
    def display_name(self) -> str:
        return self.email or self.name or self.subject
