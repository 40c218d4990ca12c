"""
Token introspection response model.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .principal import AuthenticatedPrincipal


class TokenDetails(BaseModel):
    """
    Description of the caller's validated bearer token.
    """

    subject: str
    name: Optional[str] = None
    tenant_id: Optional[str] = None
    app_id: Optional[str] = None
    token_type: Literal["user", "app"] = Field(
        ..., description="'app' for client-credentials tokens, 'user' otherwise"
    )

    scopes: List[str] = Field(default_factory=list)
    roles: List[str] = Field(default_factory=list)
    authorities: List[str] = Field(default_factory=list)

    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    expires_in: Optional[int] = Field(None, description="Seconds until expiry, never negative")

    header: Dict[str, Any] = Field(default_factory=dict, description="Unverified JOSE header")
    claims: Dict[str, Any] = Field(default_factory=dict, description="Validated claims")

    @classmethod
    def build(
        cls,
        principal: AuthenticatedPrincipal,
        header: Dict[str, Any],
        claims: Dict[str, Any],
        now: Optional[datetime] = None,
    ) -> "TokenDetails":
        now = now or datetime.now(timezone.utc)
        expires_in = None
        if principal.expires_at is not None:
            expires_in = max(0, int((principal.expires_at - now).total_seconds()))

        return cls(
            subject=principal.subject,
            name=principal.name,
            tenant_id=principal.tenant_id,
            app_id=principal.app_id,
            token_type="app" if principal.is_app_only else "user",
            scopes=principal.scopes,
            roles=principal.roles,
            authorities=principal.authorities,
            issued_at=principal.issued_at,
            expires_at=principal.expires_at,
            expires_in=expires_in,
            header=header,
            claims=claims,
        )
