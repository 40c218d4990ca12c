"""Tests for mapping token claims to authorities."""

from demo_security.auth.authorities import AuthoritiesConverter
from demo_security.config import Settings

from .conftest import CLIENT_ID, TENANT_ID


class TestAuthoritiesConverter:
    def test_scopes_and_roles(self):
        converter = AuthoritiesConverter()

        authorities = converter.convert({"scp": "Greeting.Read User.Read", "roles": ["Admin"]})

        assert authorities == ["SCOPE_Greeting.Read", "SCOPE_User.Read", "APPROLE_Admin"]

    def test_scope_claim_fallback(self):
        assert AuthoritiesConverter().convert({"scope": "read write"}) == [
            "SCOPE_read",
            "SCOPE_write",
        ]

    def test_scp_takes_precedence_over_scope(self):
        authorities = AuthoritiesConverter().convert({"scp": "a", "scope": "b"})

        assert authorities == ["SCOPE_a"]

    def test_scope_list(self):
        assert AuthoritiesConverter().convert({"scp": ["a", "", 3, "b"]}) == ["SCOPE_a", "SCOPE_b"]

    def test_single_role_string(self):
        assert AuthoritiesConverter().convert({"roles": "Admin"}) == ["APPROLE_Admin"]

    def test_duplicates_removed(self):
        authorities = AuthoritiesConverter().convert({"scp": "a a", "roles": ["r", "r"]})

        assert authorities == ["SCOPE_a", "APPROLE_r"]

    def test_no_claims(self):
        assert AuthoritiesConverter().convert({"sub": "x"}) == []

    def test_prefixes_from_settings(self):
        settings = Settings(
            _env_file=None,
            tenant_id=TENANT_ID,
            client_id=CLIENT_ID,
            scope_authority_prefix="SCP:",
            role_authority_prefix="ROLE_",
        )
        converter = AuthoritiesConverter.from_settings(settings)

        assert converter.convert({"scp": "a", "roles": ["b"]}) == ["SCP:a", "ROLE_b"]
        assert converter.scope_authority("x") == "SCP:x"
        assert converter.role_authority("y") == "ROLE_y"
