"""
Access gate tests: bearer parsing, authorize, role allow-lists and the
decorators that wire them into routes.
"""

from datetime import datetime, timedelta
from itertools import permutations

import pytest

from warehouse_control.errors import Forbidden, Unauthorized
from warehouse_control.models import Role
from warehouse_control.services.access_service import authorize, authorize_role, extract_bearer_token
from warehouse_control.services.token_service import IdentityClaims, issue_token

SECRET = "gate-secret-" + "0123456789abcdef" * 3
NOW = datetime(2025, 6, 1, 8, 30, 0)


def _claims(role):
    return IdentityClaims(user_id=1, username="someone", role=role)


class TestExtractBearerToken:

    def test_well_formed_header(self):
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"

    @pytest.mark.parametrize("header", [
        None,
        "",
        "Bearer",
        "Bearer ",
        "bearer abc",
        "Basic abc",
        "Bearer abc extra",
        "Token abc",
    ])
    def test_malformed_header(self, header):
        with pytest.raises(Unauthorized):
            extract_bearer_token(header)


class TestAuthorize:

    def test_valid_token_resolves_claims(self):
        token, stamped = issue_token(_claims(Role.VIEWER), SECRET, timedelta(hours=1), now=NOW)
        assert authorize(token, SECRET, now=NOW) == stamped

    def test_missing_token(self):
        with pytest.raises(Unauthorized):
            authorize("", SECRET, now=NOW)

    def test_expired_token_is_unauthorized(self):
        token, _ = issue_token(_claims(Role.ADMIN), SECRET, timedelta(hours=1), now=NOW)
        with pytest.raises(Unauthorized) as exc_info:
            authorize(token, SECRET, now=NOW + timedelta(hours=1))
        assert exc_info.value.status_code == 401

    def test_wrong_secret_is_unauthorized(self):
        token, _ = issue_token(_claims(Role.ADMIN), SECRET, timedelta(hours=1), now=NOW)
        with pytest.raises(Unauthorized):
            authorize(token, "not-the-secret-" + "fedcba9876543210" * 3, now=NOW)


class TestAuthorizeRole:

    @pytest.mark.parametrize("role", list(Role))
    def test_member_passes(self, role):
        authorize_role(_claims(role), [role])

    def test_non_member_forbidden(self):
        with pytest.raises(Forbidden):
            authorize_role(_claims(Role.VIEWER), [Role.ADMIN, Role.MANAGER])

    def test_admin_has_no_implicit_allowances(self):
        with pytest.raises(Forbidden):
            authorize_role(_claims(Role.ADMIN), [Role.VIEWER])

    def test_empty_allow_list_forbids_everyone(self):
        for role in Role:
            with pytest.raises(Forbidden):
                authorize_role(_claims(role), [])

    def test_string_roles_accepted(self):
        authorize_role(_claims(Role.MANAGER), ["admin", "manager"])

    def test_order_of_allow_list_irrelevant(self):
        for allowed in permutations([Role.ADMIN, Role.MANAGER]):
            authorize_role(_claims(Role.MANAGER), allowed)
            with pytest.raises(Forbidden):
                authorize_role(_claims(Role.VIEWER), allowed)

    def test_missing_claims_unauthorized(self):
        with pytest.raises(Unauthorized):
            authorize_role(None, [Role.ADMIN])


class TestGateOverHttp:

    def test_no_header_is_401(self, client, db_session):
        response = client.get('/api/items')
        assert response.status_code == 401
        assert response.get_json() == {"error": "unauthorized"}

    def test_malformed_header_is_401(self, client, db_session):
        response = client.get('/api/items', headers={'Authorization': 'Token abc'})
        assert response.status_code == 401

    def test_garbage_token_is_401(self, client, db_session):
        response = client.get('/api/items', headers={'Authorization': 'Bearer not.a.token'})
        assert response.status_code == 401
        assert response.get_json() == {"error": "unauthorized"}

    def test_expired_token_is_401(self, app, client, db_session):
        claims = _claims(Role.ADMIN)
        token, _ = issue_token(
            claims,
            app.config["JWT_SECRET"],
            timedelta(hours=1),
            now=datetime(2000, 1, 1),
        )
        response = client.get('/api/items', headers={'Authorization': f'Bearer {token}'})
        assert response.status_code == 401

    def test_wrong_role_is_403(self, client, viewer_headers):
        response = client.delete('/api/items/1', headers=viewer_headers)
        assert response.status_code == 403
        assert response.get_json() == {"error": "forbidden"}

    def test_me_echoes_claims(self, client, manager_user, manager_headers):
        response = client.get('/api/auth/me', headers=manager_headers)
        assert response.status_code == 200
        user = response.get_json()["user"]
        assert user["username"] == "mike"
        assert user["role"] == "manager"
        assert user["user_id"] == manager_user.id
