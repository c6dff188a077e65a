"""
Tests for the authorization policy, the navigation gateway and the admin area.
"""

import pytest
from conftest import auth_headers, make_profile

from divan.errors import Forbidden, Unauthorized
from divan.models import Appointment, BlogPost, Notification, Order, Profile, Review, SessionNotes
from divan.policy import (
    ACCOUNT,
    ADMIN_AREA,
    CLIENT_AREA,
    PROFESSIONAL_AREA,
    authorize,
    enforce,
)
from divan.shared.clock import utcnow


def _profile(id="u1", role="client", status="active", verified=True, deleted=False):
    return Profile(
        id=id,
        name="P",
        email=f"{id}@example.com",
        role=role,
        status=status,
        email_verified_at=utcnow() if verified else None,
        deleted_at=utcnow() if deleted else None,
    )


class TestPolicy:
    """One policy function decides every access question."""

    def test_anonymous_is_denied(self):
        assert authorize(None, CLIENT_AREA) is False
        with pytest.raises(Unauthorized):
            enforce(None, CLIENT_AREA)

    @pytest.mark.parametrize("resource", [ACCOUNT, CLIENT_AREA, PROFESSIONAL_AREA, ADMIN_AREA])
    def test_blocked_and_deleted_are_denied_everywhere(self, resource):
        blocked = _profile(role="professional", status="blocked")
        deleted = _profile(role="professional", deleted=True)
        assert authorize(blocked, resource) is False
        assert authorize(deleted, resource) is False

    def test_unverified_sees_only_account(self):
        pending = _profile(status="pending_email", verified=False)
        assert authorize(pending, ACCOUNT) is True
        assert authorize(pending, CLIENT_AREA) is False

    def test_professional_area_requires_professional_role(self):
        assert authorize(_profile(role="professional"), PROFESSIONAL_AREA) is True
        assert authorize(_profile(role="professional"), ADMIN_AREA) is True
        assert authorize(_profile(), PROFESSIONAL_AREA) is False
        with pytest.raises(Forbidden):
            enforce(_profile(), ADMIN_AREA)

    def test_appointment_participants(self):
        appointment = Appointment(user_id="c1", professional_id="p1")
        client = _profile(id="c1")
        professional = _profile(id="p1", role="professional")
        stranger = _profile(id="x1")

        assert authorize(client, appointment, "participate") is True
        assert authorize(professional, appointment, "cancel") is True
        assert authorize(stranger, appointment, "view") is False
        assert authorize(client, appointment, "write_notes") is False
        assert authorize(professional, appointment, "write_notes") is True

    def test_notes_are_professional_only(self):
        notes = SessionNotes(appointment_id="a1", professional_id="p1", user_id="c1")
        assert authorize(_profile(id="p1", role="professional"), notes) is True
        assert authorize(_profile(id="c1"), notes) is False

    def test_order_actions(self):
        order = Order(user_id="c1", professional_id="p1")
        assert authorize(_profile(id="c1"), order, "cancel") is True
        assert authorize(_profile(id="c1"), order, "validate") is False
        assert authorize(_profile(id="p1", role="professional"), order, "validate") is True

    def test_owner_only_resources(self):
        assert authorize(_profile(id="c1"), Notification(user_id="c1")) is True
        assert authorize(_profile(id="c2"), Notification(user_id="c1")) is False
        assert authorize(_profile(id="p1", role="professional"), BlogPost(author_id="p1"), "manage") is True
        assert authorize(_profile(id="p2", role="professional"), BlogPost(author_id="p1"), "manage") is False

    def test_review_actions(self):
        appointment = Appointment(user_id="c1", professional_id="p1")
        assert authorize(_profile(id="c1"), appointment, "review") is True
        assert authorize(_profile(id="p1", role="professional"), appointment, "review") is False
        review = Review(user_id="c1", professional_id="p1")
        assert authorize(_profile(id="p1", role="professional"), review, "moderate") is True
        assert authorize(_profile(id="c1"), review, "moderate") is False

    def test_unknown_resource_is_denied(self):
        assert authorize(_profile(), object()) is False


class TestGateway:
    """Browser navigation is redirected according to the caller's state."""

    def _get(self, client, path, profile=None):
        headers = auth_headers(profile) if profile else {}
        return client.get(path, headers=headers, follow_redirects=False)

    def test_anonymous_goes_to_login(self, client):
        response = self._get(client, "/profissional/agenda")
        assert response.status_code == 307
        assert response.headers["location"] == "/login?redirect=/profissional/agenda"

    def test_blocked_goes_to_access_denied(self, client, db):
        blocked = make_profile(db, status="blocked")
        response = self._get(client, "/dashboard", blocked)
        assert response.headers["location"] == "/acesso-negado"

    def test_deleted_goes_to_access_denied(self, client, db):
        deleted = make_profile(db, deleted=True)
        response = self._get(client, "/minhas-sessoes", deleted)
        assert response.headers["location"] == "/acesso-negado"

    def test_unverified_goes_to_verification(self, client, db):
        pending = make_profile(db, status="pending_email", verified=False)
        response = self._get(client, "/dashboard", pending)
        assert response.status_code == 307
        assert response.headers["location"] == "/verificar-email?email=cliente%40example.com"

    def test_client_is_kept_out_of_professional_area(self, client, db, client_profile):
        response = self._get(client, "/profissional/agenda", client_profile)
        assert response.headers["location"] == "/"
        response = self._get(client, "/admin/usuarios", client_profile)
        assert response.headers["location"] == "/"

    def test_professional_is_sent_to_professional_home(self, client, professional):
        response = self._get(client, "/dashboard", professional)
        assert response.headers["location"] == "/profissional/agenda"

    def test_allowed_navigation_passes_through(self, client, client_profile):
        # No page is served here, so a pass-through ends in 404 rather than a redirect
        response = self._get(client, "/dashboard", client_profile)
        assert response.status_code == 404

    def test_public_paths_skip_the_session(self, client):
        assert self._get(client, "/health").status_code == 200
        assert self._get(client, "/blog/algum-artigo").status_code == 404

    def test_api_routes_guard_themselves(self, client, db):
        blocked = make_profile(db, status="blocked")
        response = self._get(client, "/api/auth/me", blocked)
        assert response.status_code == 403
        assert response.json()["code"] == "FORBIDDEN"


class TestAdminUsers:
    """The professional manages client profiles."""

    def test_list_requires_professional(self, client, client_profile):
        assert client.get("/api/admin/users").status_code == 401
        assert client.get("/api/admin/users", headers=auth_headers(client_profile)).status_code == 403

    def test_list_and_search(self, client, db, professional):
        make_profile(db, name="Maria Souza", email="maria@example.com")
        make_profile(db, name="João Lima", email="joao@example.com")
        make_profile(db, name="Removido", email="gone@example.com", deleted=True)

        response = client.get("/api/admin/users", headers=auth_headers(professional))
        emails = {u["email"] for u in response.json()["users"]}
        assert emails == {"maria@example.com", "joao@example.com"}

        response = client.get("/api/admin/users?search=maria", headers=auth_headers(professional))
        assert [u["email"] for u in response.json()["users"]] == ["maria@example.com"]

    def test_search_wildcards_match_literally(self, client, db, professional):
        make_profile(db, name="Ana B", email="ana_b@example.com")
        make_profile(db, name="Ana X", email="anaxb@example.com")
        headers = auth_headers(professional)

        response = client.get("/api/admin/users", params={"search": "ana_b"}, headers=headers)
        assert [u["email"] for u in response.json()["users"]] == ["ana_b@example.com"]

        response = client.get("/api/admin/users", params={"search": "%"}, headers=headers)
        assert response.json()["users"] == []

    def test_update_and_soft_delete(self, client, db, professional):
        target = make_profile(db, email="alvo@example.com", status="pending_email", verified=False)

        response = client.patch(
            f"/api/admin/users/{target.id}",
            json={"status": "active"},
            headers=auth_headers(professional),
        )
        assert response.status_code == 200
        db.expire_all()
        assert db.get(Profile, target.id).email_verified_at is not None

        response = client.delete(f"/api/admin/users/{target.id}", headers=auth_headers(professional))
        assert response.status_code == 200
        db.expire_all()
        deleted = db.get(Profile, target.id)
        assert deleted.deleted_at is not None
        assert deleted.status == "blocked"

    def test_update_rejects_taken_email(self, client, db, professional):
        make_profile(db, email="ocupado@example.com")
        target = make_profile(db, email="alvo@example.com")
        response = client.patch(
            f"/api/admin/users/{target.id}",
            json={"email": "ocupado@example.com"},
            headers=auth_headers(professional),
        )
        assert response.status_code == 409
