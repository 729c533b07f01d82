import uuid

from appduka.models.profile import Profile
from tests.conftest import create_access_token


def test_visitor_me_reports_visitor_capabilities(client):
    response = client.get("/api/v1/me/capabilities")
    assert response.json() == {"role": "visitor", "capabilities": ["view_approved"]}


def test_developer_capabilities(client, developer, auth_headers):
    body = client.get("/api/v1/me/capabilities", headers=auth_headers(developer)).json()
    assert body["role"] == "developer"
    assert "manage_entries" in body["capabilities"]
    assert "change_status" not in body["capabilities"]


def test_first_profile_bootstrap_is_admin_then_user(client, db_session):
    first_id, second_id = uuid.uuid4(), uuid.uuid4()
    first = client.post(
        "/api/v1/me/profile",
        headers={"Authorization": f"Bearer {create_access_token(first_id, 'first@example.com')}"},
    )
    assert first.status_code == 201
    assert first.json()["role"] == "admin"

    second = client.post(
        "/api/v1/me/profile",
        headers={"Authorization": f"Bearer {create_access_token(second_id, 'second@example.com')}"},
    )
    assert second.json()["role"] == "user"
    assert db_session.get(Profile, second_id).email == "second@example.com"


def test_update_username(client, user, auth_headers):
    response = client.patch("/api/v1/me/profile", json={"username": "juma"}, headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json()["username"] == "juma"
    assert client.get("/api/v1/me", headers=auth_headers(user)).json()["profile"]["username"] == "juma"


def test_profile_endpoints_require_sign_in(client):
    assert client.post("/api/v1/me/profile").status_code == 401
    assert client.get("/api/v1/me/reviews").status_code == 401


def test_admin_manages_roles(client, admin, user, auth_headers):
    listed = client.get("/api/v1/profiles", headers=auth_headers(admin)).json()
    assert {p["id"] for p in listed} == {str(admin.id), str(user.id)}
    response = client.put(f"/api/v1/profiles/{user.id}/role", json={"role": "developer"}, headers=auth_headers(admin))
    assert response.json()["role"] == "developer"


def test_unknown_role_is_rejected(client, admin, user, auth_headers):
    response = client.put(f"/api/v1/profiles/{user.id}/role", json={"role": "owner"}, headers=auth_headers(admin))
    assert response.status_code == 400


def test_non_admin_cannot_list_profiles(client, developer, auth_headers):
    assert client.get("/api/v1/profiles", headers=auth_headers(developer)).status_code == 403


def test_admin_deletes_account(client, admin, user, auth_headers, identity_requests, db_session):
    user_id = user.id
    response = client.delete(f"/api/v1/profiles/{user_id}", headers=auth_headers(admin))
    assert response.status_code == 200
    assert identity_requests[-1].method == "DELETE"
    assert db_session.get(Profile, user_id) is None


def test_admin_cannot_delete_self(client, admin, auth_headers):
    response = client.delete(f"/api/v1/profiles/{admin.id}", headers=auth_headers(admin))
    assert response.status_code == 403
