from __future__ import annotations

from fastapi.testclient import TestClient

from jobly.core.security import decode_token

NEW_USER = {
    "username": "u-new",
    "firstName": "First-new",
    "lastName": "Last-new",
    "password": "password-new",
    "email": "new@example.com",
    "isAdmin": False,
}


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_create_user_as_admin_returns_user_and_token(api_client: TestClient, admin_token: str) -> None:
    response = api_client.post("/users", json=NEW_USER, headers=_auth(admin_token))

    assert response.status_code == 201
    body = response.json()
    assert body["user"] == {
        "username": "u-new",
        "firstName": "First-new",
        "lastName": "Last-new",
        "email": "new@example.com",
        "isAdmin": False,
    }
    assert decode_token(body["token"])["username"] == "u-new"


def test_create_admin_user_as_admin(api_client: TestClient, admin_token: str) -> None:
    response = api_client.post("/users", json={**NEW_USER, "isAdmin": True}, headers=_auth(admin_token))

    assert response.status_code == 201
    assert response.json()["user"]["isAdmin"] is True
    assert decode_token(response.json()["token"])["isAdmin"] is True


def test_create_user_denied_for_non_admin(api_client: TestClient, u1_token: str) -> None:
    response = api_client.post("/users", json=NEW_USER, headers=_auth(u1_token))

    assert response.status_code == 401


def test_create_user_with_bad_email_is_bad_request(api_client: TestClient, admin_token: str) -> None:
    response = api_client.post("/users", json={**NEW_USER, "email": "not-an-email"}, headers=_auth(admin_token))

    assert response.status_code == 400


def test_create_duplicate_user_is_bad_request(api_client: TestClient, admin_token: str) -> None:
    response = api_client.post("/users", json={**NEW_USER, "username": "u1"}, headers=_auth(admin_token))

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "duplicate username: u1"


def test_list_users_as_admin(api_client: TestClient, admin_token: str) -> None:
    response = api_client.get("/users", headers=_auth(admin_token))

    assert response.status_code == 200
    users = response.json()["users"]
    assert [user["username"] for user in users] == ["admin", "u1", "u2"]
    assert all("password" not in user for user in users)


def test_list_users_denied_for_non_admin(api_client: TestClient, u1_token: str) -> None:
    response = api_client.get("/users", headers=_auth(u1_token))

    assert response.status_code == 401


def test_list_users_denied_for_anonymous(api_client: TestClient) -> None:
    response = api_client.get("/users")

    assert response.status_code == 401


def test_get_self_includes_applied_jobs(api_client: TestClient, u1_token: str) -> None:
    response = api_client.get("/users/u1", headers=_auth(u1_token))

    assert response.status_code == 200
    assert response.json() == {
        "user": {
            "username": "u1",
            "firstName": "U1F",
            "lastName": "U1L",
            "email": "user1@example.com",
            "isAdmin": False,
            "jobsApplied": [1],
        }
    }


def test_get_other_user_denied(api_client: TestClient, u2_token: str, fake_repo) -> None:
    response = api_client.get("/users/u1", headers=_auth(u2_token))

    assert response.status_code == 401
    assert fake_repo.calls == []


def test_get_other_user_as_admin(api_client: TestClient, admin_token: str) -> None:
    response = api_client.get("/users/u1", headers=_auth(admin_token))

    assert response.status_code == 200


def test_get_missing_user_as_admin_is_not_found(api_client: TestClient, admin_token: str) -> None:
    response = api_client.get("/users/nope", headers=_auth(admin_token))

    assert response.status_code == 404


def test_patch_self(api_client: TestClient, u1_token: str) -> None:
    response = api_client.patch("/users/u1", json={"firstName": "New"}, headers=_auth(u1_token))

    assert response.status_code == 200
    assert response.json()["user"]["firstName"] == "New"


def test_patch_self_cannot_grant_admin(api_client: TestClient, u1_token: str, fake_repo) -> None:
    response = api_client.patch("/users/u1", json={"isAdmin": True}, headers=_auth(u1_token))

    assert response.status_code == 403
    assert fake_repo.users["u1"]["is_admin"] is False


def test_patch_user_admin_flag_as_admin(api_client: TestClient, admin_token: str) -> None:
    response = api_client.patch("/users/u1", json={"isAdmin": True}, headers=_auth(admin_token))

    assert response.status_code == 200
    assert response.json()["user"]["isAdmin"] is True


def test_patch_other_user_denied(api_client: TestClient, u2_token: str) -> None:
    response = api_client.patch("/users/u1", json={"firstName": "New"}, headers=_auth(u2_token))

    assert response.status_code == 401


def test_patch_user_rejects_username_change(api_client: TestClient, u1_token: str) -> None:
    response = api_client.patch("/users/u1", json={"username": "u1-new"}, headers=_auth(u1_token))

    assert response.status_code == 400


def test_patch_missing_user_as_admin_is_not_found(api_client: TestClient, admin_token: str) -> None:
    response = api_client.patch("/users/nope", json={"firstName": "New"}, headers=_auth(admin_token))

    assert response.status_code == 404


def test_delete_self(api_client: TestClient, u1_token: str) -> None:
    response = api_client.delete("/users/u1", headers=_auth(u1_token))

    assert response.status_code == 202
    assert response.json() == {"deleted": "u1"}


def test_delete_other_user_denied(api_client: TestClient, u2_token: str, fake_repo) -> None:
    response = api_client.delete("/users/u1", headers=_auth(u2_token))

    assert response.status_code == 401
    assert "u1" in fake_repo.users


def test_delete_missing_user_as_admin_is_not_found(api_client: TestClient, admin_token: str) -> None:
    response = api_client.delete("/users/nope", headers=_auth(admin_token))

    assert response.status_code == 404


def test_apply_to_job_as_self(api_client: TestClient, u1_token: str, fake_repo) -> None:
    response = api_client.post("/users/u1/jobs/2", headers=_auth(u1_token))

    assert response.status_code == 201
    assert response.json() == {"applied": 2}
    assert ("u1", 2) in fake_repo.applications


def test_apply_to_job_as_admin_for_other_user(api_client: TestClient, admin_token: str) -> None:
    response = api_client.post("/users/u2/jobs/3", headers=_auth(admin_token))

    assert response.status_code == 201


def test_apply_to_missing_job_is_not_found(api_client: TestClient, u1_token: str, fake_repo) -> None:
    response = api_client.post("/users/u1/jobs/999", headers=_auth(u1_token))

    assert response.status_code == 404
    assert fake_repo.applications == {("u1", 1)}


def test_apply_for_other_user_denied(api_client: TestClient, u2_token: str, fake_repo) -> None:
    response = api_client.post("/users/u1/jobs/2", headers=_auth(u2_token))

    assert response.status_code == 401
    assert fake_repo.calls == []


def test_patch_user_cannot_clear_password(api_client: TestClient, u1_token: str, fake_repo) -> None:
    response = api_client.patch("/users/u1", json={"password": None}, headers=_auth(u1_token))

    assert response.status_code == 400
    assert response.json()["error"]["message"] == ["password: Value error, may not be null"]
    assert fake_repo.calls == []


def test_patch_user_cannot_clear_required_names(api_client: TestClient, admin_token: str, fake_repo) -> None:
    response = api_client.patch(
        "/users/u1",
        json={"firstName": None, "lastName": None},
        headers=_auth(admin_token),
    )

    assert response.status_code == 400
    assert len(response.json()["error"]["message"]) == 2
    assert fake_repo.users["u1"]["first_name"] == "U1F"
