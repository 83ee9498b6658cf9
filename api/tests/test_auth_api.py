from datetime import timedelta

from unidash.auth.jwt_utils import create_access_token, hash_password, verify_password
from unidash.routers.auth import MAX_LOGIN_ATTEMPTS

from conftest import TEST_PASSWORD, auth_headers


def test_password_hash_round_trip():
    hashed = hash_password("s3cret")
    assert hashed != "s3cret"
    assert verify_password("s3cret", hashed)
    assert not verify_password("wrong", hashed)


def test_malformed_hash_does_not_verify():
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_login_returns_token_and_batch(client, make_batch, make_profile):
    profile = make_profile(make_batch(23), email="kasun@uni.test", index_number="E/23/114")

    response = client.post("/api/auth/login", json={"email": "kasun@uni.test", "password": TEST_PASSWORD})

    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["id"] == profile.id
    assert body["user"]["batchNumber"] == 23
    assert body["user"]["academicYear"] == 2

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["indexNumber"] == "E/23/114"


def test_login_wrong_password(client, make_batch, make_profile):
    make_profile(make_batch(23), email="kasun@uni.test")
    response = client.post("/api/auth/login", json={"email": "kasun@uni.test", "password": "nope"})
    assert response.status_code == 401


def test_login_unknown_email(client):
    response = client.post("/api/auth/login", json={"email": "ghost@uni.test", "password": "x"})
    assert response.status_code == 401


def test_login_rate_limited(client):
    for _ in range(MAX_LOGIN_ATTEMPTS):
        client.post("/api/auth/login", json={"email": "ghost@uni.test", "password": "x"})
    response = client.post("/api/auth/login", json={"email": "ghost@uni.test", "password": "x"})
    assert response.status_code == 429


def test_me_without_batch(client, make_profile):
    profile = make_profile(None, email="admin@uni.test", role="admin")
    body = client.get("/api/auth/me", headers=auth_headers(profile)).json()
    assert body["role"] == "admin"
    assert body["batchNumber"] is None


def test_expired_token(client, make_batch, make_profile, module):
    profile = make_profile(make_batch(24))
    token = create_access_token(subject=str(profile.id), expires_delta=timedelta(seconds=-5))
    response = client.get(f"/api/modules/{module.id}/batches", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token has expired"


def test_token_for_deleted_profile(client, module):
    token = create_access_token(subject="4040")
    response = client.get(f"/api/modules/{module.id}/batches", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 404
