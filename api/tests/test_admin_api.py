import pytest

from conftest import auth_headers


@pytest.fixture
def admin(make_profile):
    return make_profile(None, email="registrar@uni.test", role="admin")


def test_list_batches_newest_first(client, admin, make_batch):
    make_batch(22, current_semester=5)
    make_batch(24, current_semester=1)
    make_batch(23, current_semester=4)

    body = client.get("/api/admin/batches", headers=auth_headers(admin)).json()

    assert [b["batchNumber"] for b in body] == [24, 23, 22]
    assert [b["currentYear"] for b in body] == [1, 2, 3]
    assert body[2]["academicYear"] == 3


def test_students_cannot_administer(client, make_batch, make_profile):
    student = make_profile(make_batch(24))
    assert client.get("/api/admin/batches", headers=auth_headers(student)).status_code == 403


def test_admin_requires_token(client):
    assert client.get("/api/admin/batches").status_code == 401


def test_create_batch(client, admin):
    response = client.post(
        "/api/admin/batches",
        json={"batch_number": 25, "batch_code": "E/25"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 201
    assert response.json()["currentSemester"] == 1

    duplicate = client.post(
        "/api/admin/batches",
        json={"batch_number": 25, "batch_code": "E/25"},
        headers=auth_headers(admin),
    )
    assert duplicate.status_code == 400


def test_create_batch_rejects_non_positive_number(client, admin):
    response = client.post(
        "/api/admin/batches",
        json={"batch_number": 0, "batch_code": "E/0"},
        headers=auth_headers(admin),
    )
    assert response.status_code == 400


def test_advance_semester(client, admin, make_batch):
    batch = make_batch(23, current_semester=2)

    body = client.post(f"/api/admin/batches/{batch.id}/advance-semester", headers=auth_headers(admin)).json()

    assert body["currentSemester"] == 3
    assert body["currentYear"] == 2


def test_advance_unknown_batch(client, admin):
    response = client.post("/api/admin/batches/777/advance-semester", headers=auth_headers(admin))
    assert response.status_code == 404


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"
    detailed = client.get("/health/detailed")
    assert detailed.status_code == 200
    assert detailed.json()["database"]["status"] == "connected"
    assert detailed.json()["batch_policy"]["lookback_window"] == 3
