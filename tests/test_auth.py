from examtrack import settings
from examtrack.models import UserRole

from conftest import PASSWORD, audit_actions, auth_headers


def login(client, **payload):
    return client.post("/api/auth/login", json=payload)


def test_seeded_super_admin_can_login(client):
    resp = login(client, phone=settings.SUPERADMIN_PHONE, password=settings.SUPERADMIN_PASSWORD)
    assert resp.status_code == 200
    body = resp.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["role"] == "SUPER_ADMIN"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["phone"] == settings.SUPERADMIN_PHONE


def test_login_by_email(client, make_user):
    make_user(UserRole.ADMIN, email="control.room@seba.org.in")
    resp = login(client, email="control.room@seba.org.in", password=PASSWORD)
    assert resp.status_code == 200


def test_wrong_password_is_audited(client, db, admin):
    resp = login(client, phone=admin.phone, password="nope")
    assert resp.status_code == 401
    assert audit_actions(db, "USER_LOGIN_FAILED") == ["USER_LOGIN_FAILED"]


def test_phone_or_email_required(client):
    assert login(client, password=PASSWORD).status_code == 400


def test_deactivated_account(client, make_user):
    user = make_user(UserRole.ADMIN, is_active=False)
    assert login(client, phone=user.phone, password=PASSWORD).status_code == 401


def test_officer_needs_device_id(client, officer):
    assert login(client, phone=officer.phone, password=PASSWORD).status_code == 400


def test_officer_bound_to_first_device(client, db, admin, officer):
    assert login(client, phone=officer.phone, password=PASSWORD, device_id="pixel-7").status_code == 200
    db.refresh(officer)
    assert officer.device_id == "pixel-7"
    assert "DEVICE_ID_BOUND" in audit_actions(db)

    assert login(client, phone=officer.phone, password=PASSWORD, device_id="pixel-7").status_code == 200

    resp = login(client, phone=officer.phone, password=PASSWORD, device_id="stolen-phone")
    assert resp.status_code == 403
    assert audit_actions(db, "DEVICE_ID_MISMATCH") == ["DEVICE_ID_MISMATCH"]

    resp = client.post(f"/api/admin/users/{officer.id}/reset-device", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["device_id"] is None
    assert login(client, phone=officer.phone, password=PASSWORD, device_id="new-phone").status_code == 200


def test_requests_without_token(client):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"}).status_code == 401


def test_cookie_token_is_accepted(client, admin):
    token = auth_headers(admin)["Authorization"]
    client.cookies.set("access_token", token)
    try:
        assert client.get("/api/auth/me").json()["id"] == admin.id
    finally:
        client.cookies.clear()


def test_admin_creates_officer(client, db, admin):
    payload = {"name": "Bhaskar Das", "phone": "9876543210", "password": "LongEnough1"}
    resp = client.post("/api/admin/users", json=payload, headers=auth_headers(admin))
    assert resp.status_code == 201
    assert resp.json()["role"] == "SEBA_OFFICER"
    assert "USER_CREATED" in audit_actions(db)

    again = client.post("/api/admin/users", json=payload, headers=auth_headers(admin))
    assert again.status_code == 409

    listed = client.get("/api/admin/users", headers=auth_headers(admin)).json()
    assert "9876543210" in [u["phone"] for u in listed]


def test_only_super_admin_creates_super_admin(client, admin, make_user):
    payload = {"name": "Second Root", "phone": "9876500000", "password": "LongEnough1", "role": "SUPER_ADMIN"}
    assert client.post("/api/admin/users", json=payload, headers=auth_headers(admin)).status_code == 403

    root = make_user(UserRole.SUPER_ADMIN)
    assert client.post("/api/admin/users", json=payload, headers=auth_headers(root)).status_code == 201


def test_officer_cannot_manage_users(client, officer):
    assert client.get("/api/admin/users", headers=auth_headers(officer)).status_code == 403


def test_security_headers(client):
    resp = client.get("/health")
    assert resp.headers["X-Content-Type-Options"] == "nosniff"
    assert resp.headers["X-Frame-Options"] == "DENY"
