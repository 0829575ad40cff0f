import pytest

from conftest import auth_headers, make_user
from smo_social.security.auth import get_password_hash


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert "X-Request-ID" in r.headers


def test_request_id_is_echoed(client):
    r = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"


def test_ready(client):
    assert client.get("/ready").json() == {"status": "ready"}


def test_login_and_me(client, db):
    user = make_user(db, "editor")
    user.password_hash = get_password_hash("s3cret-pass")
    db.commit()

    r = client.post("/auth/login", data={"username": "EDITOR@example.com", "password": "s3cret-pass"})
    assert r.status_code == 200
    token = r.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
    assert me["email"] == "editor@example.com"
    assert me["capabilities"] == ["edit_posts", "read", "upload_files"]
    assert "publish_posts" in me["permissions"]


def test_login_rejects_bad_password(client, db):
    user = make_user(db, "editor")
    user.password_hash = get_password_hash("right")
    db.commit()
    r = client.post("/auth/login", data={"username": "editor@example.com", "password": "wrong"})
    assert r.status_code == 401


def test_me_requires_login(client):
    assert client.get("/auth/me").status_code == 401


@pytest.mark.parametrize("page,config_key", [
    ("analytics", "smoAnalytics"),
    ("content-organizer", "smoContentOrganizer"),
    ("create-post", "smoCreatePost"),
    ("media-library", "smoMediaLibrary"),
    ("memory-monitoring", "smoMemoryMonitor"),
    ("team-management", "smoTeamManagement"),
    ("permissions", "smoPermissions"),
])
def test_admin_pages(client, admin, page, config_key):
    r = client.get(f"/admin/pages/{page}", headers=auth_headers(admin))
    body = r.json()
    assert body["success"] is True
    assert body["data"]["page"] == page
    assert config_key in body["data"]["config"]


def test_create_post_page_config(client, editor):
    data = client.get("/admin/pages/create-post", headers=auth_headers(editor)).json()["data"]
    config = data["config"]["smoCreatePost"]
    assert config["userId"] == editor.id
    assert config["platformLimits"]["twitter"] == 280
    assert config["ajaxurl"].endswith("/ajax")
    assert data["stats"] == {"drafts": 0, "scheduled": 0, "published": 0}


@pytest.mark.parametrize("role,page,status", [
    ("editor", "memory-monitoring", 403),
    ("editor", "team-management", 403),
    ("contributor", "media-library", 403),
    ("viewer", "analytics", 403),
    ("manager", "team-management", 200),
])
def test_page_capabilities(client, db, role, page, status):
    user = make_user(db, role)
    assert client.get(f"/admin/pages/{page}", headers=auth_headers(user)).status_code == status


def test_unknown_page(client, admin):
    r = client.get("/admin/pages/settings", headers=auth_headers(admin))
    assert r.status_code == 404
    assert r.json() == {"success": False, "data": "Page not found"}


def test_page_requires_login(client):
    assert client.get("/admin/pages/analytics").status_code == 401
