import pytest
from fastapi.testclient import TestClient

import settings
from main import app


@pytest.fixture
def client():
    return TestClient(app)


def register(client, name, password="password123"):
    resp = client.post("/auth/register", json={
        "email": f"{name}@example.com",
        "first_name": name.capitalize(),
        "last_name": "Tester",
        "password": password,
    })
    assert resp.status_code == 200, resp.text
    body = resp.json()
    return {"Authorization": f"Bearer {body['token']}"}, body["user"]


def admin_headers(client):
    resp = client.post("/auth/admin-login", json={
        "email": settings.ADMIN_EMAIL,
        "password": settings.ADMIN_PASSWORD,
    })
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


def publish(client, headers, admin, title="Hello World", category="technology"):
    resp = client.post("/posts", headers=headers, json={
        "title": title,
        "content": "<p>Body text</p>",
        "category_slug": category,
    })
    assert resp.status_code == 200, resp.text
    post = resp.json()
    assert post["status"] == "pending"
    resp = client.post(f"/admin/posts/{post['id']}/status", headers=admin, json={"status": "accepted"})
    assert resp.json()["status"] == "accepted"
    return post


def test_health(client):
    assert client.get("/").json()["name"] == "CardFeed"
    assert client.get("/test").json()["database"].startswith("✅")


def test_register_login_and_me(client):
    headers, user = register(client, "alice")

    me = client.get("/auth/me", headers=headers)
    assert me.status_code == 200
    assert me.json()["id"] == user["id"]
    assert "password" not in me.json()

    login = client.post("/auth/login", json={"email": "alice@example.com", "password": "password123"})
    assert login.status_code == 200
    assert client.post("/auth/login", json={"email": "alice@example.com", "password": "nope"}).status_code == 400


def test_duplicate_registration_conflicts(client):
    register(client, "alice")
    resp = client.post("/auth/register", json={
        "email": "ALICE@example.com", "first_name": "A", "last_name": "B", "password": "password123",
    })
    assert resp.status_code == 409


def test_auth_required(client):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/notifications", headers={"Authorization": "Bearer bogus"}).status_code == 401


def test_logout_ends_session(client):
    headers, _ = register(client, "alice")
    assert client.post("/auth/logout", headers=headers).status_code == 200
    assert client.get("/auth/me", headers=headers).status_code == 401


def test_admin_routes_are_gated(client):
    headers, _ = register(client, "alice")
    assert client.get("/admin/users", headers=headers).status_code == 403
    assert client.get("/admin/users", headers=admin_headers(client)).status_code == 200


def test_like_comment_share_flow(client):
    admin = admin_headers(client)
    alice, alice_user = register(client, "alice")
    bob, _ = register(client, "bob")
    post = publish(client, alice, admin)

    liked = client.post(f"/posts/{post['id']}/like", headers=bob).json()
    assert liked["likes"] == 1

    commented = client.post(f"/posts/{post['id']}/comments", headers=bob, json={"text": "Great read"}).json()
    assert [c["text"] for c in commented["comments"]] == ["Great read"]
    assert client.post(f"/posts/{post['id']}/comments", headers=bob, json={"text": "   "}).status_code == 400

    shared = client.post(f"/posts/{post['id']}/share").json()
    assert shared["shares"] == 1

    notes = client.get("/notifications", headers=alice).json()
    assert sorted(n["type"] for n in notes) == ["comment", "like"]
    assert client.get("/notifications/unread-count", headers=alice).json()["count"] == 2

    assert client.post("/notifications/read-all", headers=alice).json()["result"] == "updated"
    assert client.post("/notifications/read-all", headers=alice).json()["result"] == "no_effect"
    assert client.post("/notifications/not-an-id/read", headers=alice).status_code == 400

    page = client.get("/posts").json()
    assert page["total_posts"] == 1
    assert client.get(f"/users/{alice_user['id']}/posts").json()[0]["id"] == post["id"]


def test_missing_post_is_404(client):
    headers, _ = register(client, "bob")
    assert client.get("/posts/000000000000000000000000").status_code == 404
    assert client.post("/posts/000000000000000000000000/like", headers=headers).status_code == 404


def test_blocked_user_is_rejected(client):
    admin = admin_headers(client)
    bob, bob_user = register(client, "bob")

    resp = client.put(f"/admin/users/{bob_user['id']}", headers=admin, json={"is_blocked": True})
    assert resp.json()["is_blocked"] is True

    assert client.get("/auth/me", headers=bob).status_code == 403
    assert client.post("/auth/login", json={"email": "bob@example.com", "password": "password123"}).status_code == 403


def test_admin_broadcast(client):
    admin = admin_headers(client)
    alice, _ = register(client, "alice")
    register(client, "bob")

    resp = client.post("/admin/notifications", headers=admin, json={
        "title": "Scheduled maintenance",
        "description": "The site will be read-only tonight.",
        "targeting": {"type": "all"},
    })
    result = resp.json()
    assert resp.status_code == 200
    assert result["total_targeted"] == 3
    assert result["count"] == 3
    assert result["status"] == "completed"

    notes = client.get("/notifications", headers=alice).json()
    assert notes[0]["type"] == "announcement"

    log = client.get("/admin/notifications/log", headers=admin).json()
    assert log[0]["id"] == result["log_id"]

    cleaned = client.delete(f"/admin/notifications/log/{result['log_id']}", headers=admin).json()
    assert cleaned["deleted"] == 3


def test_broadcast_validation(client):
    admin = admin_headers(client)
    resp = client.post("/admin/notifications", headers=admin, json={
        "title": "Scheduled maintenance",
        "description": "The site will be read-only tonight.",
        "targeting": {"type": "specific", "user_ids": []},
    })
    assert resp.status_code == 422


def test_last_admin_cannot_be_deleted(client):
    admin = admin_headers(client)
    users = client.get("/admin/users", headers=admin).json()
    admin_user = next(u for u in users if u["role"] == "admin")

    resp = client.delete(f"/admin/users/{admin_user['id']}", headers=admin)
    assert resp.status_code == 400


def test_categories(client):
    categories = client.get("/categories").json()
    assert {"id": "1", "name": "Technology", "slug": "technology"} in categories
    assert client.get("/categories/counts").json() == []


def test_admin_moderates_seeded_user_through_routes(client):
    admin = admin_headers(client)
    assert client.post("/admin/seed", headers=admin).json()["success"] is True

    users = client.get("/admin/users", headers=admin).json()
    ada = next(u for u in users if u["email"] == "ada.lovelace@example.com")
    assert ada["id"] == "author-ada"

    resp = client.put(f"/admin/users/{ada['id']}", headers=admin, json={"is_blocked": True})
    assert resp.status_code == 200
    assert resp.json()["is_blocked"] is True

    assert client.delete(f"/admin/users/{ada['id']}", headers=admin).status_code == 200
    assert client.get("/users/author-ada").status_code == 404
    assert client.delete(f"/admin/users/{ada['id']}", headers=admin).status_code == 404


def test_startup_seeds_when_enabled(monkeypatch, mongo):
    monkeypatch.setattr(settings, "SEED_ON_STARTUP", True)

    with TestClient(app) as client:
        assert client.get("/users/author-ada").json()["first_name"] == "Ada"

    assert mongo["users"].count_documents({}) > 1
