import mongomock
import pytest

import database
import revalidation
import settings
from post_actions import create_post
from schemas import CreatePostInput
from user_actions import create_user

ADMIN_EMAIL = "admin@cardfeed.io"
ADMIN_PASSWORD = "admin-secret-pw"


@pytest.fixture(autouse=True)
def mongo(monkeypatch):
    test_db = mongomock.MongoClient()["cardfeed_test"]
    monkeypatch.setattr(database, "db", test_db)
    monkeypatch.setattr(settings, "ADMIN_EMAIL", ADMIN_EMAIL)
    monkeypatch.setattr(settings, "ADMIN_PASSWORD", ADMIN_PASSWORD)
    database.ensure_indexes()
    revalidation.reset()
    yield test_db
    revalidation.reset()


@pytest.fixture
def make_user():
    def _make(user_id, first_name="Test", last_name="User", password=None, **extra):
        data = {
            "id": user_id,
            "email": f"{user_id}@example.com",
            "first_name": first_name,
            "last_name": last_name,
            **extra,
        }
        return create_user(data, password=password)
    return _make


@pytest.fixture
def make_post():
    def _make(author_id, title="Hello World", category="technology", status="accepted", content="<p>Some content</p>"):
        return create_post(CreatePostInput(
            title=title,
            content=content,
            category_slug=category,
            author_id=author_id,
            status=status,
        ))
    return _make
