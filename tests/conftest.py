from contextlib import contextmanager

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import Database
from main import create_app
from security import configure_hashing

configure_hashing(4)


class MockDatabase(Database):
    """Database over mongomock.

    mongomock has no sessions, so a transaction snapshots both collections
    and restores them if the block raises.
    """

    @contextmanager
    def transaction(self):
        snapshot = [(coll, list(coll.find({}))) for coll in (self.users, self.blogs)]
        try:
            yield None
        except Exception:
            for coll, docs in snapshot:
                coll.delete_many({})
                if docs:
                    coll.insert_many(docs)
            raise

    def ping(self):
        return None


@pytest.fixture
def settings():
    return Settings(jwt_secret="test-secret", database_name="blog_test", bcrypt_rounds=4)


@pytest.fixture
def db():
    return MockDatabase(mongomock.MongoClient(), "blog_test")


@pytest.fixture
def client(settings, db):
    with TestClient(create_app(settings, db)) as c:
        yield c


@pytest.fixture
def signup(client):
    def _signup(name="A", email="a@x.com", password="p"):
        res = client.post("/api/user/signup", json={"name": name, "email": email, "password": password})
        assert res.status_code == 201, res.text
        return res.json()["user"]
    return _signup


@pytest.fixture
def add_blog(client):
    def _add(user_id, title="T", desc="D", **extra):
        res = client.post("/api/blog/add", json={"title": title, "desc": desc, "user": user_id, **extra})
        assert res.status_code == 200, res.text
        return res.json()["blog"]
    return _add
