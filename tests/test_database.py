from unittest import mock

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError, PyMongoError

import ownership
from database import Database, to_object_id
from schemas import Blog


def _user(db, email="a@x.com"):
    return db.create_user({"name": "A", "email": email, "password_hash": "h", "blogs": []})


def test_to_object_id():
    oid = ObjectId()
    assert to_object_id(oid) is oid
    assert to_object_id(str(oid)) == oid
    assert to_object_id("nope") is None
    assert to_object_id(None) is None


def test_transaction_commits_through_session():
    client = mock.MagicMock()
    db = Database(client, "blog")
    with db.transaction() as session:
        pass
    client.start_session.assert_called_once_with()
    assert session is client.start_session.return_value.__enter__.return_value
    session.start_transaction.assert_called_once_with()
    session.start_transaction.return_value.__exit__.assert_called_once_with(None, None, None)


def test_transaction_aborts_on_error():
    client = mock.MagicMock()
    client.start_session.return_value.__enter__.return_value.start_transaction.return_value.__exit__.return_value = False
    db = Database(client, "blog")
    with pytest.raises(RuntimeError):
        with db.transaction():
            raise RuntimeError("boom")
    txn = client.start_session.return_value.__enter__.return_value.start_transaction.return_value
    exc_type = txn.__exit__.call_args[0][0]
    assert exc_type is RuntimeError


def test_unique_email_index(db):
    db.ensure_indexes()
    _user(db)
    with pytest.raises(DuplicateKeyError):
        _user(db)


def test_list_users_hides_hash(db):
    _user(db)
    assert "password_hash" not in db.list_users()[0]


def test_find_blogs_keeps_requested_order(db):
    user = _user(db)
    a = ownership.add_blog(db, user, Blog(title="a", desc="d", user=user["_id"]))
    b = ownership.add_blog(db, user, Blog(title="b", desc="d", user=user["_id"]))
    found = db.find_blogs([b["_id"], ObjectId(), a["_id"]])
    assert [x["title"] for x in found] == ["b", "a"]


def test_update_blog_without_changes(db):
    user = _user(db)
    blog = ownership.add_blog(db, user, Blog(title="a", desc="d", user=user["_id"]))
    assert db.update_blog(blog["_id"], {})["title"] == "a"
    assert db.update_blog("bad-id", {"title": "x"}) is None


def test_add_blog_links_owner(db):
    user = _user(db)
    blog = ownership.add_blog(db, user, Blog(title="a", desc="d", user=user["_id"]))
    assert db.find_user(user["_id"])["blogs"] == [blog["_id"]]
    assert db.find_blog(blog["_id"])["user"] == user["_id"]


def test_delete_blog_unlinks_owner(db):
    user = _user(db)
    blog = ownership.add_blog(db, user, Blog(title="a", desc="d", user=user["_id"]))
    deleted = ownership.delete_blog(db, blog["_id"])
    assert deleted["_id"] == blog["_id"]
    assert db.find_user(user["_id"])["blogs"] == []
    assert ownership.delete_blog(db, blog["_id"]) is None


def test_add_blog_rolls_back(db, monkeypatch):
    user = _user(db)

    def fault(user_id, blog_id, session=None):
        raise PyMongoError("write failed")

    monkeypatch.setattr(db, "link_blog", fault)
    with pytest.raises(PyMongoError):
        ownership.add_blog(db, user, Blog(title="a", desc="d", user=user["_id"]))
    assert db.blogs.count_documents({}) == 0
