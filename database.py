"""
MongoDB access layer.

A ``Database`` is built once at startup and handed to the routes; nothing
here keeps module-level connection state. Collections are named after the
lowercase schema class (``user``, ``blog``).
"""
import logging
from contextlib import contextmanager
from typing import List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient, ReturnDocument

from config import Settings

logger = logging.getLogger(__name__)


def to_object_id(value) -> Optional[ObjectId]:
    if value is None:
        return None
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


class Database:
    def __init__(self, client, name: str):
        self.client = client
        self.db = client[name]
        self.users = self.db["user"]
        self.blogs = self.db["blog"]

    @classmethod
    def connect(cls, settings: Settings) -> "Database":
        client = MongoClient(settings.database_url, timeoutMS=settings.request_timeout_ms)
        logger.info("connecting to database %s", settings.database_name)
        return cls(client, settings.database_name)

    def ensure_indexes(self) -> None:
        self.users.create_index([("email", ASCENDING)], unique=True)
        self.blogs.create_index([("user", ASCENDING)])

    def ping(self) -> None:
        self.client.admin.command("ping")

    def close(self) -> None:
        self.client.close()

    @contextmanager
    def transaction(self):
        """Yield a session whose writes commit together or not at all."""
        with self.client.start_session() as session:
            with session.start_transaction():
                yield session

    # Users

    def list_users(self) -> List[dict]:
        return list(self.users.find({}, {"password_hash": 0}))

    def find_user(self, user_id) -> Optional[dict]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return self.users.find_one({"_id": oid})

    def find_user_by_email(self, email: str) -> Optional[dict]:
        return self.users.find_one({"email": email})

    def create_user(self, doc: dict) -> dict:
        res = self.users.insert_one(doc)
        doc["_id"] = res.inserted_id
        return doc

    def link_blog(self, user_id, blog_id, session=None) -> None:
        self.users.update_one({"_id": user_id}, {"$push": {"blogs": blog_id}}, session=session)

    def unlink_blog(self, user_id, blog_id, session=None) -> None:
        self.users.update_one({"_id": user_id}, {"$pull": {"blogs": blog_id}}, session=session)

    # Blogs

    def list_blogs(self) -> List[dict]:
        return list(self.blogs.find({}))

    def find_blog(self, blog_id) -> Optional[dict]:
        oid = to_object_id(blog_id)
        if oid is None:
            return None
        return self.blogs.find_one({"_id": oid})

    def find_blogs(self, blog_ids) -> List[dict]:
        """Return the blogs for ``blog_ids`` in the order given."""
        found = {b["_id"]: b for b in self.blogs.find({"_id": {"$in": list(blog_ids)}})}
        return [found[i] for i in blog_ids if i in found]

    def find_owners(self, user_ids) -> dict:
        cursor = self.users.find({"_id": {"$in": list(set(user_ids))}}, {"name": 1})
        return {u["_id"]: u for u in cursor}

    def create_blog(self, doc: dict, session=None) -> dict:
        res = self.blogs.insert_one(doc, session=session)
        doc["_id"] = res.inserted_id
        return doc

    def update_blog(self, blog_id, changes: dict) -> Optional[dict]:
        oid = to_object_id(blog_id)
        if oid is None:
            return None
        if not changes:
            return self.blogs.find_one({"_id": oid})
        return self.blogs.find_one_and_update(
            {"_id": oid},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )

    def delete_blog(self, blog_id, session=None) -> Optional[dict]:
        oid = to_object_id(blog_id)
        if oid is None:
            return None
        return self.blogs.find_one_and_delete({"_id": oid}, session=session)
