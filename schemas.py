"""
Database Schemas for the blog API

Each collection model corresponds to a MongoDB collection with the
collection name equal to the lowercase class name. Request models
validate incoming JSON bodies before any handler logic runs.
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Any
from datetime import datetime, timezone

PLACEHOLDER_IMAGE = "placeholder.jpg"


class User(BaseModel):
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Login key, unique across users")
    password_hash: str = Field(..., description="Hashed password (server-side computed)")
    blogs: List[Any] = Field(default_factory=list, description="Ids of blogs owned by the user")


class Blog(BaseModel):
    """
    Blog posts collection (collection name: blog)
    """
    title: str
    desc: str
    img: str = PLACEHOLDER_IMAGE
    user: Any = Field(..., description="ObjectId of the owning user")
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# Request models

class SignupRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class BlogCreate(BaseModel):
    title: str = Field(..., min_length=1)
    desc: str = Field(..., min_length=1)
    img: Optional[str] = None
    user: str = Field(..., min_length=1)


class BlogUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    desc: Optional[str] = Field(None, min_length=1)

    def changes(self) -> dict:
        return self.model_dump(exclude_none=True)


# Response helpers

def _timestamp(value):
    # Mongo keeps milliseconds and hands back naive UTC datetimes
    if not isinstance(value, datetime):
        return value
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat(timespec="milliseconds") + "Z"


def public_user(doc: dict) -> dict:
    return {
        "_id": str(doc["_id"]),
        "name": doc.get("name"),
        "email": doc.get("email"),
        "blogs": [str(b) for b in doc.get("blogs", [])],
    }


def public_blog(doc: dict, owner: Optional[dict] = None) -> dict:
    out = {
        "_id": str(doc["_id"]),
        "title": doc.get("title"),
        "desc": doc.get("desc"),
        "img": doc.get("img") or PLACEHOLDER_IMAGE,
        "user": str(doc.get("user")),
        "date": _timestamp(doc.get("date")),
    }
    if owner is not None:
        out["user"] = {"_id": str(owner["_id"]), "name": owner.get("name")}
    return out
