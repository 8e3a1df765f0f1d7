"""
Keeps ``blog.user`` and ``user.blogs`` in step.

Both writes of each operation share one transaction, so a failure between
them leaves neither document changed.
"""
import logging
from typing import Optional

from database import Database
from schemas import Blog

logger = logging.getLogger(__name__)


def add_blog(db: Database, owner: dict, blog: Blog) -> dict:
    doc = blog.model_dump()
    try:
        with db.transaction() as session:
            db.create_blog(doc, session=session)
            db.link_blog(owner["_id"], doc["_id"], session=session)
    except Exception:
        logger.warning("add blog for user %s aborted", owner["_id"])
        raise
    logger.info("blog %s created for user %s", doc["_id"], owner["_id"])
    return doc


def delete_blog(db: Database, blog_id) -> Optional[dict]:
    """Delete a blog and unlink it from its owner; ``None`` if it did not exist."""
    try:
        with db.transaction() as session:
            blog = db.delete_blog(blog_id, session=session)
            if blog is not None:
                db.unlink_blog(blog["user"], blog["_id"], session=session)
    except Exception:
        logger.warning("delete of blog %s aborted", blog_id)
        raise
    if blog is not None:
        logger.info("blog %s deleted", blog["_id"])
    return blog
