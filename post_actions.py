"""
Post interaction engine and post CRUD.

Likes, comments and shares are single-document atomic updates on the post.
The like toggle is keyed on the user's membership in `liked_by` and is done
with membership-conditioned updates, so `likes == len(liked_by)` holds even
when two toggles from the same user race.
"""

import logging
import re
from typing import List, Optional

from bson import ObjectId
from pydantic import ValidationError
from pymongo import ReturnDocument

from data import CATEGORIES
from database import get_db
from errors import BlockedUserError
from mappers import post_to_dto
from notification_actions import create_notification
from revalidation import revalidate_path
from schemas import (
    AdminPostList,
    CategoryCount,
    Comment,
    CreatePostInput,
    Post,
    PostOut,
    PostPage,
    StatusCounts,
    UserOut,
    UserSummary,
)
from user_actions import get_user_profile
from utils import generate_slug, is_valid_object_id, make_excerpt, now_utc, placeholder_image

logger = logging.getLogger(__name__)

PUBLIC_STATUS = "accepted"


def _posts():
    return get_db()["posts"]


def _revalidate_post(post: PostOut):
    revalidate_path("/", f"/posts/{post.id}", "/admin/blogs")
    if post.author and post.author.id:
        revalidate_path(f"/profile/{post.author.id}")


def _acting_user(user_id: str, action: str) -> Optional[UserOut]:
    user = get_user_profile(user_id) if user_id else None
    if not user:
        logger.warning("User %s not found for %s", user_id, action)
        return None
    if user.is_blocked:
        raise BlockedUserError(f"Blocked users cannot {action}.")
    return user


def _notify_author(post: PostOut, type: str, acting: UserSummary):
    # post authors are not notified about their own activity
    if not post.author or not post.author.id or post.author.id == acting.id:
        return
    try:
        create_notification(post.author.id, type, post.id, generate_slug(post.title), post.title, acting)
    except Exception:
        logger.exception("Failed to create %s notification for post %s", type, post.id)


# ----------------------- Interactions -----------------------

def toggle_like(post_id: str, user_id: str) -> Optional[PostOut]:
    if not is_valid_object_id(post_id):
        logger.warning("Invalid ObjectId for toggle_like: %s", post_id)
        return None
    actor = _acting_user(user_id, "like posts")
    if not actor:
        return None
    try:
        oid = ObjectId(post_id)
        liked = True
        doc = _posts().find_one_and_update(
            {"_id": oid, "liked_by": {"$ne": user_id}},
            {"$inc": {"likes": 1}, "$addToSet": {"liked_by": user_id}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            liked = False
            doc = _posts().find_one_and_update(
                {"_id": oid, "liked_by": user_id},
                {"$inc": {"likes": -1}, "$pull": {"liked_by": user_id}},
                return_document=ReturnDocument.AFTER,
            )
        if doc is None:
            logger.warning("Post %s not found for liking", post_id)
            return None
    except Exception:
        logger.exception("Error toggling like on post %s", post_id)
        return None

    post = post_to_dto(doc)
    _revalidate_post(post)
    if liked:
        _notify_author(post, "like", actor.summary())
    return post


def add_comment(post_id: str, author_id: str, author_name: str, author_image_url: Optional[str], text: str) -> Optional[PostOut]:
    if not is_valid_object_id(post_id):
        logger.warning("Invalid ObjectId for add_comment: %s", post_id)
        return None
    if not _acting_user(author_id, "comment"):
        return None
    try:
        author = UserSummary(
            id=author_id,
            name=author_name,
            image_url=author_image_url or placeholder_image(author_id, 32, 32),
        )
        comment = Comment(id=str(ObjectId()), post_id=post_id, author=author, text=text, date=now_utc())
    except ValidationError as e:
        logger.warning("Rejected comment on post %s: %s", post_id, e.errors()[0].get("msg"))
        return None
    try:
        doc = _posts().find_one_and_update(
            {"_id": ObjectId(post_id)},
            {"$push": {"comments": comment.model_dump()}},
            return_document=ReturnDocument.AFTER,
        )
    except Exception:
        logger.exception("Error adding comment to post %s", post_id)
        return None
    if doc is None:
        logger.warning("Post %s not found for comment", post_id)
        return None

    post = post_to_dto(doc)
    _revalidate_post(post)
    _notify_author(post, "comment", author)
    return post


def increment_share(post_id: str) -> Optional[PostOut]:
    """Count a share click. Every call increments; there is no per-user dedup."""
    if not is_valid_object_id(post_id):
        logger.warning("Invalid ObjectId for increment_share: %s", post_id)
        return None
    try:
        doc = _posts().find_one_and_update(
            {"_id": ObjectId(post_id)},
            {"$inc": {"shares": 1}},
            return_document=ReturnDocument.AFTER,
        )
    except Exception:
        logger.exception("Error sharing post %s", post_id)
        return None
    if doc is None:
        return None
    post = post_to_dto(doc)
    _revalidate_post(post)
    return post


# ----------------------- Posts -----------------------

def create_post(data: CreatePostInput) -> Optional[PostOut]:
    author = _acting_user(data.author_id, "create posts")
    if not author:
        return None
    post = Post(
        title=data.title,
        content=data.content,
        excerpt=make_excerpt(data.content),
        category=data.category_slug,
        author=UserSummary(
            id=author.id,
            name=author.full_name,
            image_url=author.profile_image_url or placeholder_image(author.id, 40, 40),
        ),
        image_url=data.image_url or placeholder_image(data.title, 600, 400),
        date=now_utc(),
        status=data.status or "pending",
    )
    try:
        result = _posts().insert_one(post.model_dump())
        created = post_to_dto(_posts().find_one({"_id": result.inserted_id}))
    except Exception:
        logger.exception("Error creating post %r", data.title)
        return None
    _revalidate_post(created)
    revalidate_path(f"/category/{created.category}")
    return created


def get_posts(page: int = 1, limit: int = 8, category_slug: Optional[str] = None) -> PostPage:
    try:
        query = {"status": PUBLIC_STATUS}
        if category_slug:
            query["category"] = category_slug
        page = max(page, 1)
        skip = (page - 1) * limit
        docs = list(_posts().find(query).sort("date", -1).skip(skip).limit(limit))
        total = _posts().count_documents(query)
        return PostPage(
            posts=[post_to_dto(d) for d in docs],
            has_more=skip + len(docs) < total,
            total_posts=total,
        )
    except Exception:
        logger.exception("Error fetching posts")
        return PostPage(posts=[], has_more=False, total_posts=0)


def get_all_posts_for_admin(status: Optional[str] = None) -> AdminPostList:
    try:
        counts = StatusCounts(
            accepted=_posts().count_documents({"status": "accepted"}),
            pending=_posts().count_documents({"status": "pending"}),
            rejected=_posts().count_documents({"status": "rejected"}),
            all=_posts().count_documents({}),
        )
        query = {"status": status} if status else {}
        docs = _posts().find(query).sort("date", -1)
        return AdminPostList(posts=[post_to_dto(d) for d in docs], counts=counts)
    except Exception:
        logger.exception("Error fetching posts for admin")
        return AdminPostList(posts=[], counts=StatusCounts())


def get_post_by_id(post_id: str) -> Optional[PostOut]:
    if not is_valid_object_id(post_id):
        logger.warning("Invalid ObjectId for get_post_by_id: %s", post_id)
        return None
    try:
        return post_to_dto(_posts().find_one({"_id": ObjectId(post_id)}))
    except Exception:
        logger.exception("Error fetching post %s", post_id)
        return None


def update_post_status(post_id: str, status: str) -> Optional[PostOut]:
    if not is_valid_object_id(post_id):
        logger.warning("Invalid ObjectId for update_post_status: %s", post_id)
        return None
    try:
        doc = _posts().find_one_and_update(
            {"_id": ObjectId(post_id)},
            {"$set": {"status": status, "updated_at": now_utc()}},
            return_document=ReturnDocument.AFTER,
        )
    except Exception:
        logger.exception("Error updating status of post %s", post_id)
        return None
    post = post_to_dto(doc)
    if post:
        _revalidate_post(post)
        revalidate_path(f"/category/{post.category}")
    return post


def get_categories_with_counts() -> List[CategoryCount]:
    try:
        rows = _posts().aggregate([
            {"$match": {"status": PUBLIC_STATUS}},
            {"$group": {"_id": "$category", "count": {"$sum": 1}}},
            {"$sort": {"count": -1}},
        ])
        return [CategoryCount(category=r["_id"], count=r["count"]) for r in rows if r["_id"]]
    except Exception:
        logger.exception("Error fetching categories with counts")
        return []


def get_posts_by_author_id(author_id: str) -> List[PostOut]:
    try:
        docs = _posts().find({"author.id": author_id, "status": PUBLIC_STATUS}).sort("date", -1)
        return [post_to_dto(d) for d in docs]
    except Exception:
        logger.exception("Error fetching posts by author %s", author_id)
        return []


def delete_posts_by_author_id(author_id: str) -> bool:
    try:
        result = _posts().delete_many({"author.id": author_id})
    except Exception:
        logger.exception("Error deleting posts by author %s", author_id)
        return False
    logger.info("Deleted %d posts for author %s", result.deleted_count, author_id)
    revalidate_path("/", "/admin/blogs", f"/profile/{author_id}")
    revalidate_path(*[f"/category/{c.slug}" for c in CATEGORIES])
    return result.acknowledged


def search_posts(query: str) -> List[PostOut]:
    try:
        pattern = {"$regex": re.escape(query.strip()), "$options": "i"}
        docs = _posts().find({
            "status": PUBLIC_STATUS,
            "$or": [
                {"title": pattern},
                {"content": pattern},
                {"author.name": pattern},
                {"category": pattern},
            ],
        }).sort("date", -1)
        return [post_to_dto(d) for d in docs]
    except Exception:
        logger.exception("Error searching posts for %r", query)
        return []


def refresh_author_snapshots(user_id: str) -> int:
    """Rewrite the embedded author summary on a user's posts and comments.

    Returns the number of posts touched.
    """
    user = get_user_profile(user_id)
    if not user:
        return 0
    summary = user.summary().model_dump()
    post_author = {**summary, "image_url": summary["image_url"] or placeholder_image(user.id, 40, 40)}
    try:
        posts = _posts().update_many({"author.id": user.id}, {"$set": {"author": post_author}})
        touched = posts.modified_count
        for doc in _posts().find({"comments.author.id": user.id}, {"comments": 1}):
            comments = doc.get("comments") or []
            for c in comments:
                if c.get("author", {}).get("id") == user.id:
                    c["author"] = {**summary, "image_url": summary["image_url"] or c["author"].get("image_url")}
            _posts().update_one({"_id": doc["_id"]}, {"$set": {"comments": comments}})
            touched += 1
    except Exception:
        logger.exception("Error refreshing author snapshots for %s", user_id)
        return 0
    revalidate_path("/", f"/profile/{user.id}")
    return touched
