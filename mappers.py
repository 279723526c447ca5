"""Translate stored Mongo documents into the client-facing DTOs."""

from typing import Optional

from schemas import AdminAnnouncementLogOut, CommentOut, NotificationOut, PostOut, UserOut
from utils import as_aware, now_utc


def _public(doc: dict) -> dict:
    d = {**doc}
    _id = d.pop("_id", None)
    if _id is not None and not d.get("id"):
        d["id"] = str(_id)
    d.pop("password", None)
    return d


def user_to_dto(doc: Optional[dict]) -> Optional[UserOut]:
    if not doc:
        return None
    d = _public(doc)
    d["profile_image_url"] = d.get("profile_image_url") or None
    d["description"] = d.get("description") or ""
    d["is_blocked"] = bool(d.get("is_blocked", False))
    d["role"] = d.get("role") or "user"
    d["auth_provider"] = d.get("auth_provider") or ("google" if d.get("google_id") else "email")
    d["created_at"] = as_aware(d.get("created_at"))
    d["updated_at"] = as_aware(d.get("updated_at"))
    return UserOut(**d)


def comment_to_dto(doc: dict) -> CommentOut:
    d = _public(doc)
    d["date"] = as_aware(d.get("date")) or now_utc()
    return CommentOut(**d)


def post_to_dto(doc: Optional[dict]) -> Optional[PostOut]:
    if not doc:
        return None
    d = _public(doc)
    d["comments"] = [comment_to_dto(c) for c in d.get("comments") or []]
    d["liked_by"] = list(d.get("liked_by") or [])
    d["date"] = as_aware(d.get("date")) or now_utc()
    d["status"] = d.get("status") or "pending"
    return PostOut(**d)


def notification_to_dto(doc: Optional[dict]) -> Optional[NotificationOut]:
    if not doc:
        return None
    d = _public(doc)
    d["created_at"] = as_aware(d.get("created_at")) or now_utc()
    return NotificationOut(**d)


def announcement_log_to_dto(doc: dict) -> AdminAnnouncementLogOut:
    d = _public(doc)
    d["sent_at"] = as_aware(d.get("sent_at")) or now_utc()
    return AdminAnnouncementLogOut(**d)
