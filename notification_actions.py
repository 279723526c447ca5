"""
Notifications: single creation on post interactions, per-recipient read/delete
operations, and the admin broadcast fan-out.
"""

import logging
from typing import List, Optional, Union

from bson import ObjectId

from database import create_document, get_db
from mappers import announcement_log_to_dto, notification_to_dto
from revalidation import revalidate_path
from schemas import (
    AdminAnnouncementLogEntry,
    AdminAnnouncementLogOut,
    AdminNotificationPayload,
    BulkNotificationResult,
    Notification,
    NotificationOut,
    Outcome,
    TargetingOptions,
    UserSummary,
)
from utils import is_valid_object_id, now_utc

logger = logging.getLogger(__name__)

NOTIFICATIONS = "notifications"
ANNOUNCEMENT_LOG = "admin_announcements"


def _notifications():
    return get_db()[NOTIFICATIONS]


def create_notification(
    recipient_id: str,
    type: str,
    post_id: str,
    post_slug: str,
    post_title: str,
    acting_user: UserSummary,
) -> Optional[NotificationOut]:
    if recipient_id == acting_user.id:
        logger.info("Skipping %s notification: user %s acted on their own post", type, recipient_id)
        return None
    try:
        notification = Notification(
            user_id=recipient_id,
            type=type,
            post_id=post_id,
            post_slug=post_slug,
            post_title=post_title,
            acting_user=acting_user,
            is_read=False,
        )
        new_id = create_document(NOTIFICATIONS, notification)
        revalidate_path("/notifications", f"/profile/{recipient_id}")
        return notification_to_dto(_notifications().find_one({"_id": ObjectId(new_id)}))
    except Exception:
        logger.exception("Error creating %s notification for %s", type, recipient_id)
        return None


def get_notifications_for_user(user_id: str, limit: int = 50) -> List[NotificationOut]:
    try:
        docs = _notifications().find({"user_id": user_id}).sort("created_at", -1).limit(limit)
        return [notification_to_dto(d) for d in docs]
    except Exception:
        logger.exception("Error fetching notifications for %s", user_id)
        return []


def get_unread_notification_count(user_id: str) -> int:
    try:
        return _notifications().count_documents({"user_id": user_id, "is_read": False})
    except Exception:
        logger.exception("Error counting unread notifications for %s", user_id)
        return 0


# ----------------------- Read / delete -----------------------

def _changed(count: int) -> Outcome:
    if count > 0:
        revalidate_path("/notifications")
        return Outcome.UPDATED
    return Outcome.NO_EFFECT


def mark_notification_as_read(notification_id: str, user_id: str) -> Outcome:
    if not is_valid_object_id(notification_id):
        logger.warning("Invalid ObjectId for mark_notification_as_read: %s", notification_id)
        return Outcome.INVALID
    try:
        result = _notifications().update_one(
            {"_id": ObjectId(notification_id), "user_id": user_id},
            {"$set": {"is_read": True}},
        )
        return _changed(result.modified_count)
    except Exception:
        logger.exception("Error marking notification %s as read", notification_id)
        return Outcome.ERROR


def mark_all_notifications_as_read(user_id: str) -> Outcome:
    try:
        result = _notifications().update_many(
            {"user_id": user_id, "is_read": False},
            {"$set": {"is_read": True}},
        )
        return _changed(result.modified_count)
    except Exception:
        logger.exception("Error marking all notifications as read for %s", user_id)
        return Outcome.ERROR


def delete_notification(notification_id: str, user_id: str) -> Outcome:
    if not is_valid_object_id(notification_id):
        logger.warning("Invalid ObjectId for delete_notification: %s", notification_id)
        return Outcome.INVALID
    try:
        result = _notifications().delete_one({"_id": ObjectId(notification_id), "user_id": user_id})
        return _changed(result.deleted_count)
    except Exception:
        logger.exception("Error deleting notification %s", notification_id)
        return Outcome.ERROR


def delete_all_notifications(user_id: str) -> Outcome:
    try:
        result = _notifications().delete_many({"user_id": user_id})
        return _changed(result.deleted_count)
    except Exception:
        logger.exception("Error deleting all notifications for %s", user_id)
        return Outcome.ERROR


def delete_notifications_related_to_user(user_id: str) -> bool:
    """Remove notifications where the user is the recipient or the actor."""
    try:
        result = _notifications().delete_many({
            "$or": [{"user_id": user_id}, {"acting_user.id": user_id}],
        })
    except Exception:
        logger.exception("Error deleting notifications related to %s", user_id)
        return False
    logger.info("Deleted %d notifications related to user %s", result.deleted_count, user_id)
    revalidate_path("/notifications")
    return result.acknowledged


# ----------------------- Admin broadcast -----------------------

def _dedupe(ids) -> List[str]:
    seen = set()
    out = []
    for i in ids:
        if i and i not in seen:
            seen.add(i)
            out.append(i)
    return out


def resolve_audience(targeting: TargetingOptions) -> List[str]:
    """Turn a targeting mode into concrete recipient user ids.

    Store errors propagate; the caller treats them as a hard failure.
    """
    database = get_db()
    if targeting.type == "all":
        return _dedupe(d.get("id") or str(d["_id"]) for d in database["users"].find({}, {"id": 1}))
    if targeting.type == "specific":
        return _dedupe(targeting.user_ids)
    rows = database["posts"].aggregate([
        {"$match": {"category": targeting.category_slug}},
        {"$group": {"_id": "$author.id"}},
    ])
    return sorted(_dedupe(r["_id"] for r in rows))


def broadcast_status(total: int, errors: int) -> str:
    if errors == 0:
        return "completed"
    if errors >= total:
        return "failed"
    return "partial_failure"


def _target_identifier(targeting: TargetingOptions) -> Union[List[str], str, None]:
    if targeting.type == "specific":
        return list(targeting.user_ids)
    if targeting.type == "category":
        return targeting.category_slug
    return None


def send_bulk_notifications(payload: AdminNotificationPayload, sent_by: Optional[UserSummary] = None) -> BulkNotificationResult:
    recipients = resolve_audience(payload.targeting)
    announcement_id = str(ObjectId())
    success_count = 0
    error_count = 0

    for recipient_id in recipients:
        record = {
            "user_id": recipient_id,
            "type": "announcement",
            "title": payload.title,
            "description": payload.description,
            "external_link": payload.external_link or None,
            "announcement_id": announcement_id,
            "acting_user": sent_by.model_dump() if sent_by else None,
            "is_read": False,
        }
        try:
            create_document(NOTIFICATIONS, record)
            success_count += 1
        except Exception:
            error_count += 1
            logger.exception("Broadcast %s: failed to notify %s", announcement_id, recipient_id)

    total = len(recipients)
    status = broadcast_status(total, error_count)
    entry = AdminAnnouncementLogEntry(
        title=payload.title,
        description=payload.description,
        external_link=payload.external_link or None,
        targeting_type=payload.targeting.type,
        target_identifier=_target_identifier(payload.targeting),
        sent_by=sent_by.id if sent_by else None,
        total_targeted=total,
        success_count=success_count,
        error_count=error_count,
        status=status,
    )
    log_doc = entry.model_dump()
    log_doc["_id"] = ObjectId(announcement_id)
    log_doc["sent_at"] = now_utc()
    log_id = None
    try:
        get_db()[ANNOUNCEMENT_LOG].insert_one(log_doc)
        log_id = announcement_id
    except Exception:
        logger.exception("Broadcast %s: failed to write log entry", announcement_id)

    logger.info(
        "Broadcast %s (%s): %d/%d delivered, %d errors",
        announcement_id, payload.targeting.type, success_count, total, error_count,
    )
    if success_count:
        revalidate_path("/notifications")
    revalidate_path("/admin/notifications-log")
    return BulkNotificationResult(
        success=error_count == 0 and total > 0,
        count=success_count,
        errors=error_count,
        total_targeted=total,
        status=status,
        log_id=log_id,
    )


def get_admin_announcement_log(limit: int = 100) -> List[AdminAnnouncementLogOut]:
    try:
        docs = get_db()[ANNOUNCEMENT_LOG].find({}).sort("sent_at", -1).limit(limit)
        return [announcement_log_to_dto(d) for d in docs]
    except Exception:
        logger.exception("Error fetching admin announcement log")
        return []


def delete_announcement_notifications(announcement_id: str) -> int:
    """Remove every delivered record of one broadcast. The log entry is kept."""
    if not is_valid_object_id(announcement_id):
        logger.warning("Invalid ObjectId for delete_announcement_notifications: %s", announcement_id)
        return 0
    try:
        result = _notifications().delete_many({"type": "announcement", "announcement_id": announcement_id})
    except Exception:
        logger.exception("Error cleaning up broadcast %s", announcement_id)
        return 0
    if result.deleted_count:
        revalidate_path("/notifications")
    return result.deleted_count
