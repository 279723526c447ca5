import logging
import re
from typing import List, Optional

from bson import ObjectId
from email_validator import EmailNotValidError, validate_email
from passlib.hash import bcrypt
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

import settings
from data import DEFAULT_USERS
from database import get_db
from errors import BlockedUserError, LastAdminError, UserConflictError
from mappers import user_to_dto
from revalidation import revalidate_path
from schemas import (
    CompleteProfileInput,
    CreateUserByAdminInput,
    GoogleAuthData,
    RegisterInput,
    UpdateUserByAdminInput,
    UpdateUserProfileInput,
    User,
    UserOut,
)
from utils import is_valid_object_id, now_utc

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, pw_hash: str) -> bool:
    if not pw_hash:
        return False
    try:
        return bcrypt.verify(password, pw_hash)
    except ValueError:
        # not a bcrypt hash (legacy plaintext rows)
        return False


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_admin_email(email: str) -> bool:
    return bool(settings.ADMIN_EMAIL) and normalize_email(email) == normalize_email(settings.ADMIN_EMAIL)


def role_for(email: str, requested: Optional[str] = None) -> str:
    return "admin" if is_admin_email(email) else (requested or "user")


def _users():
    return get_db()["users"]


def _find_user_doc(user_id_or_email: str) -> Optional[dict]:
    if not user_id_or_email:
        return None
    users = _users()
    doc = None
    if is_valid_object_id(user_id_or_email):
        doc = users.find_one({"_id": ObjectId(user_id_or_email)})
    if not doc:
        doc = users.find_one({"id": user_id_or_email})
    if not doc and "@" in user_id_or_email:
        doc = users.find_one({"email": normalize_email(user_id_or_email)})
    return doc


def _revalidate_user(user: UserOut):
    revalidate_path(f"/profile/{user.id}", "/admin/users")


def _insert_user(user: User, password: Optional[str] = None) -> UserOut:
    _id = ObjectId()
    doc = user.model_dump()
    doc["_id"] = _id
    doc["id"] = doc.get("id") or str(_id)
    doc["password"] = hash_password(password) if password else None
    doc["created_at"] = now_utc()
    doc["updated_at"] = now_utc()
    try:
        _users().insert_one(doc)
    except DuplicateKeyError:
        raise UserConflictError("An account with this email or ID already exists.")
    created = user_to_dto(_users().find_one({"_id": _id}))
    _revalidate_user(created)
    return created


# ----------------------- Lookups -----------------------

def get_user_profile(user_id_or_email: str) -> Optional[UserOut]:
    try:
        return user_to_dto(_find_user_doc(user_id_or_email))
    except Exception:
        logger.exception("Error fetching user profile %s", user_id_or_email)
        return None


def get_all_users() -> List[UserOut]:
    try:
        counts = {
            row["_id"]: row["count"]
            for row in get_db()["posts"].aggregate([
                {"$group": {"_id": "$author.id", "count": {"$sum": 1}}},
            ])
        }
        users = []
        for doc in _users().find({}).sort("created_at", -1):
            user = user_to_dto(doc)
            user.post_count = counts.get(user.id, 0)
            users.append(user)
        return users
    except Exception:
        logger.exception("Error fetching all users")
        return []


def search_users_by_name(query: str) -> List[UserOut]:
    try:
        pattern = {"$regex": re.escape(query.strip()), "$options": "i"}
        docs = _users().find({"$or": [
            {"first_name": pattern},
            {"last_name": pattern},
            {"email": pattern},
        ]})
        return [user_to_dto(d) for d in docs]
    except Exception:
        logger.exception("Error searching users for %r", query)
        return []


# ----------------------- Profile edits -----------------------

def update_user_profile(user_id: str, data: UpdateUserProfileInput) -> Optional[UserOut]:
    try:
        existing = _find_user_doc(user_id)
        if not existing:
            logger.warning("User %s not found for profile update", user_id)
            return None
        updates = data.model_dump(exclude_unset=True)
        if "profile_image_url" in updates:
            updates["profile_image_url"] = updates["profile_image_url"] or None
        updates["updated_at"] = now_utc()
        doc = _users().find_one_and_update(
            {"_id": existing["_id"]},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        user = user_to_dto(doc)
        if user:
            _revalidate_user(user)
            revalidate_path("/")
        return user
    except Exception:
        logger.exception("Error updating user profile %s", user_id)
        return None


# ----------------------- Sign-up / sign-in -----------------------

def create_user(data: dict, password: Optional[str] = None) -> Optional[UserOut]:
    """Create a user, or bring an existing account with the same email in line.

    Used by the seed loader and the admin bootstrap; an existing email is not
    an error here, its role/provider/block flag/image are updated instead.
    """
    email = normalize_email(data["email"])
    existing = _users().find_one({"email": email})
    if existing:
        updates = {}
        role = role_for(email, data.get("role"))
        if existing.get("role") != role:
            updates["role"] = role
        for field in ("auth_provider", "is_blocked", "profile_image_url"):
            if field in data and existing.get(field) != data[field]:
                updates[field] = data[field]
        if password and not verify_password(password, existing.get("password") or ""):
            updates["password"] = hash_password(password)
        if updates:
            updates["updated_at"] = now_utc()
            _users().update_one({"_id": existing["_id"]}, {"$set": updates})
            logger.info("Updated existing user %s: %s", email, sorted(updates))
        return user_to_dto(_users().find_one({"_id": existing["_id"]}))

    user = User(
        id=data.get("id") or "",
        email=email,
        first_name=data.get("first_name", ""),
        last_name=data.get("last_name", ""),
        profile_image_url=data.get("profile_image_url") or None,
        description=data.get("description") or "",
        google_id=data.get("google_id"),
        auth_provider=data.get("auth_provider") or ("google" if data.get("google_id") else "email"),
        role=role_for(email, data.get("role")),
        is_blocked=bool(data.get("is_blocked", False)),
    )
    return _insert_user(user, password)


def register_user(payload: RegisterInput) -> UserOut:
    try:
        email = validate_email(payload.email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValueError(str(e))
    email = normalize_email(email)
    if _users().find_one({"email": email}):
        raise UserConflictError("An account with this email already exists.")
    user = User(
        id="",
        email=email,
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        description=(payload.description or "").strip(),
        auth_provider="email",
        role=role_for(email),
    )
    return _insert_user(user, payload.password)


def authenticate_user(email: str, password: str) -> Optional[UserOut]:
    doc = _users().find_one({"email": normalize_email(email)})
    if not doc or not verify_password(password, doc.get("password") or ""):
        return None
    if doc.get("is_blocked"):
        raise BlockedUserError("This account has been blocked.")
    return user_to_dto(doc)


def find_or_create_user_from_google(google: GoogleAuthData, profile: CompleteProfileInput) -> Optional[UserOut]:
    email = normalize_email(google.email)
    image_url = profile.profile_image_url or google.profile_image_url or None
    existing = _users().find_one({"email": email})
    if existing:
        updates = {
            "first_name": profile.first_name or existing.get("first_name"),
            "last_name": profile.last_name or existing.get("last_name"),
            "description": profile.description or existing.get("description", ""),
            "profile_image_url": image_url,
            "auth_provider": "google",
            "updated_at": now_utc(),
        }
        if not existing.get("google_id"):
            updates["google_id"] = google.google_id
        if not existing.get("role"):
            updates["role"] = role_for(email)
        try:
            doc = _users().find_one_and_update(
                {"_id": existing["_id"]},
                {"$set": updates},
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            raise UserConflictError("A user with this Google ID or email already exists.")
        user = user_to_dto(doc)
        _revalidate_user(user)
        return user

    user = User(
        id="",
        email=email,
        first_name=profile.first_name,
        last_name=profile.last_name,
        description=profile.description or "",
        profile_image_url=image_url,
        google_id=google.google_id,
        auth_provider="google",
        role=role_for(email),
    )
    return _insert_user(user)


def verify_admin_credentials(email: str, password: str) -> Optional[UserOut]:
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        logger.warning("Admin login attempted but ADMIN_EMAIL/ADMIN_PASSWORD are not configured")
        return None
    if not is_admin_email(email) or password != settings.ADMIN_PASSWORD:
        return None
    admin = get_user_profile(normalize_email(email))
    if not admin:
        admin = create_user({
            "email": settings.ADMIN_EMAIL,
            "first_name": "Admin",
            "last_name": "User",
            "role": "admin",
            "auth_provider": "email",
            "description": "CardFeed Administrator",
        }, password=settings.ADMIN_PASSWORD)
    if admin:
        admin.role = "admin"
    return admin


# ----------------------- Seed data -----------------------

def seed_users() -> dict:
    """Load `DEFAULT_USERS` (and the configured admin) into the users collection."""
    created = 0
    seeds = [dict(u) for u in DEFAULT_USERS]
    if settings.ADMIN_EMAIL:
        seeds.append({
            "id": "admin-user-001",
            "email": settings.ADMIN_EMAIL,
            "first_name": "Admin",
            "last_name": "User",
            "description": "CardFeed Administrator.",
            "role": "admin",
            "auth_provider": "email",
            "is_blocked": False,
        })
    try:
        for seed in seeds:
            exists = _users().find_one({"$or": [{"email": normalize_email(seed["email"])}, {"id": seed["id"]}]})
            password = settings.ADMIN_PASSWORD if is_admin_email(seed["email"]) and settings.ADMIN_PASSWORD else None
            try:
                create_user(seed, password=password)
            except UserConflictError as e:
                logger.warning("Skipping seed user %s: %s", seed["email"], e)
                continue
            if not exists:
                created += 1
                logger.info("Seeded user %s (%s)", seed["email"], seed["id"])
    except Exception as e:
        logger.exception("Error seeding users")
        return {"success": False, "count": created, "message": f"Error seeding users: {e}"}
    revalidate_path("/admin/users")
    return {"success": True, "count": created, "message": f"Seeded {created} new users. Existing users checked/updated."}


# ----------------------- Admin -----------------------

def create_user_by_admin(payload: CreateUserByAdminInput) -> UserOut:
    email = normalize_email(payload.email)
    if _users().find_one({"email": email}):
        raise UserConflictError(f"User with email {email} already exists.")
    user = User(
        id="",
        email=email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        description=payload.description or "",
        profile_image_url=payload.profile_image_url or None,
        role=payload.role,
        auth_provider="admin_created",
    )
    return _insert_user(user, payload.password)


def update_user_by_admin(user_id: str, payload: UpdateUserByAdminInput) -> Optional[UserOut]:
    existing = _find_user_doc(user_id)
    if not existing:
        logger.warning("User %s not found for admin update", user_id)
        return None
    updates = payload.model_dump(exclude_unset=True)
    if "email" in updates:
        updates["email"] = normalize_email(updates["email"])
    if "profile_image_url" in updates:
        updates["profile_image_url"] = updates["profile_image_url"] or None
    if not updates:
        return user_to_dto(existing)
    if "email" in updates and _users().find_one({"email": updates["email"], "_id": {"$ne": existing["_id"]}}):
        raise UserConflictError("This email address is already in use by another account.")
    updates["updated_at"] = now_utc()
    try:
        doc = _users().find_one_and_update(
            {"_id": existing["_id"]},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
    except DuplicateKeyError:
        raise UserConflictError("This email address is already in use by another account.")
    if not doc:
        logger.warning("User %s not found for admin update", user_id)
        return None
    user = user_to_dto(doc)
    _revalidate_user(user)
    return user


def delete_user_by_admin(user_id: str) -> bool:
    from notification_actions import delete_notifications_related_to_user
    from post_actions import delete_posts_by_author_id

    doc = _find_user_doc(user_id)
    if not doc:
        logger.warning("User %s not found for deletion", user_id)
        return False
    if doc.get("role") == "admin" and _users().count_documents({"role": "admin"}) <= 1:
        raise LastAdminError("Cannot delete the last admin account.")

    public_id = doc.get("id") or str(doc["_id"])
    delete_posts_by_author_id(public_id)
    delete_notifications_related_to_user(public_id)
    get_db()["sessions"].delete_many({"user_id": public_id})
    result = _users().delete_one({"_id": doc["_id"]})
    if result.deleted_count:
        revalidate_path("/admin/users", "/")
        return True
    return False
