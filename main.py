import logging
import os
import secrets
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

import notification_actions
import post_actions
import settings
import user_actions
from data import CATEGORIES, CATEGORY_SLUGS
from database import ensure_indexes, get_db
from errors import BlockedUserError, LastAdminError, UserConflictError
from schemas import (
    AdminAnnouncementLogOut,
    AdminNotificationPayload,
    AdminPostList,
    BulkNotificationResult,
    Category,
    CategoryCount,
    CommentInput,
    CreatePostInput,
    CreateUserByAdminInput,
    GoogleSignInInput,
    LoginInput,
    NotificationOut,
    Outcome,
    PostOut,
    PostPage,
    PostStatusInput,
    RegisterInput,
    Session,
    UpdateUserByAdminInput,
    UpdateUserProfileInput,
    UserOut,
)
from utils import as_aware, now_utc

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        ensure_indexes()
    except Exception:
        logger.exception("Could not ensure indexes")
    if settings.SEED_ON_STARTUP:
        logger.info(user_actions.seed_users()["message"])
    yield


app = FastAPI(title="CardFeed API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ----------------------- Models -----------------------

class NewPostInput(BaseModel):
    title: str
    content: str
    category_slug: str
    image_url: Optional[str] = None


class OutcomeOut(BaseModel):
    result: str


# ----------------------- Auth Utilities -----------------------

def generate_token() -> str:
    return secrets.token_urlsafe(32)


def create_session(user_id: str, user_agent: str = None, ip: str = None) -> str:
    session = Session(
        user_id=user_id,
        token=generate_token(),
        user_agent=user_agent,
        ip=ip,
        expires_at=now_utc() + timedelta(days=settings.SESSION_DAYS),
    )
    doc = session.model_dump()
    doc["created_at"] = now_utc()
    get_db()["sessions"].insert_one(doc)
    return session.token


def get_session(token: str) -> Optional[dict]:
    if not token:
        return None
    session = get_db()["sessions"].find_one({"token": token})
    if not session:
        return None
    if as_aware(session.get("expires_at")) < now_utc():
        get_db()["sessions"].delete_one({"_id": session["_id"]})
        return None
    return session


def start_session(user: UserOut, request: Request) -> dict:
    token = create_session(
        user.id,
        request.headers.get("user-agent"),
        request.client.host if request.client else None,
    )
    return {"token": token, "user": user}


async def auth_dependency(authorization: Optional[str] = Header(None)) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")
    token = authorization.split(" ", 1)[1]
    session = get_session(token)
    if not session:
        raise HTTPException(status_code=401, detail="Invalid session")
    user = user_actions.get_user_profile(session["user_id"])
    if not user:
        raise HTTPException(status_code=401, detail="Unknown user")
    if user.is_blocked:
        raise HTTPException(status_code=403, detail="This account has been blocked")
    return {"user": user, "session": session}


def current_user(ctx: dict = Depends(auth_dependency)) -> UserOut:
    return ctx["user"]


def require_admin(user: UserOut = Depends(current_user)) -> UserOut:
    if user.role != "admin" and not user_actions.is_admin_email(user.email):
        raise HTTPException(status_code=403, detail="Forbidden")
    return user


def _outcome(result) -> OutcomeOut:
    if result == Outcome.INVALID:
        raise HTTPException(status_code=400, detail="Invalid notification id")
    if result == Outcome.ERROR:
        raise HTTPException(status_code=503, detail="Notification store unavailable")
    return OutcomeOut(result=result.value)


def _post_or_404(post: Optional[PostOut]) -> PostOut:
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


# ----------------------- Public -----------------------

@app.get("/")
def read_root():
    return {"name": "CardFeed", "status": "ok"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "collections": [],
    }
    try:
        database = get_db()
        response["database_name"] = database.name
        response["collections"] = database.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except Exception as e:
        response["database"] = f"⚠️  Error: {str(e)[:50]}"
    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    return response


@app.get("/categories", response_model=List[Category])
def list_categories():
    return CATEGORIES


@app.get("/categories/counts", response_model=List[CategoryCount])
def category_counts():
    return post_actions.get_categories_with_counts()


@app.get("/posts", response_model=PostPage)
def list_posts(page: int = 1, limit: int = 8, category: Optional[str] = None):
    return post_actions.get_posts(page=page, limit=min(max(limit, 1), 50), category_slug=category)


@app.get("/posts/search", response_model=List[PostOut])
def search_posts(q: str = ""):
    if not q.strip():
        return []
    return post_actions.search_posts(q)


@app.get("/posts/{post_id}", response_model=PostOut)
def get_post(post_id: str):
    return _post_or_404(post_actions.get_post_by_id(post_id))


@app.get("/users/search", response_model=List[UserOut])
def search_users(q: str = ""):
    if not q.strip():
        return []
    return user_actions.search_users_by_name(q)


@app.get("/users/{user_id}", response_model=UserOut)
def get_user(user_id: str):
    user = user_actions.get_user_profile(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@app.get("/users/{user_id}/posts", response_model=List[PostOut])
def get_user_posts(user_id: str):
    return post_actions.get_posts_by_author_id(user_id)


# ----------------------- Auth -----------------------

@app.post("/auth/register")
async def register(payload: RegisterInput, request: Request):
    try:
        user = user_actions.register_user(payload)
    except UserConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return start_session(user, request)


@app.post("/auth/login")
async def login(payload: LoginInput, request: Request):
    try:
        user = user_actions.authenticate_user(payload.email, payload.password)
    except BlockedUserError as e:
        raise HTTPException(status_code=403, detail=str(e))
    if not user:
        raise HTTPException(status_code=400, detail="Invalid credentials")
    return start_session(user, request)


@app.post("/auth/google")
async def google_sign_in(payload: GoogleSignInInput, request: Request):
    try:
        user = user_actions.find_or_create_user_from_google(payload.google, payload.profile)
    except UserConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not user:
        raise HTTPException(status_code=400, detail="Could not sign in with Google")
    if user.is_blocked:
        raise HTTPException(status_code=403, detail="This account has been blocked")
    return start_session(user, request)


@app.post("/auth/admin-login")
async def admin_login(payload: LoginInput, request: Request):
    admin = user_actions.verify_admin_credentials(payload.email, payload.password)
    if not admin:
        raise HTTPException(status_code=400, detail="Invalid credentials")
    return start_session(admin, request)


@app.get("/auth/me", response_model=UserOut)
async def me(user: UserOut = Depends(current_user)):
    return user


@app.post("/auth/logout")
async def logout(ctx: dict = Depends(auth_dependency)):
    get_db()["sessions"].delete_one({"token": ctx["session"]["token"]})
    return {"ok": True}


# ----------------------- Posts -----------------------

@app.post("/posts", response_model=PostOut)
async def create_post(payload: NewPostInput, user: UserOut = Depends(current_user)):
    if payload.category_slug not in CATEGORY_SLUGS:
        raise HTTPException(status_code=400, detail="Unknown category")
    try:
        post = post_actions.create_post(CreatePostInput(author_id=user.id, **payload.model_dump()))
    except BlockedUserError as e:
        raise HTTPException(status_code=403, detail=str(e))
    if not post:
        raise HTTPException(status_code=500, detail="Could not create post")
    return post


@app.post("/posts/{post_id}/like", response_model=PostOut)
async def like_post(post_id: str, user: UserOut = Depends(current_user)):
    try:
        return _post_or_404(post_actions.toggle_like(post_id, user.id))
    except BlockedUserError as e:
        raise HTTPException(status_code=403, detail=str(e))


@app.post("/posts/{post_id}/comments", response_model=PostOut)
async def comment_on_post(post_id: str, payload: CommentInput, user: UserOut = Depends(current_user)):
    text = payload.text.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Comment cannot be empty")
    try:
        post = post_actions.add_comment(post_id, user.id, user.full_name, user.profile_image_url, text)
    except BlockedUserError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return _post_or_404(post)


@app.post("/posts/{post_id}/share", response_model=PostOut)
async def share_post(post_id: str):
    return _post_or_404(post_actions.increment_share(post_id))


# ----------------------- Profiles -----------------------

@app.put("/users/me", response_model=UserOut)
async def update_my_profile(payload: UpdateUserProfileInput, user: UserOut = Depends(current_user)):
    updated = user_actions.update_user_profile(user.id, payload)
    if not updated:
        raise HTTPException(status_code=404, detail="User not found")
    return updated


# ----------------------- Notifications -----------------------

@app.get("/notifications", response_model=List[NotificationOut])
async def my_notifications(user: UserOut = Depends(current_user)):
    return notification_actions.get_notifications_for_user(user.id)


@app.get("/notifications/unread-count")
async def unread_count(user: UserOut = Depends(current_user)):
    return {"count": notification_actions.get_unread_notification_count(user.id)}


@app.post("/notifications/read-all", response_model=OutcomeOut)
async def read_all(user: UserOut = Depends(current_user)):
    return _outcome(notification_actions.mark_all_notifications_as_read(user.id))


@app.post("/notifications/{notification_id}/read", response_model=OutcomeOut)
async def read_one(notification_id: str, user: UserOut = Depends(current_user)):
    return _outcome(notification_actions.mark_notification_as_read(notification_id, user.id))


@app.delete("/notifications/{notification_id}", response_model=OutcomeOut)
async def delete_one(notification_id: str, user: UserOut = Depends(current_user)):
    return _outcome(notification_actions.delete_notification(notification_id, user.id))


@app.delete("/notifications", response_model=OutcomeOut)
async def delete_all(user: UserOut = Depends(current_user)):
    return _outcome(notification_actions.delete_all_notifications(user.id))


# ----------------------- Admin -----------------------

@app.get("/admin/posts", response_model=AdminPostList)
async def admin_posts(status: Optional[str] = None, admin: UserOut = Depends(require_admin)):
    return post_actions.get_all_posts_for_admin(status)


@app.post("/admin/posts/{post_id}/status", response_model=PostOut)
async def admin_post_status(post_id: str, payload: PostStatusInput, admin: UserOut = Depends(require_admin)):
    return _post_or_404(post_actions.update_post_status(post_id, payload.status))


@app.get("/admin/users", response_model=List[UserOut])
async def admin_users(admin: UserOut = Depends(require_admin)):
    return user_actions.get_all_users()


@app.post("/admin/users", response_model=UserOut)
async def admin_create_user(payload: CreateUserByAdminInput, admin: UserOut = Depends(require_admin)):
    try:
        return user_actions.create_user_by_admin(payload)
    except UserConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))


@app.put("/admin/users/{user_id}", response_model=UserOut)
async def admin_update_user(user_id: str, payload: UpdateUserByAdminInput, admin: UserOut = Depends(require_admin)):
    try:
        user = user_actions.update_user_by_admin(user_id, payload)
    except UserConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@app.delete("/admin/users/{user_id}")
async def admin_delete_user(user_id: str, admin: UserOut = Depends(require_admin)):
    try:
        deleted = user_actions.delete_user_by_admin(user_id)
    except LastAdminError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="User not found")
    return {"ok": True}


@app.post("/admin/notifications", response_model=BulkNotificationResult)
async def admin_send_notifications(payload: AdminNotificationPayload, admin: UserOut = Depends(require_admin)):
    if payload.targeting.type == "category" and payload.targeting.category_slug not in CATEGORY_SLUGS:
        raise HTTPException(status_code=400, detail="Unknown category")
    try:
        return notification_actions.send_bulk_notifications(payload, sent_by=admin.summary())
    except Exception:
        logger.exception("Broadcast audience resolution failed")
        raise HTTPException(status_code=503, detail="Could not resolve the target audience")


@app.get("/admin/notifications/log", response_model=List[AdminAnnouncementLogOut])
async def admin_notification_log(admin: UserOut = Depends(require_admin)):
    return notification_actions.get_admin_announcement_log()


@app.delete("/admin/notifications/log/{announcement_id}")
async def admin_cleanup_broadcast(announcement_id: str, admin: UserOut = Depends(require_admin)):
    return {"deleted": notification_actions.delete_announcement_notifications(announcement_id)}


@app.post("/admin/seed")
async def admin_seed(admin: UserOut = Depends(require_admin)):
    return user_actions.seed_users()


@app.post("/admin/users/{user_id}/refresh-snapshots")
async def admin_refresh_snapshots(user_id: str, admin: UserOut = Depends(require_admin)):
    return {"updated": post_actions.refresh_author_snapshots(user_id)}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
