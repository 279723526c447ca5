"""
Database Schemas for CardFeed

Each stored collection has a Pydantic model describing its documents, plus the
client-facing shapes (DTOs) the API hands out. DTOs carry string ids and never
carry passwords.

Collections:
- users                -> User
- posts                -> Post (embeds Comment, UserSummary)
- notifications        -> Notification
- admin_announcements  -> AdminAnnouncementLogEntry
- sessions             -> Session
"""

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

Role = Literal["user", "admin"]
AuthProvider = Literal["email", "google", "admin_created"]
PostStatus = Literal["accepted", "pending", "rejected"]
NotificationType = Literal["like", "comment", "announcement"]
TargetingType = Literal["all", "specific", "category"]
BroadcastStatus = Literal["completed", "partial_failure", "failed"]


class Outcome(str, Enum):
    UPDATED = "updated"
    NO_EFFECT = "no_effect"
    INVALID = "invalid"
    ERROR = "error"


# ----------------------- Stored documents -----------------------

class UserSummary(BaseModel):
    id: str
    name: str
    image_url: Optional[str] = None


class User(BaseModel):
    id: str
    email: str = Field(..., description="User email (unique)")
    first_name: str
    last_name: str
    password: Optional[str] = Field(None, description="BCrypt password hash")
    profile_image_url: Optional[str] = None
    description: str = ""
    google_id: Optional[str] = None
    auth_provider: AuthProvider = "email"
    role: Role = "user"
    is_blocked: bool = False


class Comment(BaseModel):
    id: str
    post_id: str
    author: UserSummary
    text: str = Field(..., min_length=1, max_length=2000)
    date: datetime


class Post(BaseModel):
    title: str
    content: str = Field(..., description="Rendered HTML")
    excerpt: str
    category: str
    author: UserSummary
    image_url: str
    date: datetime
    likes: int = 0
    liked_by: List[str] = []
    shares: int = 0
    comments: List[Comment] = []
    status: PostStatus = "pending"


class Notification(BaseModel):
    user_id: str
    type: NotificationType
    post_id: Optional[str] = None
    post_slug: Optional[str] = None
    post_title: Optional[str] = None
    acting_user: Optional[UserSummary] = None
    is_read: bool = False


class AdminAnnouncementLogEntry(BaseModel):
    title: str
    description: str
    external_link: Optional[str] = None
    targeting_type: TargetingType
    target_identifier: Union[List[str], str, None] = None
    sent_by: Optional[str] = None
    total_targeted: int
    success_count: int
    error_count: int
    status: BroadcastStatus


class Session(BaseModel):
    user_id: str
    token: str
    user_agent: Optional[str] = None
    ip: Optional[str] = None
    expires_at: datetime


# ----------------------- DTOs -----------------------

class UserOut(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    profile_image_url: Optional[str] = None
    description: str = ""
    role: Role = "user"
    is_blocked: bool = False
    auth_provider: AuthProvider = "email"
    google_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    post_count: Optional[int] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def summary(self) -> UserSummary:
        return UserSummary(id=self.id, name=self.full_name, image_url=self.profile_image_url)


class CommentOut(BaseModel):
    id: str
    post_id: str
    author: UserSummary
    text: str
    date: datetime


class PostOut(BaseModel):
    id: str
    title: str
    excerpt: str
    content: str
    image_url: str
    category: str
    author: UserSummary
    date: datetime
    likes: int = 0
    liked_by: List[str] = []
    shares: int = 0
    comments: List[CommentOut] = []
    status: PostStatus = "pending"


class PostPage(BaseModel):
    posts: List[PostOut]
    has_more: bool
    total_posts: int


class StatusCounts(BaseModel):
    accepted: int = 0
    pending: int = 0
    rejected: int = 0
    all: int = 0


class AdminPostList(BaseModel):
    posts: List[PostOut]
    counts: StatusCounts


class CategoryCount(BaseModel):
    category: str
    count: int


class Category(BaseModel):
    id: str
    name: str
    slug: str


class NotificationOut(BaseModel):
    id: str
    user_id: str
    type: NotificationType
    post_id: Optional[str] = None
    post_slug: Optional[str] = None
    post_title: Optional[str] = None
    acting_user: Optional[UserSummary] = None
    title: Optional[str] = None
    description: Optional[str] = None
    external_link: Optional[str] = None
    announcement_id: Optional[str] = None
    is_read: bool = False
    created_at: datetime


class AdminAnnouncementLogOut(AdminAnnouncementLogEntry):
    id: str
    sent_at: datetime


class BulkNotificationResult(BaseModel):
    success: bool
    count: int
    errors: int
    total_targeted: int
    status: BroadcastStatus
    log_id: Optional[str] = None


# ----------------------- Inputs -----------------------

class RegisterInput(BaseModel):
    email: str
    first_name: str = Field(..., min_length=1, max_length=60)
    last_name: str = Field(..., min_length=1, max_length=60)
    password: str = Field(..., min_length=8)
    description: Optional[str] = ""


class LoginInput(BaseModel):
    email: str
    password: str


class GoogleAuthData(BaseModel):
    google_id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    profile_image_url: Optional[str] = None


class CompleteProfileInput(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=60)
    last_name: str = Field(..., min_length=1, max_length=60)
    description: Optional[str] = ""
    profile_image_url: Optional[str] = None


class GoogleSignInInput(BaseModel):
    google: GoogleAuthData
    profile: CompleteProfileInput


class UpdateUserProfileInput(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    description: Optional[str] = None
    profile_image_url: Optional[str] = None


class UpdateUserByAdminInput(UpdateUserProfileInput):
    email: Optional[str] = None
    role: Optional[Role] = None
    is_blocked: Optional[bool] = None


class CreateUserByAdminInput(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=60)
    last_name: str = Field(..., min_length=1, max_length=60)
    email: str
    password: Optional[str] = None
    role: Role = "user"
    description: Optional[str] = ""
    profile_image_url: Optional[str] = None


class CreatePostInput(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    category_slug: str
    author_id: str
    image_url: Optional[str] = None
    status: Optional[PostStatus] = None


class CommentInput(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)


class PostStatusInput(BaseModel):
    status: PostStatus


class TargetingOptions(BaseModel):
    type: TargetingType
    user_ids: List[str] = []
    category_slug: Optional[str] = None

    @model_validator(mode="after")
    def check_target(self):
        if self.type == "specific" and not self.user_ids:
            raise ValueError("Please select at least one user if targeting specific users.")
        if self.type == "category" and not self.category_slug:
            raise ValueError("Please select a category if targeting by category.")
        return self


class AdminNotificationPayload(BaseModel):
    title: str = Field(..., min_length=5)
    description: str = Field(..., min_length=10, max_length=500)
    external_link: Optional[str] = None
    targeting: TargetingOptions
