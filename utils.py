import re
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

from bson import ObjectId

EXCERPT_LENGTH = 150


def now_utc():
    return datetime.now(timezone.utc)


def as_aware(value: Optional[datetime]) -> Optional[datetime]:
    # pymongo hands back naive datetimes that are in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_valid_object_id(value) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


def generate_slug(title: str) -> str:
    if not title:
        return "untitled"
    slug = title.lower().strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^\w-]+", "", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    slug = slug.strip("-")
    return slug or "untitled"


def strip_tags(html: str) -> str:
    text = re.sub(r"<[^>]+>", " ", html or "")
    return re.sub(r"\s+", " ", text).strip()


def make_excerpt(content: str) -> str:
    text = strip_tags(content)
    if len(text) > EXCERPT_LENGTH:
        return text[:EXCERPT_LENGTH] + "..."
    return text


def placeholder_image(seed: str, width: int, height: int) -> str:
    return f"https://picsum.photos/seed/{quote(seed, safe='')}/{width}/{height}"
