import hashlib
import re
from datetime import datetime, timezone

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands timestamps back without tzinfo; they are stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def extract_name_from_email(email: str) -> str:
    """Letters of the local part, e.g. ``new.user42@x.io`` -> ``newuser``."""
    local_part = email.split("@")[0]
    name = re.sub(r"[^a-zA-Z]", "", local_part).lower()
    return name or "user"


def hash_email(email: str) -> str:
    """One-way hash so audit lines never carry the address in clear"""
    return hashlib.sha256(email.encode()).hexdigest()
