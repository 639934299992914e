from __future__ import annotations

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(BaseModel):
    """An authenticated session, persisted encrypted in the session cookie."""

    access_token: str = ""
    refresh_token: str | None = None
    created_at: datetime | None = None
    expires_on: datetime | None = None
    email: str = ""
    user: str = ""
    preferred_username: str = ""

    def age(self, now: datetime | None = None) -> timedelta:
        if self.created_at is None:
            return timedelta(0)
        return (now or utcnow()) - self.created_at

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_on is not None and self.expires_on <= (now or utcnow())
