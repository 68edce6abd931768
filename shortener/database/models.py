"""Data models for the link shortener."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class OwnerRef:
    """Reference to the entity a link belongs to.

    Attributes:
        kind: Entity type tag (e.g. "user", "campaign")
        id: Entity identifier, stored as a string
    """

    kind: str
    id: str

    def __str__(self) -> str:
        return f"{self.kind}:{self.id}"

    @classmethod
    def from_parts(cls, kind: Optional[str], id: Optional[str]) -> Optional["OwnerRef"]:
        """Build an owner from optional columns/fields; None unless both are set."""
        if kind is None or id is None:
            return None
        return cls(kind=kind, id=str(id))


@dataclass(frozen=True)
class ShortenedLink:
    """A token to destination URL mapping."""

    token: str
    destination_url: str
    owner: Optional[OwnerRef] = None
    expires_at: Optional[datetime] = None
    use_count: int = 0
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Check if link expired at the given time (defaults to now UTC)."""
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return self.expires_at <= now

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "token": self.token,
            "destination_url": self.destination_url,
            "owner_kind": self.owner.kind if self.owner else None,
            "owner_id": self.owner.id if self.owner else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "use_count": self.use_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ShortenedLink":
        """Create from dictionary (or database row)."""
        return cls(
            token=data["token"],
            destination_url=data["destination_url"],
            owner=OwnerRef.from_parts(data.get("owner_kind"), data.get("owner_id")),
            expires_at=_as_utc(data.get("expires_at")),
            use_count=data.get("use_count") or 0,
            id=data.get("id"),
            created_at=_as_utc(data.get("created_at")),
        )


def _as_utc(value) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value
