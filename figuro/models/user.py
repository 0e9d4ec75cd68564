"""Signed-in user and transient notices."""

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict


@dataclass(frozen=True)
class User:
    """Signed-in user record (no credentials)."""

    id: str
    username: str
    name: str = ""
    email: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=str(data["id"]),
            username=str(data["username"]),
            name=str(data.get("name", "")),
            email=str(data.get("email", "")),
        )


@dataclass(frozen=True)
class Notice:
    """Dismissible, auto-expiring toast message."""

    message: str
    expires_at: float = field(default_factory=lambda: time.monotonic() + 3.0)

    @classmethod
    def for_seconds(cls, message: str, seconds: float) -> "Notice":
        return cls(message=message, expires_at=time.monotonic() + seconds)
