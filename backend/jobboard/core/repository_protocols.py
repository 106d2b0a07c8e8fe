"""Boundary Protocols: contracts for the external collaborators the engine consumes.

Invariants:
    - Services depend on these Protocols, never on concrete adapters
    - Implementations live in infrastructure/ (or in tests as fakes)
    - All boundary methods are async because implementations do IO

Design Decisions:
    - Protocol over ABC: structural subtyping, fakes need no inheritance
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

from jobboard.core.domain_types import Actor, NotificationType


class IdentityProvider(Protocol):
    """Who is calling. Returns None for an anonymous caller."""
    async def current_actor(self) -> Actor | None: ...


class ObjectStorage(Protocol):
    """Résumé file storage."""
    async def upload(self, key: str, content: bytes, content_type: str | None = None) -> None: ...
    def public_url(self, key: str) -> str: ...
    async def remove(self, keys: list[str]) -> None: ...


@dataclass(frozen=True)
class EmailMessage:
    to: str
    template: NotificationType
    data: dict[str, Any]
    subject: str | None = None


@dataclass(frozen=True)
class BatchRecipient:
    email: str
    user_id: str
    data: dict[str, Any]


@dataclass(frozen=True)
class BatchEmail:
    template: NotificationType
    recipients: list[BatchRecipient] = field(default_factory=list)
    subject: str | None = None


class EmailProvider(Protocol):
    """Outbound message delivery. Raises on failure; callers treat it as best-effort."""
    async def send(self, message: EmailMessage) -> None: ...
    async def send_batch(self, batch: BatchEmail) -> dict | None: ...


@dataclass(frozen=True)
class ResumeUpload:
    """A résumé file supplied with an application."""
    filename: str
    content: bytes
    content_type: str | None = None
