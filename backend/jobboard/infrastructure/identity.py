"""Identity Providers: resolve the current Actor behind the IdentityProvider protocol.

Invariants:
    - current_actor() returns None for an anonymous caller or an unknown user id
    - The profile lookup happens at most once per provider instance (per request)
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from jobboard.core.domain_types import Actor, UserRole
from jobboard.models.profile import Profile

logger = logging.getLogger(__name__)

_UNRESOLVED = object()


class ProfileIdentityProvider:
    """Resolves the caller's id (from the X-User-Id header) against profiles."""

    def __init__(self, db: AsyncSession, user_id: UUID | None):
        self.db = db
        self.user_id = user_id
        self._actor = _UNRESOLVED

    async def current_actor(self) -> Actor | None:
        if self._actor is _UNRESOLVED:
            self._actor = await self._load()
        return self._actor

    async def _load(self) -> Actor | None:
        if self.user_id is None:
            return None
        profile = await self.db.get(Profile, self.user_id)
        if profile is None:
            logger.warning("Unknown user id presented", extra={"user_id": str(self.user_id)})
            return None
        return Actor(
            id=profile.id,
            email=profile.email,
            role=UserRole(profile.role),
            full_name=profile.full_name,
        )


class StaticIdentityProvider:
    """Fixed actor, for scheduled jobs and tests."""

    def __init__(self, actor: Actor | None = None):
        self.actor = actor

    async def current_actor(self) -> Actor | None:
        return self.actor
