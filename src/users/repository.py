"""Read access to the users table."""

from typing import TYPE_CHECKING
from uuid import UUID

from .models import UserProfile


if TYPE_CHECKING:
    from cassandra.cluster import Session


class UserDirectory:
    """Looks up role and department for a user."""

    def __init__(self, session: "Session", keyspace: str):
        self.session = session
        self.keyspace = keyspace
        self._get_user = self.session.prepare(f"""
            SELECT id, role, department, is_active
            FROM {self.keyspace}.users WHERE id = ?
        """)

    async def get_user(self, user_id: UUID) -> UserProfile | None:
        result = await self.session.aexecute(self._get_user, [user_id])
        row = result.one()
        return UserProfile.from_row(row) if row else None
