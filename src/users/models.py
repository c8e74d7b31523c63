"""User directory models.

The users table is owned by user management. The engine reads role (to keep
administrators off the leaderboard) and department (for filtered boards).
"""

from enum import Enum
from typing import Any
from uuid import UUID


class UserRole(str, Enum):
    """Platform roles."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    ADMIN = "admin"


USERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    id UUID PRIMARY KEY,
    email TEXT,
    name TEXT,
    role TEXT,
    department TEXT,
    is_active BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

USERS_TABLES_CQL = [USERS_TABLE_CQL]


class UserProfile:
    """Subset of a user record relevant to ranking."""

    def __init__(
        self,
        id: UUID,
        role: str = UserRole.EMPLOYEE.value,
        department: str | None = None,
        is_active: bool = True,
    ):
        self.id = id
        self.role = role
        self.department = department
        self.is_active = is_active

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @classmethod
    def from_row(cls, row: Any) -> "UserProfile":
        return cls(
            id=row.id,
            role=row.role or UserRole.EMPLOYEE.value,
            department=row.department,
            is_active=row.is_active if row.is_active is not None else True,
        )

    def __repr__(self) -> str:
        return f"<UserProfile {self.id} {self.role} dept={self.department}>"
