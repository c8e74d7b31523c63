"""Database models for user gamification state.

Cassandra table definitions for:
- User gamification: Points, level and streak per user (versioned record)
- Points transactions: Append-only history of credits

Architecture: the per-user record is the unit of atomicity. Points, streak,
level and the set of already-credited completion keys change together in
one compare-and-set on ``version``, so concurrent completions by the same
user can neither lose an update nor credit the same completion twice.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from src.utils.dates import ensure_utc_aware, utc_now


class TransactionSource(str, Enum):
    """Origin of a points transaction."""

    MODULE_COMPLETION = "module_completion"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

USER_GAMIFICATION_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.user_gamification (
    user_id UUID PRIMARY KEY,
    total_points INT,
    current_level INT,
    current_streak_days INT,
    longest_streak_days INT,
    last_activity_date DATE,
    credited_keys SET<TEXT>,
    version INT,
    updated_at TIMESTAMP
)
"""

# Points history per user, most recent first
POINTS_TRANSACTIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.points_transactions (
    user_id UUID,
    created_at TIMESTAMP,
    id UUID,
    amount INT,
    balance INT,
    source TEXT,
    source_id TEXT,
    description TEXT,
    PRIMARY KEY (user_id, created_at, id)
) WITH CLUSTERING ORDER BY (created_at DESC, id ASC)
"""

GAMIFICATION_TABLES_CQL = [
    USER_GAMIFICATION_TABLE_CQL,
    POINTS_TRANSACTIONS_TABLE_CQL,
]


def _as_date(value: Any) -> date | None:
    """Cassandra DATE columns come back as ``cassandra.util.Date``."""
    if value is None or isinstance(value, date):
        return value
    return value.date()


# ==============================================================================
# Entity Classes
# ==============================================================================


class UserGamificationState:
    """Points, level and streak of one user.

    ``version`` 0 means the record has never been stored.

    Attributes:
        user_id: User UUID
        total_points: Lifetime points
        current_level: Derived from total_points
        current_streak_days: Consecutive active days
        longest_streak_days: Best streak so far
        last_activity_date: UTC date of the last credited activity
        credited_keys: Idempotency keys of credited completions
        version: Optimistic lock counter
    """

    def __init__(
        self,
        user_id: UUID,
        total_points: int = 0,
        current_level: int = 1,
        current_streak_days: int = 0,
        longest_streak_days: int = 0,
        last_activity_date: date | None = None,
        credited_keys: frozenset[str] | set[str] | None = None,
        version: int = 0,
        updated_at: datetime | None = None,
    ):
        self.user_id = user_id
        self.total_points = total_points
        self.current_level = current_level
        self.current_streak_days = current_streak_days
        self.longest_streak_days = longest_streak_days
        self.last_activity_date = last_activity_date
        self.credited_keys = frozenset(credited_keys or ())
        self.version = version
        self.updated_at = ensure_utc_aware(updated_at) or utc_now()

    def has_credited(self, key: str) -> bool:
        return key in self.credited_keys

    @classmethod
    def from_row(cls, row: Any) -> "UserGamificationState":
        """Create state from Cassandra row."""
        return cls(
            user_id=row.user_id,
            total_points=row.total_points or 0,
            current_level=row.current_level or 1,
            current_streak_days=row.current_streak_days or 0,
            longest_streak_days=row.longest_streak_days or 0,
            last_activity_date=_as_date(row.last_activity_date),
            credited_keys=set(row.credited_keys or ()),
            version=row.version or 0,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (without idempotency keys)."""
        return {
            "user_id": self.user_id,
            "total_points": self.total_points,
            "current_level": self.current_level,
            "current_streak_days": self.current_streak_days,
            "longest_streak_days": self.longest_streak_days,
            "last_activity_date": self.last_activity_date,
            "version": self.version,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"<UserGamificationState user={self.user_id} points={self.total_points} "
            f"level={self.current_level} streak={self.current_streak_days} v{self.version}>"
        )


class PointsTransaction:
    """One credit in a user's points history."""

    def __init__(
        self,
        id: UUID,
        user_id: UUID,
        amount: int,
        balance: int,
        source: str = TransactionSource.MODULE_COMPLETION.value,
        source_id: str | None = None,
        description: str = "",
        created_at: datetime | None = None,
    ):
        self.id = id
        self.user_id = user_id
        self.amount = amount
        self.balance = balance
        self.source = source
        self.source_id = source_id
        self.description = description
        self.created_at = ensure_utc_aware(created_at) or utc_now()

    @classmethod
    def from_row(cls, row: Any) -> "PointsTransaction":
        return cls(
            id=row.id,
            user_id=row.user_id,
            amount=row.amount or 0,
            balance=row.balance or 0,
            source=row.source or TransactionSource.MODULE_COMPLETION.value,
            source_id=row.source_id,
            description=row.description or "",
            created_at=row.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": self.amount,
            "balance": self.balance,
            "source": self.source,
            "source_id": self.source_id,
            "description": self.description,
            "created_at": self.created_at,
        }

    def __repr__(self) -> str:
        return f"<PointsTransaction user={self.user_id} +{self.amount} = {self.balance}>"
