"""User directory (role and department lookups)."""

from .models import USERS_TABLES_CQL, UserProfile, UserRole


__all__ = ["USERS_TABLES_CQL", "UserProfile", "UserRole"]
