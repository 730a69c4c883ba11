"""
All SQLAlchemy models. Schema is the source of truth for new DBs.
Pending signups and verification codes live in the key-value store, not here.
"""
from storefront.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
]
