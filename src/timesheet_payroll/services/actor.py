"""Caller identity passed into services.

Authentication happens upstream; services trust the role they are given.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Portal roles."""

    CLIENT = "client"
    EMPLOYEE = "employee"
    ADMIN = "admin"
    OWNER = "owner"
    SUPER_ADMIN = "super_admin"


ADMIN_ROLES = frozenset({Role.ADMIN, Role.OWNER, Role.SUPER_ADMIN})


@dataclass(frozen=True)
class Actor:
    """The user performing an action."""

    user_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @classmethod
    def system(cls) -> Actor:
        """Actor used for scheduled or CLI-driven operations."""
        return cls(user_id="system", role=Role.SUPER_ADMIN)
