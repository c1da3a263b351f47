"""Caller roles, resolved once at the request boundary."""

from dataclasses import dataclass
from enum import Enum
from typing import Final

# Uploader ids stored for callers that have no numeric identity.
SENTINEL_OTHER: Final = -1
SENTINEL_TEST: Final = -2
SENTINEL_GUEST: Final = -3


class Role(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"
    GUEST = "guest"
    TEST = "test"


@dataclass(frozen=True)
class Caller:
    role: Role
    member_id: int | None = None

    @classmethod
    def admin(cls, member_id: int) -> "Caller":
        return cls(Role.ADMIN, member_id)

    @classmethod
    def member(cls, member_id: int) -> "Caller":
        return cls(Role.MEMBER, member_id)

    @classmethod
    def guest(cls) -> "Caller":
        return cls(Role.GUEST)

    @classmethod
    def test(cls) -> "Caller":
        return cls(Role.TEST)

    @classmethod
    def from_identity(cls, identity: str | int | None, admin_id: str = "") -> "Caller":
        """Classify a pre-verified identity value.

        Positive integers are members (the configured admin id is Admin),
        ``"test"`` is the harness identity and anything else, including a
        missing value, is a guest.
        """
        if identity is None:
            return cls.guest()

        value = str(identity).strip()
        if value == "test":
            return cls.test()

        try:
            member_id = int(value)
        except ValueError:
            return cls.guest()

        if member_id <= 0:
            return cls.guest()
        if admin_id and value == admin_id:
            return cls.admin(member_id)
        return cls.member(member_id)

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_anonymous(self) -> bool:
        return self.role in (Role.GUEST, Role.TEST)

    @property
    def owner_id(self) -> int:
        """Value stored in ``uploaded_by`` for records this caller creates."""
        if self.member_id is not None:
            return self.member_id
        if self.role is Role.TEST:
            return SENTINEL_TEST
        if self.role is Role.GUEST:
            return SENTINEL_GUEST
        return SENTINEL_OTHER

    @property
    def can_own(self) -> bool:
        """Guests share one sentinel id, so it never grants ownership."""
        return self.role is not Role.GUEST

    def owns(self, uploaded_by: int) -> bool:
        return self.can_own and uploaded_by == self.owner_id
