"""Access policy: the single place where permission rules live."""

from dataclasses import dataclass

from roles import Role


@dataclass(frozen=True)
class Decision:
    visible: bool
    downloadable: bool
    mutable: bool


def decide(role: Role, is_owner: bool, locked: bool, expired: bool) -> Decision:
    """Decide what a caller may do with a record.

    Rules, highest priority first:
    1. Owners may view, download and mutate their record regardless of
       lock or expiry.
    2. Non-owners may not download or mutate a locked record.
    3. Non-owners may not see an expired record unless they are Admin.
    4. Mutation is always ownership-scoped, Admin included.
    """
    if is_owner:
        return Decision(visible=True, downloadable=True, mutable=True)

    visible = role is Role.ADMIN or not expired
    return Decision(
        visible=visible,
        downloadable=visible and not locked,
        mutable=False,
    )
