"""
Authorization and invariant rules for groups and their members.

These functions only look at a `GroupData` snapshot and never touch the
store. The service layer reads the current state, asks these rules whether
the action is allowed, and only then mutates. Every check raises one of the
typed errors from `vaultshare.core.errors`.

The owner of a group is pinned: they are always a member with the `admin`
role, cannot be removed and cannot be re-roled. Non-owner admins may manage
plain members but never other admins.
"""

from vaultshare.core.errors import Conflict, Forbidden, InvalidArgument, NotFound
from vaultshare.core.group import GroupData, Role


class MemberNotFound(NotFound):
    pass


class MemberExistsError(Conflict):
    pass


def clean_name(name: str | None, what: str) -> str:
    """
    Trim a user-supplied name, refusing names that are empty afterwards.
    """
    cleaned = (name or "").strip()

    if not cleaned:
        raise InvalidArgument(f"{what} is required")

    return cleaned


def is_owner(actor_id: str, group: GroupData) -> bool:
    return actor_id == group.owner_id


def can_manage(actor_id: str, group: GroupData) -> bool:
    """
    Owners and admins may manage membership and rename the group.
    """
    return is_owner(actor_id, group) or group.is_admin(actor_id)


def _require_manager(actor_id: str, group: GroupData, action: str):
    if not can_manage(actor_id, group):
        raise Forbidden(f"Only the group owner or an admin can {action}")


def check_add_member(
    actor_id: str, group: GroupData, user_id: str, role: Role
) -> bool:
    """
    Check that `actor_id` may add `user_id` with `role`.

    Returns
    -------
    bool
        True if the member must be inserted, False if the same member with
        the same role is already present (a replayed request).
    """
    _require_manager(actor_id, group, "add members")

    if user_id == group.owner_id and role != "admin":
        raise InvalidArgument("Group owner must always have the admin role")

    existing = group.member(user_id)

    if existing is None:
        return True

    if existing.role == role:
        return False

    raise MemberExistsError(
        f"User {user_id} is already a member of this group, update their role instead"
    )


def check_remove_member(actor_id: str, group: GroupData, member_uid: str) -> None:
    _require_manager(actor_id, group, "remove members")

    if member_uid == group.owner_id:
        raise InvalidArgument(
            "Group owner cannot be removed from the group, delete the group instead"
        )

    target = group.member(member_uid)

    if target is None:
        raise MemberNotFound(f"User {member_uid} is not a member of this group")

    if target.role == "admin" and not is_owner(actor_id, group):
        raise Forbidden("Only the group owner can remove an admin")


def check_update_role(
    actor_id: str, group: GroupData, member_uid: str, new_role: Role
) -> bool:
    """
    Check that `actor_id` may give `member_uid` the role `new_role`.

    Returns
    -------
    bool
        True if the role must be written, False if the member already holds
        `new_role`.
    """
    _require_manager(actor_id, group, "change member roles")

    if member_uid == group.owner_id and new_role != "admin":
        raise InvalidArgument("Group owner must always have the admin role")

    target = group.member(member_uid)

    if target is None:
        raise MemberNotFound(f"User {member_uid} is not a member of this group")

    # Admins may step down themselves, but never re-role another admin.
    if (
        target.role == "admin"
        and member_uid != actor_id
        and not is_owner(actor_id, group)
    ):
        raise Forbidden("Only the group owner can change the role of an admin")

    return target.role != new_role


def check_rename(actor_id: str, group: GroupData) -> None:
    _require_manager(actor_id, group, "rename the group")


def check_delete(actor_id: str, group: GroupData) -> None:
    if not is_owner(actor_id, group):
        raise Forbidden("Only the group owner can delete the group")
