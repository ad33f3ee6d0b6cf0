"""
Service layer implementing group membership: adding, removing and re-roling
members.

Every operation reads the group fresh, asks `vaultshare.core.rules` whether
the change is allowed, performs a single mutation and then reads the group
again. The state observed after the mutation decides success, so that two
identical requests racing each other both succeed instead of one of them
failing on a modified-count of zero.
"""

from datetime import datetime, timezone

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from vaultshare.core import rules
from vaultshare.core.errors import Internal, ServiceError
from vaultshare.core.group import Role
from vaultshare.core.uuid import UUID
from vaultshare.database.group import Group, GroupMember
from vaultshare.database.statements import insert_ignoring_duplicates

from . import groups as groups_service


async def add_member(
    group_id: UUID,
    user_id: str,
    role: Role,
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Add a user to a group.

    Adding a user who is already a member with the same role is treated as
    a replay of an earlier request and returns the group unchanged.

    Parameters
    ----------
    group_id: UUID
        The ID of the group.
    user_id: str
        The user to add.
    role: Role
        Either `member` or `admin`.
    actor_id: str
        The user performing the change; must be the owner or an admin.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    Forbidden
        If the actor may not manage members.
    InvalidArgument
        If the owner would be added with a role other than `admin`.
    MemberExistsError
        If the user is already a member with a different role.
    """
    log = log.bind(group_id=group_id, user_id=user_id, role=role, actor_id=actor_id)

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    try:
        needs_insert = rules.check_add_member(actor_id, group.to_core(), user_id, role)
    except ServiceError as e:
        await log.awarning("group.add_member.refused", reason=e.detail)
        raise

    if not needs_insert:
        await log.ainfo("group.user_already_member")
        return group

    result = await conn.execute(
        insert_ignoring_duplicates(
            conn,
            GroupMember,
            group_id=group_id,
            user_id=user_id,
            role=role,
            added_at=datetime.now(tz=timezone.utc),
            added_by=actor_id,
        )
    )

    if result.rowcount == 0:
        await log.ainfo("group.add_member.concurrent_insert")
    else:
        await groups_service.touch(group_id=group_id, conn=conn)

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    if group.to_core().member(user_id) is None:
        await log.aerror("group.add_member.not_persisted")
        raise Internal(f"User {user_id} could not be added to group {group_id}")

    await log.ainfo("group.user_added")

    return group


async def remove_member(
    group_id: UUID,
    user_id: str,
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Remove a user from a group.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    Forbidden
        If the actor may not manage members, or is a non-owner admin trying
        to remove another admin.
    InvalidArgument
        If the target is the owner.
    MemberNotFound
        If the target is not a member.
    """
    log = log.bind(group_id=group_id, user_id=user_id, actor_id=actor_id)

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    try:
        rules.check_remove_member(actor_id, group.to_core(), user_id)
    except ServiceError as e:
        await log.awarning("group.remove_member.refused", reason=e.detail)
        raise

    result = await conn.execute(
        delete(GroupMember)
        .where(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        await log.ainfo("group.remove_member.concurrent_delete")
    else:
        await groups_service.touch(group_id=group_id, conn=conn)

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    if group.to_core().member(user_id) is not None:
        await log.aerror("group.remove_member.not_persisted")
        raise Internal(f"User {user_id} could not be removed from group {group_id}")

    await log.ainfo("group.user_removed")

    return group


async def update_member_role(
    group_id: UUID,
    user_id: str,
    role: Role,
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Change the role of a group member. Setting the role a member already
    holds is a no-op.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    Forbidden
        If the actor may not manage members, or is a non-owner admin trying
        to re-role another admin.
    InvalidArgument
        If the owner would lose the `admin` role.
    MemberNotFound
        If the target is not a member.
    """
    log = log.bind(group_id=group_id, user_id=user_id, role=role, actor_id=actor_id)

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    try:
        needs_update = rules.check_update_role(actor_id, group.to_core(), user_id, role)
    except ServiceError as e:
        await log.awarning("group.update_role.refused", reason=e.detail)
        raise

    if not needs_update:
        await log.ainfo("group.update_role.unchanged")
        return group

    result = await conn.execute(
        update(GroupMember)
        .where(GroupMember.group_id == group_id, GroupMember.user_id == user_id)
        .values(role=role)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount:
        await groups_service.touch(group_id=group_id, conn=conn)

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    member = group.to_core().member(user_id)

    if member is None:
        await log.ainfo("group.update_role.member_vanished")
        raise rules.MemberNotFound(f"User {user_id} is not a member of this group")

    if member.role != role:
        await log.aerror("group.update_role.not_persisted")
        raise Internal(f"Role of user {user_id} could not be updated")

    await log.ainfo("group.role_updated")

    return group
