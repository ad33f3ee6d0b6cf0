"""
Service layer for groups: creation, renaming, listing and the cascading
deletion sequence.
"""

from datetime import datetime, timezone

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from vaultshare.core import rules
from vaultshare.core.errors import Internal, NotFound, ServiceError
from vaultshare.core.group import GroupDeletionReport
from vaultshare.core.uuid import UUID
from vaultshare.database.category import CategoryShare
from vaultshare.database.credential import CredentialGroupShare
from vaultshare.database.group import Group, GroupMember


class GroupNotFound(NotFound):
    pass


class GroupDeletionError(Internal):
    pass


async def create(
    name: str,
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Create a new group.

    Parameters
    ----------
    name: str
        The name of the new group. Surrounding whitespace is removed.
    actor_id: str
        The user creating the group. They become its owner and its only
        member, with the `admin` role.

    Raises
    ------
    InvalidArgument
        If the name is empty.
    """
    name = rules.clean_name(name, "Group name")

    log = log.bind(group_name=name, actor_id=actor_id)

    now = datetime.now(tz=timezone.utc)

    group = Group(
        name=name,
        owner_id=actor_id,
        created_at=now,
        updated_at=now,
        members=[
            GroupMember(
                user_id=actor_id, role="admin", added_at=now, added_by=actor_id
            )
        ],
    )

    conn.add(group)
    await conn.flush()

    await log.ainfo("group.created", group_id=group.group_id)

    return group


async def read_by_id(
    group_id: UUID,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Read a group by its ID. The row and its members are always re-read from
    the store, replacing anything cached in the session.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    """
    log = log.bind(group_id=group_id)
    result = await conn.execute(
        select(Group)
        .where(Group.group_id == group_id)
        .execution_options(populate_existing=True)
    )
    group = result.unique().scalar_one_or_none()
    if not group:
        await log.ainfo("group.not_found")
        raise GroupNotFound(f"Group with id {group_id} not found")
    await log.adebug("group.found")
    return group


async def read_for_user(
    group_id: UUID,
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Read a group on behalf of `actor_id`. Users who neither own nor belong
    to the group are told it does not exist.
    """
    group = await read_by_id(group_id=group_id, conn=conn, log=log)

    core = group.to_core()

    if not rules.is_owner(actor_id, core) and core.member(actor_id) is None:
        await log.awarning("group.access_denied", actor_id=actor_id)
        raise GroupNotFound(f"Group with id {group_id} not found")

    return group


async def get_group_list(
    for_user: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> list[Group]:
    """
    Get the groups that `for_user` owns or is a member of.
    """
    log = log.bind(for_user=for_user)

    result = await conn.execute(
        select(Group)
        .where(
            or_(
                Group.owner_id == for_user,
                Group.members.any(GroupMember.user_id == for_user),
            )
        )
        .order_by(Group.created_at)
    )

    groups = result.unique().scalars().all()
    await log.adebug("group.listed", number_of_groups=len(groups))
    return list(groups)


async def group_ids_for_user(
    user_id: str, conn: AsyncSession, admin_only: bool = False
) -> list[UUID]:
    """
    IDs of the groups that `user_id` is a member of (or an admin of, with
    `admin_only`).
    """
    query = select(GroupMember.group_id).where(GroupMember.user_id == user_id)

    if admin_only:
        query = query.where(GroupMember.role == "admin")

    return list((await conn.execute(query)).scalars().all())


async def touch(group_id: UUID, conn: AsyncSession) -> None:
    """
    Bump the `updated_at` timestamp of a group.
    """
    await conn.execute(
        update(Group)
        .where(Group.group_id == group_id)
        .values(updated_at=datetime.now(tz=timezone.utc))
        .execution_options(synchronize_session=False)
    )


async def rename(
    group_id: UUID,
    new_name: str,
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> Group:
    """
    Rename a group. Owners and admins may rename.

    Raises
    ------
    GroupNotFound
        If the group does not exist.
    Forbidden
        If the actor is neither the owner nor an admin.
    InvalidArgument
        If the new name is empty.
    """
    log = log.bind(group_id=group_id, actor_id=actor_id)

    group = await read_by_id(group_id=group_id, conn=conn, log=log)

    try:
        rules.check_rename(actor_id, group.to_core())
        new_name = rules.clean_name(new_name, "New group name")
    except ServiceError as e:
        await log.awarning("group.rename.refused", reason=e.detail)
        raise

    group.name = new_name
    group.updated_at = datetime.now(tz=timezone.utc)

    conn.add(group)
    await conn.flush()

    await log.ainfo("group.renamed", group_name=new_name)

    return group


async def purge_group_shares(
    group_id: UUID, conn: AsyncSession, log: FilteringBoundLogger
) -> int:
    """
    Remove every category share pointing at `group_id`. Safe to run again
    at any time, including after the group itself has been deleted.

    Returns
    -------
    int
        The number of shares removed.
    """
    result = await conn.execute(
        delete(CategoryShare)
        .where(CategoryShare.group_id == group_id)
        .execution_options(synchronize_session=False)
    )

    await log.ainfo(
        "group.category_shares_purged", group_id=group_id, removed=result.rowcount
    )

    return result.rowcount


async def delete_group(
    group_id: UUID,
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> GroupDeletionReport:
    """
    Delete a group by its ID. Only the owner may do this.

    The deletion runs as an ordered sequence of idempotent steps:

    1. Strip the group from every credential's legacy group-share list.
    2. Delete the group and its memberships.
    3. Delete every category share that references the group.

    Parameters
    ----------
    group_id: UUID
        The ID of the group to delete.
    actor_id: str
        The user asking for the deletion.

    Raises
    ------
    GroupNotFound
        If the group does not exist, or vanished before step 2.
    Forbidden
        If the actor is not the owner.
    GroupDeletionError
        If the store fails during a step. `step` names the step; every step
        can be re-run.
    """
    log = log.bind(group_id=group_id, actor_id=actor_id)

    group = await read_by_id(group_id=group_id, conn=conn, log=log)

    try:
        rules.check_delete(actor_id, group.to_core())
    except ServiceError as e:
        await log.awarning("group.delete.refused", reason=e.detail)
        raise

    # The statements below bypass the ORM; keep the session from flushing
    # a stale copy.
    conn.expunge(group)

    try:
        result = await conn.execute(
            delete(CredentialGroupShare)
            .where(CredentialGroupShare.group_id == group_id)
            .execution_options(synchronize_session=False)
        )
        credentials_unshared = result.rowcount
    except SQLAlchemyError as e:
        await log.aerror("group.delete.credential_cleanup_failed", error=str(e))
        raise GroupDeletionError(
            "Failed to unshare credentials from the group", step="unshare_credentials"
        ) from e

    try:
        await conn.execute(
            delete(GroupMember)
            .where(GroupMember.group_id == group_id)
            .execution_options(synchronize_session=False)
        )
        result = await conn.execute(
            delete(Group)
            .where(Group.group_id == group_id, Group.owner_id == actor_id)
            .execution_options(synchronize_session=False)
        )
    except SQLAlchemyError as e:
        await log.aerror("group.delete.group_delete_failed", error=str(e))
        raise GroupDeletionError(
            "Failed to delete the group record", step="delete_group"
        ) from e

    if result.rowcount == 0:
        await log.ainfo("group.delete.already_gone")
        raise GroupNotFound(f"Group with id {group_id} not found")

    try:
        category_shares_removed = await purge_group_shares(
            group_id=group_id, conn=conn, log=log
        )
    except SQLAlchemyError as e:
        await log.aerror("group.delete.share_cleanup_failed", error=str(e))
        raise GroupDeletionError(
            "Group deleted but its category shares could not be removed",
            step="remove_category_shares",
        ) from e

    await log.ainfo(
        "group.deleted",
        credentials_unshared=credentials_unshared,
        category_shares_removed=category_shares_removed,
    )

    return GroupDeletionReport(
        group_id=group_id,
        credentials_unshared=credentials_unshared,
        category_shares_removed=category_shares_removed,
    )
