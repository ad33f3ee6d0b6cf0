"""
Service layer for sharing categories of credentials with groups.

A category is only a name tagged onto credentials. Sharing records that the
members of a group may see every credential the owner filed under that
name. The triple (owner, category, group) is unique in the store; that
constraint, not the pre-flight lookup, is what makes sharing safe against
double submission.
"""

from datetime import datetime, timezone

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from vaultshare.core import rules
from vaultshare.core.errors import Conflict, Forbidden, NotFound
from vaultshare.core.uuid import UUID
from vaultshare.database.category import CategoryShare
from vaultshare.database.group import GroupMember

from . import groups as groups_service


class CategoryShareExistsError(Conflict):
    pass


class CategoryShareNotFound(NotFound):
    pass


async def _find_share(
    category_name: str,
    group_id: UUID,
    conn: AsyncSession,
    owner_id: str | None = None,
) -> CategoryShare | None:
    query = select(CategoryShare).where(
        CategoryShare.category_name == category_name,
        CategoryShare.group_id == group_id,
    )

    if owner_id is not None:
        query = query.where(CategoryShare.owner_id == owner_id)

    return (await conn.execute(query.limit(1))).scalars().first()


async def share(
    category_name: str,
    group_id: UUID,
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> CategoryShare:
    """
    Share one of the actor's categories with a group. The actor does not
    need to belong to the group.

    Parameters
    ----------
    category_name: str
        The category to share. Surrounding whitespace is removed; case is
        kept as given.
    group_id: UUID
        The group to share with.
    actor_id: str
        The owner of the category.

    Raises
    ------
    InvalidArgument
        If the category name is empty.
    GroupNotFound
        If the group does not exist.
    CategoryShareExistsError
        If the actor already shares this category with this group.
    """
    category_name = rules.clean_name(category_name, "Category name")

    log = log.bind(category_name=category_name, group_id=group_id, actor_id=actor_id)

    await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    existing = await _find_share(
        category_name=category_name, group_id=group_id, conn=conn, owner_id=actor_id
    )

    if existing is not None:
        await log.ainfo("category.share_exists", share_id=existing.share_id)
        raise CategoryShareExistsError(
            "This category is already shared with this group by you"
        )

    category_share = CategoryShare(
        owner_id=actor_id,
        category_name=category_name,
        group_id=group_id,
        shared_at=datetime.now(tz=timezone.utc),
        shared_by=actor_id,
    )

    try:
        conn.add(category_share)
        await conn.flush()
    except IntegrityError as e:
        log = log.bind(error=str(e))
        await log.ainfo("category.share_exists_concurrent")
        raise CategoryShareExistsError(
            "This category is already shared with this group by you"
        ) from e

    await log.ainfo("category.shared", share_id=category_share.share_id)

    return category_share


async def unshare(
    category_name: str,
    group_id: UUID,
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> None:
    """
    Stop sharing a category with a group.

    The owner of the share may always remove it. An admin of the group may
    remove any share targeting their group, whoever owns it.

    Raises
    ------
    InvalidArgument
        If the category name is empty.
    Forbidden
        If the actor owns no such share and is not an admin of the group.
    CategoryShareNotFound
        If the category is not shared with the group, or the share vanished
        before it could be deleted.
    """
    category_name = rules.clean_name(category_name, "Category name")

    log = log.bind(category_name=category_name, group_id=group_id, actor_id=actor_id)

    own_share = await _find_share(
        category_name=category_name, group_id=group_id, conn=conn, owner_id=actor_id
    )

    if own_share is not None:
        query = delete(CategoryShare).where(
            CategoryShare.share_id == own_share.share_id
        )
        log = log.bind(path="owner", share_id=own_share.share_id)
    else:
        try:
            group = await groups_service.read_by_id(
                group_id=group_id, conn=conn, log=log
            )
        except groups_service.GroupNotFound:
            await log.ainfo("category.unshare.group_missing")
            raise CategoryShareNotFound(
                f'Category "{category_name}" is not shared with group {group_id}'
            )

        if not group.to_core().is_admin(actor_id):
            await log.awarning("category.unshare.refused")
            raise Forbidden(
                "You do not have permission to unshare this category from this group"
            )

        target = await _find_share(
            category_name=category_name, group_id=group_id, conn=conn
        )

        if target is None:
            await log.ainfo("category.unshare.not_shared")
            raise CategoryShareNotFound(
                f'Category "{category_name}" is not shared with group {group_id}'
            )

        query = delete(CategoryShare).where(CategoryShare.share_id == target.share_id)
        log = log.bind(
            path="group_admin", share_id=target.share_id, owner_id=target.owner_id
        )

    result = await conn.execute(query.execution_options(synchronize_session=False))

    if result.rowcount == 0:
        await log.ainfo("category.unshare.already_removed")
        raise CategoryShareNotFound("Category share not found or already unshared")

    await log.ainfo("category.unshared")


async def get_share_list(
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    owner_id: str | None = None,
    group_id: UUID | None = None,
    category_name: str | None = None,
) -> list[CategoryShare]:
    """
    List category shares visible to `actor_id`.

    Without an owner or group filter, this is every share the actor owns
    plus every share made to a group the actor belongs to. Filtering on
    another user's shares requires naming a group the actor belongs to;
    filtering on a group requires membership unless the actor is only
    asking for their own shares.

    Raises
    ------
    Forbidden
        If the filters reach beyond what the actor may see.
    """
    log = log.bind(
        actor_id=actor_id,
        owner_id=owner_id,
        group_id=group_id,
        category_name=category_name,
    )

    async def is_member(gid: UUID) -> bool:
        result = await conn.execute(
            select(GroupMember.user_id).where(
                GroupMember.group_id == gid, GroupMember.user_id == actor_id
            )
        )
        return result.first() is not None

    query = select(CategoryShare)

    if owner_id is None and group_id is None:
        member_of = await groups_service.group_ids_for_user(user_id=actor_id, conn=conn)
        query = query.where(
            or_(
                CategoryShare.owner_id == actor_id,
                CategoryShare.group_id.in_(member_of),
            )
        )
    else:
        if owner_id is not None and owner_id != actor_id:
            if group_id is None or not await is_member(group_id):
                await log.awarning("category.list.owner_refused")
                raise Forbidden("Access denied to view shares for this owner")

        if group_id is not None and owner_id != actor_id:
            if not await is_member(group_id):
                await log.awarning("category.list.group_refused")
                raise Forbidden("Access denied to view shares for this group")

        if owner_id is not None:
            query = query.where(CategoryShare.owner_id == owner_id)

        if group_id is not None:
            query = query.where(CategoryShare.group_id == group_id)

    if category_name:
        query = query.where(CategoryShare.category_name == category_name.strip())

    result = await conn.execute(query.order_by(CategoryShare.shared_at))
    shares = result.scalars().all()

    await log.adebug("category.listed", number_of_shares=len(shares))

    return list(shares)


async def find_shares_for_owner_category(
    owner_id: str,
    category_name: str,
    group_ids: list[UUID],
    conn: AsyncSession,
) -> list[CategoryShare]:
    """
    Shares of `owner_id`'s category `category_name` (compared without case)
    to any of `group_ids`.
    """
    if not group_ids:
        return []

    result = await conn.execute(
        select(CategoryShare).where(
            CategoryShare.owner_id == owner_id,
            CategoryShare.group_id.in_(group_ids),
        )
    )

    wanted = category_name.strip().lower()

    return [x for x in result.scalars().all() if x.category_name.lower() == wanted]
