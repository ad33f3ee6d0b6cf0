"""
Group management and membership.
"""

from fastapi import APIRouter, status

from vaultshare.api.dependencies import DatabaseDependency, LoggerDependency
from vaultshare.core.group import GroupData, GroupDeletionReport
from vaultshare.core.models import (
    AddMemberRequest,
    GroupCreationRequest,
    GroupRenameRequest,
    UpdateRoleRequest,
)
from vaultshare.core.uuid import UUID
from vaultshare.service import groups as groups_service
from vaultshare.service import membership as membership_service
from vaultshare.toolkit.fastapi import ActorDependency

group_app = APIRouter(tags=["Group Management"])


@group_app.get(
    "",
    summary="List your groups",
    description="Retrieve the groups you own or are a member of.",
    responses={
        200: {"description": "List of groups."},
    },
)
async def list_groups(
    actor_id: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> list[GroupData]:
    log = log.bind(actor_id=actor_id)
    groups = await groups_service.get_group_list(for_user=actor_id, conn=conn, log=log)
    await log.adebug("api.group.list")
    return [g.to_core() for g in groups]


@group_app.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a new group",
    description=(
        "Create a new group. The creator becomes its owner and its only member, "
        "with the admin role."
    ),
    responses={
        201: {"description": "Group created successfully."},
        400: {"description": "Group name is empty."},
    },
)
async def create_group(
    content: GroupCreationRequest,
    actor_id: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GroupData:
    group = await groups_service.create(
        name=content.name, actor_id=actor_id, conn=conn, log=log
    )
    await log.ainfo("api.group.created", group_id=group.group_id)
    return group.to_core()


@group_app.get(
    "/{group_id}",
    summary="Get group by ID",
    description=(
        "Retrieve a group by its ID, with its members. "
        "Only the owner and members can see a group."
    ),
    responses={
        200: {"description": "Group details with members."},
        404: {"description": "Group not found."},
    },
)
async def get_group_by_id(
    group_id: UUID,
    actor_id: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GroupData:
    group = await groups_service.read_for_user(
        group_id=group_id, actor_id=actor_id, conn=conn, log=log
    )
    return group.to_core()


@group_app.put(
    "/{group_id}",
    summary="Rename a group",
    description="Change the name of a group. The owner and admins can rename it.",
    responses={
        200: {"description": "Group renamed."},
        400: {"description": "New name is empty."},
        403: {"description": "Not the owner or an admin."},
        404: {"description": "Group not found."},
    },
)
async def rename_group(
    group_id: UUID,
    content: GroupRenameRequest,
    actor_id: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GroupData:
    group = await groups_service.rename(
        group_id=group_id, new_name=content.name, actor_id=actor_id, conn=conn, log=log
    )
    return group.to_core()


@group_app.delete(
    "/{group_id}",
    summary="Delete a group",
    description=(
        "Delete a group by its ID. Only the owner can delete it. Every category "
        "shared with the group is unshared."
    ),
    responses={
        200: {"description": "Group deleted, with counts of removed shares."},
        403: {"description": "Not the owner."},
        404: {"description": "Group not found."},
        500: {"description": "A deletion step failed; the `step` field names it."},
    },
)
async def delete_group(
    group_id: UUID,
    actor_id: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GroupDeletionReport:
    report = await groups_service.delete_group(
        group_id=group_id, actor_id=actor_id, conn=conn, log=log
    )
    await log.ainfo("api.group.deleted", group_id=group_id)
    return report


@group_app.post(
    "/{group_id}/members",
    summary="Add a member to a group",
    description=(
        "Add a user to a group with the `member` or `admin` role. "
        "The owner and admins can add members."
    ),
    responses={
        200: {"description": "Member added (or was already present with that role)."},
        400: {"description": "The owner must keep the admin role."},
        403: {"description": "Not the owner or an admin."},
        404: {"description": "Group not found."},
        409: {"description": "Already a member with another role."},
    },
)
async def add_member(
    group_id: UUID,
    content: AddMemberRequest,
    actor_id: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GroupData:
    group = await membership_service.add_member(
        group_id=group_id,
        user_id=content.user_id,
        role=content.role,
        actor_id=actor_id,
        conn=conn,
        log=log,
    )
    return group.to_core()


@group_app.delete(
    "/{group_id}/members/{member_uid}",
    summary="Remove a member from a group",
    description=(
        "Remove a user from a group. The owner can remove anyone but themselves; "
        "admins can remove plain members."
    ),
    responses={
        200: {"description": "Member removed."},
        400: {"description": "The owner cannot be removed."},
        403: {"description": "Not allowed to remove this member."},
        404: {"description": "Group or member not found."},
    },
)
async def remove_member(
    group_id: UUID,
    member_uid: str,
    actor_id: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GroupData:
    group = await membership_service.remove_member(
        group_id=group_id, user_id=member_uid, actor_id=actor_id, conn=conn, log=log
    )
    return group.to_core()


@group_app.put(
    "/{group_id}/members/{member_uid}",
    summary="Change a member's role",
    description=(
        "Set the role of a member. The owner's role is always admin. "
        "Admins cannot change the role of other admins."
    ),
    responses={
        200: {"description": "Role updated (or already set)."},
        400: {"description": "The owner must keep the admin role."},
        403: {"description": "Not allowed to change this member's role."},
        404: {"description": "Group or member not found."},
    },
)
async def update_member_role(
    group_id: UUID,
    member_uid: str,
    content: UpdateRoleRequest,
    actor_id: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> GroupData:
    group = await membership_service.update_member_role(
        group_id=group_id,
        user_id=member_uid,
        role=content.role,
        actor_id=actor_id,
        conn=conn,
        log=log,
    )
    return group.to_core()
