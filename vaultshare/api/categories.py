"""
Sharing categories of credentials with groups.
"""

from fastapi import APIRouter, Query, status

from vaultshare.api.dependencies import DatabaseDependency, LoggerDependency
from vaultshare.core.category import CategoryShareData
from vaultshare.core.models import CategoryShareRequest, MessageResponse
from vaultshare.core.uuid import UUID
from vaultshare.service import categories as categories_service
from vaultshare.toolkit.fastapi import ActorDependency

category_app = APIRouter(tags=["Category Sharing"])


@category_app.post(
    "/share",
    status_code=status.HTTP_201_CREATED,
    summary="Share a category with a group",
    description=(
        "Give the members of a group access to every credential you filed under "
        "the category. You do not need to belong to the group."
    ),
    responses={
        201: {"description": "Category shared."},
        400: {"description": "Category name is empty."},
        404: {"description": "Group not found."},
        409: {"description": "You already share this category with this group."},
    },
)
async def share_category(
    content: CategoryShareRequest,
    actor_id: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> CategoryShareData:
    category_share = await categories_service.share(
        category_name=content.category_name,
        group_id=content.group_id,
        actor_id=actor_id,
        conn=conn,
        log=log,
    )
    return category_share.to_core()


@category_app.post(
    "/unshare",
    summary="Unshare a category from a group",
    description=(
        "Remove a category share. The owner of the share can always remove it; "
        "group admins can remove any share made to their group."
    ),
    responses={
        200: {"description": "Category unshared."},
        400: {"description": "Category name is empty."},
        403: {"description": "Not the owner of the share nor a group admin."},
        404: {"description": "Category is not shared with this group."},
    },
)
async def unshare_category(
    content: CategoryShareRequest,
    actor_id: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> MessageResponse:
    await categories_service.unshare(
        category_name=content.category_name,
        group_id=content.group_id,
        actor_id=actor_id,
        conn=conn,
        log=log,
    )
    return MessageResponse(message="Category unshared successfully.")


@category_app.get(
    "/shares",
    summary="List category shares",
    description=(
        "Without filters, lists the shares you own and the shares made to your "
        "groups. Filtering on another owner requires a group you belong to."
    ),
    responses={
        200: {"description": "List of category shares."},
        403: {"description": "Filters reach shares you cannot see."},
    },
)
async def list_shares(
    actor_id: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
    owner_id: str | None = Query(None, description="Only shares by this owner."),
    group_id: UUID | None = Query(None, description="Only shares to this group."),
    category_name: str | None = Query(None, description="Only this category."),
) -> list[CategoryShareData]:
    shares = await categories_service.get_share_list(
        actor_id=actor_id,
        owner_id=owner_id,
        group_id=group_id,
        category_name=category_name,
        conn=conn,
        log=log,
    )
    return [x.to_core() for x in shares]
