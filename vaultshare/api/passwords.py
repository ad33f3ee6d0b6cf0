"""
Credential entries and their per-group shares.
"""

from fastapi import APIRouter, status

from vaultshare.api.dependencies import (
    DatabaseDependency,
    LoggerDependency,
    SettingsDependency,
)
from vaultshare.core.credential import CredentialData
from vaultshare.core.models import CredentialCreationRequest, CredentialUpdateRequest
from vaultshare.core.uuid import UUID
from vaultshare.service import credentials as credentials_service
from vaultshare.toolkit.fastapi import ActorDependency

password_app = APIRouter(tags=["Credentials"])


@password_app.get(
    "",
    summary="List credentials",
    description=(
        "Your credentials plus those in categories shared with your groups. "
        "Shared ones carry `shared_via`."
    ),
)
async def list_credentials(
    actor_id: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> list[CredentialData]:
    return await credentials_service.get_credential_list(
        actor_id=actor_id, conn=conn, log=log
    )


@password_app.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Store a credential",
)
async def create_credential(
    content: CredentialCreationRequest,
    actor_id: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> CredentialData:
    credential = await credentials_service.create(
        actor_id=actor_id, conn=conn, log=log, **content.model_dump()
    )
    return credential.to_core()


@password_app.get(
    "/{credential_id}",
    summary="Get a credential",
    responses={
        404: {"description": "Not found, deleted, or not visible to you."},
    },
)
async def get_credential(
    credential_id: UUID,
    actor_id: ActorDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> CredentialData:
    return await credentials_service.read_for_user(
        credential_id=credential_id, actor_id=actor_id, conn=conn, log=log
    )


@password_app.put(
    "/{credential_id}",
    summary="Update a credential",
    description=(
        "Only the fields present in the body are changed. The owner can update, "
        "as can admins of a group the credential's category is shared with."
    ),
    responses={
        400: {"description": "Category cannot be empty."},
        403: {"description": "Permission denied."},
        404: {"description": "Not found or deleted."},
    },
)
async def update_credential(
    credential_id: UUID,
    content: CredentialUpdateRequest,
    actor_id: ActorDependency,
    settings: SettingsDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> CredentialData:
    credential = await credentials_service.update(
        credential_id=credential_id,
        actor_id=actor_id,
        changes=content.model_dump(exclude_unset=True),
        history_length=settings.history_length,
        conn=conn,
        log=log,
    )
    return credential.to_core()


@password_app.delete(
    "/{credential_id}",
    summary="Delete a credential",
    description="Soft-deletes the credential. Same permissions as updating.",
    responses={
        403: {"description": "Permission denied."},
        404: {"description": "Not found or already deleted."},
    },
)
async def delete_credential(
    credential_id: UUID,
    actor_id: ActorDependency,
    settings: SettingsDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> CredentialData:
    credential = await credentials_service.delete_credential(
        credential_id=credential_id,
        actor_id=actor_id,
        history_length=settings.history_length,
        conn=conn,
        log=log,
    )
    return credential.to_core()


@password_app.post(
    "/{credential_id}/groups/{group_id}",
    summary="Share a credential with a group",
    responses={
        200: {"description": "Shared (or already shared)."},
        400: {"description": "The credential is deleted."},
        403: {"description": "Not the owner nor a group admin."},
        404: {"description": "Credential or group not found."},
    },
)
async def share_with_group(
    credential_id: UUID,
    group_id: UUID,
    actor_id: ActorDependency,
    settings: SettingsDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> CredentialData:
    credential = await credentials_service.share_with_group(
        credential_id=credential_id,
        group_id=group_id,
        actor_id=actor_id,
        history_length=settings.history_length,
        conn=conn,
        log=log,
    )
    return credential.to_core()


@password_app.delete(
    "/{credential_id}/groups/{group_id}",
    summary="Unshare a credential from a group",
    responses={
        200: {"description": "Unshared."},
        400: {"description": "The credential is deleted."},
        403: {"description": "Not the owner nor a group admin."},
        404: {"description": "Credential not found, or not shared with the group."},
    },
)
async def unshare_from_group(
    credential_id: UUID,
    group_id: UUID,
    actor_id: ActorDependency,
    settings: SettingsDependency,
    conn: DatabaseDependency,
    log: LoggerDependency,
) -> CredentialData:
    credential = await credentials_service.unshare_from_group(
        credential_id=credential_id,
        group_id=group_id,
        actor_id=actor_id,
        history_length=settings.history_length,
        conn=conn,
        log=log,
    )
    return credential.to_core()
