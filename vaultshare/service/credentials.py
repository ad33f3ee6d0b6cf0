"""
Service layer for credential entries and their legacy per-group shares.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import and_, delete, false, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog.typing import FilteringBoundLogger

from vaultshare.core.credential import CredentialData, SharedViaData
from vaultshare.core.errors import Forbidden, InvalidArgument, NotFound
from vaultshare.core.uuid import UUID
from vaultshare.database.category import CategoryShare
from vaultshare.database.credential import Credential, CredentialGroupShare
from vaultshare.database.group import Group
from vaultshare.database.statements import insert_ignoring_duplicates

from . import categories as categories_service
from . import groups as groups_service

DEFAULT_HISTORY_LENGTH = 10

EDITABLE_FIELDS = {
    "name",
    "login",
    "password",
    "url",
    "notes",
    "category",
    "custom_fields",
    "is_favorite",
}

# Columns that cannot be cleared with an explicit null.
NON_NULLABLE_FIELDS = {"name", "login", "custom_fields", "is_favorite"}


class CredentialNotFound(NotFound):
    pass


class CredentialDeletedError(InvalidArgument):
    pass


class GroupShareNotFound(NotFound):
    pass


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def record_history(
    credential: Credential,
    action: str,
    actor_id: str,
    history_length: int,
    details: dict[str, Any] | None = None,
) -> None:
    """
    Prepend an entry to the credential's history, keep only the most recent
    `history_length` entries and stamp `last_modified_by`.
    """
    timestamp = _now().isoformat()

    entry = {"action": action, "user_id": actor_id, "timestamp": timestamp}

    if details is not None:
        entry["details"] = details

    credential.history = [entry, *(credential.history or [])][:history_length]
    credential.last_modified_by = {"user_id": actor_id, "timestamp": timestamp}


def _owner_filter(user_id: str):
    return or_(
        Credential.owner_id == user_id,
        and_(Credential.owner_id.is_(None), Credential.user_id == user_id),
    )


async def create(
    actor_id: str,
    name: str,
    login: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    password: str | None = None,
    url: str | None = None,
    notes: str | None = None,
    category: str | None = None,
    custom_fields: list[dict[str, str]] | None = None,
    is_favorite: bool = False,
) -> Credential:
    """
    Store a new credential owned by `actor_id`.
    """
    log = log.bind(actor_id=actor_id)

    now = _now()

    credential = Credential(
        owner_id=actor_id,
        user_id=actor_id,
        name=name,
        login=login,
        password=password,
        url=url,
        notes=notes,
        category=(category or "").strip() or None,
        custom_fields=custom_fields or [],
        is_favorite=is_favorite,
        created_at=now,
        group_shares=[],
        created_by=actor_id,
        history=[
            {"action": "created", "user_id": actor_id, "timestamp": now.isoformat()}
        ],
    )

    conn.add(credential)
    await conn.flush()

    await log.ainfo("credential.created", credential_id=credential.credential_id)

    return credential


async def read_by_id(credential_id: UUID, conn: AsyncSession) -> Credential:
    """
    Read a credential, deleted or not, straight from the store.

    Raises
    ------
    CredentialNotFound
        If no such credential exists.
    """
    result = await conn.execute(
        select(Credential)
        .where(Credential.credential_id == credential_id)
        .execution_options(populate_existing=True)
    )

    credential = result.scalar_one_or_none()

    if credential is None:
        raise CredentialNotFound(f"Credential {credential_id} not found")

    return credential


async def _read_live(credential_id: UUID, conn: AsyncSession) -> Credential:
    credential = await read_by_id(credential_id=credential_id, conn=conn)

    if credential.is_deleted:
        raise CredentialNotFound(
            f"Credential {credential_id} not found or has been deleted"
        )

    return credential


async def _group_name(group_id: UUID, conn: AsyncSession) -> str:
    result = await conn.execute(select(Group.name).where(Group.group_id == group_id))
    return result.scalar_one_or_none() or "Unknown Group"


async def shared_via(
    credential: Credential,
    user_id: str,
    conn: AsyncSession,
    admin_only: bool = False,
) -> SharedViaData | None:
    """
    Find a category share that gives `user_id` access to a credential they
    do not own. With `admin_only`, only groups where they are an admin
    count.
    """
    if not credential.category or not credential.owner_id:
        return None

    group_ids = await groups_service.group_ids_for_user(
        user_id=user_id, conn=conn, admin_only=admin_only
    )

    shares = await categories_service.find_shares_for_owner_category(
        owner_id=credential.owner_id,
        category_name=credential.category,
        group_ids=group_ids,
        conn=conn,
    )

    if not shares:
        return None

    return SharedViaData(
        category_owner_id=shares[0].owner_id,
        category_name=shares[0].category_name,
        group_id=shares[0].group_id,
        group_name=await _group_name(shares[0].group_id, conn),
    )


async def read_for_user(
    credential_id: UUID,
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> CredentialData:
    """
    Read a credential the actor owns, or one they can see through a category
    shared with one of their groups.

    Raises
    ------
    CredentialNotFound
        If the credential does not exist, is deleted, or is not visible to
        the actor.
    """
    log = log.bind(credential_id=credential_id, actor_id=actor_id)

    credential = await _read_live(credential_id=credential_id, conn=conn)

    if credential.effective_owner_id == actor_id:
        return credential.to_core()

    via = await shared_via(credential=credential, user_id=actor_id, conn=conn)

    if via is None:
        await log.awarning("credential.read.access_denied")
        raise CredentialNotFound(
            f"Credential {credential_id} not found or access denied"
        )

    await log.adebug("credential.read.shared", group_id=via.group_id)

    return credential.to_core(shared_via=via)


async def get_credential_list(
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
) -> list[CredentialData]:
    """
    Every live credential the actor can see: their own, plus those filed
    under categories shared with groups they belong to. Credentials reached
    through a share carry `shared_via` describing the first share found.
    """
    log = log.bind(actor_id=actor_id)

    owned = (
        (
            await conn.execute(
                select(Credential)
                .where(_owner_filter(actor_id), Credential.is_deleted == false())
                .order_by(Credential.created_at)
            )
        )
        .scalars()
        .all()
    )

    accessible: dict[UUID, Credential] = {x.credential_id: x for x in owned}
    via: dict[UUID, SharedViaData] = {}

    group_names = dict(
        (
            await conn.execute(
                select(Group.group_id, Group.name).where(
                    Group.group_id.in_(
                        await groups_service.group_ids_for_user(
                            user_id=actor_id, conn=conn
                        )
                    )
                )
            )
        ).all()
    )

    shares = []

    if group_names:
        shares = (
            (
                await conn.execute(
                    select(CategoryShare)
                    .where(CategoryShare.group_id.in_(list(group_names)))
                    .order_by(CategoryShare.shared_at)
                )
            )
            .scalars()
            .all()
        )

    for share in shares:
        share_via = SharedViaData(
            category_owner_id=share.owner_id,
            category_name=share.category_name,
            group_id=share.group_id,
            group_name=group_names.get(share.group_id, "Unknown Group"),
        )

        if share.owner_id == actor_id:
            found = [
                x
                for x in owned
                if x.category and x.category.lower() == share.category_name.lower()
            ]
        else:
            found = (
                (
                    await conn.execute(
                        select(Credential)
                        .where(
                            Credential.owner_id == share.owner_id,
                            Credential.is_deleted == false(),
                            func.lower(Credential.category)
                            == share.category_name.lower(),
                        )
                        .order_by(Credential.created_at)
                    )
                )
                .scalars()
                .all()
            )

        for credential in found:
            accessible.setdefault(credential.credential_id, credential)
            via.setdefault(credential.credential_id, share_via)

    await log.adebug(
        "credential.listed",
        number_owned=len(owned),
        number_accessible=len(accessible),
    )

    return [
        credential.to_core(shared_via=via.get(credential_id))
        for credential_id, credential in accessible.items()
    ]


async def _check_can_modify(
    credential: Credential, actor_id: str, conn: AsyncSession
) -> None:
    # Owners, and admins of a group the credential's category is shared with.
    if credential.effective_owner_id == actor_id:
        return

    if await shared_via(
        credential=credential, user_id=actor_id, conn=conn, admin_only=True
    ):
        return

    raise Forbidden("Permission denied to modify this credential")


async def update(
    credential_id: UUID,
    actor_id: str,
    changes: dict[str, Any],
    conn: AsyncSession,
    log: FilteringBoundLogger,
    history_length: int = DEFAULT_HISTORY_LENGTH,
) -> Credential:
    """
    Apply `changes` to a credential. Only fields in `EDITABLE_FIELDS` are
    considered; ownership, sharing and history cannot be set this way.

    Raises
    ------
    CredentialNotFound
        If the credential does not exist or is deleted.
    Forbidden
        If the actor is neither the owner nor an admin of a group the
        credential's category is shared with.
    InvalidArgument
        If the category would become empty, or a field that cannot be
        cleared is set to null.
    """
    log = log.bind(credential_id=credential_id, actor_id=actor_id)

    changes = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}

    cleared = sorted(
        k for k, v in changes.items() if k in NON_NULLABLE_FIELDS and v is None
    )

    if cleared:
        raise InvalidArgument(f"Fields cannot be null: {', '.join(cleared)}")

    if "category" in changes:
        category = (changes["category"] or "").strip()
        if not category:
            raise InvalidArgument("Category name cannot be empty")
        changes["category"] = category

    credential = await _read_live(credential_id=credential_id, conn=conn)

    try:
        await _check_can_modify(credential=credential, actor_id=actor_id, conn=conn)
    except Forbidden:
        await log.awarning("credential.update.refused")
        raise

    for key, value in changes.items():
        setattr(credential, key, value)

    record_history(
        credential,
        action="updated",
        actor_id=actor_id,
        history_length=history_length,
        details={"updated_fields": sorted(changes)},
    )

    conn.add(credential)
    await conn.flush()

    await log.ainfo("credential.updated", updated_fields=sorted(changes))

    return credential


async def delete_credential(
    credential_id: UUID,
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    history_length: int = DEFAULT_HISTORY_LENGTH,
) -> Credential:
    """
    Soft-delete a credential. Deleted credentials stay in the store but no
    longer accept changes or shares.

    Raises
    ------
    CredentialNotFound
        If the credential does not exist or is already deleted.
    Forbidden
        As for `update`.
    """
    log = log.bind(credential_id=credential_id, actor_id=actor_id)

    credential = await _read_live(credential_id=credential_id, conn=conn)

    try:
        await _check_can_modify(credential=credential, actor_id=actor_id, conn=conn)
    except Forbidden:
        await log.awarning("credential.delete.refused")
        raise

    credential.is_deleted = True
    credential.deleted_at = _now()
    credential.deleted_by = actor_id

    record_history(
        credential, action="deleted", actor_id=actor_id, history_length=history_length
    )

    conn.add(credential)
    await conn.flush()

    await log.ainfo("credential.deleted")

    return credential


async def share_with_group(
    credential_id: UUID,
    group_id: UUID,
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    history_length: int = DEFAULT_HISTORY_LENGTH,
) -> Credential:
    """
    Share a single credential with a group (legacy, below category sharing).
    Sharing with a group the credential is already shared with changes
    nothing and succeeds.

    Parameters
    ----------
    credential_id: UUID
        The credential to share.
    group_id: UUID
        The group to share with.
    actor_id: str
        The credential's owner, or an admin of the group.

    Raises
    ------
    CredentialNotFound
        If the credential does not exist.
    GroupNotFound
        If the group does not exist.
    CredentialDeletedError
        If the credential is deleted, whoever asks.
    Forbidden
        If the actor is neither the owner nor an admin of the group.
    """
    log = log.bind(credential_id=credential_id, group_id=group_id, actor_id=actor_id)

    credential = await read_by_id(credential_id=credential_id, conn=conn)

    if credential.is_deleted:
        await log.ainfo("credential.share.deleted")
        raise CredentialDeletedError("Cannot share a deleted credential")

    group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)

    if (
        credential.effective_owner_id != actor_id
        and not group.to_core().is_admin(actor_id)
    ):
        await log.awarning("credential.share.refused")
        raise Forbidden(
            "Only the credential owner or a group admin can share it with a group"
        )

    if group_id in credential.shared_with_group_ids:
        await log.ainfo("credential.share.already_shared")
        return credential

    result = await conn.execute(
        insert_ignoring_duplicates(
            conn, CredentialGroupShare, credential_id=credential_id, group_id=group_id
        )
    )

    if result.rowcount == 0:
        await log.ainfo("credential.share.concurrent_insert")
    else:
        record_history(
            credential,
            action="password_shared_with_group",
            actor_id=actor_id,
            history_length=history_length,
            details={"group_id": str(group_id), "group_name": group.name},
        )
        conn.add(credential)
        await conn.flush()
        await log.ainfo("credential.shared_with_group")

    return await read_by_id(credential_id=credential_id, conn=conn)


async def unshare_from_group(
    credential_id: UUID,
    group_id: UUID,
    actor_id: str,
    conn: AsyncSession,
    log: FilteringBoundLogger,
    history_length: int = DEFAULT_HISTORY_LENGTH,
) -> Credential:
    """
    Remove a credential's share with a group. The group may already be
    deleted; only the owner can then clear the dangling reference.

    Raises
    ------
    CredentialNotFound
        If the credential does not exist.
    CredentialDeletedError
        If the credential is deleted, whoever asks.
    Forbidden
        If the actor is neither the owner nor an admin of the group.
    GroupShareNotFound
        If the credential is not shared with the group.
    """
    log = log.bind(credential_id=credential_id, group_id=group_id, actor_id=actor_id)

    credential = await read_by_id(credential_id=credential_id, conn=conn)

    if credential.is_deleted:
        await log.ainfo("credential.unshare.deleted")
        raise CredentialDeletedError("Cannot modify shares of a deleted credential")

    try:
        group = await groups_service.read_by_id(group_id=group_id, conn=conn, log=log)
    except groups_service.GroupNotFound:
        group = None

    is_admin = group is not None and group.to_core().is_admin(actor_id)

    if credential.effective_owner_id != actor_id and not is_admin:
        await log.awarning("credential.unshare.refused")
        raise Forbidden(
            "Only the credential owner or a group admin can unshare it from a group"
        )

    if group_id not in credential.shared_with_group_ids:
        await log.ainfo("credential.unshare.not_shared")
        raise GroupShareNotFound("Credential is not currently shared with this group")

    result = await conn.execute(
        delete(CredentialGroupShare)
        .where(
            CredentialGroupShare.credential_id == credential_id,
            CredentialGroupShare.group_id == group_id,
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        await log.ainfo("credential.unshare.concurrent_delete")
    else:
        record_history(
            credential,
            action="password_unshared_from_group",
            actor_id=actor_id,
            history_length=history_length,
            details={
                "group_id": str(group_id),
                "group_name": group.name if group is not None else "Unknown Group",
            },
        )
        conn.add(credential)
        await conn.flush()
        await log.ainfo("credential.unshared_from_group")

    return await read_by_id(credential_id=credential_id, conn=conn)
