"""
Tests for group creation, listing, renaming and deletion.
"""

import pytest

from vaultshare.core.errors import Forbidden, Internal, InvalidArgument
from vaultshare.service import categories as categories_service
from vaultshare.service import credentials as credentials_service
from vaultshare.service import groups as groups_service


async def _share_servers(session_manager, logger, actor_id, group_id):
    async with session_manager.session() as conn:
        async with conn.begin():
            await categories_service.share(
                category_name="Servers",
                group_id=group_id,
                actor_id=actor_id,
                conn=conn,
                log=logger,
            )


@pytest.mark.asyncio(loop_scope="session")
async def test_create_group(session_manager, logger, users):
    owner = users[0]

    async with session_manager.session() as conn:
        async with conn.begin():
            group = await groups_service.create(
                name="  Finance  ", actor_id=owner, conn=conn, log=logger
            )
            GROUP_ID = group.group_id

    async with session_manager.session() as conn:
        async with conn.begin():
            group = await groups_service.read_by_id(
                group_id=GROUP_ID, conn=conn, log=logger
            )
            data = group.to_core()

    assert data.name == "Finance"
    assert data.owner_id == owner
    assert [(x.user_id, x.role) for x in data.members] == [(owner, "admin")]
    assert data.members[0].added_by == owner


@pytest.mark.asyncio(loop_scope="session")
async def test_create_group_empty_name(session_manager, logger, users):
    with pytest.raises(InvalidArgument):
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.create(
                    name="   ", actor_id=users[0], conn=conn, log=logger
                )


@pytest.mark.asyncio(loop_scope="session")
async def test_read_missing_group(session_manager, logger, users, group):
    async with session_manager.session() as conn:
        async with conn.begin():
            await groups_service.delete_group(
                group_id=group, actor_id=users[0], conn=conn, log=logger
            )

    with pytest.raises(groups_service.GroupNotFound):
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.read_by_id(group_id=group, conn=conn, log=logger)


@pytest.mark.asyncio(loop_scope="session")
async def test_read_for_user(session_manager, logger, users, group):
    owner, admin, member, outsider = users

    async with session_manager.session() as conn:
        async with conn.begin():
            for user in [owner, admin, member]:
                found = await groups_service.read_for_user(
                    group_id=group, actor_id=user, conn=conn, log=logger
                )
                assert found.group_id == group

    with pytest.raises(groups_service.GroupNotFound):
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.read_for_user(
                    group_id=group, actor_id=outsider, conn=conn, log=logger
                )


@pytest.mark.asyncio(loop_scope="session")
async def test_group_list(session_manager, logger, users, group):
    owner, admin, member, outsider = users

    async with session_manager.session() as conn:
        async with conn.begin():
            other = await groups_service.create(
                name="Second", actor_id=member, conn=conn, log=logger
            )
            OTHER_ID = other.group_id

            owned = await groups_service.get_group_list(
                for_user=owner, conn=conn, log=logger
            )
            joined = await groups_service.get_group_list(
                for_user=member, conn=conn, log=logger
            )
            none = await groups_service.get_group_list(
                for_user=outsider, conn=conn, log=logger
            )

    assert [x.group_id for x in owned] == [group]
    assert {x.group_id for x in joined} == {group, OTHER_ID}
    assert none == []


@pytest.mark.asyncio(loop_scope="session")
async def test_rename_group(session_manager, logger, users, group):
    owner, admin, member, outsider = users

    async with session_manager.session() as conn:
        async with conn.begin():
            renamed = await groups_service.rename(
                group_id=group,
                new_name=" Platform ",
                actor_id=admin,
                conn=conn,
                log=logger,
            )
            assert renamed.name == "Platform"

            renamed = await groups_service.rename(
                group_id=group, new_name="Infra", actor_id=owner, conn=conn, log=logger
            )
            assert renamed.name == "Infra"

    for actor in [member, outsider]:
        with pytest.raises(Forbidden):
            async with session_manager.session() as conn:
                async with conn.begin():
                    await groups_service.rename(
                        group_id=group,
                        new_name="Nope",
                        actor_id=actor,
                        conn=conn,
                        log=logger,
                    )

    with pytest.raises(InvalidArgument):
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.rename(
                    group_id=group, new_name=" ", actor_id=owner, conn=conn, log=logger
                )

    async with session_manager.session() as conn:
        async with conn.begin():
            group = await groups_service.read_by_id(
                group_id=group, conn=conn, log=logger
            )
            assert group.name == "Infra"


@pytest.mark.asyncio(loop_scope="session")
async def test_delete_group_requires_owner(session_manager, logger, users, group):
    owner, admin, member, outsider = users

    for actor in [admin, member, outsider]:
        with pytest.raises(Forbidden):
            async with session_manager.session() as conn:
                async with conn.begin():
                    await groups_service.delete_group(
                        group_id=group, actor_id=actor, conn=conn, log=logger
                    )

    async with session_manager.session() as conn:
        async with conn.begin():
            await groups_service.read_by_id(group_id=group, conn=conn, log=logger)


@pytest.mark.asyncio(loop_scope="session")
async def test_delete_group_cascades(session_manager, logger, users, group):
    owner, admin, member, outsider = users

    async with session_manager.session() as conn:
        async with conn.begin():
            # Two shares from different owners, one of whom is not a member.
            await categories_service.share(
                category_name="Servers",
                group_id=group,
                actor_id=admin,
                conn=conn,
                log=logger,
            )
            await categories_service.share(
                category_name="Email",
                group_id=group,
                actor_id=outsider,
                conn=conn,
                log=logger,
            )

            credential = await credentials_service.create(
                actor_id=owner, name="Router", login="root", conn=conn, log=logger
            )
            await credentials_service.share_with_group(
                credential_id=credential.credential_id,
                group_id=group,
                actor_id=owner,
                conn=conn,
                log=logger,
            )
            CREDENTIAL_ID = credential.credential_id

    async with session_manager.session() as conn:
        async with conn.begin():
            report = await groups_service.delete_group(
                group_id=group, actor_id=owner, conn=conn, log=logger
            )

    assert report.group_id == group
    assert report.credentials_unshared == 1
    assert report.category_shares_removed == 2

    async with session_manager.session() as conn:
        async with conn.begin():
            for user in users:
                shares = await categories_service.get_share_list(
                    actor_id=user, conn=conn, log=logger
                )
                assert [x for x in shares if x.group_id == group] == []

            credential = await credentials_service.read_by_id(
                credential_id=CREDENTIAL_ID, conn=conn
            )
            assert credential.shared_with_group_ids == []

            assert (
                await groups_service.get_group_list(
                    for_user=member, conn=conn, log=logger
                )
                == []
            )

    with pytest.raises(groups_service.GroupNotFound):
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.delete_group(
                    group_id=group, actor_id=owner, conn=conn, log=logger
                )


@pytest.mark.asyncio(loop_scope="session")
async def test_purge_group_shares_is_repeatable(session_manager, logger, users, group):
    owner = users[0]

    async with session_manager.session() as conn:
        async with conn.begin():
            await categories_service.share(
                category_name="Servers",
                group_id=group,
                actor_id=owner,
                conn=conn,
                log=logger,
            )

    async with session_manager.session() as conn:
        async with conn.begin():
            removed = await groups_service.purge_group_shares(
                group_id=group, conn=conn, log=logger
            )
            assert removed == 1

            removed = await groups_service.purge_group_shares(
                group_id=group, conn=conn, log=logger
            )
            assert removed == 0

            # The group itself is untouched.
            await groups_service.read_by_id(group_id=group, conn=conn, log=logger)


@pytest.mark.parametrize(
    "table_name, step",
    [
        ("credential_group_share", "unshare_credentials"),
        ("group_member", "delete_group"),
        ("group", "delete_group"),
        ("category_share", "remove_category_shares"),
    ],
)
@pytest.mark.asyncio(loop_scope="session")
async def test_delete_group_step_failure(
    session_manager, logger, users, group, failing_deletes, table_name, step
):
    owner = users[0]

    await _share_servers(session_manager, logger, owner, group)

    with pytest.raises(groups_service.GroupDeletionError) as e:
        async with session_manager.session() as conn:
            async with conn.begin():
                failing_deletes(conn, table_name)
                await groups_service.delete_group(
                    group_id=group, actor_id=owner, conn=conn, log=logger
                )

    assert isinstance(e.value, Internal)
    assert e.value.status_code == 500
    assert e.value.step == step

    # Nothing was committed, so the deletion can simply be retried.
    async with session_manager.session() as conn:
        async with conn.begin():
            report = await groups_service.delete_group(
                group_id=group, actor_id=owner, conn=conn, log=logger
            )

    assert report.category_shares_removed == 1


@pytest.mark.asyncio(loop_scope="session")
async def test_share_cleanup_after_group_is_gone(
    session_manager, logger, users, group, failing_deletes
):
    owner = users[0]

    await _share_servers(session_manager, logger, owner, group)

    # A caller that keeps the first two steps despite the failing third.
    async with session_manager.session() as conn:
        async with conn.begin():
            failing_deletes(conn, "category_share")
            with pytest.raises(groups_service.GroupDeletionError) as e:
                await groups_service.delete_group(
                    group_id=group, actor_id=owner, conn=conn, log=logger
                )
            assert e.value.step == "remove_category_shares"

    async with session_manager.session() as conn:
        async with conn.begin():
            with pytest.raises(groups_service.GroupNotFound):
                await groups_service.read_by_id(group_id=group, conn=conn, log=logger)

            left_over = await categories_service.get_share_list(
                actor_id=owner, conn=conn, log=logger
            )
            assert [x.group_id for x in left_over] == [group]

            removed = await groups_service.purge_group_shares(
                group_id=group, conn=conn, log=logger
            )
            assert removed == 1

    async with session_manager.session() as conn:
        async with conn.begin():
            assert (
                await categories_service.get_share_list(
                    actor_id=owner, conn=conn, log=logger
                )
                == []
            )

    with pytest.raises(groups_service.GroupNotFound):
        async with session_manager.session() as conn:
            async with conn.begin():
                await groups_service.delete_group(
                    group_id=group, actor_id=owner, conn=conn, log=logger
                )
