"""
Tests for the group and membership endpoints.
"""

import pytest


def as_user(user_id: str) -> dict[str, str]:
    return {"X-User-ID": user_id}


async def create_group(client, owner, name="Operations") -> str:
    response = await client.post("/groups", json={"name": name}, headers=as_user(owner))
    assert response.status_code == 201
    return response.json()["group_id"]


@pytest.mark.asyncio(loop_scope="session")
async def test_identity_required(client):
    response = await client.get("/groups")
    assert response.status_code == 401

    response = await client.get("/groups", headers=as_user("   "))
    assert response.status_code == 401


@pytest.mark.asyncio(loop_scope="session")
async def test_create_and_read_group(client, users):
    owner, _, _, outsider = users

    response = await client.post(
        "/groups", json={"name": " Finance "}, headers=as_user(owner)
    )
    assert response.status_code == 201

    content = response.json()
    assert content["name"] == "Finance"
    assert content["owner_id"] == owner
    assert [(x["user_id"], x["role"]) for x in content["members"]] == [
        (owner, "admin")
    ]

    group_id = content["group_id"]

    response = await client.get(f"/groups/{group_id}", headers=as_user(owner))
    assert response.status_code == 200

    response = await client.get(f"/groups/{group_id}", headers=as_user(outsider))
    assert response.status_code == 404

    response = await client.get("/groups", headers=as_user(owner))
    assert [x["group_id"] for x in response.json()] == [group_id]

    response = await client.post("/groups", json={"name": ""}, headers=as_user(owner))
    assert response.status_code == 400


@pytest.mark.asyncio(loop_scope="session")
async def test_unknown_fields_rejected(client, users):
    owner = users[0]
    group_id = await create_group(client, owner)

    response = await client.post(
        f"/groups/{group_id}/members",
        json={"user_id": users[1], "role": "member", "owner_id": owner},
        headers=as_user(owner),
    )
    assert response.status_code == 422

    response = await client.post(
        f"/groups/{group_id}/members",
        json={"user_id": users[1], "role": "superuser"},
        headers=as_user(owner),
    )
    assert response.status_code == 422


@pytest.mark.asyncio(loop_scope="session")
async def test_membership_flow(client, users):
    owner, admin, member, outsider = users
    group_id = await create_group(client, owner)

    response = await client.post(
        f"/groups/{group_id}/members",
        json={"user_id": admin, "role": "admin"},
        headers=as_user(owner),
    )
    assert response.status_code == 200

    response = await client.post(
        f"/groups/{group_id}/members",
        json={"user_id": member, "role": "member"},
        headers=as_user(admin),
    )
    assert response.status_code == 200
    assert {x["user_id"]: x["role"] for x in response.json()["members"]} == {
        owner: "admin",
        admin: "admin",
        member: "member",
    }

    # Replaying the same request succeeds.
    response = await client.post(
        f"/groups/{group_id}/members",
        json={"user_id": member, "role": "member"},
        headers=as_user(admin),
    )
    assert response.status_code == 200

    response = await client.post(
        f"/groups/{group_id}/members",
        json={"user_id": member, "role": "admin"},
        headers=as_user(admin),
    )
    assert response.status_code == 409

    response = await client.post(
        f"/groups/{group_id}/members",
        json={"user_id": outsider, "role": "member"},
        headers=as_user(member),
    )
    assert response.status_code == 403
    assert "detail" in response.json()

    response = await client.put(
        f"/groups/{group_id}/members/{owner}",
        json={"role": "member"},
        headers=as_user(owner),
    )
    assert response.status_code == 400

    response = await client.delete(
        f"/groups/{group_id}/members/{owner}", headers=as_user(admin)
    )
    assert response.status_code == 400

    response = await client.put(
        f"/groups/{group_id}/members/{member}",
        json={"role": "admin"},
        headers=as_user(owner),
    )
    assert response.status_code == 200

    response = await client.delete(
        f"/groups/{group_id}/members/{member}", headers=as_user(admin)
    )
    assert response.status_code == 403

    response = await client.delete(
        f"/groups/{group_id}/members/{member}", headers=as_user(owner)
    )
    assert response.status_code == 200
    assert member not in [x["user_id"] for x in response.json()["members"]]

    response = await client.delete(
        f"/groups/{group_id}/members/{member}", headers=as_user(owner)
    )
    assert response.status_code == 404


@pytest.mark.asyncio(loop_scope="session")
async def test_rename_and_delete(client, users):
    owner, admin, _, _ = users
    group_id = await create_group(client, owner)

    await client.post(
        f"/groups/{group_id}/members",
        json={"user_id": admin, "role": "admin"},
        headers=as_user(owner),
    )

    response = await client.put(
        f"/groups/{group_id}", json={"name": "Renamed"}, headers=as_user(admin)
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"

    response = await client.delete(f"/groups/{group_id}", headers=as_user(admin))
    assert response.status_code == 403

    response = await client.delete(f"/groups/{group_id}", headers=as_user(owner))
    assert response.status_code == 200
    assert response.json() == {
        "group_id": group_id,
        "credentials_unshared": 0,
        "category_shares_removed": 0,
    }

    response = await client.get(f"/groups/{group_id}", headers=as_user(owner))
    assert response.status_code == 404

    response = await client.delete(f"/groups/{group_id}", headers=as_user(owner))
    assert response.status_code == 404
