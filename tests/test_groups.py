import uuid
from datetime import date

import pytest
from sqlalchemy import select

from stepper.api.groups.service import period_range, rank_entries
from stepper.models import Group, Notification
from tests.conftest import auth_headers

GROUPS_URL = "/api/v1/groups"


@pytest.fixture
async def owner(create_user):
    return await create_user("Olivia Owner")


@pytest.fixture
async def member(create_user):
    return await create_user("Max Member")


async def create_group(client, user, **overrides):
    payload = {"name": "Morning Walkers", "description": "Early birds", "isPublic": True,
               "periodType": "Daily", "maxMembers": 5}
    payload.update(overrides)
    response = await client.post(GROUPS_URL, json=payload, headers=auth_headers(user.id))
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def join(client, user, group, **body):
    return await client.post(f"{GROUPS_URL}/{group['id']}/join", json=body or None, headers=auth_headers(user.id))


class TestCreateGroup:
    async def test_creator_becomes_owner(self, client, owner):
        group = await create_group(client, owner)

        assert group["role"] == "Owner"
        assert group["memberCount"] == 1
        assert group["periodType"] == "Daily"
        assert len(group["joinCode"]) == 8
        assert group["joinCode"].isalnum() and group["joinCode"].isupper()

    async def test_first_group_milestone(self, client, owner):
        await create_group(client, owner)

        achieved = (await client.get("/api/v1/milestones/achieved", headers=auth_headers(owner.id))).json()["data"]
        assert [a["milestoneId"] for a in achieved] == ["first_group"]

    @pytest.mark.parametrize("overrides, error", [
        ({"name": "A"}, "Group name must be between 2 and 50 characters."),
        ({"name": "   "}, "Group name cannot be empty."),
        ({"description": "x" * 501}, "Description cannot exceed 500 characters."),
        ({"maxMembers": 51}, "Max members must be between 1 and 50."),
        ({"maxMembers": 0}, "Max members must be between 1 and 50."),
    ])
    async def test_validation(self, client, owner, overrides, error):
        payload = {"name": "Walkers", "isPublic": True, "periodType": "Weekly"}
        payload.update(overrides)

        response = await client.post(GROUPS_URL, json=payload, headers=auth_headers(owner.id))

        assert response.status_code == 400
        assert response.json()["errors"] == [error]

    async def test_my_groups(self, client, owner, member):
        await create_group(client, owner, name="First")
        second = await create_group(client, owner, name="Second")
        await join(client, member, second)

        data = (await client.get(GROUPS_URL, headers=auth_headers(member.id))).json()["data"]

        assert [g["name"] for g in data["groups"]] == ["Second"]
        assert data["groups"][0]["role"] == "Member"
        assert data["groups"][0]["memberCount"] == 2
        assert data["groups"][0]["joinCode"] is None


class TestViewing:
    async def test_non_member_sees_public_group_without_code(self, client, owner, member):
        group = await create_group(client, owner)

        data = (await client.get(f"{GROUPS_URL}/{group['id']}", headers=auth_headers(member.id))).json()["data"]

        assert data["name"] == "Morning Walkers"
        assert data["joinCode"] is None
        assert data["role"] is None

    async def test_non_member_cannot_see_private_group(self, client, owner, member):
        group = await create_group(client, owner, isPublic=False)

        response = await client.get(f"{GROUPS_URL}/{group['id']}", headers=auth_headers(member.id))

        assert response.status_code == 401
        assert response.json()["errors"] == ["You do not have permission to view this group."]

    async def test_unknown_group(self, client, owner):
        response = await client.get(f"{GROUPS_URL}/{uuid.uuid4()}", headers=auth_headers(owner.id))

        assert response.status_code == 404
        assert response.json()["errors"] == ["Group not found."]

    async def test_search_lists_public_groups_only(self, client, owner):
        await create_group(client, owner, name="Public Striders")
        await create_group(client, owner, name="Secret Striders", isPublic=False)
        await create_group(client, owner, name="Hikers")

        everything = (await client.get(f"{GROUPS_URL}/search", headers=auth_headers(owner.id))).json()["data"]
        striders = (await client.get(
            f"{GROUPS_URL}/search", params={"query": "strid"}, headers=auth_headers(owner.id)
        )).json()["data"]

        assert [g["name"] for g in everything] == ["Hikers", "Public Striders"]
        assert [g["name"] for g in striders] == ["Public Striders"]
        assert striders[0]["memberCount"] == 1

    @pytest.mark.parametrize("query, expected", [
        ("%", ["100% Club"]),
        ("_", ["Night_Owls"]),
    ])
    async def test_search_treats_wildcards_literally(self, client, owner, query, expected):
        await create_group(client, owner, name="100% Club")
        await create_group(client, owner, name="Night_Owls")
        await create_group(client, owner, name="Hikers")

        found = (await client.get(
            f"{GROUPS_URL}/search", params={"query": query}, headers=auth_headers(owner.id)
        )).json()["data"]

        assert [g["name"] for g in found] == expected


class TestUpdateAndDelete:
    async def test_owner_updates_group(self, client, owner):
        group = await create_group(client, owner)

        response = await client.put(
            f"{GROUPS_URL}/{group['id']}",
            json={"name": "Evening Walkers", "description": None, "isPublic": False, "maxMembers": 10},
            headers=auth_headers(owner.id),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["name"] == "Evening Walkers"
        assert data["isPublic"] is False
        assert data["maxMembers"] == 10

    async def test_member_cannot_update(self, client, owner, member):
        group = await create_group(client, owner)
        await join(client, member, group)

        response = await client.put(
            f"{GROUPS_URL}/{group['id']}", json={"name": "Mine now", "isPublic": True}, headers=auth_headers(member.id)
        )

        assert response.status_code == 401
        assert response.json()["errors"] == ["Only the group owner or an admin can do this."]

    async def test_max_members_cannot_drop_below_member_count(self, client, owner, member):
        group = await create_group(client, owner)
        await join(client, member, group)

        response = await client.put(
            f"{GROUPS_URL}/{group['id']}",
            json={"name": "Morning Walkers", "isPublic": True, "maxMembers": 1},
            headers=auth_headers(owner.id),
        )

        assert response.status_code == 400
        assert response.json()["errors"] == ["Max members cannot be less than the current member count (2)."]

    async def test_only_owner_deletes(self, client, session, owner, member):
        group = await create_group(client, owner)
        await join(client, member, group)

        forbidden = await client.delete(f"{GROUPS_URL}/{group['id']}", headers=auth_headers(member.id))
        assert forbidden.status_code == 401

        response = await client.delete(f"{GROUPS_URL}/{group['id']}", headers=auth_headers(owner.id))
        assert response.status_code == 200
        assert response.json()["data"] == {"message": "Group deleted successfully."}
        assert (await session.execute(select(Group))).scalars().all() == []


class TestJoining:
    async def test_join_public_group(self, client, owner, member):
        group = await create_group(client, owner)

        response = await join(client, member, group)

        assert response.status_code == 200
        assert response.json()["data"]["role"] == "Member"
        assert response.json()["data"]["memberCount"] == 2

    async def test_join_records_activity(self, client, owner, member):
        group = await create_group(client, owner)
        await join(client, member, group)

        feed = (await client.get("/api/v1/activity/feed", headers=auth_headers(member.id))).json()["data"]

        joins = [item for item in feed["items"] if item["type"] == "group_join"]
        assert joins[0]["relatedGroupId"] == group["id"]
        assert joins[0]["metadata"] == {"groupName": "Morning Walkers"}

    async def test_private_group_needs_code(self, client, owner, member):
        group = await create_group(client, owner, isPublic=False)

        missing = await join(client, member, group)
        wrong = await join(client, member, group, joinCode="ZZZZZZZZ")
        right = await join(client, member, group, joinCode=group["joinCode"].lower())

        assert missing.status_code == 400
        assert missing.json()["errors"] == ["Invalid join code."]
        assert wrong.json()["errors"] == ["Invalid join code."]
        assert right.status_code == 200

    async def test_already_member(self, client, owner):
        group = await create_group(client, owner)

        response = await join(client, owner, group)

        assert response.status_code == 400
        assert response.json()["errors"] == ["Already a member of this group."]

    async def test_full_group(self, client, owner, member):
        group = await create_group(client, owner, maxMembers=1)

        response = await join(client, member, group)

        assert response.status_code == 400
        assert response.json()["errors"] == ["Group is full."]

    async def test_join_by_code(self, client, owner, member):
        group = await create_group(client, owner, isPublic=False)

        response = await client.post(
            f"{GROUPS_URL}/join-by-code", json={"code": group["joinCode"]}, headers=auth_headers(member.id)
        )

        assert response.status_code == 200
        assert response.json()["data"]["id"] == group["id"]

    async def test_join_by_unknown_code(self, client, member):
        response = await client.post(
            f"{GROUPS_URL}/join-by-code", json={"code": "NOPE1234"}, headers=auth_headers(member.id)
        )

        assert response.status_code == 404
        assert response.json()["errors"] == ["Group not found."]

    async def test_regenerate_code(self, client, owner, member):
        group = await create_group(client, owner, isPublic=False)

        data = (await client.post(
            f"{GROUPS_URL}/{group['id']}/regenerate-code", headers=auth_headers(owner.id)
        )).json()["data"]

        assert data["joinCode"] != group["joinCode"]
        stale = await join(client, member, group, joinCode=group["joinCode"])
        assert stale.json()["errors"] == ["Invalid join code."]


class TestLeaving:
    async def test_member_leaves(self, client, owner, member):
        group = await create_group(client, owner)
        await join(client, member, group)

        response = await client.post(f"{GROUPS_URL}/{group['id']}/leave", headers=auth_headers(member.id))

        assert response.status_code == 200
        assert response.json()["data"] == {"message": "Left group successfully."}

    async def test_owner_must_transfer_first(self, client, owner, member):
        group = await create_group(client, owner)
        await join(client, member, group)

        response = await client.post(f"{GROUPS_URL}/{group['id']}/leave", headers=auth_headers(owner.id))

        assert response.status_code == 400
        assert response.json()["errors"] == ["Owner must transfer ownership before leaving."]

    async def test_sole_member_leaving_deletes_group(self, client, owner):
        group = await create_group(client, owner)

        await client.post(f"{GROUPS_URL}/{group['id']}/leave", headers=auth_headers(owner.id))

        response = await client.get(f"{GROUPS_URL}/{group['id']}", headers=auth_headers(owner.id))
        assert response.status_code == 404

    async def test_non_member_cannot_leave(self, client, owner, member):
        group = await create_group(client, owner)

        response = await client.post(f"{GROUPS_URL}/{group['id']}/leave", headers=auth_headers(member.id))

        assert response.status_code == 400
        assert response.json()["errors"] == ["You are not a member of this group."]


class TestMembers:
    async def test_members_in_join_order(self, client, owner, member):
        group = await create_group(client, owner)
        await join(client, member, group)

        data = (await client.get(f"{GROUPS_URL}/{group['id']}/members", headers=auth_headers(member.id))).json()["data"]

        assert [(m["displayName"], m["role"]) for m in data] == [("Olivia Owner", "Owner"), ("Max Member", "Member")]

    async def test_members_hidden_from_outsiders(self, client, owner, member):
        group = await create_group(client, owner)

        response = await client.get(f"{GROUPS_URL}/{group['id']}/members", headers=auth_headers(member.id))

        assert response.status_code == 401
        assert response.json()["errors"] == ["You are not a member of this group."]

    async def test_invite_member_notifies(self, client, session, owner, member):
        group = await create_group(client, owner)

        response = await client.post(
            f"{GROUPS_URL}/{group['id']}/members", json={"userId": str(member.id)}, headers=auth_headers(owner.id)
        )

        assert response.status_code == 200
        assert response.json()["data"]["role"] == "Member"
        notifications = (await session.execute(
            select(Notification).where(Notification.user_id == member.id)
        )).scalars().all()
        assert [n.type for n in notifications] == ["group_invite"]
        assert notifications[0].data == {"groupId": group["id"]}

    async def test_owner_promotes_and_transfers(self, client, owner, member):
        group = await create_group(client, owner)
        await join(client, member, group)
        url = f"{GROUPS_URL}/{group['id']}/members/{member.id}/role"

        promoted = await client.put(url, json={"role": "Admin"}, headers=auth_headers(owner.id))
        assert promoted.json()["data"]["role"] == "Admin"

        transferred = await client.put(url, json={"role": "Owner"}, headers=auth_headers(owner.id))
        assert transferred.json()["data"]["role"] == "Owner"

        members = (await client.get(f"{GROUPS_URL}/{group['id']}/members", headers=auth_headers(owner.id))).json()["data"]
        assert {m["displayName"]: m["role"] for m in members} == {"Olivia Owner": "Admin", "Max Member": "Owner"}

    async def test_admin_cannot_change_roles(self, client, create_user, owner, member):
        group = await create_group(client, owner)
        await join(client, member, group)
        other = await create_user("Otto")
        await join(client, other, group)
        await client.put(
            f"{GROUPS_URL}/{group['id']}/members/{member.id}/role", json={"role": "Admin"}, headers=auth_headers(owner.id)
        )

        response = await client.put(
            f"{GROUPS_URL}/{group['id']}/members/{other.id}/role", json={"role": "Admin"}, headers=auth_headers(member.id)
        )

        assert response.status_code == 401
        assert response.json()["errors"] == ["Only the group owner can change member roles."]

    async def test_remove_member_rules(self, client, create_user, owner, member):
        group = await create_group(client, owner)
        admin = await create_user("Ada Admin")
        for user in (member, admin):
            await join(client, user, group)
        await client.put(
            f"{GROUPS_URL}/{group['id']}/members/{admin.id}/role", json={"role": "Admin"}, headers=auth_headers(owner.id)
        )
        other_admin = await create_user("Abe Admin")
        await join(client, other_admin, group)
        await client.put(
            f"{GROUPS_URL}/{group['id']}/members/{other_admin.id}/role", json={"role": "Admin"},
            headers=auth_headers(owner.id),
        )

        owner_removal = await client.delete(
            f"{GROUPS_URL}/{group['id']}/members/{owner.id}", headers=auth_headers(admin.id)
        )
        admin_removal = await client.delete(
            f"{GROUPS_URL}/{group['id']}/members/{other_admin.id}", headers=auth_headers(admin.id)
        )
        member_removal = await client.delete(
            f"{GROUPS_URL}/{group['id']}/members/{member.id}", headers=auth_headers(admin.id)
        )

        assert owner_removal.json()["errors"] == ["The group owner cannot be removed."]
        assert admin_removal.json()["errors"] == ["Only the group owner can remove an admin."]
        assert member_removal.status_code == 200
        assert member_removal.json()["data"] == {"message": "Member removed successfully."}


class TestLeaderboard:
    async def test_ranks_members_with_ties(self, client, create_user, add_steps, owner, member):
        group = await create_group(client, owner, periodType="Daily")
        third = await create_user("Theo")
        await join(client, member, group)
        await join(client, third, group)
        await add_steps(owner.id, 5000, distance_meters=3500.0)
        await add_steps(member.id, 3000)
        await add_steps(member.id, 2000)
        await add_steps(third.id, 3000)
        await add_steps(third.id, 20000, days_ago=1)
        await add_steps(uuid.uuid4(), 50000)

        data = (await client.get(
            f"{GROUPS_URL}/{group['id']}/leaderboard", headers=auth_headers(owner.id)
        )).json()["data"]

        assert data["periodStart"] == data["periodEnd"]
        ranks = [(e["rank"], e["displayName"], e["totalSteps"]) for e in data["entries"]]
        assert ranks[2] == (3, "Theo", 3000)
        assert {r[1] for r in ranks[:2]} == {"Olivia Owner", "Max Member"}
        assert [r[0] for r in ranks[:2]] == [1, 1]

    async def test_members_without_steps_rank_last(self, client, add_steps, owner, member):
        group = await create_group(client, owner, periodType="Weekly")
        await join(client, member, group)
        await add_steps(member.id, 10)

        entries = (await client.get(
            f"{GROUPS_URL}/{group['id']}/leaderboard", headers=auth_headers(member.id)
        )).json()["data"]["entries"]

        assert [(e["rank"], e["displayName"], e["totalSteps"]) for e in entries] == [
            (1, "Max Member", 10), (2, "Olivia Owner", 0)
        ]

    async def test_outsiders_cannot_view(self, client, owner, member):
        group = await create_group(client, owner)

        response = await client.get(f"{GROUPS_URL}/{group['id']}/leaderboard", headers=auth_headers(member.id))

        assert response.status_code == 401


class TestHelpers:
    def test_rank_entries_uses_competition_ranking(self):
        a, b, c, d = (uuid.uuid4() for _ in range(4))
        ranked = rank_entries([(a, 10, 0.0), (b, 30, 0.0), (c, 30, 0.0), (d, 5, 0.0)])

        assert [(rank, steps) for rank, _, steps, _ in ranked] == [(1, 30), (1, 30), (3, 10), (4, 5)]

    @pytest.mark.parametrize("period_type, expected", [
        ("Daily", (date(2024, 5, 15), date(2024, 5, 15))),
        ("Weekly", (date(2024, 5, 13), date(2024, 5, 19))),
        ("Monthly", (date(2024, 5, 1), date(2024, 5, 31))),
        ("Custom", (date(2024, 4, 16), date(2024, 5, 15))),
    ])
    def test_period_range(self, period_type, expected):
        assert period_range(period_type, date(2024, 5, 15)) == expected
