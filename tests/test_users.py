import uuid

import pytest

from stepper.api.users.service import MAX_AVATAR_BYTES, validate_avatar_file
from stepper.clients.supabase import SupabaseAuthError
from stepper.exceptions import ExternalServiceError, ValidationError
from stepper.models import Group, GroupMembership, MemberRole, MilestoneAchievement, User
from tests.conftest import auth_headers

USERS_URL = "/api/v1/users"


@pytest.fixture
async def alice(create_user):
    return await create_user("Alice")


class TestProfile:
    async def test_first_visit_creates_profile(self, client, session):
        user_id = uuid.uuid4()

        response = await client.get(f"{USERS_URL}/me", headers=auth_headers(user_id))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == str(user_id)
        assert data["displayName"] == f"User_{user_id.hex}"[:20]
        assert data["onboardingCompleted"] is False
        assert await session.get(User, user_id) is not None

    async def test_update_profile(self, client, alice):
        response = await client.put(
            f"{USERS_URL}/me",
            json={"displayName": "  Alice W  ", "avatarUrl": "https://cdn.example.com/a.png", "onboardingCompleted": True},
            headers=auth_headers(alice.id),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["displayName"] == "Alice W"
        assert data["avatarUrl"] == "https://cdn.example.com/a.png"
        assert data["onboardingCompleted"] is True

    @pytest.mark.parametrize("payload, error", [
        ({"displayName": " "}, "Display name cannot be empty."),
        ({"displayName": "A"}, "Display name must be at least 2 characters long."),
        ({"displayName": "x" * 51}, "Display name must not exceed 50 characters."),
        ({"avatarUrl": "ftp://files/a.png"}, "Avatar URL must be a valid HTTP or HTTPS URL."),
    ])
    async def test_update_profile_validation(self, client, alice, payload, error):
        response = await client.put(f"{USERS_URL}/me", json=payload, headers=auth_headers(alice.id))

        assert response.status_code == 400
        assert response.json()["errors"] == [error]

    async def test_public_profile(self, client, alice):
        viewer = uuid.uuid4()

        data = (await client.get(f"{USERS_URL}/{alice.id}", headers=auth_headers(viewer))).json()["data"]

        assert data["displayName"] == "Alice"
        assert "onboardingCompleted" not in data

    async def test_unknown_profile(self, client):
        response = await client.get(f"{USERS_URL}/{uuid.uuid4()}", headers=auth_headers(uuid.uuid4()))

        assert response.status_code == 404
        assert response.json()["errors"] == ["User not found."]


class TestPreferences:
    async def test_defaults_are_created(self, client, alice):
        data = (await client.get(f"{USERS_URL}/me/preferences", headers=auth_headers(alice.id))).json()["data"]

        assert data == {
            "notificationsEnabled": True,
            "dailyStepGoal": 10000,
            "distanceUnit": "metric",
            "privateProfile": False,
            "privacyFindMe": "public",
            "privacyShowSteps": "partial",
        }

    async def test_partial_update(self, client, alice):
        response = await client.put(
            f"{USERS_URL}/me/preferences",
            json={"dailyStepGoal": 8000, "distanceUnit": "imperial", "privacyShowSteps": "private"},
            headers=auth_headers(alice.id),
        )

        data = response.json()["data"]
        assert data["dailyStepGoal"] == 8000
        assert data["distanceUnit"] == "imperial"
        assert data["privacyShowSteps"] == "private"
        assert data["notificationsEnabled"] is True

    @pytest.mark.parametrize("payload, error", [
        ({"dailyStepGoal": 99}, "Daily step goal must be between 100 and 100000."),
        ({"dailyStepGoal": 100001}, "Daily step goal must be between 100 and 100000."),
        ({"distanceUnit": "furlongs"}, "Distance unit must be either 'metric' or 'imperial'."),
        ({"privacyFindMe": "friends"}, "Privacy level must be one of: public, partial, private."),
    ])
    async def test_validation(self, client, alice, payload, error):
        response = await client.put(f"{USERS_URL}/me/preferences", json=payload, headers=auth_headers(alice.id))

        assert response.status_code == 400
        assert response.json()["errors"] == [error]


class TestAvatar:
    async def test_upload(self, client, supabase, alice):
        supabase.upload_object.return_value = "https://project.supabase.test/storage/v1/object/public/avatars/a.png"

        response = await client.post(
            f"{USERS_URL}/me/avatar",
            files={"file": ("me.PNG", b"\x89PNG data", "image/png")},
            headers=auth_headers(alice.id),
        )

        assert response.status_code == 200
        assert response.json()["data"]["avatarUrl"].endswith("/avatars/a.png")
        args, kwargs = supabase.upload_object.call_args
        assert args[0] == "avatars"
        assert args[1] == f"{alice.id}.png"
        assert args[2] == b"\x89PNG data"
        assert kwargs["upsert"] is True
        profile = (await client.get(f"{USERS_URL}/me", headers=auth_headers(alice.id))).json()["data"]
        assert profile["avatarUrl"].endswith("/avatars/a.png")

    async def test_missing_file(self, client, supabase, alice):
        response = await client.post(f"{USERS_URL}/me/avatar", headers=auth_headers(alice.id))

        assert response.status_code == 400
        assert response.json()["errors"] == ["No file provided."]
        supabase.upload_object.assert_not_called()

    async def test_storage_failure_is_masked(self, client, supabase, alice):
        supabase.upload_object.side_effect = ExternalServiceError("Supabase error: 503")

        response = await client.post(
            f"{USERS_URL}/me/avatar",
            files={"file": ("me.jpg", b"jpeg", "image/jpeg")},
            headers=auth_headers(alice.id),
        )

        assert response.status_code == 502
        assert response.json()["errors"] == ["An external service error occurred."]

    async def test_storage_rejection_is_reported_as_upstream_failure(self, client, supabase, session, alice):
        supabase.upload_object.side_effect = SupabaseAuthError("new row violates row-level security policy", 403)

        response = await client.post(
            f"{USERS_URL}/me/avatar",
            files={"file": ("me.jpg", b"jpeg", "image/jpeg")},
            headers=auth_headers(alice.id),
        )

        assert response.status_code == 502
        assert response.json()["errors"] == ["An external service error occurred."]
        await session.refresh(alice)
        assert alice.avatar_url is None

    async def test_oversized_upload_is_rejected(self, client, supabase, alice):
        response = await client.post(
            f"{USERS_URL}/me/avatar",
            files={"file": ("big.png", b"\0" * (MAX_AVATAR_BYTES + 1), "image/png")},
            headers=auth_headers(alice.id),
        )

        assert response.status_code == 400
        assert response.json()["errors"] == ["File size must not exceed 5MB."]
        supabase.upload_object.assert_not_called()

    @pytest.mark.parametrize("filename, content_type, size, error", [
        ("a.png", "image/png", 0, "No file provided."),
        ("a.png", "image/png", 5 * 1024 * 1024 + 1, "File size must not exceed 5MB."),
        ("a.exe", "image/png", 10, "Invalid file type. Allowed types: jpg, jpeg, png, gif, webp."),
        ("a.png", "application/pdf", 10, "Invalid file type. Allowed types: jpg, jpeg, png, gif, webp."),
    ])
    def test_file_validation(self, filename, content_type, size, error):
        with pytest.raises(ValidationError) as exc_info:
            validate_avatar_file(filename, content_type, size)
        assert exc_info.value.message == error

    def test_extension_is_normalized(self):
        assert validate_avatar_file("Photo.JPEG", "image/jpeg", 10) == ".jpeg"


class TestStatsAndActivity:
    async def test_stats(self, client, session, create_user, alice):
        group = Group(name="Walkers", created_by_id=alice.id)
        session.add(group)
        await session.flush()
        session.add(GroupMembership(group_id=group.id, user_id=alice.id, role=MemberRole.OWNER.value))
        session.add(MilestoneAchievement(user_id=alice.id, milestone_id="first_group"))
        await session.commit()

        data = (await client.get(f"{USERS_URL}/{alice.id}/stats", headers=auth_headers(alice.id))).json()["data"]

        assert data == {"friendsCount": 0, "groupsCount": 1, "badgesCount": 1}

    async def test_activity_summary(self, client, add_steps, alice):
        await add_steps(alice.id, 12000, distance_meters=9000.0)
        await add_steps(alice.id, 2000, days_ago=1)
        await add_steps(alice.id, 50000, days_ago=7)

        data = (await client.get(
            f"{USERS_URL}/{alice.id}/activity", headers=auth_headers(uuid.uuid4())
        )).json()["data"]

        assert data["totalSteps"] == 14000
        assert data["totalDistanceMeters"] == 9000.0
        assert data["averageStepsPerDay"] == 2000
        assert data["currentStreak"] == 1

    async def test_private_activity_is_hidden_from_others(self, client, add_steps, create_user):
        hidden = await create_user("Hidden", privacy_show_steps="private")
        await add_steps(hidden.id, 12000)

        others = (await client.get(
            f"{USERS_URL}/{hidden.id}/activity", headers=auth_headers(uuid.uuid4())
        )).json()["data"]
        own = (await client.get(f"{USERS_URL}/{hidden.id}/activity", headers=auth_headers(hidden.id))).json()["data"]

        assert others["totalSteps"] == 0
        assert own["totalSteps"] == 12000

    async def test_mutual_groups(self, client, session, create_user, alice):
        bob = await create_user("Bob")
        shared = Group(name="Shared", created_by_id=alice.id)
        alone = Group(name="Alone", created_by_id=alice.id)
        session.add_all([shared, alone])
        await session.flush()
        session.add_all([
            GroupMembership(group_id=shared.id, user_id=alice.id, role=MemberRole.OWNER.value),
            GroupMembership(group_id=shared.id, user_id=bob.id),
            GroupMembership(group_id=alone.id, user_id=alice.id, role=MemberRole.OWNER.value),
        ])
        await session.commit()

        data = (await client.get(f"{USERS_URL}/{bob.id}/mutual-groups", headers=auth_headers(alice.id))).json()["data"]

        assert data == [{"id": str(shared.id), "name": "Shared"}]


class TestDataExport:
    async def test_export_collects_everything(self, client, add_steps, create_user, alice):
        bob = await create_user("Bob")
        await add_steps(alice.id, 4000)
        await client.post(
            "/api/v1/friends/requests", json={"friendUserId": str(bob.id)}, headers=auth_headers(alice.id)
        )
        await client.post(
            "/api/v1/groups", json={"name": "Exporters", "isPublic": True}, headers=auth_headers(alice.id)
        )

        response = await client.get(f"{USERS_URL}/me/data-export", headers=auth_headers(alice.id))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["metadata"]["format"] == "stepper_export_v1"
        assert data["metadata"]["userId"] == str(alice.id)
        assert data["profile"]["displayName"] == "Alice"
        assert data["preferences"]["dailyStepGoal"] == 10000
        assert [day["totalSteps"] for day in data["stepHistory"]] == [4000]
        assert data["friendships"][0]["displayName"] == "Bob"
        assert data["friendships"][0]["initiatedByMe"] is True
        assert data["groupMemberships"][0]["groupName"] == "Exporters"
        assert data["groupMemberships"][0]["role"] == "Owner"
        assert [a["milestoneId"] for a in data["achievements"]] == ["first_group"]
        assert any(item["type"] == "milestone" for item in data["activityFeed"])
