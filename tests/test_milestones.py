import uuid

import pytest
from sqlalchemy import select

from stepper.milestones import MilestoneEngine
from stepper.milestones.definitions import (
    EvaluatorType, Metric, MilestoneCategory, MilestoneDefinition, get_definition,
    get_definitions_by_category
)
from stepper.models import Friendship, FriendshipStatus, MilestoneAchievement, Notification
from tests.conftest import auth_headers

MILESTONES_URL = "/api/v1/milestones"


def definition(evaluator, threshold=None, repeatable=False):
    return MilestoneDefinition(
        id="test",
        name="Test",
        description="Test milestone",
        category=MilestoneCategory.ACHIEVEMENT,
        evaluator=evaluator,
        metric=Metric.FRIEND_COUNT,
        threshold=threshold,
        repeatable=repeatable,
    )


class TestDefinitions:
    def test_threshold(self):
        milestone = definition(EvaluatorType.THRESHOLD, threshold=3)
        assert milestone.is_met({"friend_count": 3}, {})
        assert not milestone.is_met({"friend_count": 2}, {})

    def test_first_time(self):
        milestone = definition(EvaluatorType.FIRST_TIME)
        assert milestone.is_met({"friend_count": 1}, {"friend_count": 0})
        assert milestone.is_met({"friend_count": 1}, {})
        assert not milestone.is_met({"friend_count": 2}, {"friend_count": 1})

    def test_comparison(self):
        milestone = definition(EvaluatorType.COMPARISON)
        assert milestone.is_met({"friend_count": 4}, {"friend_count": 3})
        assert not milestone.is_met({"friend_count": 3}, {"friend_count": 3})

    def test_lookup(self):
        assert get_definition("streak_7").name == "Week Warrior"
        assert get_definition("nope") is None
        streaks = get_definitions_by_category(MilestoneCategory.STREAK)
        assert [d.threshold for d in streaks] == [3, 7, 14, 30, 60, 90]


class TestEngine:
    async def test_evaluate_awards_once(self, session, create_user):
        alice = await create_user("Alice")
        bob = await create_user("Bob")
        session.add(Friendship(user_id=alice.id, friend_id=bob.id, status=FriendshipStatus.ACCEPTED.value))
        await session.commit()
        engine = MilestoneEngine(session)

        first = await engine.evaluate(alice.id)
        second = await engine.evaluate(alice.id)

        assert [award.definition.id for award in first] == ["first_friend"]
        assert second == []
        notifications = (await session.execute(
            select(Notification).where(Notification.user_id == alice.id)
        )).scalars().all()
        assert [n.type for n in notifications] == ["goal_achieved"]
        assert notifications[0].data == {"milestoneId": "first_friend"}

    async def test_restricting_metrics(self, session, add_steps):
        user_id = uuid.uuid4()
        for days_ago in range(3):
            await add_steps(user_id, 10000, days_ago=days_ago)
        engine = MilestoneEngine(session)

        social_only = await engine.evaluate(user_id, metrics=[Metric.FRIEND_COUNT, Metric.GROUP_COUNT])
        streaks = await engine.evaluate(user_id, metrics=[Metric.CURRENT_STREAK])

        assert social_only == []
        assert [award.definition.id for award in streaks] == ["streak_3"]

    async def test_reset(self, session):
        user_id = uuid.uuid4()
        session.add(MilestoneAchievement(user_id=user_id, milestone_id="first_group"))
        session.add(MilestoneAchievement(user_id=uuid.uuid4(), milestone_id="first_group"))
        await session.commit()

        assert await MilestoneEngine(session).reset(user_id) == 1
        assert await MilestoneEngine(session).get_achievements(user_id) == []


class TestRoutes:
    async def test_list_with_progress(self, client, session):
        user_id = uuid.uuid4()
        session.add(MilestoneAchievement(user_id=user_id, milestone_id="first_group"))
        await session.commit()

        data = (await client.get(MILESTONES_URL, headers=auth_headers(user_id))).json()["data"]

        assert len(data) == 10
        by_id = {m["id"]: m for m in data}
        assert by_id["first_group"]["achieved"] is True
        assert by_id["first_group"]["achievementCount"] == 1
        assert by_id["streak_90"]["achieved"] is False
        assert by_id["streak_90"]["threshold"] == 90

    async def test_by_category(self, client):
        data = (await client.get(
            f"{MILESTONES_URL}/category/Social", headers=auth_headers(uuid.uuid4())
        )).json()["data"]

        assert [m["id"] for m in data] == ["first_friend", "social_butterfly", "social_network", "first_group"]

    async def test_unknown_category(self, client):
        response = await client.get(f"{MILESTONES_URL}/category/karaoke", headers=auth_headers(uuid.uuid4()))

        assert response.status_code == 400
        assert response.json()["errors"] == [
            "Unknown milestone category 'karaoke'. Allowed: social, streak, achievement, fitness, competition."
        ]

    async def test_evaluate_and_reset(self, client, add_steps):
        user_id = uuid.uuid4()
        for days_ago in range(7):
            await add_steps(user_id, 12000, days_ago=days_ago)
        headers = auth_headers(user_id)

        evaluated = (await client.post(f"{MILESTONES_URL}/evaluate", headers=headers)).json()["data"]
        assert sorted(a["milestoneId"] for a in evaluated["newlyAchieved"]) == ["streak_3", "streak_7"]

        reset = (await client.delete(f"{MILESTONES_URL}/achievements", headers=headers)).json()["data"]
        assert reset == {"deletedCount": 2}
        assert (await client.get(f"{MILESTONES_URL}/achieved", headers=headers)).json()["data"] == []


@pytest.mark.parametrize("milestone_id, name", [
    ("streak_14", "Two Week Champion"),
    ("streak_30", "Monthly Master"),
    ("streak_60", "Consistency King"),
    ("streak_90", "Unstoppable"),
])
def test_streak_names(milestone_id, name):
    assert get_definition(milestone_id).name == name
