import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from stepper.db import Database
from stepper.models import User


@pytest.fixture
async def database(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'stepper.db'}")
    await database.initialize(max_retries=1)
    await database.create_tables()
    yield database
    await database.close()


class TestDatabase:
    async def test_session_commits_on_success(self, database):
        user_id = uuid.uuid4()

        async with database.get_session() as session:
            session.add(User(id=user_id, display_name="Persisted"))

        async with database.get_session() as session:
            user = (await session.execute(select(User).where(User.id == user_id))).scalar_one()
        assert user.display_name == "Persisted"

    async def test_session_rolls_back_on_error(self, database):
        user_id = uuid.uuid4()

        with pytest.raises(RuntimeError):
            async with database.get_session() as session:
                session.add(User(id=user_id, display_name="Discarded"))
                await session.flush()
                raise RuntimeError("boom")

        async with database.get_session() as session:
            assert await session.get(User, user_id) is None

    async def test_health_check(self, database):
        health = await database.health_check()

        assert health["status"] == "healthy"
        assert "response_time_ms" in health

    async def test_initialize_gives_up_after_retries(self, tmp_path):
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'nested' / 'stepper.db'}")

        with pytest.raises(OperationalError):
            await database.initialize(max_retries=1)

    def test_sqlite_skips_pool_options(self):
        assert Database("sqlite+aiosqlite://")._engine_options() == {"echo": False}
        options = Database("postgresql+asyncpg://u:p@db/stepper", pool_size=3)._engine_options()
        assert options["pool_size"] == 3
        assert options["pool_pre_ping"] is True
