import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db
from main import app
from models.user import User
from routers import rate_limit
from services.authorization import Caller
from services.session_token import create_session_token


USER_A_ID = "user-a"
USER_B_ID = "user-b"
ADMIN_ID = "admin-1"

USER_A = Caller(user_id=USER_A_ID, email="a@example.com", role="user")
USER_B = Caller(user_id=USER_B_ID, email="b@example.com", role="user")
ADMIN = Caller(user_id=ADMIN_ID, email="ops@example.com", role="admin")


def auth_header(user_id: str, email: str) -> dict:
    return {"Authorization": f"Bearer {create_session_token(user_id, email)['token']}"}


USER_A_HEADER = auth_header(USER_A_ID, "a@example.com")
USER_B_HEADER = auth_header(USER_B_ID, "b@example.com")
ADMIN_HEADER = auth_header(ADMIN_ID, "ops@example.com")


@pytest.fixture(autouse=True)
def reset_local_rate_limit_counters():
    """Keep in-memory rate-limit state isolated between tests."""
    previous = getattr(app.state, "disable_rate_limits", False)
    app.state.disable_rate_limits = True
    rate_limit.reset_local_quotas()
    yield
    rate_limit.reset_local_quotas()
    app.state.disable_rate_limits = previous


@pytest_asyncio.fixture
async def session_maker(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'market_intel.db'}")
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with maker() as session:
        session.add_all(
            [
                User(id=USER_A_ID, email="a@example.com", full_name="Ada Analyst"),
                User(id=USER_B_ID, email="b@example.com"),
                User(id=ADMIN_ID, email="ops@example.com", role="admin"),
            ]
        )
        await session.commit()

    yield maker
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def api_client(session_maker):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client, session_maker

    app.dependency_overrides.pop(get_db, None)
