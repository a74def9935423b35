import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from user_service.auth.jwt import TokenService
from user_service.auth.passwords import PasswordHasher
from user_service.auth.store import SQLAlchemyUserStore
from user_service.auth.users import UserService
from user_service.base_microservice import build_engine, create_session_factory, init_models
from user_service.config import Settings
from user_service.main import create_application

TEST_SECRET_KEY = "test-signing-key-for-the-user-service-suite"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'users.db'}",
        jwt_secret_key=TEST_SECRET_KEY,
        access_token_expire_minutes=30,
        bcrypt_rounds=4,
    )


@pytest.fixture
def hasher(settings):
    return PasswordHasher(rounds=settings.bcrypt_rounds)


@pytest.fixture
def tokens(settings):
    return TokenService(settings)


@pytest_asyncio.fixture
async def session_factory(settings):
    engine = build_engine(settings.database_url)
    await init_models(engine)
    yield create_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return SQLAlchemyUserStore(session_factory)


@pytest.fixture
def service(store, hasher, tokens):
    return UserService(store=store, hasher=hasher, tokens=tokens)


@pytest.fixture
def app(settings):
    return create_application(settings)


@pytest_asyncio.fixture
async def client(app):
    """HTTP client against the app, with startup and shutdown run around it."""
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(base_url="http://test", transport=transport) as ac:
            yield ac
