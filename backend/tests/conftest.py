"""Shared fixtures: in-memory database, providers, app and clients."""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("USE_MOCK_PROVIDER", "true")
os.environ.setdefault("DISPATCH_GUARD_ENABLED", "false")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from chatsync.database import Base, get_db
from chatsync.main import create_app
from chatsync.middleware.auth import create_user_with_api_key
from chatsync.client.remote import RemoteChatClient
from chatsync.services.chat import ChatService
from chatsync.services.conversation_directory import ConversationDirectory
from chatsync.services.message_ledger import MessageLedger
from chatsync.services.mock_provider import MockProvider
from chatsync.services.provider_registry import ProviderRegistry, ProviderTimeouts

TEST_API_KEY = "test-api-key"
OTHER_API_KEY = "other-api-key"


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    """Create test database session."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def user(db):
    return create_user_with_api_key(db, TEST_API_KEY)


@pytest.fixture
def other_user(db):
    return create_user_with_api_key(db, OTHER_API_KEY)


@pytest.fixture
def directory(db):
    return ConversationDirectory(db)


@pytest.fixture
def ledger(db):
    return MessageLedger(db)


@pytest.fixture
def conversation(directory, user):
    return directory.create(
        user_id=user.id,
        title="Test conversation",
        provider="mock",
        model="mock-echo",
        system_prompt="You are a test assistant.",
        settings={"temperature": 0.5},
    )


@pytest.fixture
def mock_provider():
    return MockProvider()


@pytest.fixture
def registry(mock_provider):
    registry = ProviderRegistry(ProviderTimeouts(health=1.0, chat=2.0, bulk=2.0))
    registry.register(mock_provider)
    return registry


@pytest.fixture
def chat_service(db, registry):
    return ChatService(db, registry)


@pytest.fixture
def app(session_factory, registry):
    """Application wired to the test database and registry."""
    app = create_app(registry=registry)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest_asyncio.fixture
async def client(app, user):
    """HTTP client authenticated as ``user``."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
        headers={"x-api-key": TEST_API_KEY},
    ) as client:
        yield client


@pytest_asyncio.fixture
async def remote(app, user):
    """RemoteChatClient talking to the in-process app."""
    remote = RemoteChatClient(
        "http://testserver",
        api_key=TEST_API_KEY,
        transport=httpx.ASGITransport(app=app),
    )
    yield remote
    await remote.close()
