from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.config import Settings
from backend.database import Base, get_db
from backend.main import app
from backend.routers.deps import get_card_client, get_settings, get_summarizer
from backend.services.summarizer import SummarizationGateway
from tests.fakes import FakeCardClient, FakeCompletionClient


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        metabase_url="http://metabase.test",
        metabase_session="session-token",
        openai_api_key="sk-test",
        fallback_tables="blood,blood_long_v",
    )


@pytest.fixture()
def db_session() -> Generator:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def card_client() -> FakeCardClient:
    return FakeCardClient()


@pytest.fixture()
def completion_client() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture()
def client(db_session, test_settings, card_client, completion_client) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_card_client] = lambda: card_client
    app.dependency_overrides[get_summarizer] = lambda: SummarizationGateway(completion_client)

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
