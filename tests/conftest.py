import os

os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["AVATAR_WEBHOOK_ENABLED"] = "1"
os.environ["AVATAR_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["AVATAR_PROVIDER_API_KEY"] = "test-key"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from avatar_jobs.core.config import Settings  # noqa: E402
from avatar_jobs.db.base import Base  # noqa: E402
from avatar_jobs.db.session import build_engine, get_db  # noqa: E402
from avatar_jobs.main import create_app  # noqa: E402
from avatar_jobs.models import DoctorProfile, GenerationJob  # noqa: F401,E402
from tests.helpers import OWNER, WEBHOOK_SECRET, FakeAvatarClient  # noqa: E402


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_client():
    return FakeAvatarClient()


@pytest.fixture
def test_settings():
    return Settings(
        database_url="sqlite+pysqlite:///:memory:",
        env="test",
        webhook_enabled=True,
        webhook_shared_secret=WEBHOOK_SECRET,
        provider_api_key="test-key",
        staleness_threshold_seconds=120,
    )


@pytest.fixture
def app(test_settings, fake_client, session_factory):
    application = create_app(test_settings, provider_client=fake_client)

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    application.dependency_overrides[get_db] = _get_db
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def active_profile(db):
    profile = DoctorProfile(owner_id=OWNER, avatar_id="av_1", voice_id="vo_1", avatar_status="active")
    db.add(profile)
    db.commit()
    return profile

