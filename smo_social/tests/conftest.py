import os
import tempfile

# Must be set before smo_social.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOADS_DIR", tempfile.mkdtemp(prefix="smo_uploads_"))
os.environ.setdefault("MEMORY_MONITORING_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from smo_social.db import get_db
from smo_social.main import app
from smo_social.models import Base, User
from smo_social.security.auth import create_access_token
from smo_social.services.platforms import PlatformConnector

engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def make_user(db, role="admin", email=None, name=None, superadmin=False) -> User:
    user = User(
        email=email or f"{role}@example.com",
        name=name or role.capitalize(),
        role=role,
        granted_permissions=[],
        revoked_permissions=[],
        is_active=True,
        is_superadmin=superadmin,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db):
    return make_user(db, "admin")


@pytest.fixture
def editor(db):
    return make_user(db, "editor")


@pytest.fixture
def viewer(db):
    return make_user(db, "viewer")


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    # no context manager: startup would touch the real engine and start the scheduler
    yield TestClient(app)
    app.dependency_overrides.clear()


class FakeConnector(PlatformConnector):
    def __init__(self, platform, comments=None, demographics=None, error=None):
        self.platform = platform
        self.comments = comments or []
        self.demographics = demographics or []
        self.error = error
        self.replies = []

    def fetch_comments(self):
        if self.error:
            raise self.error
        return self.comments

    def reply_to_comment(self, platform_comment_id, message):
        if self.error:
            raise self.error
        self.replies.append((platform_comment_id, message))
        return {"ok": True, "remote_id": f"r_{platform_comment_id}"}

    def fetch_demographics(self):
        if self.error:
            raise self.error
        return self.demographics


def connector_factory(connectors: dict):
    """Builds a `connector_factory` that only knows the given platforms."""
    def factory(db, platform):
        return connectors.get(platform)
    return factory
