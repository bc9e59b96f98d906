"""Shared fixtures: in-memory SQLite, seeded roles and in-process fakes for
mail, object storage and Redis."""

import fnmatch
import json
import os
import tempfile

# Must be set before anything from pds_api is imported
os.environ.update({
    "DATABASE_URL": "sqlite://",
    "BCRYPT_ROUNDS": "4",
    "RATE_LIMIT_ENABLED": "false",
    "ENVIRONMENT": "test",
    "JWT_SECRET": "test-secret",
    "UPLOAD_DIR": tempfile.mkdtemp(prefix="pds-uploads-"),
})

import pytest

import pds_api.models  # noqa: F401
from pds_api.core.config import settings
from pds_api.core.exceptions import StorageError, TransportError
from pds_api.core.security import create_access_token, hash_password, token_claims
from pds_api.db.base import Base
from pds_api.db.seeds.seed_roles import seed_roles
from pds_api.db.session import SessionLocal, engine
from pds_api.models.employee import AgentType, Department, Employee
from pds_api.models.role import Role
from pds_api.models.user import User
from pds_api.services.mail_service import MailService

DEFAULT_PASSWORD = "Passw0rd!"


class FakeTransport:
    """Collects outgoing mail instead of talking to SMTP."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, html):
        if self.fail:
            raise TransportError("SMTP unavailable")
        self.sent.append({"to": to, "subject": subject, "html": html})


class FakeStorage:
    def __init__(self):
        self.objects = {}
        self.fail_put = False

    def ensure_bucket(self):
        pass

    def put_bytes(self, key, data, content_type):
        if self.fail_put:
            raise StorageError("Failed to upload to storage: bucket missing")
        self.objects[key] = (data, content_type)

    def presigned_url(self, key, expires_minutes=60):
        return f"http://storage.test/{key}"

    def remove(self, key):
        self.objects.pop(key, None)


class FakeCache:
    """Dict-backed stand-in for CacheService."""

    def __init__(self):
        self.store = {}
        self.invalidated = []

    def get_json(self, key):
        raw = self.store.get(key)
        return json.loads(raw) if raw else None

    def set_json(self, key, value, ttl_seconds=60):
        self.store[key] = json.dumps(value, default=str)

    def invalidate_pattern(self, pattern):
        self.invalidated.append(pattern)
        for key in [k for k in self.store if fnmatch.fnmatch(k, pattern)]:
            del self.store[key]

    def health_check(self):
        return True


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    seed_roles(session)
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def mailer(transport):
    return MailService(transport, settings)


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def cache():
    return FakeCache()


def make_user(
    db,
    email="jane@example.com",
    phone_number="0771000001",
    nat_id=None,
    role="USER",
    password=DEFAULT_PASSWORD,
    verified=True,
    active=True,
    first_name="Jane",
    last_name="Doe",
):
    role_row = db.query(Role).filter(Role.name == role).one()
    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone_number=phone_number,
        nat_id=nat_id,
        hashed_password=hash_password(password),
        role_id=role_row.id,
        is_verified=verified,
        is_active=active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_employees(db, *names, department="111", agent_type="LVC"):
    dept = db.query(Department).filter(Department.name == department).first()
    if dept is None:
        dept = Department(name=department)
        db.add(dept)
    kind = db.query(AgentType).filter(AgentType.name == agent_type).first()
    if kind is None:
        kind = AgentType(name=agent_type)
        db.add(kind)
    db.flush()
    employees = [Employee(agent_name=n, department_id=dept.id, agent_type_id=kind.id) for n in names]
    db.add_all(employees)
    db.commit()
    return employees


def auth_header(user):
    return {"Authorization": f"Bearer {create_access_token(token_claims(user))}"}


@pytest.fixture
def admin(db):
    return make_user(db, email="admin@example.com", phone_number="0770000100", role="ADMIN")


@pytest.fixture
def hr_user(db):
    return make_user(db, email="hr@example.com", phone_number="0770000200", role="HR")


@pytest.fixture
def client(db, mailer, cache, storage):
    from fastapi.testclient import TestClient

    from pds_api.core import dependencies as deps
    from pds_api.main import app
    from pds_api.services.auth_service import AuthService
    from pds_api.services.call_upload_service import CallUploadService
    from pds_api.services.metrics_service import MetricsService
    from pds_api.services.video_service import VideoService

    app.dependency_overrides.update({
        deps.get_auth_service: lambda: AuthService(mailer, settings),
        deps.get_call_upload_service: lambda: CallUploadService(cache),
        deps.get_metrics_service: lambda: MetricsService(cache, 60),
        deps.get_video_service: lambda: VideoService(storage, settings.MAX_VIDEO_UPLOAD_MB),
        deps.get_cache_service: lambda: cache,
    })
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
