import os

TEST_DB_FILE = "test_coursework.db"
TEST_DB_URL = f"sqlite:///./{TEST_DB_FILE}"

# must be set before the app (and its engine) is imported
os.environ.setdefault("COURSEWORK_DATABASE_URL", TEST_DB_URL)

from datetime import datetime, timedelta, timezone  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from coursework.core.config import ROLE_LECTURER, ROLE_STUDENT  # noqa: E402
from coursework.core.deps import get_blob_store, get_db  # noqa: E402
from coursework.core.security import hash_password  # noqa: E402
from coursework.db.base import Base  # noqa: E402
from coursework.main import app  # noqa: E402
from coursework.models.assignment import Assignment  # noqa: E402
from coursework.models.submission import Submission, SubmissionAttachment  # noqa: E402
from coursework.models.user import User  # noqa: E402
from coursework.services.access import Caller  # noqa: E402
from coursework.storage.blobs import LocalBlobStore  # noqa: E402
from tests.factories import DEADLINE_X, build_service  # noqa: E402

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PASSWORD = "password123"
# bcrypt is slow on purpose; hash once for every seeded user
PASSWORD_HASH = hash_password(PASSWORD)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """Create a fresh schema once for the whole test session."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    if os.path.exists(TEST_DB_FILE):
        os.remove(TEST_DB_FILE)


@pytest.fixture(autouse=True)
def seed():
    """Seed a clean minimal dataset for each test."""
    db = TestingSessionLocal()
    try:
        # Clear tables (child -> parent)
        db.query(SubmissionAttachment).delete()
        db.query(Submission).delete()
        db.query(Assignment).delete()
        db.query(User).delete()
        db.commit()

        users = {
            "student_a": User(email="student1@example.com", full_name="Student A", role=ROLE_STUDENT),
            "student_b": User(email="student2@example.com", full_name="Student B", role=ROLE_STUDENT),
            "student_c": User(email="student3@example.com", full_name="Student C", role=ROLE_STUDENT),
            "lecturer": User(email="lecturer1@example.com", full_name="Lecturer One", role=ROLE_LECTURER),
            "lecturer_2": User(email="lecturer2@example.com", full_name="Lecturer Two", role=ROLE_LECTURER),
        }
        for u in users.values():
            u.hashed_password = PASSWORD_HASH
        db.add_all(users.values())
        db.commit()

        now = datetime.now(timezone.utc)
        assignments = {
            # fixed deadline for time-travel scenarios
            "x": Assignment(
                title="Essay X",
                deadline=DEADLINE_X,
                created_by=users["lecturer"].id,
                classroom_id="CS101",
            ),
            # future deadline for HTTP tests that use the real clock
            "open": Assignment(
                title="Open HW",
                deadline=now + timedelta(days=7),
                created_by=users["lecturer"].id,
                classroom_id="CS101",
            ),
            "strict": Assignment(
                title="PDF only",
                deadline=now + timedelta(days=7),
                created_by=users["lecturer_2"].id,
                classroom_id="CS202",
                allowed_formats="pdf",
                max_file_size=1024,
            ),
        }
        db.add_all(assignments.values())
        db.commit()

        ns = SimpleNamespace()
        for key, u in users.items():
            setattr(ns, key, Caller(id=u.id, role=u.role))
        for key, a in assignments.items():
            setattr(ns, f"assignment_{key}", a.id)
        yield ns
    finally:
        db.close()


@pytest.fixture()
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "uploads")


@pytest.fixture()
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def service(db, blob_store):
    return build_service(db, blob_store)


@pytest.fixture()
def client(blob_store):
    """Test client that uses the test DB session and a temporary blob store."""
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
