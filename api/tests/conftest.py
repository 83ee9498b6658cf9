import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from unidash import models  # noqa: F401
from unidash.auth.jwt_utils import create_access_token, hash_password
from unidash.config.database import Base, get_db
from unidash.main import app
from unidash.models.batch import Batch
from unidash.models.content_version import ModuleContentVersion
from unidash.models.module import Module
from unidash.models.profile import StudentProfile
from unidash.routers.auth import login_attempts

TEST_PASSWORD = "correct horse"


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    login_attempts.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    login_attempts.clear()


@pytest.fixture
def make_batch(db_session):
    def _make(batch_number: int, current_semester: int = 1) -> Batch:
        batch = Batch(
            batch_number=batch_number,
            batch_code=f"E/{batch_number}",
            current_semester=current_semester,
        )
        db_session.add(batch)
        db_session.commit()
        db_session.refresh(batch)
        return batch

    return _make


@pytest.fixture
def make_profile(db_session):
    def _make(batch: Batch = None, email: str = None, index_number: str = None, role: str = "student") -> StudentProfile:
        label = batch.batch_number if batch else "none"
        profile = StudentProfile(
            email=email or f"{role}{label}@uni.test",
            password_hash=hash_password(TEST_PASSWORD),
            full_name=f"Test {role.title()}",
            index_number=index_number,
            role=role,
            batch_id=batch.id if batch else None,
        )
        db_session.add(profile)
        db_session.commit()
        db_session.refresh(profile)
        return profile

    return _make


@pytest.fixture
def module(db_session) -> Module:
    row = Module(code="EE3201", name="Signals and Systems", year=1, semester=2, degree="EE")
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


@pytest.fixture
def add_content(db_session):
    """Insert a content version with a fixed updated_at."""

    def _add(module: Module, batch_number: int, title: str, updated_at: datetime, lecturer: str = None):
        row = ModuleContentVersion(
            module_id=module.id,
            batch_number=batch_number,
            content_json=sample_content(title),
            lecturer_name=lecturer,
            updated_at=updated_at,
        )
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row

    return _add


def auth_headers(profile: StudentProfile) -> dict:
    token = create_access_token(subject=str(profile.id))
    return {"Authorization": f"Bearer {token}"}


def sample_content(title: str = "Fourier Series") -> dict:
    return {
        "topics": [
            {
                "id": "t1",
                "title": title,
                "subTopics": [
                    {
                        "id": "s1",
                        "title": "Basics",
                        "blocks": [{"id": "b1", "type": "note", "content": "Exam favourite"}],
                    }
                ],
            }
        ]
    }


def sample_paper(total_questions: int = 5) -> dict:
    return {
        "totalQuestions": total_questions,
        "duration": "3 hours",
        "hasMcqs": True,
        "mcqCount": 20,
        "mcqMarks": 20,
        "mcqNotes": "",
        "essayCount": 4,
        "essayMarks": 80,
        "essayQuestions": [{"topics": "Laplace", "marks": 20}],
        "generalNotes": "",
    }


def ts(day: int, hour: int = 12) -> datetime:
    return datetime(2026, 3, day, hour, 0, 0, tzinfo=timezone.utc)
