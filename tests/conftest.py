import os
import re
from datetime import timedelta
from typing import List, Optional, Tuple

# Must be set before config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["BCRYPT_ROUNDS"] = "4"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import app
from core.database import get_db
from core.dependencies import get_email_sender, get_token_issuer
from core.security import TokenIssuer
from models.base import Base
from utils.email_sender import EmailSender
from utils.user_manager import UserManager

TEST_SECRET = "test-secret"


class RecordingEmailSender(EmailSender):
    """Keeps sent messages in memory instead of delivering them."""

    def __init__(self):
        self.sent: List[Tuple[str, str, str]] = []

    def send(self, to_address: str, subject: str, body: str) -> bool:
        self.sent.append((to_address, subject, body))
        return True

    def last_reset_token(self) -> Optional[str]:
        if not self.sent:
            return None
        match = re.search(r"/reset-password/(\S+)", self.sent[-1][2])
        return match.group(1) if match else None


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    yield db
    db.close()


@pytest.fixture()
def token_issuer():
    return TokenIssuer(TEST_SECRET, expires_delta=timedelta(days=7))


@pytest.fixture()
def email_sender():
    return RecordingEmailSender()


@pytest.fixture()
def user_manager(db_session, token_issuer, email_sender):
    return UserManager(db_session, token_issuer, email_sender)


@pytest.fixture()
def client(session_factory, token_issuer, email_sender):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_token_issuer] = lambda: token_issuer
    app.dependency_overrides[get_email_sender] = lambda: email_sender
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def run_with_manager(session_factory, token_issuer, email_sender):
    """Run a function against the store in its own short-lived session."""

    def run(fn):
        db = session_factory()
        try:
            return fn(UserManager(db, token_issuer, email_sender))
        finally:
            db.close()

    return run


@pytest.fixture()
def admin_token(client, run_with_manager):
    run_with_manager(lambda manager: manager.ensure_admin("admin@example.com", "admin-pass"))
    res = client.post(
        "/api/auth/login", json={"email": "admin@example.com", "password": "admin-pass"}
    )
    assert res.status_code == 200, res.text
    return res.json()["data"]["token"]
