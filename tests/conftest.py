from pathlib import Path
import os
import sys
import tempfile

ROOT = Path(__file__).resolve().parents[1]
BACKEND_DIR = ROOT / "backend"
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

# Must be in place before the backend modules read them at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ACCESS_TOKEN_SECRET"] = "access-secret-for-tests-0123456789abcdef"
os.environ["REFRESH_TOKEN_SECRET"] = "refresh-secret-for-tests-0123456789abcdef"
os.environ["UPLOAD_TMP_DIR"] = tempfile.mkdtemp(prefix="uniconnect-tests-")
os.environ["EMAIL_FROM"] = "no-reply@uniconnect.test"
for name in ("AWS_REGION", "S3_BUCKET_NAME", "S3_ACCESS_KEY", "S3_SECRET_KEY", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"):
    os.environ.pop(name, None)

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

import email_workflows
import storage
from auth import create_access_token, get_password_hash
from database import Base, SessionLocal, get_engine
from models import Event, EventStatus, User
from server import app

API = "/api/v1"
DEFAULT_PASSWORD = "Str0ng@Pass"


@pytest.fixture(autouse=True)
def reset_database():
    engine = get_engine()
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    sent = []

    def fake_send_email(to_email, subject, html, text):
        sent.append({"to": to_email, "subject": subject, "html": html, "text": text})

    monkeypatch.setattr(email_workflows, "send_email", fake_send_email)
    return sent


@pytest.fixture
def fake_storage(monkeypatch):
    """Replace the object store with an in-memory record of uploads and deletions."""
    calls = {"uploaded": [], "deleted": []}

    def fake_upload(local_path, key_prefix, content_type, filename=None):
        key = f"{key_prefix}/{len(calls['uploaded']) + 1}-{filename}"
        calls["uploaded"].append(key)
        return {
            "url": f"https://cdn.uniconnect.test/{key}",
            "key": key,
            "metadata": {"width": 640, "height": 480, "format": "png", "size": Path(local_path).stat().st_size, "duration": None},
        }

    def fake_delete(key):
        calls["deleted"].append(key)

    monkeypatch.setattr(storage, "upload_media", fake_upload)
    monkeypatch.setattr(storage, "delete_media", fake_delete)
    return calls


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def make_user(email="leader@example.com", usn="1AB21CS001", full_name="Team Leader",
              password=DEFAULT_PASSWORD, verified=True):
    db = SessionLocal()
    try:
        user = User(
            full_name=full_name,
            email=email,
            hashed_password=get_password_hash(password),
            usn=usn,
            semester="5",
            department="Computer Science",
            is_email_verified=verified,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        db.expunge(user)
        return user
    finally:
        db.close()


def make_event(creator, status=EventStatus.LIVE, max_seats=10, min_team_size=1, max_team_size=None,
               name="Hackathon", category=None, is_active=True, days_ahead=7):
    db = SessionLocal()
    try:
        event = Event(
            name=name,
            description=f"{name} description",
            category=category or ["Technical"],
            date=datetime.now(timezone.utc) + timedelta(days=days_ahead),
            start_time="10:00",
            end_time="17:00",
            location="Main Auditorium",
            max_seats=max_seats,
            min_team_size=min_team_size,
            max_team_size=max_team_size,
            status=status,
            created_by_id=creator.id,
            is_active=is_active,
        )
        db.add(event)
        db.commit()
        return event.id
    finally:
        db.close()


def fetch_user(email):
    db = SessionLocal()
    try:
        return db.query(User).filter(User.email == email).first()
    finally:
        db.close()


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


def team_payload(name="Code Crafters", size=2, usn_prefix="1AB21CS1"):
    return {
        "team_name": name,
        "members": [
            {
                "full_name": f"Member {i}",
                "usn": f"{usn_prefix}{i:02d}",
                "current_semester": 5,
                "department": "Computer Science",
            }
            for i in range(size)
        ],
    }


def create_team(client, user, name="Code Crafters", size=2):
    response = client.post(f"{API}/teams", json=team_payload(name, size), headers=auth_headers(user))
    assert response.status_code == 201, response.text
    return response.json()["data"]
