"""Tests for the upload session store."""

from datetime import datetime, timedelta, timezone

import pytest

from directupload.db import create_db_engine, create_schema, create_session_factory
from directupload.uploads.models import UploadSession, UploadState
from directupload.uploads.store import SessionStore

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store():
    """Create a fresh store over in-memory SQLite for each test."""
    engine = create_db_engine("sqlite://")
    create_schema(engine)
    yield SessionStore(create_session_factory(engine))
    engine.dispose()


def make_session(token: str, expires_in_minutes: int = 10, **overrides) -> UploadSession:
    fields = dict(
        token=token,
        category="profile-images",
        owner_context={"user_id": "42"},
        object_key=f"profile-images/{token}.jpg",
        content_type="image/jpeg",
        allowed_extensions=[".jpg", ".png"],
        max_size_bytes=1024,
        issued_at=NOW,
        expires_at=NOW + timedelta(minutes=expires_in_minutes),
    )
    fields.update(overrides)
    return UploadSession(**fields)


def test_create_and_get(store):
    """Test creating a session and reading it back."""
    store.create(make_session("tok-1"))

    upload = store.get("tok-1")
    assert upload is not None
    assert upload.upload_state is UploadState.PENDING
    assert upload.version == 0
    assert upload.owner_context == {"user_id": "42"}
    assert upload.allowed_extensions == [".jpg", ".png"]
    assert upload.expires_at == NOW + timedelta(minutes=10)
    assert upload.expires_at.tzinfo is not None


def test_get_nonexistent(store):
    """Test retrieving a session that doesn't exist."""
    assert store.get("missing") is None


def test_create_forces_pending_and_version_zero(store):
    """Test new rows always start pending at version 0."""
    store.create(make_session("tok-1", state="verified", version=7))

    upload = store.get("tok-1")
    assert upload.state == "pending"
    assert upload.version == 0


def test_transition_increments_version(store):
    """Test a successful transition bumps the version and sets fields."""
    store.create(make_session("tok-1"))

    applied = store.transition(
        "tok-1", 0, UploadState.PENDING, UploadState.VERIFIED,
        verified_at=NOW, final_location="https://cdn/x.jpg",
    )

    assert applied is True
    upload = store.get("tok-1")
    assert upload.upload_state is UploadState.VERIFIED
    assert upload.version == 1
    assert upload.verified_at == NOW
    assert upload.final_location == "https://cdn/x.jpg"


def test_transition_with_stale_version_fails(store):
    """Test compare-and-set rejects a stale version."""
    store.create(make_session("tok-1"))
    assert store.transition("tok-1", 0, UploadState.PENDING, UploadState.EXPIRED)

    assert store.transition("tok-1", 0, UploadState.PENDING, UploadState.VERIFIED) is False
    assert store.get("tok-1").upload_state is UploadState.EXPIRED


def test_transition_with_wrong_state_fails(store):
    """Test compare-and-set rejects a mismatched current state."""
    store.create(make_session("tok-1"))

    assert store.transition("tok-1", 0, UploadState.EXPIRED, UploadState.RECLAIMED) is False
    assert store.get("tok-1").upload_state is UploadState.PENDING


def test_transition_unknown_token(store):
    """Test transitions on missing rows report failure."""
    assert store.transition("nope", 0, UploadState.PENDING, UploadState.EXPIRED) is False


@pytest.mark.parametrize(
    "from_state,to_state",
    [
        (UploadState.VERIFIED, UploadState.PENDING),
        (UploadState.VERIFIED, UploadState.EXPIRED),
        (UploadState.RECLAIMED, UploadState.PENDING),
        (UploadState.EXPIRED, UploadState.VERIFIED),
        (UploadState.PENDING, UploadState.RECLAIMED),
    ],
)
def test_illegal_transitions_refused(store, from_state, to_state):
    """Test transitions outside the lifecycle raise."""
    with pytest.raises(ValueError, match="Illegal transition"):
        store.transition("tok-1", 0, from_state, to_state)


def test_transition_refuses_unknown_columns(store):
    """Test only lifecycle columns can be set on transition."""
    store.create(make_session("tok-1"))

    with pytest.raises(ValueError, match="object_key"):
        store.transition("tok-1", 0, UploadState.PENDING, UploadState.EXPIRED, object_key="x")


def test_not_expired_guard(store):
    """Test the expiry guard blocks verification after the window."""
    store.create(make_session("tok-1", expires_in_minutes=10))

    late = NOW + timedelta(minutes=11)
    assert store.transition(
        "tok-1", 0, UploadState.PENDING, UploadState.VERIFIED, not_expired_at=late
    ) is False

    on_time = NOW + timedelta(minutes=5)
    assert store.transition(
        "tok-1", 0, UploadState.PENDING, UploadState.VERIFIED, not_expired_at=on_time
    ) is True


def test_list_reclaimable(store):
    """Test expired pending rows are listed oldest first, ahead of expired rows."""
    store.create(make_session("fresh", expires_in_minutes=30))
    store.create(make_session("stale-2", expires_in_minutes=5))
    store.create(make_session("stale-1", expires_in_minutes=1))
    store.create(make_session("verified", expires_in_minutes=2))
    store.create(make_session("expired", expires_in_minutes=0))
    store.transition("verified", 0, UploadState.PENDING, UploadState.VERIFIED)
    store.transition("expired", 0, UploadState.PENDING, UploadState.EXPIRED)

    now = NOW + timedelta(minutes=10)
    tokens = [u.token for u in store.list_reclaimable(now)]

    assert tokens == ["stale-1", "stale-2", "expired"]
    assert [u.token for u in store.list_reclaimable(now, limit=1)] == ["stale-1"]


def test_count_by_state(store):
    """Test per-state counts include empty states."""
    store.create(make_session("a"))
    store.create(make_session("b"))
    store.transition("b", 0, UploadState.PENDING, UploadState.EXPIRED)

    assert store.count_by_state() == {
        "pending": 1,
        "verified": 0,
        "expired": 1,
        "reclaimed": 0,
    }
