"""Tests for upload verification and status reporting."""

from datetime import timedelta

import pytest

from directupload.uploads.exceptions import (
    AlreadyFinalized,
    FileTooLarge,
    NotFound,
    ObjectNotFound,
    WindowExpired,
)
from directupload.uploads.models import UploadState
from directupload.uploads.verifier import NOT_FOUND_STATUS


def test_verify_uploaded_object(services, storage, issued, clock):
    """Test verifying an uploaded object within the window."""
    clock.advance(minutes=3)

    result = services.verifier.verify(issued.token)

    assert result.token == issued.token
    assert result.object_key == issued.object_key
    assert result.final_location == f"https://cdn.test/{issued.object_key}"
    assert result.verified_at == clock.now

    upload = services.store.get(issued.token)
    assert upload.upload_state is UploadState.VERIFIED
    assert upload.version == 1
    assert upload.final_location == result.final_location
    assert issued.object_key in storage.public


def test_verify_before_upload(services, storage):
    """Test verification before the object exists is retryable."""
    credential = services.issuer.issue("profile-images", {}, "avatar.jpg")

    with pytest.raises(ObjectNotFound) as exc_info:
        services.verifier.verify(credential.token)

    assert exc_info.value.retryable is True
    upload = services.store.get(credential.token)
    assert upload.upload_state is UploadState.PENDING
    assert upload.version == 0

    # Upload lands, the retry succeeds
    storage.put(credential.object_key)
    assert services.verifier.verify(credential.token).object_key == credential.object_key


def test_verify_after_window(services, issued, clock):
    """Test verification after the window expires the session."""
    clock.advance(minutes=11)

    with pytest.raises(WindowExpired):
        services.verifier.verify(issued.token)

    assert services.store.get(issued.token).upload_state is UploadState.EXPIRED


def test_expiry_wins_even_when_object_exists(services, storage, issued, clock):
    """Test an uploaded object does not rescue an expired session."""
    clock.advance(minutes=10, seconds=1)

    with pytest.raises(WindowExpired):
        services.verifier.verify(issued.token)

    assert issued.object_key not in storage.public


def test_verify_at_exact_deadline(services, issued, clock):
    """Test the deadline itself is still inside the window."""
    clock.advance(minutes=10)

    result = services.verifier.verify(issued.token)

    assert result.verified_at == issued.expires_at


def test_verify_is_idempotent(services, storage, issued, clock):
    """Test repeated verification returns the first result unchanged."""
    first = services.verifier.verify(issued.token)
    storage.public.clear()

    clock.advance(minutes=30)
    second = services.verifier.verify(issued.token)

    assert second == first
    assert services.store.get(issued.token).version == 1
    assert storage.public == set()


def test_verify_oversized_object(services, storage, clock):
    """Test an oversized object is deleted and the session stays pending."""
    credential = services.issuer.issue("profile-images", {}, "huge.png")
    storage.put(credential.object_key, size=credential.max_size_bytes + 1)

    with pytest.raises(FileTooLarge):
        services.verifier.verify(credential.token)

    assert storage.deleted == [credential.object_key]
    assert services.store.get(credential.token).upload_state is UploadState.PENDING

    # A correctly sized re-upload within the window still verifies
    storage.put(credential.object_key, size=credential.max_size_bytes)
    assert services.verifier.verify(credential.token).token == credential.token


def test_storage_timeout_never_verifies(services, storage, issued):
    """Test an unavailable backend is treated as a missing object."""
    storage.fail_stat = True

    with pytest.raises(ObjectNotFound):
        services.verifier.verify(issued.token)

    assert services.store.get(issued.token).upload_state is UploadState.PENDING


def test_promotion_failure_keeps_verification(services, storage, issued):
    """Test a failed public-read update does not undo verification."""
    storage.fail_public = True

    result = services.verifier.verify(issued.token)

    assert result.final_location == f"https://cdn.test/{issued.object_key}"
    assert services.store.get(issued.token).upload_state is UploadState.VERIFIED


def test_promotion_disabled(services, storage, issued):
    """Test verification without promotion leaves the object private."""
    services.verifier.promote_on_verify = False

    services.verifier.verify(issued.token)

    assert storage.public == set()


def test_verify_unknown_token(services):
    """Test unknown tokens raise NotFound."""
    with pytest.raises(NotFound):
        services.verifier.verify("does-not-exist")


def test_verify_reclaimed_session(services, issued, clock):
    """Test a reclaimed session cannot be verified."""
    clock.advance(minutes=11)
    services.sweeper.sweep()

    with pytest.raises(AlreadyFinalized):
        services.verifier.verify(issued.token)


def test_sweeper_wins_race_during_verification(services, storage, issued, clock):
    """Test a sweep landing between stat and commit makes verification fail."""
    clock.advance(minutes=9, seconds=59)

    def sweep_concurrently(object_key):
        # Another worker whose clock is already past the deadline
        services.sweeper.sweep(now=issued.expires_at + timedelta(seconds=1))
        # The existence check saw the object just before it was deleted
        storage.put(object_key, size=2048)

    storage.on_stat = sweep_concurrently

    with pytest.raises(WindowExpired):
        services.verifier.verify(issued.token)

    upload = services.store.get(issued.token)
    assert upload.upload_state is UploadState.RECLAIMED
    assert issued.object_key in storage.deleted
    assert issued.object_key not in storage.public


def test_status_values(services, storage, issued, clock):
    """Test status reports every lifecycle state."""
    pending = services.issuer.issue("profile-images", {}, "later.jpg")

    assert services.verifier.status(issued.token) == "pending"
    assert services.verifier.status("missing") == NOT_FOUND_STATUS

    services.verifier.verify(issued.token)
    assert services.verifier.status(issued.token) == "verified"

    clock.advance(minutes=11)
    assert services.verifier.status(pending.token) == "expired"
    # Status reads never write
    assert services.store.get(pending.token).upload_state is UploadState.PENDING

    services.sweeper.sweep()
    assert services.verifier.status(pending.token) == "reclaimed"
    assert services.verifier.status(issued.token) == "verified"
