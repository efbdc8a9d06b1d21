"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest

from directupload.storage.base import ObjectInfo, StorageAdapter, WriteCredential
from directupload.uploads.exceptions import StorageAdapterUnavailable
from directupload.uploads.policy import PolicyTable, build_default_policies
from directupload.uploads.service import build_upload_services


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeStorageAdapter(StorageAdapter):
    """In-memory object store recording every call."""

    def __init__(self):
        self.objects: dict[str, int] = {}
        self.public: set[str] = set()
        self.deleted: list[str] = []
        self.issued: list[dict] = []
        self.fail_issue = False
        self.fail_stat = False
        self.fail_delete = False
        self.fail_public = False
        self.on_stat: Optional[Callable[[str], None]] = None

    def put(self, object_key: str, size: int = 1024) -> None:
        """Simulate the client's direct upload."""
        self.objects[object_key] = size

    def issue_write_credential(self, object_key, validity, max_size_bytes, content_type):
        if self.fail_issue:
            raise StorageAdapterUnavailable("storage down")
        self.issued.append(
            {"object_key": object_key, "validity": validity, "max_size_bytes": max_size_bytes}
        )
        return WriteCredential(
            url=f"https://storage.test/{object_key}?sig=abc",
            method="PUT",
            headers={"Content-Type": content_type},
        )

    def stat(self, object_key):
        if self.on_stat is not None:
            hook, self.on_stat = self.on_stat, None
            hook(object_key)
        if self.fail_stat:
            raise StorageAdapterUnavailable("timeout")
        if object_key not in self.objects:
            return ObjectInfo(exists=False)
        return ObjectInfo(exists=True, size=self.objects[object_key])

    def delete(self, object_key):
        if self.fail_delete:
            raise StorageAdapterUnavailable("timeout")
        if object_key not in self.objects:
            return False
        del self.objects[object_key]
        self.deleted.append(object_key)
        return True

    def set_public(self, object_key):
        if self.fail_public:
            raise StorageAdapterUnavailable("acl update failed")
        self.public.add(object_key)
        return self.public_url(object_key)

    def public_url(self, object_key):
        return f"https://cdn.test/{object_key}"

    def get_backend_name(self):
        return "fake"


@pytest.fixture
def clock():
    """Controllable clock shared by all components."""
    return FakeClock()


@pytest.fixture
def storage():
    """Fake storage backend."""
    return FakeStorageAdapter()


@pytest.fixture
def policies():
    """Built-in category table with a 10 minute window."""
    return PolicyTable(build_default_policies(timedelta(minutes=10)))


@pytest.fixture
def services(storage, policies, clock):
    """Upload components over an in-memory SQLite database."""
    upload_services = build_upload_services(
        database_url="sqlite://",
        storage=storage,
        policies=policies,
        clock=clock,
    )
    yield upload_services
    upload_services.engine.dispose()


@pytest.fixture
def issued(services, storage):
    """A pending profile image session whose object was uploaded."""
    credential = services.issuer.issue("profile-images", {"user_id": "42"}, "avatar.jpg")
    storage.put(credential.object_key, size=2048)
    return credential
