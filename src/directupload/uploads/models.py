"""Upload session persistence model."""

from datetime import datetime, timezone
from enum import Enum

import sqlalchemy as sa
from sqlalchemy.types import TypeDecorator

from directupload.db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UploadState(str, Enum):
    """Upload session lifecycle state."""

    PENDING = "pending"  # Credential issued, awaiting verification
    VERIFIED = "verified"  # Object confirmed in storage
    EXPIRED = "expired"  # Window lapsed, object not yet deleted
    RECLAIMED = "reclaimed"  # Window lapsed, object deleted

    @property
    def is_terminal(self) -> bool:
        return self is not UploadState.PENDING


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes, also on backends that drop the offset."""

    impl = sa.DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("Naive datetime given for a UTC column")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class UploadSession(Base):
    __tablename__ = "upload_sessions"

    token = sa.Column(sa.String(64), primary_key=True)
    category = sa.Column(sa.String(64), nullable=False, index=True)
    owner_context = sa.Column(sa.JSON, nullable=False, default=dict)

    object_key = sa.Column(sa.String(512), nullable=False, unique=True)
    content_type = sa.Column(sa.String(128), nullable=False)
    allowed_extensions = sa.Column(sa.JSON, nullable=False)
    max_size_bytes = sa.Column(sa.BigInteger, nullable=False)

    state = sa.Column(sa.String(16), nullable=False, default=UploadState.PENDING.value, index=True)
    issued_at = sa.Column(UTCDateTime(), nullable=False)
    expires_at = sa.Column(UTCDateTime(), nullable=False, index=True)
    verified_at = sa.Column(UTCDateTime(), nullable=True)
    reclaimed_at = sa.Column(UTCDateTime(), nullable=True)
    final_location = sa.Column(sa.Text, nullable=True)

    version = sa.Column(sa.Integer, nullable=False, default=0)

    @property
    def upload_state(self) -> UploadState:
        return UploadState(self.state)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def __repr__(self) -> str:
        return (
            f"<UploadSession(token={self.token[:8]}..., category={self.category}, "
            f"state={self.state}, version={self.version})>"
        )
