"""Durable upload session store.

All state changes are conditional updates guarded by the row's ``version``
and current ``state``. A caller that loses the compare-and-set gets ``False``
back and must reload the row to see what happened instead.
"""

import logging
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.orm import sessionmaker

from directupload.uploads.models import UploadSession, UploadState

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = frozenset(
    {
        (UploadState.PENDING, UploadState.VERIFIED),
        (UploadState.PENDING, UploadState.EXPIRED),
        (UploadState.EXPIRED, UploadState.RECLAIMED),
    }
)

_MUTABLE_FIELDS = frozenset({"verified_at", "reclaimed_at", "final_location"})


class SessionStore:
    """SQLAlchemy-backed store for upload sessions."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def create(self, upload: UploadSession) -> UploadSession:
        """Insert a new pending session."""
        upload.state = UploadState.PENDING.value
        upload.version = 0

        with self._session_factory() as db:
            db.add(upload)
            db.commit()

        return upload

    def get(self, token: str) -> UploadSession | None:
        """Load a session snapshot by token."""
        with self._session_factory() as db:
            return db.get(UploadSession, token)

    def transition(
        self,
        token: str,
        expected_version: int,
        from_state: UploadState,
        to_state: UploadState,
        *,
        not_expired_at: datetime | None = None,
        **fields,
    ) -> bool:
        """Move a session between states if nobody else changed it first.

        Args:
            token: Session token
            expected_version: Version the caller read
            from_state: State the caller read
            to_state: Target state
            not_expired_at: If given, the row must also satisfy
                ``expires_at >= not_expired_at``
            **fields: Extra columns to set in the same write

        Returns:
            True if this call performed the transition

        Raises:
            ValueError: If the transition is not part of the lifecycle
        """
        if (from_state, to_state) not in ALLOWED_TRANSITIONS:
            raise ValueError(f"Illegal transition {from_state.value} -> {to_state.value}")

        unknown = set(fields) - _MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot set columns on transition: {sorted(unknown)}")

        stmt = (
            sa.update(UploadSession)
            .where(
                UploadSession.token == token,
                UploadSession.version == expected_version,
                UploadSession.state == from_state.value,
            )
            .values(state=to_state.value, version=UploadSession.version + 1, **fields)
            .execution_options(synchronize_session=False)
        )
        if not_expired_at is not None:
            stmt = stmt.where(UploadSession.expires_at >= not_expired_at)

        with self._session_factory() as db:
            result = db.execute(stmt)
            db.commit()

        applied = result.rowcount == 1
        logger.debug(
            f"Transition {from_state.value} -> {to_state.value} for token={token[:8]}: "
            f"{'applied' if applied else 'lost'} (expected version {expected_version})"
        )
        return applied

    def list_reclaimable(self, now: datetime, limit: int | None = None) -> list[UploadSession]:
        """Sessions past their window that were never verified.

        Pending rows come first, oldest first, then rows already moved to
        ``expired`` whose object deletion has not completed yet.
        """
        stmt = (
            sa.select(UploadSession)
            .where(
                sa.or_(
                    sa.and_(
                        UploadSession.state == UploadState.PENDING.value,
                        UploadSession.expires_at < now,
                    ),
                    UploadSession.state == UploadState.EXPIRED.value,
                )
            )
            .order_by(
                sa.case((UploadSession.state == UploadState.PENDING.value, 0), else_=1),
                UploadSession.expires_at,
            )
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        with self._session_factory() as db:
            return list(db.scalars(stmt))

    def count_by_state(self) -> dict[str, int]:
        """Count sessions per lifecycle state."""
        stmt = sa.select(UploadSession.state, sa.func.count()).group_by(UploadSession.state)

        counts = {state.value: 0 for state in UploadState}
        with self._session_factory() as db:
            for state, count in db.execute(stmt):
                counts[state] = count
        return counts
