"""Wiring of the upload lifecycle components."""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.engine import Engine

from directupload.core.config import settings
from directupload.db import create_db_engine, create_schema, create_session_factory
from directupload.storage.base import StorageAdapter
from directupload.storage.factory import get_storage_adapter
from directupload.uploads.issuer import CredentialIssuer
from directupload.uploads.models import utcnow
from directupload.uploads.policy import PolicyTable, get_policy_table
from directupload.uploads.store import SessionStore
from directupload.uploads.sweeper import ReclamationSweeper, SweepScheduler
from directupload.uploads.verifier import UploadVerifier


@dataclass
class UploadServices:
    engine: Engine
    store: SessionStore
    storage: StorageAdapter
    policies: PolicyTable
    issuer: CredentialIssuer
    verifier: UploadVerifier
    sweeper: ReclamationSweeper
    scheduler: SweepScheduler


def build_upload_services(
    database_url: str | None = None,
    storage: StorageAdapter | None = None,
    policies: PolicyTable | None = None,
    clock: Callable[[], datetime] = utcnow,
) -> UploadServices:
    """Build the store, adapter and orchestrators from settings.

    Any piece can be passed in explicitly, which is how tests swap in an
    in-memory database, a fake storage backend or a fixed clock.
    """
    engine = create_db_engine(database_url)
    create_schema(engine)
    store = SessionStore(create_session_factory(engine))

    storage = storage or get_storage_adapter()
    policies = policies or get_policy_table()

    sweeper = ReclamationSweeper(store, storage, clock=clock)
    return UploadServices(
        engine=engine,
        store=store,
        storage=storage,
        policies=policies,
        issuer=CredentialIssuer(store, storage, policies, clock=clock),
        verifier=UploadVerifier(
            store, storage, clock=clock, promote_on_verify=settings.PROMOTE_ON_VERIFY
        ),
        sweeper=sweeper,
        scheduler=SweepScheduler(
            sweeper,
            interval_seconds=settings.SWEEP_INTERVAL_SECONDS,
            full_interval_seconds=settings.FULL_SWEEP_INTERVAL_SECONDS,
            batch_size=settings.SWEEP_BATCH_SIZE,
        ),
    )
