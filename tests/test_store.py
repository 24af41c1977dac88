from datetime import date, timedelta

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError

from didledger.config import Settings
from didledger.core import create_core
from didledger.exceptions import LedgerError
from didledger.journal import TransactionJournal
from didledger.ledger.client import LedgerReceipt, LedgerSubmissionError
from didledger.models import CredentialStatus, TransactionStatus, TransactionType
from didledger.store import crud
from didledger.store import models as db_models
from didledger.store.database import Base, Store, head_revision
from didledger.utils import utcnow


def test_migrations_upgrade_to_head_once():
    store = Store("sqlite://")
    assert store.current_revision() is None

    assert store.migrate() == head_revision() == "0001_initial_schema"
    assert store.migrate() == "0001_initial_schema"

    tables = set(inspect(store.engine).get_table_names())
    assert tables == set(Base.metadata.tables) | {"alembic_version"}
    with store.engine.connect() as conn:
        assert conn.execute(text("SELECT version_num FROM alembic_version")).scalars().all() == ["0001_initial_schema"]
    store.dispose()


def test_migrated_schema_matches_models():
    store = Store("sqlite://")
    store.migrate()
    inspector = inspect(store.engine)
    for table in Base.metadata.sorted_tables:
        assert {c["name"] for c in inspector.get_columns(table.name)} == set(table.columns.keys())
    unique_indexes = {i["name"] for i in inspector.get_indexes("dids") if i["unique"]}
    assert "ix_dids_did" in unique_indexes
    store.dispose()


def test_did_uniqueness_is_enforced(store, did_factory):
    did_factory("did:example:A")
    with pytest.raises(IntegrityError):
        did_factory("did:example:A")


def test_session_rolls_back_on_error(store):
    with pytest.raises(RuntimeError):
        with store.session() as db:
            crud.create_user(db, name="Bob", birth_date=date(2000, 1, 1))
            raise RuntimeError("boom")

    with store.session() as db:
        assert db.query(db_models.User).count() == 0


def _credential(db, vc_id, subject="did:example:B", expires_in=None):
    now = utcnow()
    return crud.create_credential_record(
        db,
        vc_id=vc_id,
        issuer_did="did:example:A",
        subject_did=subject,
        credential_type="TestCredential",
        credential_data="{}",
        issuance_date=now,
        expiration_date=now + expires_in if expires_in is not None else None,
    )


def test_transition_credential_status_moves_once(store, did_factory):
    did_factory("did:example:A")
    did_factory("did:example:B")
    with store.session() as db:
        _credential(db, "vc-1")

    with store.session() as db:
        assert crud.transition_credential_status(db, "vc-1", CredentialStatus.ACTIVE, CredentialStatus.REVOKED)
    with store.session() as db:
        assert not crud.transition_credential_status(db, "vc-1", CredentialStatus.ACTIVE, CredentialStatus.EXPIRED)
        assert crud.get_credential(db, "vc-1").status == CredentialStatus.REVOKED.value


def test_expire_credentials_only_touches_past_active(store, did_factory):
    did_factory("did:example:A")
    did_factory("did:example:B")
    with store.session() as db:
        _credential(db, "past", expires_in=timedelta(days=-1))
        _credential(db, "future", expires_in=timedelta(days=1))
        _credential(db, "never")

    with store.session() as db:
        assert crud.expire_credentials(db) == 1
    with store.session() as db:
        assert crud.expire_credentials(db) == 0
        assert crud.get_credential(db, "past").status == CredentialStatus.EXPIRED.value
        assert crud.get_credential(db, "future").status == CredentialStatus.ACTIVE.value
        assert set(crud.get_active_credential_ids_by_subject(db, "did:example:B")) == {"future", "never"}


def test_journal_records_one_row_per_attempt(store, did_factory):
    did = did_factory("did:example:A")
    journal = TransactionJournal()

    with store.session() as db:
        journal.record_failure(db, did, TransactionType.CREATE_DID, LedgerError("gateway down"))
        journal.record_success(db, did, TransactionType.CREATE_DID, LedgerReceipt("0x01"))
        journal.record_success(db, did, TransactionType.UPDATE_DID, LedgerReceipt("0x02", confirmed=False))
        journal.record_failure(
            db, did, TransactionType.CREATE_DID, LedgerSubmissionError("reverted", transaction_hash="0x03")
        )

    with store.session() as db:
        history = journal.history(db, did)
        assert [entry.transaction_hash for entry in history] == ["0x03", "0x02", "0x01", ""]
        assert history[1].status == TransactionStatus.PENDING
        assert history[3].error_message == "gateway down"

        latest = journal.latest(db, did, TransactionType.CREATE_DID)
        assert latest.status == TransactionStatus.FAILED
        assert latest.transaction_hash == "0x03"

        authoritative = journal.authoritative(db, did, TransactionType.CREATE_DID)
        assert authoritative.transaction_hash == "0x01"
        assert journal.authoritative(db, did, TransactionType.REVOKE_DID) is None



def test_issuer_repository(store, did_factory):
    did = did_factory("did:example:A")
    with store.session() as db:
        crud.create_issuer(db, name="Registry", did=did, organization="Example Org")

    with store.session() as db:
        issuer = crud.get_issuer_by_did(db, did)
        assert issuer.name == "Registry"
        assert issuer.organization == "Example Org"
        assert crud.get_issuer_by_did(db, "did:example:none") is None

    with pytest.raises(IntegrityError):
        with store.session() as db:
            crud.create_issuer(db, name="Orphan", did="did:example:unknown")


def test_create_core_builds_store_from_injected_config():
    core = create_core(Settings(ledger_backend="memory", database_url="sqlite://", debug=True), migrate=True)

    assert core.store.database_url == "sqlite://"
    assert core.store.engine.echo is True
    assert core.store.current_revision() == head_revision()
    core.store.dispose()
