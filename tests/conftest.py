from datetime import date

import pytest

from didledger.config import Settings
from didledger.core import DIDLedgerCore
from didledger.exceptions import LedgerError
from didledger.keys import DID_CONTEXT, generate_key_pair
from didledger.ledger.client import LedgerClient
from didledger.ledger.memory import InMemoryLedger
from didledger.models import DIDDocument, VerificationMethod
from didledger.store import crud
from didledger.store.database import Store


class FailingLedger(LedgerClient):
    """Ledger whose every call fails, as an unreachable gateway would."""

    def __init__(self, message: str = "ledger unavailable"):
        self.message = message
        self.calls = []

    async def _fail(self, method, *args):
        self.calls.append((method, args))
        raise LedgerError(self.message)

    async def create_did(self, did, document_hash):
        return await self._fail("create_did", did, document_hash)

    async def update_did(self, did, new_hash_or_status):
        return await self._fail("update_did", did, new_hash_or_status)

    async def get_did(self, did):
        return await self._fail("get_did", did)

    async def register_vc(self, issuer_did, subject_did, vc_hash):
        return await self._fail("register_vc", issuer_did, subject_did, vc_hash)

    async def revoke_vc(self, issuer_did, vc_hash):
        return await self._fail("revoke_vc", issuer_did, vc_hash)

    async def get_vc_status(self, issuer_did, vc_hash):
        return await self._fail("get_vc_status", issuer_did, vc_hash)


def make_document(did: str) -> DIDDocument:
    """A valid document for a fixed DID string such as did:example:A."""
    key_pair = generate_key_pair()
    key_id = f"{did}#key-1"
    return DIDDocument(
        context=list(DID_CONTEXT),
        id=did,
        verificationMethod=[
            VerificationMethod(
                id=key_id,
                type="Ed25519VerificationKey2020",
                controller=did,
                publicKeyMultibase=key_pair.public_key_multibase,
            )
        ],
        authentication=[key_id],
        assertionMethod=[key_id],
    )


def seed_did(store: Store, did: str, user_id=None) -> str:
    with store.session() as db:
        crud.create_did_record(db, make_document(did), private_key=None, user_id=user_id)
    return did


@pytest.fixture
def config():
    return Settings(ledger_backend="memory", ledger_timeout=5.0, database_url="sqlite://")


@pytest.fixture
def store():
    store = Store("sqlite://")
    store.migrate()
    yield store
    store.dispose()


@pytest.fixture
def ledger():
    return InMemoryLedger()


@pytest.fixture
def failing_ledger():
    return FailingLedger()


@pytest.fixture
def core(store, ledger, config):
    return DIDLedgerCore(store, ledger, config)


@pytest.fixture
def offline_core(store, failing_ledger, config):
    return DIDLedgerCore(store, failing_ledger, config)


@pytest.fixture
def user(store):
    with store.session() as db:
        db_user = crud.create_user(db, name="Alice", birth_date=date(1990, 5, 17), email="alice@example.com")
        return db_user.id


@pytest.fixture
def did_factory(store):
    """Seeds DID Records with fixed identifiers, bypassing key generation and the ledger."""
    def _seed(did: str, user_id=None) -> str:
        return seed_did(store, did, user_id)
    return _seed
