"""
Public surface of the record keeper.

`DIDLedgerCore` wires one `Store` and one `LedgerClient` into the lifecycle
services and exposes the operations consumed by the outer (UI / API) layer.
"""
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from didledger.config import Settings, settings as default_settings
from didledger.journal import TransactionJournal
from didledger.ledger.client import LedgerClient, create_ledger_client
from didledger.models import (
    DIDCreationResult,
    DIDResolution,
    DIDUpdateResult,
    IssuanceResult,
    IssuerInfo,
    JournalEntry,
    PresentationResult,
    RevocationResult,
    VerificationResult,
)
from didledger.services.credentials import CredentialService
from didledger.services.dids import DIDService
from didledger.services.presentations import PresentationService
from didledger.store.database import Store


class DIDLedgerCore:
    def __init__(self, store: Store, ledger: LedgerClient, config: Optional[Settings] = None):
        self.store = store
        self.ledger = ledger
        self.config = config or default_settings
        journal = TransactionJournal()
        self.dids = DIDService(store, ledger, journal, self.config)
        self.credentials = CredentialService(store, ledger, journal, self.config)
        self.presentations = PresentationService(store, self.config)

    # === DIDs ===

    async def create_did(self, owner_user_id: Optional[str] = None) -> DIDCreationResult:
        return await self.dids.create(owner_user_id)

    async def create_did_for_user(self, user_id: str) -> DIDCreationResult:
        return await self.dids.create_for_user(user_id)

    def resolve_did(self, did: str) -> Optional[DIDResolution]:
        return self.dids.resolve(did)

    async def revoke_did(self, did: str) -> RevocationResult:
        return await self.dids.revoke(did)

    def suspend_did(self, did: str) -> DIDResolution:
        return self.dids.suspend(did)

    def reactivate_did(self, did: str) -> DIDResolution:
        return self.dids.reactivate(did)

    async def update_did_services(self, did: str, services: Iterable[Any]) -> DIDUpdateResult:
        return await self.dids.update_services(did, services)

    def register_issuer(
        self, did: str, name: str, organization: Optional[str] = None, description: Optional[str] = None
    ) -> IssuerInfo:
        return self.dids.register_issuer(did, name, organization, description)

    def get_issuer(self, did: str) -> Optional[IssuerInfo]:
        return self.dids.get_issuer(did)

    def did_transactions(self, did: str) -> List[JournalEntry]:
        return self.dids.transactions(did)

    # === Credentials ===

    async def issue_credential(
        self,
        issuer_did: str,
        subject_did: str,
        credential_type: str,
        claims: Dict[str, Any],
        expiration_date: Optional[datetime] = None,
    ) -> IssuanceResult:
        return await self.credentials.issue(issuer_did, subject_did, credential_type, claims, expiration_date)

    async def issue_age_verification(
        self, issuer_did: str, subject_did: str, user_id: str, min_age: int
    ) -> IssuanceResult:
        return await self.credentials.issue_age_verification(issuer_did, subject_did, user_id, min_age)

    async def revoke_credential(self, vc_id: str) -> RevocationResult:
        return await self.credentials.revoke(vc_id)

    async def verify_credential(self, vc_id: str) -> VerificationResult:
        return await self.credentials.verify(vc_id)

    def sweep_expired_credentials(self) -> int:
        return self.credentials.sweep_expired()

    def credential_transactions(self, vc_id: str) -> List[JournalEntry]:
        return self.credentials.transactions(vc_id)

    # === Presentations ===

    def build_presentation(
        self,
        holder_did: str,
        credentials: Iterable[Union[str, Dict[str, Any]]],
        private_key: str,
        challenge: Optional[str] = None,
        domain: Optional[str] = None,
        types: Optional[List[str]] = None,
        verifier: Optional[str] = None,
    ) -> PresentationResult:
        return self.presentations.build(holder_did, credentials, private_key, challenge, domain, types, verifier)

    def verify_presentation(self, vp: Any, holder_public_key: Optional[str] = None) -> VerificationResult:
        return self.presentations.verify(vp, holder_public_key)


def create_core(config: Optional[Settings] = None, migrate: bool = False) -> DIDLedgerCore:
    """Builds a core from settings: store from `database_url`, ledger from `ledger_backend`."""
    config = config or default_settings
    store = Store(config.database_url, echo=config.debug)
    if migrate:
        store.migrate()
    return DIDLedgerCore(store, create_ledger_client(config), config)
