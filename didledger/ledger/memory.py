import asyncio
import hashlib
from typing import Dict, Tuple

from didledger.exceptions import LedgerError
from didledger.ledger.client import LedgerClient, LedgerReceipt, VCLedgerStatus

OPERATOR_ADDRESS = "0x" + "00" * 19 + "01"


class InMemoryLedger(LedgerClient):
    """Process-local registry with the same contract rules as the deployed one.

    Used for development (`ledger_backend: memory`) and tests. State is lost
    when the process exits.
    """

    def __init__(self, owner: str = OPERATOR_ADDRESS):
        self.owner = owner
        self.dids: Dict[str, str] = {}
        self.credentials: Dict[Tuple[str, str], VCLedgerStatus] = {}
        self.transactions: Dict[str, Tuple[str, tuple]] = {}
        self._lock = asyncio.Lock()

    def _transaction(self, method: str, *args) -> LedgerReceipt:
        nonce = len(self.transactions)
        digest = hashlib.sha256(f"{nonce}:{method}:{args!r}".encode("utf-8")).hexdigest()
        transaction_hash = "0x" + digest
        self.transactions[transaction_hash] = (method, args)
        return LedgerReceipt(transaction_hash=transaction_hash, confirmed=True)

    async def create_did(self, did: str, document_hash: str) -> LedgerReceipt:
        async with self._lock:
            if did in self.dids:
                raise LedgerError(f"execution reverted: DID {did} already exists")
            self.dids[did] = document_hash
            return self._transaction("createDID", did, document_hash)

    async def update_did(self, did: str, new_hash_or_status: str) -> LedgerReceipt:
        async with self._lock:
            if did not in self.dids:
                raise LedgerError(f"execution reverted: DID {did} does not exist")
            self.dids[did] = new_hash_or_status
            return self._transaction("updateDID", did, new_hash_or_status)

    async def get_did(self, did: str) -> Tuple[str, str]:
        if did not in self.dids:
            raise LedgerError(f"execution reverted: DID {did} does not exist")
        return self.dids[did], self.owner

    async def register_vc(self, issuer_did: str, subject_did: str, vc_hash: str) -> LedgerReceipt:
        async with self._lock:
            key = (issuer_did, vc_hash)
            if self.credentials.get(key, VCLedgerStatus.UNREGISTERED) != VCLedgerStatus.UNREGISTERED:
                raise LedgerError(f"execution reverted: credential {vc_hash} already registered")
            self.credentials[key] = VCLedgerStatus.ACTIVE
            return self._transaction("registerVC", issuer_did, subject_did, vc_hash)

    async def revoke_vc(self, issuer_did: str, vc_hash: str) -> LedgerReceipt:
        async with self._lock:
            key = (issuer_did, vc_hash)
            if self.credentials.get(key) != VCLedgerStatus.ACTIVE:
                raise LedgerError(f"execution reverted: credential {vc_hash} is not active")
            self.credentials[key] = VCLedgerStatus.REVOKED
            return self._transaction("revokeVC", issuer_did, vc_hash)

    async def get_vc_status(self, issuer_did: str, vc_hash: str) -> VCLedgerStatus:
        return self.credentials.get((issuer_did, vc_hash), VCLedgerStatus.UNREGISTERED)
