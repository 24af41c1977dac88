from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple

from didledger.exceptions import LedgerError


class VCLedgerStatus(IntEnum):
    UNREGISTERED = 0
    ACTIVE = 1
    REVOKED = 2


@dataclass(frozen=True)
class LedgerReceipt:
    """Outcome of a state-changing ledger call.

    `confirmed` is False when the transaction was submitted but the client
    did not wait for (or did not get) block confirmation.
    """
    transaction_hash: str
    confirmed: bool = True


class LedgerSubmissionError(LedgerError):
    """A transaction reached the ledger but was reverted or never confirmed."""

    def __init__(self, message: str, transaction_hash: Optional[str] = None):
        super().__init__(message)
        self.transaction_hash = transaction_hash


class LedgerClient(ABC):
    """Contract surface of the DID registry.

    All calls are coroutines and may be slow; every transport or contract
    failure is raised as `LedgerError`.
    """

    @abstractmethod
    async def create_did(self, did: str, document_hash: str) -> LedgerReceipt:
        ...

    @abstractmethod
    async def update_did(self, did: str, new_hash_or_status: str) -> LedgerReceipt:
        ...

    @abstractmethod
    async def get_did(self, did: str) -> Tuple[str, str]:
        """Returns (document_hash, owner)."""

    @abstractmethod
    async def register_vc(self, issuer_did: str, subject_did: str, vc_hash: str) -> LedgerReceipt:
        ...

    @abstractmethod
    async def revoke_vc(self, issuer_did: str, vc_hash: str) -> LedgerReceipt:
        ...

    @abstractmethod
    async def get_vc_status(self, issuer_did: str, vc_hash: str) -> VCLedgerStatus:
        ...


def create_ledger_client(settings) -> LedgerClient:
    """Builds the ledger client selected by `settings.ledger_backend`."""
    backend = settings.ledger_backend.lower()
    if backend == "http":
        from didledger.ledger.http import HttpLedgerClient

        return HttpLedgerClient(
            base_url=settings.ledger_url,
            api_key=settings.ledger_api_key or None,
            timeout=settings.ledger_timeout,
            wait_for_confirmation=settings.ledger_wait_for_confirmation,
        )
    if backend == "memory":
        from didledger.ledger.memory import InMemoryLedger

        return InMemoryLedger()
    raise ValueError(f"Unsupported ledger backend '{settings.ledger_backend}'. Use 'http' or 'memory'.")
