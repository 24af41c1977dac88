"""
Transaction Journal.

Append-only record of every ledger interaction attempt, one row per attempt,
keyed by the owning DID or credential. The most recent `confirmed` row for an
(entity, type) pair is the authoritative one for reconciliation reads.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from didledger.ledger.client import LedgerReceipt
from didledger.logging import get_logger
from didledger.models import JournalEntry, TransactionStatus, TransactionType
from didledger.store import crud

logger = get_logger(__name__)

DID_TRANSACTION_TYPES = frozenset({TransactionType.CREATE_DID, TransactionType.UPDATE_DID, TransactionType.REVOKE_DID})
VC_TRANSACTION_TYPES = frozenset({TransactionType.CREATE_VC, TransactionType.REVOKE_VC})


def _to_entry(db_tx) -> JournalEntry:
    return JournalEntry(
        id=str(db_tx.id),
        entity=db_tx.entity,
        transaction_hash=db_tx.transaction_hash,
        transaction_type=TransactionType(db_tx.transaction_type),
        status=TransactionStatus(db_tx.status),
        error_message=db_tx.error_message,
        created_at=db_tx.created_at,
    )


class TransactionJournal:
    """Writes and reads ledger attempt records inside the caller's session."""

    def record_success(
        self, db: Session, entity: str, transaction_type: TransactionType, receipt: LedgerReceipt
    ) -> JournalEntry:
        status = TransactionStatus.CONFIRMED if receipt.confirmed else TransactionStatus.PENDING
        return self._record(db, entity, transaction_type, status, receipt.transaction_hash)

    def record_failure(
        self, db: Session, entity: str, transaction_type: TransactionType, error: BaseException
    ) -> JournalEntry:
        # Attempts that fail never yield a hash; failures after submission carry it on the error.
        transaction_hash = getattr(error, "transaction_hash", None) or ""
        return self._record(
            db, entity, transaction_type, TransactionStatus.FAILED, transaction_hash, error_message=str(error)
        )

    def _record(
        self,
        db: Session,
        entity: str,
        transaction_type: TransactionType,
        status: TransactionStatus,
        transaction_hash: str,
        error_message: Optional[str] = None,
    ) -> JournalEntry:
        if transaction_type in DID_TRANSACTION_TYPES:
            db_tx = crud.add_did_transaction(db, entity, transaction_type, status, transaction_hash, error_message)
        elif transaction_type in VC_TRANSACTION_TYPES:
            db_tx = crud.add_credential_transaction(db, entity, transaction_type, status, transaction_hash, error_message)
        else:
            raise ValueError(f"Unsupported transaction type: {transaction_type}")

        log = logger.warning if status == TransactionStatus.FAILED else logger.info
        log(
            f"Journaled {transaction_type.value} for {entity}: {status.value}",
            extra={"entity": entity, "transaction_hash": transaction_hash, "error_message": error_message},
        )
        return _to_entry(db_tx)

    def history(self, db: Session, entity: str, transaction_type: Optional[TransactionType] = None) -> List[JournalEntry]:
        """All attempts for an entity, newest first."""
        if transaction_type is None:
            rows = crud.get_did_transactions(db, entity) or crud.get_credential_transactions(db, entity)
        elif transaction_type in DID_TRANSACTION_TYPES:
            rows = crud.get_did_transactions(db, entity, transaction_type)
        else:
            rows = crud.get_credential_transactions(db, entity, transaction_type)
        return [_to_entry(row) for row in rows]

    def latest(self, db: Session, entity: str, transaction_type: TransactionType) -> Optional[JournalEntry]:
        """The most recent attempt of a type, whatever its outcome."""
        entries = self.history(db, entity, transaction_type)
        return entries[0] if entries else None

    def authoritative(self, db: Session, entity: str, transaction_type: TransactionType) -> Optional[JournalEntry]:
        """The most recent confirmed attempt of a type."""
        if transaction_type in DID_TRANSACTION_TYPES:
            rows = crud.get_did_transactions(db, entity, transaction_type, TransactionStatus.CONFIRMED)
        else:
            rows = crud.get_credential_transactions(db, entity, transaction_type, TransactionStatus.CONFIRMED)
        return _to_entry(rows[0]) if rows else None
