import json
import uuid
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from didledger.models import CredentialStatus, DIDDocument, DIDStatus, TransactionStatus, TransactionType
from didledger.utils import utcnow
from . import models as db_models


# === Users ===

def get_user_by_id(db: Session, user_id: str) -> Optional[db_models.User]:
    """Retrieves a user by ID; the collaborator contract used for DID ownership checks."""
    return db.get(db_models.User, user_id)

def create_user(db: Session, name: str, birth_date: date, email: Optional[str] = None) -> db_models.User:
    db_user = db_models.User(id=str(uuid.uuid4()), name=name, email=email, birth_date=birth_date)
    db.add(db_user)
    db.flush()
    return db_user


# === DIDs ===

def get_did(db: Session, did: str) -> Optional[db_models.DIDRecord]:
    """Retrieves a DID Record by its DID string."""
    return db.query(db_models.DIDRecord).filter(db_models.DIDRecord.did == did).first()

def create_did_record(
    db: Session,
    document: DIDDocument,
    private_key: Optional[str],
    user_id: Optional[str] = None,
    status: DIDStatus = DIDStatus.ACTIVE,
) -> db_models.DIDRecord:
    """
    Stores a new DID Record.

    Args:
        db: SQLAlchemy database session.
        document: The DID Document; its `id` becomes the record's DID.
        private_key: Private key material, or None when keys are not retained.
        user_id: Owning user, None for unowned (issuer-class) DIDs.
        status: Initial status.

    Returns:
        The created DIDRecord instance (flushed, not yet committed).
    """
    db_did = db_models.DIDRecord(
        id=str(uuid.uuid4()),
        did=document.id,
        did_document=json.dumps(document.to_dict()),
        private_key=private_key,
        user_id=user_id,
        status=status.value,
    )
    db.add(db_did)
    db.flush()
    return db_did

def transition_did_status(db: Session, did: str, expected: DIDStatus, status: DIDStatus) -> bool:
    """Moves a DID to `status` only if it is still in `expected`; returns whether it moved."""
    updated = (
        db.query(db_models.DIDRecord)
        .filter(
            db_models.DIDRecord.did == did,
            db_models.DIDRecord.status == expected.value,
        )
        .update({"status": status.value, "updated_at": utcnow()}, synchronize_session="fetch")
    )
    return updated == 1

def update_did_document(db: Session, did: str, document: DIDDocument) -> Optional[db_models.DIDRecord]:
    db_did = get_did(db, did)
    if db_did is None:
        return None
    db_did.did_document = json.dumps(document.to_dict())
    db_did.updated_at = utcnow()
    db.flush()
    return db_did


# === Credentials ===

def get_credential(db: Session, vc_id: str) -> Optional[db_models.CredentialRecord]:
    return db.get(db_models.CredentialRecord, vc_id)

def create_credential_record(
    db: Session,
    vc_id: str,
    issuer_did: str,
    subject_did: str,
    credential_type: str,
    credential_data: str,
    issuance_date: datetime,
    expiration_date: Optional[datetime] = None,
) -> db_models.CredentialRecord:
    db_vc = db_models.CredentialRecord(
        id=vc_id,
        issuer_did=issuer_did,
        subject_did=subject_did,
        credential_type=credential_type,
        credential_data=credential_data,
        issuance_date=issuance_date,
        expiration_date=expiration_date,
        status=CredentialStatus.ACTIVE.value,
    )
    db.add(db_vc)
    db.flush()
    return db_vc

def transition_credential_status(
    db: Session, vc_id: str, expected: CredentialStatus, status: CredentialStatus
) -> bool:
    """Moves a credential to `status` only if it is still in `expected`; returns whether it moved.

    A conditional UPDATE so that concurrent verifications expire or revoke a
    credential exactly once.
    """
    updated = (
        db.query(db_models.CredentialRecord)
        .filter(
            db_models.CredentialRecord.id == vc_id,
            db_models.CredentialRecord.status == expected.value,
        )
        .update({"status": status.value, "updated_at": utcnow()}, synchronize_session="fetch")
    )
    return updated == 1

def get_active_credential_ids_by_subject(db: Session, subject_did: str) -> List[str]:
    stmt = select(db_models.CredentialRecord.id).where(
        db_models.CredentialRecord.subject_did == subject_did,
        db_models.CredentialRecord.status == CredentialStatus.ACTIVE.value,
    )
    return list(db.execute(stmt).scalars())

def get_active_credential_ids_by_issuer(db: Session, issuer_did: str) -> List[str]:
    stmt = select(db_models.CredentialRecord.id).where(
        db_models.CredentialRecord.issuer_did == issuer_did,
        db_models.CredentialRecord.status == CredentialStatus.ACTIVE.value,
    )
    return list(db.execute(stmt).scalars())

def expire_credentials(db: Session, now: Optional[datetime] = None) -> int:
    """Marks every active credential whose expiration date has passed as expired."""
    now = now or utcnow()
    return (
        db.query(db_models.CredentialRecord)
        .filter(
            db_models.CredentialRecord.status == CredentialStatus.ACTIVE.value,
            db_models.CredentialRecord.expiration_date.is_not(None),
            db_models.CredentialRecord.expiration_date < now,
        )
        .update({"status": CredentialStatus.EXPIRED.value, "updated_at": now}, synchronize_session=False)
    )


# === Presentations ===

def get_presentation_by_vp_id(db: Session, vp_id: str) -> Optional[db_models.PresentationRecord]:
    return db.query(db_models.PresentationRecord).filter(db_models.PresentationRecord.vp_id == vp_id).first()

def create_presentation_record(
    db: Session,
    vp_id: str,
    holder_did: str,
    vp_hash: str,
    vp_data: str,
    verifier: Optional[str] = None,
) -> db_models.PresentationRecord:
    db_vp = db_models.PresentationRecord(
        id=str(uuid.uuid4()),
        vp_id=vp_id,
        holder_did=holder_did,
        verifier=verifier,
        vp_hash=vp_hash,
        vp_data=vp_data,
    )
    db.add(db_vp)
    db.flush()
    return db_vp

def record_presentation_verification(
    db: Session, vp_id: str, valid: bool, reason: Optional[str]
) -> Optional[db_models.PresentationRecord]:
    """Overwrites the verification fields with the outcome of the latest attempt."""
    db_vp = get_presentation_by_vp_id(db, vp_id)
    if db_vp is None:
        return None
    db_vp.verification_result = valid
    db_vp.verification_reason = reason
    db_vp.verified_at = utcnow()
    db.flush()
    return db_vp


# === Issuers ===

def get_issuer_by_did(db: Session, did: str) -> Optional[db_models.Issuer]:
    return db.query(db_models.Issuer).filter(db_models.Issuer.did == did).first()

def create_issuer(
    db: Session,
    name: str,
    did: str,
    organization: Optional[str] = None,
    description: Optional[str] = None,
) -> db_models.Issuer:
    db_issuer = db_models.Issuer(
        id=str(uuid.uuid4()),
        name=name,
        did=did,
        organization=organization,
        description=description,
    )
    db.add(db_issuer)
    db.flush()
    return db_issuer


# === Ledger transactions ===

def add_did_transaction(
    db: Session,
    did: str,
    transaction_type: TransactionType,
    status: TransactionStatus,
    transaction_hash: str = "",
    error_message: Optional[str] = None,
) -> db_models.DIDTransaction:
    now = utcnow()
    db_tx = db_models.DIDTransaction(
        did=did,
        transaction_hash=transaction_hash,
        transaction_type=transaction_type.value,
        status=status.value,
        error_message=error_message,
        created_at=now,
        updated_at=now,
    )
    db.add(db_tx)
    db.flush()
    return db_tx

def add_credential_transaction(
    db: Session,
    vc_id: str,
    transaction_type: TransactionType,
    status: TransactionStatus,
    transaction_hash: str = "",
    error_message: Optional[str] = None,
) -> db_models.CredentialTransaction:
    now = utcnow()
    db_tx = db_models.CredentialTransaction(
        vc_id=vc_id,
        transaction_hash=transaction_hash,
        transaction_type=transaction_type.value,
        status=status.value,
        error_message=error_message,
        created_at=now,
        updated_at=now,
    )
    db.add(db_tx)
    db.flush()
    return db_tx

def get_did_transactions(
    db: Session,
    did: str,
    transaction_type: Optional[TransactionType] = None,
    status: Optional[TransactionStatus] = None,
) -> List[db_models.DIDTransaction]:
    """Newest first; ties on timestamp fall back to insertion order."""
    query = db.query(db_models.DIDTransaction).filter(db_models.DIDTransaction.did == did)
    if transaction_type is not None:
        query = query.filter(db_models.DIDTransaction.transaction_type == transaction_type.value)
    if status is not None:
        query = query.filter(db_models.DIDTransaction.status == status.value)
    return query.order_by(db_models.DIDTransaction.created_at.desc(), db_models.DIDTransaction.id.desc()).all()

def get_credential_transactions(
    db: Session,
    vc_id: str,
    transaction_type: Optional[TransactionType] = None,
    status: Optional[TransactionStatus] = None,
) -> List[db_models.CredentialTransaction]:
    query = db.query(db_models.CredentialTransaction).filter(db_models.CredentialTransaction.vc_id == vc_id)
    if transaction_type is not None:
        query = query.filter(db_models.CredentialTransaction.transaction_type == transaction_type.value)
    if status is not None:
        query = query.filter(db_models.CredentialTransaction.status == status.value)
    return query.order_by(
        db_models.CredentialTransaction.created_at.desc(), db_models.CredentialTransaction.id.desc()
    ).all()
