from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text

from didledger.store.database import Base
from didledger.utils import utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    birth_date = Column(Date, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<User(id='{self.id}', name='{self.name}')>"


class DIDRecord(Base):
    __tablename__ = "dids"

    id = Column(String, primary_key=True, nullable=False)
    did = Column(String, unique=True, index=True, nullable=False)
    did_document = Column(Text, nullable=False)
    private_key = Column(Text, nullable=True)
    user_id = Column(String, ForeignKey("users.id"), index=True, nullable=True)
    status = Column(String, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<DIDRecord(did='{self.did}', status='{self.status}')>"


class CredentialRecord(Base):
    __tablename__ = "verifiable_credentials"

    id = Column(String, primary_key=True, nullable=False)
    issuer_did = Column(String, index=True, nullable=False)
    subject_did = Column(String, index=True, nullable=False)
    credential_type = Column(String, nullable=False)
    credential_data = Column(Text, nullable=False)

    issuance_date = Column(DateTime(timezone=True), nullable=False)
    expiration_date = Column(DateTime(timezone=True), nullable=True)
    status = Column(String, index=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<CredentialRecord(id='{self.id}', issuer_did='{self.issuer_did}', status='{self.status}')>"


class PresentationRecord(Base):
    __tablename__ = "verifiable_presentations"

    id = Column(String, primary_key=True, nullable=False)
    vp_id = Column(String, unique=True, index=True, nullable=False)
    holder_did = Column(String, index=True, nullable=False)
    verifier = Column(String, nullable=True)
    vp_hash = Column(String, nullable=False)
    vp_data = Column(Text, nullable=False)

    verification_result = Column(Boolean, nullable=True)
    verification_reason = Column(Text, nullable=True)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<PresentationRecord(vp_id='{self.vp_id}', holder_did='{self.holder_did}')>"


class Issuer(Base):
    __tablename__ = "issuers"

    id = Column(String, primary_key=True, nullable=False)
    name = Column(String, nullable=False)
    did = Column(String, ForeignKey("dids.did"), unique=True, nullable=False)
    organization = Column(String, nullable=True)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Issuer(name='{self.name}', did='{self.did}')>"


class DIDTransaction(Base):
    """One ledger attempt for a DID. Rows are inserted once and never updated."""
    __tablename__ = "blockchain_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    did = Column(String, ForeignKey("dids.did"), index=True, nullable=False)
    transaction_hash = Column(String, nullable=False, default="")
    transaction_type = Column(String, nullable=False)
    status = Column(String, nullable=False)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def entity(self) -> str:
        return self.did

    def __repr__(self):
        return f"<DIDTransaction(did='{self.did}', type='{self.transaction_type}', status='{self.status}')>"


class CredentialTransaction(Base):
    """One ledger attempt for a credential. Rows are inserted once and never updated."""
    __tablename__ = "vc_blockchain_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vc_id = Column(String, ForeignKey("verifiable_credentials.id"), index=True, nullable=False)
    transaction_hash = Column(String, nullable=False, default="")
    transaction_type = Column(String, nullable=False)
    status = Column(String, nullable=False)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def entity(self) -> str:
        return self.vc_id

    def __repr__(self):
        return f"<CredentialTransaction(vc_id='{self.vc_id}', type='{self.transaction_type}', status='{self.status}')>"

