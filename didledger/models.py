from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator


# === Status enumerations ===

class DIDStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"
    SUSPENDED = "suspended"
    ERROR = "error"


class CredentialStatus(str, Enum):
    ACTIVE = "active"
    REVOKED = "revoked"
    EXPIRED = "expired"


class TransactionStatus(str, Enum):
    CONFIRMED = "confirmed"
    FAILED = "failed"
    PENDING = "pending"


class TransactionType(str, Enum):
    CREATE_DID = "create_did"
    UPDATE_DID = "update_did"
    REVOKE_DID = "revoke_did"
    CREATE_VC = "create_vc"
    REVOKE_VC = "revoke_vc"


# Permitted transitions; anything not listed is rejected.
DID_TRANSITIONS: Dict[DIDStatus, frozenset] = {
    DIDStatus.ACTIVE: frozenset({DIDStatus.REVOKED, DIDStatus.SUSPENDED, DIDStatus.ERROR}),
    DIDStatus.SUSPENDED: frozenset({DIDStatus.ACTIVE, DIDStatus.REVOKED}),
    DIDStatus.REVOKED: frozenset(),
    DIDStatus.ERROR: frozenset(),
}

CREDENTIAL_TRANSITIONS: Dict[CredentialStatus, frozenset] = {
    CredentialStatus.ACTIVE: frozenset({CredentialStatus.REVOKED, CredentialStatus.EXPIRED}),
    CredentialStatus.REVOKED: frozenset(),
    CredentialStatus.EXPIRED: frozenset(),
}


# === DID Document Models ===

class VerificationMethod(BaseModel):
    id: str
    type: str
    controller: str
    publicKeyMultibase: str

class DIDService(BaseModel):
    id: str
    type: str
    serviceEndpoint: Union[str, HttpUrl]

class DIDDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    context: List[str] = Field(..., alias='@context')
    id: str
    controller: Optional[str] = None
    verificationMethod: List[VerificationMethod]
    authentication: List[str]
    assertionMethod: List[str] = []
    capabilityInvocation: List[str] = []
    capabilityDelegation: List[str] = []
    service: List[DIDService] = []

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


# === Credential / Presentation payload models ===

class CredentialPayload(BaseModel):
    """The W3C VC data model fields the record keeper builds and checks."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    context: List[str] = Field(..., alias='@context')
    id: str
    type: List[str]
    issuer: str
    issuanceDate: str
    expirationDate: Optional[str] = None
    credentialSubject: Dict[str, Any]

    @field_validator("type", mode="before")
    @classmethod
    def _type_as_list(cls, value: Any) -> Any:
        # A lone type string is valid in the W3C data model.
        return [value] if isinstance(value, str) else value


class PresentationProof(BaseModel):
    type: str
    created: str
    proofPurpose: str
    verificationMethod: str
    proofValue: str


# === Lifecycle results ===

class DIDCreationResult(BaseModel):
    did: str
    document: Dict[str, Any]
    private_key: str
    public_key: str
    status: DIDStatus
    transaction_hash: Optional[str] = None
    user_id: Optional[str] = None
    warning: Optional[str] = None


class DIDResolution(BaseModel):
    did: str
    document: Dict[str, Any]
    status: DIDStatus
    transaction_hash: Optional[str] = None
    error_message: Optional[str] = None


class RevocationResult(BaseModel):
    success: bool
    status: str
    message: Optional[str] = None
    revoked_credentials: int = 0
    failed_credentials: int = 0
    transaction_hash: Optional[str] = None
    warning: Optional[str] = None
    error: Optional[str] = None


class IssuanceResult(BaseModel):
    vc_id: str
    credential: Dict[str, Any]
    status: CredentialStatus
    content_hash: str
    transaction_hash: Optional[str] = None
    warning: Optional[str] = None


class VerificationResult(BaseModel):
    valid: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "VerificationResult":
        return cls(valid=True)

    @classmethod
    def fail(cls, reason: str) -> "VerificationResult":
        return cls(valid=False, reason=reason)


class PresentationResult(BaseModel):
    record_id: Optional[str] = None
    presentation: Dict[str, Any]
    vp_hash: str


class JournalEntry(BaseModel):
    """Read-only view of one ledger attempt."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    entity: str
    transaction_hash: str
    transaction_type: TransactionType
    status: TransactionStatus
    error_message: Optional[str] = None
    created_at: datetime


class DIDUpdateResult(BaseModel):
    did: str
    document: Dict[str, Any]
    document_hash: str
    transaction_hash: Optional[str] = None
    warning: Optional[str] = None


class IssuerInfo(BaseModel):
    """A DID registered as a named credential issuer."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    did: str
    name: str
    organization: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime
