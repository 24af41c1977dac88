"""
Credential Lifecycle Manager.

Issues Verifiable Credentials between two known DIDs, anchors their content
hash on the ledger, revokes them, and verifies them against both the local
record and the ledger. The ledger is authoritative in exactly one conflict:
a credential revoked on the ledger but still active locally is reconciled to
revoked on verification.
"""
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from didledger.exceptions import (
    CredentialNotFoundError,
    DIDNotFoundError,
    InvalidStateError,
    MalformedInputError,
    UserNotFoundError,
)
from didledger.ledger.client import VCLedgerStatus
from didledger.logging import get_logger, operation_context
from didledger.models import (
    CREDENTIAL_TRANSITIONS,
    CredentialPayload,
    CredentialStatus,
    DIDStatus,
    IssuanceResult,
    JournalEntry,
    RevocationResult,
    TransactionType,
    VerificationResult,
)
from didledger.services.base import LifecycleService
from didledger.store import crud
from didledger.utils import as_utc, calculate_age, canonical_json, content_hash, isoformat_z, parse_datetime_utc, utcnow

logger = get_logger(__name__)

CREDENTIAL_CONTEXT = [
    "https://www.w3.org/2018/credentials/v1",
    "https://www.w3.org/2018/credentials/examples/v1",
]
VERIFIABLE_CREDENTIAL_TYPE = "VerifiableCredential"
AGE_VERIFICATION_TYPE = "AgeVerificationCredential"


def check_credential_structure(payload: Any, now: Optional[datetime] = None) -> VerificationResult:
    """Pure structural check of a credential payload.

    Looks at the required W3C fields, the `VerifiableCredential` type tag and
    the expiration date. Touches neither the store nor the ledger.
    """
    if not isinstance(payload, Mapping):
        return VerificationResult.fail("Credential is not a JSON object.")
    try:
        credential = CredentialPayload.model_validate(dict(payload))
    except ValidationError as e:
        missing = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
        return VerificationResult.fail(f"Credential is missing or has invalid fields: {', '.join(missing)}.")

    if VERIFIABLE_CREDENTIAL_TYPE not in credential.type:
        return VerificationResult.fail(f"Credential type must include '{VERIFIABLE_CREDENTIAL_TYPE}'.")
    if not credential.context:
        return VerificationResult.fail("Credential '@context' is empty.")

    if credential.expirationDate:
        try:
            expires = parse_datetime_utc(credential.expirationDate)
        except ValueError as e:
            return VerificationResult.fail(f"Credential expirationDate is invalid: {e}")
        if expires < (now or utcnow()):
            return VerificationResult.fail(f"Credential {credential.id} expired at {credential.expirationDate}.")
    return VerificationResult.ok()


class CredentialService(LifecycleService):

    check_structure = staticmethod(check_credential_structure)

    async def issue(
        self,
        issuer_did: str,
        subject_did: str,
        credential_type: str,
        claims: Dict[str, Any],
        expiration_date: Optional[datetime] = None,
    ) -> IssuanceResult:
        """
        Builds, persists and anchors a Verifiable Credential.

        The record is committed as active before the ledger is contacted. A
        ledger failure is journaled and surfaced as `warning`; it never
        changes the credential's status.

        Raises:
            DIDNotFoundError: If the issuer or the subject DID does not exist.
            InvalidStateError: If the issuer DID is revoked or in error.
            MalformedInputError: If the claims or expiration date are unusable.
        """
        with operation_context("vc.issue", issuer_did=issuer_did, subject_did=subject_did):
            if not credential_type:
                raise MalformedInputError("Credential type cannot be empty.")
            if "id" in claims:
                raise MalformedInputError("Claims cannot override the credentialSubject 'id'.")
            issued_at = utcnow()
            if expiration_date is not None:
                expiration_date = as_utc(expiration_date)
                if expiration_date <= issued_at:
                    raise MalformedInputError("Expiration date must be in the future.")

            vc_id = str(uuid.uuid4())
            payload: Dict[str, Any] = {
                "@context": list(CREDENTIAL_CONTEXT),
                "id": f"urn:uuid:{vc_id}",
                "type": [VERIFIABLE_CREDENTIAL_TYPE, credential_type],
                "issuer": issuer_did,
                "issuanceDate": isoformat_z(issued_at),
                "credentialSubject": {"id": subject_did, **claims},
            }
            if expiration_date is not None:
                payload["expirationDate"] = isoformat_z(expiration_date)
            credential_data = canonical_json(payload)
            vc_hash = content_hash(credential_data)

            with self.store.session() as db:
                db_issuer = crud.get_did(db, issuer_did)
                if db_issuer is None:
                    raise DIDNotFoundError(issuer_did)
                if db_issuer.status in (DIDStatus.REVOKED.value, DIDStatus.ERROR.value):
                    raise InvalidStateError(f"Issuer DID {issuer_did} is {db_issuer.status} and cannot issue credentials.")
                if crud.get_did(db, subject_did) is None:
                    raise DIDNotFoundError(subject_did)
                crud.create_credential_record(
                    db,
                    vc_id=vc_id,
                    issuer_did=issuer_did,
                    subject_did=subject_did,
                    credential_type=credential_type,
                    credential_data=credential_data,
                    issuance_date=issued_at,
                    expiration_date=expiration_date,
                )
            logger.info(f"Credential {vc_id} ({credential_type}) stored", extra={"vc_id": vc_id, "vc_hash": vc_hash})

            receipt, error = await self._call_ledger(
                f"registerVC({vc_id})", self.ledger.register_vc(issuer_did, subject_did, vc_hash)
            )
            with self.store.session() as db:
                if error is not None:
                    self.journal.record_failure(db, vc_id, TransactionType.CREATE_VC, error)
                else:
                    self.journal.record_success(db, vc_id, TransactionType.CREATE_VC, receipt)

            return IssuanceResult(
                vc_id=vc_id,
                credential=payload,
                status=CredentialStatus.ACTIVE,
                content_hash=vc_hash,
                transaction_hash=receipt.transaction_hash if receipt else None,
                warning=f"Ledger registration failed: {error}" if error else None,
            )

    async def issue_age_verification(
        self, issuer_did: str, subject_did: str, user_id: str, min_age: int
    ) -> IssuanceResult:
        """Issues an AgeVerificationCredential from a user's stored birth date."""
        with self.store.session() as db:
            user = crud.get_user_by_id(db, user_id)
            if user is None:
                raise UserNotFoundError(user_id)
            name, birth_date = user.name, user.birth_date

        age = calculate_age(birth_date)
        claims = {
            "name": name,
            "birthDate": birth_date.isoformat(),
            "age": age,
            "isOverMinAge": age >= min_age,
            "minAgeRequirement": min_age,
        }
        expiration = utcnow() + timedelta(days=self.config.credential_default_validity_days)
        return await self.issue(issuer_did, subject_did, AGE_VERIFICATION_TYPE, claims, expiration_date=expiration)

    async def revoke(self, vc_id: str) -> RevocationResult:
        """
        Revokes a credential locally, then on the ledger.

        Raises:
            CredentialNotFoundError: If the credential does not exist.
            InvalidStateError: If it is already revoked or expired.
        """
        with operation_context("vc.revoke", vc_id=vc_id):
            with self.store.session() as db:
                db_vc = crud.get_credential(db, vc_id)
                if db_vc is None:
                    raise CredentialNotFoundError(vc_id)
                current = CredentialStatus(db_vc.status)
                if CredentialStatus.REVOKED not in CREDENTIAL_TRANSITIONS[current]:
                    raise InvalidStateError(f"Credential {vc_id} is already {current.value}.")
                if not crud.transition_credential_status(db, vc_id, current, CredentialStatus.REVOKED):
                    raise InvalidStateError(f"Credential {vc_id} changed status while being revoked.")
                issuer_did = db_vc.issuer_did
                vc_hash = content_hash(db_vc.credential_data)
            logger.info(f"Credential {vc_id} revoked locally")

            receipt, error = await self._call_ledger(f"revokeVC({vc_id})", self.ledger.revoke_vc(issuer_did, vc_hash))
            with self.store.session() as db:
                if error is not None:
                    self.journal.record_failure(db, vc_id, TransactionType.REVOKE_VC, error)
                else:
                    self.journal.record_success(db, vc_id, TransactionType.REVOKE_VC, receipt)

            if error is not None:
                message = "Credential revoked, but recording the revocation on the ledger failed."
            else:
                message = "Credential revoked."
            return RevocationResult(
                success=True,
                status=CredentialStatus.REVOKED.value,
                message=message,
                transaction_hash=receipt.transaction_hash if receipt else None,
                warning=f"Ledger revocation failed: {error}" if error else None,
            )

    async def verify(self, vc_id: str) -> VerificationResult:
        """
        Verifies a stored credential in short-circuiting stages.

        1. The local status must be active.
        2. A passed expiration date moves the credential to expired and fails.
        3. The ledger status is consulted: unregistered fails, revoked on the
           ledger reconciles the local record to revoked and fails, and a
           ledger error fails without touching local state.

        Raises:
            CredentialNotFoundError: If the credential does not exist.
        """
        with operation_context("vc.verify", vc_id=vc_id):
            with self.store.session() as db:
                db_vc = crud.get_credential(db, vc_id)
                if db_vc is None:
                    raise CredentialNotFoundError(vc_id)
                status = CredentialStatus(db_vc.status)
                if status != CredentialStatus.ACTIVE:
                    return VerificationResult.fail(f"Credential is {status.value}.")

                expiration = as_utc(db_vc.expiration_date)
                if expiration is not None and expiration < utcnow():
                    if crud.transition_credential_status(db, vc_id, CredentialStatus.ACTIVE, CredentialStatus.EXPIRED):
                        logger.info(f"Credential {vc_id} expired at {isoformat_z(expiration)}")
                    return VerificationResult.fail(f"Credential is expired (expired at {isoformat_z(expiration)}).")

                issuer_did = db_vc.issuer_did
                vc_hash = content_hash(db_vc.credential_data)

            ledger_status, error = await self._call_ledger(
                f"getVCStatus({vc_id})", self.ledger.get_vc_status(issuer_did, vc_hash)
            )
            if error is not None:
                return VerificationResult.fail(f"Could not check ledger status: {error}")
            if ledger_status == VCLedgerStatus.UNREGISTERED:
                return VerificationResult.fail("Credential is not anchored on the ledger.")
            if ledger_status == VCLedgerStatus.REVOKED:
                with self.store.session() as db:
                    if crud.transition_credential_status(db, vc_id, CredentialStatus.ACTIVE, CredentialStatus.REVOKED):
                        logger.warning(f"Credential {vc_id} was revoked on the ledger; local record reconciled")
                return VerificationResult.fail("Credential is revoked on the ledger.")
            return VerificationResult.ok()

    def sweep_expired(self) -> int:
        """Moves every active credential past its expiration date to expired."""
        with operation_context("vc.sweep"):
            with self.store.session() as db:
                count = crud.expire_credentials(db)
            if count:
                logger.info(f"Expired {count} credential(s)")
            return count

    def transactions(self, vc_id: str) -> List[JournalEntry]:
        """Every ledger attempt recorded for a credential, newest first."""
        with self.store.session() as db:
            if crud.get_credential(db, vc_id) is None:
                raise CredentialNotFoundError(vc_id)
            return self.journal.history(db, vc_id, None)
