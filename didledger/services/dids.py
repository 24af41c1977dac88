"""
DID Lifecycle Manager.

Owns the DID state machine (see `didledger.models.DID_TRANSITIONS`) and the
cascading revocation of dependent credentials. Local writes are always
committed before the ledger is contacted; ledger failures are journaled and
reported as warnings, never rolled back into local state.
"""
import json
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from didledger.exceptions import DIDNotFoundError, InvalidStateError, MalformedInputError, UserNotFoundError
from didledger.keys import create_did_document, generate_key_pair, hash_document, validate_did_document
from didledger.logging import get_logger, operation_context
from didledger.models import (
    DID_TRANSITIONS,
    CredentialStatus,
    DIDCreationResult,
    DIDDocument,
    DIDResolution,
    DIDStatus,
    DIDUpdateResult,
    IssuerInfo,
    JournalEntry,
    RevocationResult,
    TransactionType,
)
from didledger.models import DIDService as ServiceEndpoint
from didledger.services.base import LifecycleService
from didledger.store import crud
from didledger.store import models as db_models

logger = get_logger(__name__)


def _transition(db_did: db_models.DIDRecord, target: DIDStatus) -> None:
    current = DIDStatus(db_did.status)
    if target not in DID_TRANSITIONS[current]:
        if current == target:
            raise InvalidStateError(f"DID {db_did.did} is already {current.value}.")
        raise InvalidStateError(f"DID {db_did.did} cannot move from {current.value} to {target.value}.")


class DIDService(LifecycleService):

    async def create(self, owner_user_id: Optional[str] = None) -> DIDCreationResult:
        """
        Generates a key pair and DID Document, commits the DID Record as active,
        then anchors the document hash on the ledger.

        Args:
            owner_user_id: Owning user. None creates an unowned (issuer-class) DID.

        Returns:
            DIDCreationResult carrying the private key material. Its status is
            `error` (with a warning) when ledger anchoring failed.

        Raises:
            UserNotFoundError: If `owner_user_id` does not reference a user.
            MalformedInputError: If the generated document fails validation.
        """
        with operation_context("did.create", owner_user_id=owner_user_id):
            key_pair = generate_key_pair()
            document = create_did_document(key_pair)
            if not validate_did_document(document):
                raise MalformedInputError(f"Generated DID Document for {document.id} is invalid.")
            did = document.id
            document_hash = hash_document(document)

            with self.store.session() as db:
                if owner_user_id is not None and crud.get_user_by_id(db, owner_user_id) is None:
                    raise UserNotFoundError(owner_user_id)
                private_key = key_pair.private_key if self.config.store_private_keys else None
                crud.create_did_record(db, document, private_key, user_id=owner_user_id)
            logger.info(f"DID {did} committed locally", extra={"did": did, "user_id": owner_user_id})

            receipt, error = await self._call_ledger(f"createDID({did})", self.ledger.create_did(did, document_hash))

            with self.store.session() as db:
                if error is not None:
                    # Only an active DID degrades to error; a concurrent revocation wins.
                    crud.transition_did_status(db, did, DIDStatus.ACTIVE, DIDStatus.ERROR)
                    self.journal.record_failure(db, did, TransactionType.CREATE_DID, error)
                else:
                    self.journal.record_success(db, did, TransactionType.CREATE_DID, receipt)
                status = DIDStatus(crud.get_did(db, did).status)

            if error is not None:
                logger.warning(f"DID {did} marked {status.value}: ledger anchoring failed")
            else:
                logger.info(f"DID Document hash anchored on ledger. Transaction hash: {receipt.transaction_hash}")

            return DIDCreationResult(
                did=did,
                document=document.to_dict(),
                private_key=key_pair.private_key,
                public_key=key_pair.public_key_multibase,
                status=status,
                transaction_hash=receipt.transaction_hash if receipt else None,
                user_id=owner_user_id,
                warning=f"Ledger anchoring failed: {error}" if error else None,
            )

    async def create_for_user(self, user_id: str) -> DIDCreationResult:
        """Creates a DID owned by an existing user."""
        return await self.create(owner_user_id=user_id)

    def resolve(self, did: str) -> Optional[DIDResolution]:
        """Reads the DID Record and its latest anchoring attempt. Never calls the ledger."""
        with self.store.session() as db:
            db_did = crud.get_did(db, did)
            if db_did is None:
                return None
            anchored = self.journal.authoritative(db, did, TransactionType.CREATE_DID)
            latest = self.journal.latest(db, did, TransactionType.CREATE_DID)
            return DIDResolution(
                did=db_did.did,
                document=json.loads(db_did.did_document),
                status=DIDStatus(db_did.status),
                transaction_hash=anchored.transaction_hash if anchored else None,
                error_message=latest.error_message if latest else None,
            )

    async def revoke(self, did: str) -> RevocationResult:
        """
        Revokes a DID, cascades to its dependent active credentials and records
        the revocation on the ledger.

        The local revocation is committed first and always stands. Each
        cascaded credential is revoked in its own transaction so one failure
        does not block the rest; failures are counted and the first error
        message is reported. Ledger failure is reported as a warning.

        Raises:
            DIDNotFoundError: If the DID does not exist.
            InvalidStateError: If the DID is already revoked or in error.
        """
        with operation_context("did.revoke", did=did):
            with self.store.session() as db:
                db_did = crud.get_did(db, did)
                if db_did is None:
                    raise DIDNotFoundError(did)
                _transition(db_did, DIDStatus.REVOKED)
                document = DIDDocument.model_validate(json.loads(db_did.did_document))
                if not crud.transition_did_status(db, did, DIDStatus(db_did.status), DIDStatus.REVOKED):
                    raise InvalidStateError(f"DID {did} changed status while being revoked.")
            logger.info(f"DID {did} revoked locally")

            succeeded, failed, cascade_error = self._cascade(did)

            document_hash = hash_document(document)
            receipt, error = await self._call_ledger(
                f"updateDID({did})", self.ledger.update_did(did, f"{document_hash}:revoked")
            )
            with self.store.session() as db:
                if error is not None:
                    self.journal.record_failure(db, did, TransactionType.REVOKE_DID, error)
                else:
                    self.journal.record_success(db, did, TransactionType.REVOKE_DID, receipt)

            if error is not None:
                logger.warning(f"Ledger revocation of DID {did} failed; the local revocation stands")
                message = (
                    f"DID revoked, but recording the revocation on the ledger failed. "
                    f"{succeeded} associated credential(s) were revoked."
                )
            else:
                message = f"DID revoked. {succeeded} associated credential(s) were revoked."
            if failed:
                message += f" {failed} credential revocation(s) failed."

            return RevocationResult(
                success=True,
                status=DIDStatus.REVOKED.value,
                message=message,
                revoked_credentials=succeeded,
                failed_credentials=failed,
                transaction_hash=receipt.transaction_hash if receipt else None,
                warning=f"Ledger update failed: {error}" if error else None,
                error=cascade_error,
            )

    async def update_services(self, did: str, services: Iterable[Any]) -> DIDUpdateResult:
        """
        Replaces the service endpoints of an active DID's document and anchors
        the new document hash on the ledger.

        The updated document is committed before the ledger is contacted; a
        ledger failure is journaled and returned as `warning`.

        Raises:
            DIDNotFoundError: If the DID does not exist.
            InvalidStateError: If the DID is not active.
            MalformedInputError: If an endpoint is invalid or two share an id.
        """
        with operation_context("did.update", did=did):
            try:
                endpoints = [ServiceEndpoint.model_validate(service) for service in services]
            except ValidationError as e:
                raise MalformedInputError(f"Invalid service endpoint: {e}")
            ids = [endpoint.id for endpoint in endpoints]
            if len(set(ids)) != len(ids):
                raise MalformedInputError("Service endpoint ids must be unique.")

            with self.store.session() as db:
                db_did = self._get_or_raise(db, did)
                if db_did.status != DIDStatus.ACTIVE.value:
                    raise InvalidStateError(f"DID {did} is {db_did.status}; only active DIDs can be updated.")
                document = DIDDocument.model_validate(json.loads(db_did.did_document))
                document.service = endpoints
                if not validate_did_document(document):
                    raise MalformedInputError(f"Updated DID Document for {did} is invalid.")
                crud.update_did_document(db, did, document)
            document_hash = hash_document(document)
            logger.info(f"DID {did} document updated with {len(endpoints)} service endpoint(s)")

            receipt, error = await self._call_ledger(f"updateDID({did})", self.ledger.update_did(did, document_hash))
            with self.store.session() as db:
                if error is not None:
                    self.journal.record_failure(db, did, TransactionType.UPDATE_DID, error)
                else:
                    self.journal.record_success(db, did, TransactionType.UPDATE_DID, receipt)

            return DIDUpdateResult(
                did=did,
                document=document.to_dict(),
                document_hash=document_hash,
                transaction_hash=receipt.transaction_hash if receipt else None,
                warning=f"Ledger update failed: {error}" if error else None,
            )

    def register_issuer(
        self, did: str, name: str, organization: Optional[str] = None, description: Optional[str] = None
    ) -> IssuerInfo:
        """Registers an active DID as a named credential issuer. Local only."""
        with operation_context("did.register_issuer", did=did):
            if not name:
                raise MalformedInputError("Issuer name cannot be empty.")
            with self.store.session() as db:
                db_did = self._get_or_raise(db, did)
                if db_did.status != DIDStatus.ACTIVE.value:
                    raise InvalidStateError(f"DID {did} is {db_did.status} and cannot be registered as an issuer.")
                if crud.get_issuer_by_did(db, did) is not None:
                    raise InvalidStateError(f"DID {did} is already registered as an issuer.")
                issuer = IssuerInfo.model_validate(
                    crud.create_issuer(db, name=name, did=did, organization=organization, description=description)
                )
            logger.info(f"DID {did} registered as issuer '{name}'")
            return issuer

    def get_issuer(self, did: str) -> Optional[IssuerInfo]:
        with self.store.session() as db:
            db_issuer = crud.get_issuer_by_did(db, did)
            return IssuerInfo.model_validate(db_issuer) if db_issuer else None

    def _cascade(self, did: str):
        """Revokes the active credentials that depend on a revoked DID, one transaction each."""
        with self.store.session() as db:
            vc_ids = crud.get_active_credential_ids_by_subject(db, did)
            if self.config.cascade_issuer_credentials:
                vc_ids += [vc_id for vc_id in crud.get_active_credential_ids_by_issuer(db, did) if vc_id not in vc_ids]

        succeeded = 0
        failed = 0
        first_error: Optional[str] = None
        for vc_id in vc_ids:
            try:
                with self.store.session() as db:
                    moved = crud.transition_credential_status(
                        db, vc_id, CredentialStatus.ACTIVE, CredentialStatus.REVOKED
                    )
            except Exception as e:
                failed += 1
                if first_error is None:
                    first_error = str(e)
                logger.error(f"Could not revoke credential {vc_id} while revoking DID {did}: {e}")
                continue
            if moved:
                succeeded += 1
                logger.info(f"Credential {vc_id} revoked because DID {did} was revoked")
        return succeeded, failed, first_error

    def suspend(self, did: str) -> DIDResolution:
        """active -> suspended. Local only."""
        return self._set_status(did, DIDStatus.SUSPENDED)

    def reactivate(self, did: str) -> DIDResolution:
        """suspended -> active. Local only; revoked and error DIDs stay where they are."""
        return self._set_status(did, DIDStatus.ACTIVE)

    def _set_status(self, did: str, target: DIDStatus) -> DIDResolution:
        with operation_context(f"did.{target.value}", did=did):
            with self.store.session() as db:
                db_did = self._get_or_raise(db, did)
                _transition(db_did, target)
                if not crud.transition_did_status(db, did, DIDStatus(db_did.status), target):
                    raise InvalidStateError(f"DID {did} changed status while moving to {target.value}.")
            logger.info(f"DID {did} is now {target.value}")
            return self.resolve(did)

    def transactions(self, did: str) -> List[JournalEntry]:
        """Every ledger attempt recorded for a DID, newest first."""
        with self.store.session() as db:
            self._get_or_raise(db, did)
            return self.journal.history(db, did)

    @staticmethod
    def _get_or_raise(db: Session, did: str) -> db_models.DIDRecord:
        db_did = crud.get_did(db, did)
        if db_did is None:
            raise DIDNotFoundError(did)
        return db_did
