import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from didledger.config import Settings, settings as default_settings
from didledger.exceptions import CredentialNotFoundError, DIDNotFoundError, MalformedInputError
from didledger.keys import public_key_of
from didledger.logging import get_logger, operation_context
from didledger.models import DIDDocument, PresentationResult, VerificationResult
from didledger.presentations import build_presentation, hash_presentation, verify_presentation
from didledger.store import crud
from didledger.store.database import Store

logger = get_logger(__name__)


class PresentationService:
    """Persists presentations built by `didledger.presentations` and their verification outcomes.

    Presentations never touch the ledger.
    """

    def __init__(self, store: Store, config: Optional[Settings] = None):
        self.store = store
        self.config = config or default_settings

    def build(
        self,
        holder_did: str,
        credentials: Iterable[Union[str, Dict[str, Any]]],
        private_key: str,
        challenge: Optional[str] = None,
        domain: Optional[str] = None,
        types: Optional[List[str]] = None,
        verifier: Optional[str] = None,
    ) -> PresentationResult:
        """Builds a presentation and stores it.

        Credentials given as strings are treated as credential record ids and
        loaded from the store. Without `domain` the configured
        `presentation_domain` is bound into the presentation.
        """
        with operation_context("vp.build", holder_did=holder_did):
            with self.store.session() as db:
                payloads = []
                for vc in credentials:
                    if isinstance(vc, str):
                        db_vc = crud.get_credential(db, vc)
                        if db_vc is None:
                            raise CredentialNotFoundError(vc)
                        payloads.append(json.loads(db_vc.credential_data))
                    else:
                        payloads.append(vc)

                vp = build_presentation(
                    holder_did, payloads, private_key, challenge, domain or self.config.presentation_domain, types
                )
                vp_hash = hash_presentation(vp)
                db_vp = crud.create_presentation_record(
                    db,
                    vp_id=vp["id"],
                    holder_did=holder_did,
                    vp_hash=vp_hash,
                    vp_data=json.dumps(vp),
                    verifier=verifier,
                )
                record_id = db_vp.id
            logger.info(f"Presentation {vp['id']} built with {len(payloads)} credential(s)")
            return PresentationResult(record_id=record_id, presentation=vp, vp_hash=vp_hash)

    def verify(self, vp: Any, holder_public_key: Optional[str] = None) -> VerificationResult:
        """Verifies a presentation and, when it is stored, records the outcome on its record.

        Without `holder_public_key` the key is taken from the holder's stored DID Document.
        """
        with operation_context("vp.verify"):
            if holder_public_key is None:
                holder_public_key = self._holder_public_key(vp)
            result = verify_presentation(vp, holder_public_key)
            vp_id = vp.get("id") if isinstance(vp.get("id"), str) else None
            if vp_id:
                with self.store.session() as db:
                    if crud.record_presentation_verification(db, vp_id, result.valid, result.reason) is None:
                        logger.debug(f"Presentation {vp_id} is not stored; result not recorded")
            log = logger.info if result.valid else logger.warning
            log(f"Presentation verification {'succeeded' if result.valid else 'failed'}: {result.reason or 'ok'}")
            return result

    def _holder_public_key(self, vp: Any) -> str:
        holder = vp.get("holder") if isinstance(vp, Mapping) else None
        if not isinstance(holder, str):
            raise MalformedInputError("Presentation has no holder to resolve a public key for.")
        with self.store.session() as db:
            db_did = crud.get_did(db, holder)
            if db_did is None:
                raise DIDNotFoundError(holder)
            document = DIDDocument.model_validate(json.loads(db_did.did_document))
        return public_key_of(document)
