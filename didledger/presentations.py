"""
Verifiable Presentation building and verification.

Pure functions: no store and no ledger access. The holder signs the canonical
serialization of the proof-excluded envelope with Ed25519; the signature is
carried as a multibase (`z` + base58btc) `proofValue`.
"""
import secrets
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional

import base58
from nacl.exceptions import BadSignatureError
from pydantic import ValidationError

from didledger.exceptions import MalformedInputError
from didledger.keys import did_from_public_key, get_verify_key_from_multibase, load_signing_key, public_key_to_multibase
from didledger.models import PresentationProof, VerificationResult
from didledger.services.credentials import check_credential_structure
from didledger.utils import content_hash, isoformat_z, strip_proof, utcnow

PRESENTATION_CONTEXT = [
    "https://www.w3.org/2018/credentials/v1",
    "https://w3id.org/security/suites/ed25519-2020/v1",
]
VERIFIABLE_PRESENTATION_TYPE = "VerifiablePresentation"
PROOF_TYPE = "Ed25519Signature2020"
PROOF_PURPOSE = "authentication"

REQUIRED_FIELDS = ("@context", "id", "type", "holder", "verifiableCredential", "proof")


def hash_presentation(vp: Mapping[str, Any]) -> str:
    """Hash of the canonical, proof-excluded envelope; this is what gets signed."""
    return content_hash(strip_proof(vp))


def build_presentation(
    holder_did: str,
    credentials: Iterable[Mapping[str, Any]],
    private_key: str,
    challenge: Optional[str] = None,
    domain: Optional[str] = None,
    types: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """
    Assembles and signs a Verifiable Presentation.

    Args:
        holder_did: DID of the presenting holder.
        credentials: Credential payloads to embed; each must pass the structural check.
        private_key: The holder's base58 Ed25519 seed.
        challenge: Verifier nonce; a random one is generated when omitted.
        domain: Intended verifier domain. Left out of the envelope when omitted.
        types: Extra presentation types appended after `VerifiablePresentation`.

    Returns:
        The signed presentation as a JSON-compatible dict.

    Raises:
        MalformedInputError: If a credential is structurally invalid or the key cannot be loaded.
    """
    embedded = [dict(vc) for vc in credentials]
    if not embedded:
        raise MalformedInputError("A presentation needs at least one credential.")
    for index, vc in enumerate(embedded):
        result = check_credential_structure(vc)
        if not result.valid:
            raise MalformedInputError(f"Credential #{index} cannot be presented: {result.reason}")

    signing_key = load_signing_key(private_key)
    public_key_multibase = public_key_to_multibase(signing_key.verify_key)
    if holder_did.startswith("did:key:") and holder_did != did_from_public_key(public_key_multibase):
        raise MalformedInputError(f"Private key does not belong to holder {holder_did}.")

    created = isoformat_z(utcnow())
    vp: Dict[str, Any] = {
        "@context": list(PRESENTATION_CONTEXT),
        "id": f"urn:uuid:{uuid.uuid4()}",
        "type": [VERIFIABLE_PRESENTATION_TYPE, *(types or [])],
        "holder": holder_did,
        "verifiableCredential": embedded,
        "challenge": challenge or secrets.token_hex(16),
        "created": created,
    }
    if domain:
        vp["domain"] = domain

    signature = signing_key.sign(hash_presentation(vp).encode("utf-8")).signature
    vp["proof"] = PresentationProof(
        type=PROOF_TYPE,
        created=created,
        proofPurpose=PROOF_PURPOSE,
        verificationMethod=f"{holder_did}#{public_key_multibase}",
        proofValue="z" + base58.b58encode(signature).decode("ascii"),
    ).model_dump()
    return vp


def verify_presentation(vp: Any, holder_public_key: str) -> VerificationResult:
    """
    Verifies a presentation's holder signature and embedded credentials.

    Expected invalidity (missing fields, wrong type, signature mismatch,
    invalid embedded credential) is reported in the result, never raised.

    Raises:
        MalformedInputError: If `vp` is not a JSON object or the public key cannot be decoded.
    """
    if not isinstance(vp, Mapping):
        raise MalformedInputError("Presentation must be a JSON object.")
    verify_key = get_verify_key_from_multibase(holder_public_key)

    missing = [field for field in REQUIRED_FIELDS if field not in vp]
    if missing:
        return VerificationResult.fail(f"Presentation is missing required fields: {', '.join(missing)}.")
    vp_types = vp["type"] if isinstance(vp["type"], list) else [vp["type"]]
    if VERIFIABLE_PRESENTATION_TYPE not in vp_types:
        return VerificationResult.fail(f"Presentation type must include '{VERIFIABLE_PRESENTATION_TYPE}'.")

    try:
        proof = PresentationProof.model_validate(vp["proof"])
    except ValidationError:
        return VerificationResult.fail("Presentation proof is incomplete.")
    if proof.type != PROOF_TYPE:
        return VerificationResult.fail(f"Unsupported proof type '{proof.type}'.")
    if not proof.proofValue.startswith("z"):
        return VerificationResult.fail("Signature mismatch: proofValue is not a multibase base58btc value.")
    try:
        signature = base58.b58decode(proof.proofValue[1:])
    except ValueError:
        return VerificationResult.fail("Signature mismatch: proofValue is not valid base58.")

    try:
        verify_key.verify(hash_presentation(vp).encode("utf-8"), signature)
    except (BadSignatureError, ValueError):
        return VerificationResult.fail("Signature mismatch: the presentation was not signed by the holder's key.")

    credentials = vp["verifiableCredential"]
    if not isinstance(credentials, list) or not credentials:
        return VerificationResult.fail("Presentation contains no credentials.")
    for index, vc in enumerate(credentials):
        result = check_credential_structure(vc)
        if not result.valid:
            return VerificationResult.fail(f"Embedded credential #{index} is invalid: {result.reason}")
    return VerificationResult.ok()
