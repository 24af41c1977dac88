"""
Key and DID Document generation.

Keys are Ed25519 (PyNaCl). Public keys are rendered as multibase base58btc
strings carrying the ed25519-pub multicodec prefix, which also yields the
`did:key` identifier. Private keys are the base58 encoding of the 32-byte seed,
the same format the issuer key files use.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

import base58
from nacl.exceptions import CryptoError
from nacl.signing import SigningKey, VerifyKey

from didledger.exceptions import MalformedInputError
from didledger.models import DIDDocument, DIDService, VerificationMethod
from didledger.utils import content_hash

ED25519_MULTICODEC_PREFIX = bytes([0xed, 0x01])

DID_CONTEXT = [
    "https://www.w3.org/ns/did/v1",
    "https://w3id.org/security/suites/ed25519-2020/v1",
]


@dataclass(frozen=True)
class KeyPair:
    private_key: str
    public_key_multibase: str

    @property
    def did(self) -> str:
        return did_from_public_key(self.public_key_multibase)

    @property
    def key_id(self) -> str:
        return f"{self.did}#{self.public_key_multibase}"


def generate_key_pair() -> KeyPair:
    signing_key = SigningKey.generate()
    return KeyPair(
        private_key=base58.b58encode(bytes(signing_key)).decode("ascii"),
        public_key_multibase=public_key_to_multibase(signing_key.verify_key),
    )

def public_key_to_multibase(verify_key: VerifyKey) -> str:
    return "z" + base58.b58encode(ED25519_MULTICODEC_PREFIX + bytes(verify_key)).decode("ascii")

def did_from_public_key(pk_multibase: str) -> str:
    return f"did:key:{pk_multibase}"

def load_signing_key(private_key: str) -> SigningKey:
    """Rebuilds a SigningKey from its base58 seed."""
    if not private_key:
        raise MalformedInputError("Private key cannot be empty.")
    try:
        seed_bytes = base58.b58decode(private_key)
    except ValueError as e:
        raise MalformedInputError(f"Private key is not valid base58: {e}")
    if len(seed_bytes) != 32:
        raise MalformedInputError(f"Ed25519 private key seed must be 32 bytes, got {len(seed_bytes)}.")
    return SigningKey(seed_bytes)

def get_verify_key_from_multibase(pk_multibase: str) -> VerifyKey:
    """Decodes a base58btc-encoded Ed25519 public key (multibase 'z' prefix)
    and returns a PyNaCl VerifyKey object.
    Handles common multicodec prefixes for Ed25519 public keys.
    """
    if not pk_multibase:
        raise MalformedInputError("Public key multibase string cannot be empty.")
    if not pk_multibase.startswith('z'):
        raise MalformedInputError(f"Ed25519 publicKeyMultibase '{pk_multibase}' must start with 'z'.")

    try:
        multicodec_pubkey = base58.b58decode(pk_multibase[1:])
    except ValueError as e:
        raise MalformedInputError(f"publicKeyMultibase '{pk_multibase}' is not valid base58: {e}")

    # 0xed01 for the full 34-byte form, a bare 0xed for 33 bytes, or a raw 32-byte key
    if multicodec_pubkey.startswith(ED25519_MULTICODEC_PREFIX) and len(multicodec_pubkey) == 34:
        public_key_bytes = multicodec_pubkey[2:]
    elif multicodec_pubkey.startswith(bytes([0xed])) and len(multicodec_pubkey) == 33:
        public_key_bytes = multicodec_pubkey[1:]
    elif len(multicodec_pubkey) == 32:
        public_key_bytes = multicodec_pubkey
    else:
        raise MalformedInputError(
            f"Invalid Ed25519 multicodec prefix or key length in publicKeyMultibase '{pk_multibase}'. "
            f"Decoded length: {len(multicodec_pubkey)} bytes."
        )

    try:
        return VerifyKey(public_key_bytes)
    except (CryptoError, TypeError, ValueError) as e:
        raise MalformedInputError(f"Could not load Ed25519 public key from '{pk_multibase}': {e}")

def create_did_document(key_pair: KeyPair, service_endpoints: Optional[Iterable[DIDService]] = None) -> DIDDocument:
    """Builds the DID Document for a freshly generated key pair."""
    did = key_pair.did
    key_id = key_pair.key_id
    return DIDDocument(
        context=list(DID_CONTEXT),
        id=did,
        controller=did,
        verificationMethod=[
            VerificationMethod(
                id=key_id,
                type="Ed25519VerificationKey2020",
                controller=did,
                publicKeyMultibase=key_pair.public_key_multibase,
            )
        ],
        authentication=[key_id],
        assertionMethod=[key_id],
        capabilityInvocation=[key_id],
        capabilityDelegation=[key_id],
        service=list(service_endpoints or []),
    )

def validate_did_document(document: DIDDocument) -> bool:
    """Structural check: id, verification methods and authentication present and consistent."""
    if not document.id or not document.id.startswith("did:"):
        return False
    if not document.verificationMethod or not document.authentication:
        return False
    method_ids = {vm.id for vm in document.verificationMethod}
    referenced = (
        document.authentication
        + document.assertionMethod
        + document.capabilityInvocation
        + document.capabilityDelegation
    )
    return all(ref in method_ids for ref in referenced)

def hash_document(document: DIDDocument) -> str:
    return content_hash(document.to_dict())

def public_key_of(document: DIDDocument) -> str:
    """Returns the multibase public key of the document's first authentication method."""
    auth_id = document.authentication[0]
    for vm in document.verificationMethod:
        if vm.id == auth_id:
            return vm.publicKeyMultibase
    raise MalformedInputError(f"Authentication method {auth_id} not found in DID Document {document.id}.")
