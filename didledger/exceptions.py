class DIDLedgerError(Exception):
    """Base class for exceptions in the didledger library."""
    pass

class NotFoundError(DIDLedgerError):
    """Raised when a referenced record does not exist."""
    pass

class DIDNotFoundError(NotFoundError):
    """Raised when a DID cannot be resolved to a DID Record."""

    def __init__(self, did: str):
        self.did = did
        super().__init__(f"DID {did} not found.")

class CredentialNotFoundError(NotFoundError):
    """Raised when a Verifiable Credential record does not exist."""

    def __init__(self, vc_id: str):
        self.vc_id = vc_id
        super().__init__(f"Verifiable Credential {vc_id} not found.")

class UserNotFoundError(NotFoundError):
    """Raised when a user referenced as a DID owner or credential subject does not exist."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found.")

class InvalidStateError(DIDLedgerError):
    """Raised when an operation is attempted on a record in a terminal or incompatible state."""
    pass

class LedgerError(DIDLedgerError):
    """Raised by ledger clients for transport or contract-level failures."""
    pass

class MalformedInputError(DIDLedgerError):
    """Raised when a document, presentation or key is structurally invalid."""
    pass
