import json
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import httpx

from didledger.exceptions import LedgerError
from didledger.ledger.client import LedgerClient, LedgerReceipt, LedgerSubmissionError, VCLedgerStatus
from didledger.logging import get_logger

logger = get_logger(__name__)


class HttpLedgerClient(LedgerClient):
    """Talks to the DID registry contract through its JSON gateway.

    The gateway signs and submits contract calls with its operator key. Mutating
    endpoints accept `wait=true` to block until the transaction is mined and
    answer with `{"transactionHash": ..., "status": "confirmed" | "pending" | "reverted"}`.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        wait_for_confirmation: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.wait_for_confirmation = wait_for_confirmation
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, headers=self._headers(), **kwargs)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Ledger gateway error on {method} {url}: {e.response.status_code} - {e.response.text}")
            raise LedgerError(f"Ledger gateway returned {e.response.status_code}: {e.response.text}")
        except httpx.TimeoutException as e:
            logger.error(f"Ledger call {method} {url} timed out: {e}")
            raise LedgerError(f"Ledger call timed out after {self.timeout}s.")
        except httpx.RequestError as e:
            logger.error(f"Could not reach ledger gateway for {method} {url}: {e}")
            raise LedgerError(f"Could not reach ledger gateway: {e}")
        except json.JSONDecodeError as e:
            logger.error(f"Ledger gateway sent invalid JSON for {method} {url}: {e}")
            raise LedgerError(f"Invalid response from ledger gateway: {e}")

    async def _submit(self, method: str, path: str, payload: Dict[str, Any]) -> LedgerReceipt:
        params = {"wait": "true" if self.wait_for_confirmation else "false"}
        data = await self._request(method, path, json=payload, params=params)

        transaction_hash = data.get("transactionHash")
        status = data.get("status", "confirmed")
        if not transaction_hash:
            raise LedgerError(f"Ledger gateway response is missing 'transactionHash': {data}")
        if status == "reverted":
            raise LedgerSubmissionError(
                data.get("error") or f"Transaction {transaction_hash} was reverted.",
                transaction_hash=transaction_hash,
            )
        if status not in ("confirmed", "pending"):
            raise LedgerSubmissionError(f"Unexpected transaction status '{status}'.", transaction_hash=transaction_hash)
        return LedgerReceipt(transaction_hash=transaction_hash, confirmed=status == "confirmed")

    async def create_did(self, did: str, document_hash: str) -> LedgerReceipt:
        return await self._submit("POST", "/dids", {"did": did, "documentHash": document_hash})

    async def update_did(self, did: str, new_hash_or_status: str) -> LedgerReceipt:
        return await self._submit("PUT", f"/dids/{quote(did, safe='')}", {"documentHash": new_hash_or_status})

    async def get_did(self, did: str) -> Tuple[str, str]:
        data = await self._request("GET", f"/dids/{quote(did, safe='')}")
        return data.get("documentHash", ""), data.get("owner", "")

    async def register_vc(self, issuer_did: str, subject_did: str, vc_hash: str) -> LedgerReceipt:
        return await self._submit(
            "POST", "/credentials", {"issuerDid": issuer_did, "subjectDid": subject_did, "vcHash": vc_hash}
        )

    async def revoke_vc(self, issuer_did: str, vc_hash: str) -> LedgerReceipt:
        return await self._submit("POST", "/credentials/revoke", {"issuerDid": issuer_did, "vcHash": vc_hash})

    async def get_vc_status(self, issuer_did: str, vc_hash: str) -> VCLedgerStatus:
        data = await self._request("GET", "/credentials/status", params={"issuerDid": issuer_did, "vcHash": vc_hash})
        try:
            return VCLedgerStatus(int(data["status"]))
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerError(f"Invalid credential status from ledger gateway: {data} ({e})")
