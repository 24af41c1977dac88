import asyncio
import json

import httpx
import pytest

from didledger.config import Settings
from didledger.exceptions import LedgerError
from didledger.ledger.client import LedgerSubmissionError, VCLedgerStatus, create_ledger_client
from didledger.ledger.http import HttpLedgerClient
from didledger.ledger.memory import InMemoryLedger


def _client(handler, **kwargs):
    return HttpLedgerClient(
        "http://registry.test/api/", api_key="secret", transport=httpx.MockTransport(handler), **kwargs
    )


def test_http_create_did_posts_hash():
    seen = {}

    def handler(request: httpx.Request):
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"transactionHash": "0xabc", "status": "confirmed"})

    receipt = asyncio.run(_client(handler).create_did("did:key:z1", "0xhash"))

    assert receipt.transaction_hash == "0xabc"
    assert receipt.confirmed
    assert seen["method"] == "POST"
    assert seen["url"] == "http://registry.test/api/dids?wait=true"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"] == {"did": "did:key:z1", "documentHash": "0xhash"}


def test_http_update_did_quotes_identifier():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.raw_path.decode()
        return httpx.Response(200, json={"transactionHash": "0xdef", "status": "pending"})

    client = _client(handler, wait_for_confirmation=False)
    receipt = asyncio.run(client.update_did("did:key:z1", "0xhash:revoked"))

    assert not receipt.confirmed
    assert seen["path"] == "/api/dids/did%3Akey%3Az1?wait=false"


def test_http_reverted_transaction_carries_hash():
    def handler(request):
        return httpx.Response(200, json={"transactionHash": "0xbad", "status": "reverted", "error": "DID exists"})

    with pytest.raises(LedgerSubmissionError) as exc_info:
        asyncio.run(_client(handler).register_vc("did:a", "did:b", "0x1"))
    assert exc_info.value.transaction_hash == "0xbad"
    assert "DID exists" in str(exc_info.value)


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(200, json={"status": "confirmed"}),
        httpx.Response(200, text="not json"),
    ],
)
def test_http_failures_raise_ledger_error(response):
    with pytest.raises(LedgerError):
        asyncio.run(_client(lambda request: response).revoke_vc("did:a", "0x1"))


def test_http_connection_error_is_ledger_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LedgerError, match="Could not reach ledger gateway"):
        asyncio.run(_client(handler).create_did("did:a", "0x1"))


def test_http_get_vc_status():
    def handler(request):
        assert request.url.params["issuerDid"] == "did:a"
        assert request.url.params["vcHash"] == "0x1"
        return httpx.Response(200, json={"status": 2})

    assert asyncio.run(_client(handler).get_vc_status("did:a", "0x1")) == VCLedgerStatus.REVOKED


def test_http_get_vc_status_rejects_unknown_value():
    with pytest.raises(LedgerError):
        asyncio.run(_client(lambda request: httpx.Response(200, json={"status": 7})).get_vc_status("did:a", "0x1"))


def test_memory_ledger_contract_rules():
    ledger = InMemoryLedger()

    async def scenario():
        await ledger.create_did("did:a", "0x1")
        with pytest.raises(LedgerError):
            await ledger.create_did("did:a", "0x2")
        with pytest.raises(LedgerError):
            await ledger.update_did("did:missing", "0x2")
        assert await ledger.get_vc_status("did:a", "0xvc") == VCLedgerStatus.UNREGISTERED
        await ledger.register_vc("did:a", "did:b", "0xvc")
        with pytest.raises(LedgerError):
            await ledger.register_vc("did:a", "did:b", "0xvc")
        await ledger.revoke_vc("did:a", "0xvc")
        with pytest.raises(LedgerError):
            await ledger.revoke_vc("did:a", "0xvc")
        return await ledger.get_vc_status("did:a", "0xvc"), await ledger.get_did("did:a")

    status, (document_hash, owner) = asyncio.run(scenario())
    assert status == VCLedgerStatus.REVOKED
    assert document_hash == "0x1"
    assert owner == ledger.owner
    assert len(ledger.transactions) == 3


def test_create_ledger_client_selects_backend():
    assert isinstance(create_ledger_client(Settings(ledger_backend="memory")), InMemoryLedger)
    client = create_ledger_client(Settings(ledger_backend="http", ledger_url="http://gw/", ledger_timeout=3))
    assert isinstance(client, HttpLedgerClient)
    assert client.base_url == "http://gw"
    assert client.timeout == 3
    with pytest.raises(ValueError):
        create_ledger_client(Settings(ledger_backend="carrier-pigeon"))
