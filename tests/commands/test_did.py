import asyncio
import json

from click.testing import CliRunner

from didledger.commands.did import did
from didledger.models import DIDStatus


def test_did_create_prints_key_material(cli_core):
    """Test `did create` without an output file."""
    runner = CliRunner()
    result = runner.invoke(did, ["create"])

    assert result.exit_code == 0
    assert "Created DID: did:key:z" in result.output
    assert "(active)" in result.output
    assert "Transaction hash: 0x" in result.output
    key_data = json.loads(result.output[result.output.find("{"):])
    assert key_data["did"].startswith("did:key:z")
    assert key_data["verificationMethod"] == f"{key_data['did']}#{key_data['publicKeyMultibase']}"
    assert cli_core.resolve_did(key_data["did"]).status == DIDStatus.ACTIVE


def test_did_create_with_output_file(cli_core, tmp_path):
    """Test `did create --output` writes a key file."""
    output_file = tmp_path / "holder.json"
    runner = CliRunner()
    result = runner.invoke(did, ["create", "--output", str(output_file)])

    assert result.exit_code == 0
    assert f"Key information saved to {output_file}" in result.output
    with open(output_file, "r") as f:
        data = json.load(f)
    assert data["privateKeyMultibase"]
    assert data["publicKeyMultibase"].startswith("z")


def test_did_create_unknown_user(cli_core):
    """Test `did create --user-id` with a user that does not exist."""
    runner = CliRunner()
    result = runner.invoke(did, ["create", "--user-id", "ghost"])

    assert result.exit_code == 1
    assert "Error: User ghost not found." in result.output


def test_did_create_ledger_failure_warns(cli_core, failing_ledger):
    """Test `did create` when the ledger is unreachable."""
    cli_core.dids.ledger = failing_ledger
    runner = CliRunner()
    result = runner.invoke(did, ["create"])

    assert result.exit_code == 0
    assert "(error)" in result.output
    assert "Warning: Ledger anchoring failed: ledger unavailable" in result.output


def test_did_resolve(cli_core):
    """Test `did resolve` prints the resolution."""
    created = asyncio.run(cli_core.create_did())
    runner = CliRunner()
    result = runner.invoke(did, ["resolve", created.did])

    assert result.exit_code == 0
    resolution = json.loads(result.output)
    assert resolution["did"] == created.did
    assert resolution["status"] == "active"
    assert resolution["transaction_hash"] == created.transaction_hash


def test_did_resolve_not_found(cli_core):
    """Test `did resolve` with an unknown DID."""
    runner = CliRunner()
    result = runner.invoke(did, ["resolve", "did:example:ghost"])

    assert result.exit_code == 1
    assert "Error: DID did:example:ghost not found." in result.output


def test_did_revoke(cli_core):
    """Test `did revoke` reports the cascade."""
    subject = asyncio.run(cli_core.create_did())
    issuer = asyncio.run(cli_core.create_did())
    asyncio.run(cli_core.issue_credential(issuer.did, subject.did, "TestCredential", {}))

    runner = CliRunner()
    result = runner.invoke(did, ["revoke", subject.did])

    assert result.exit_code == 0
    assert "DID revoked. 1 associated credential(s) were revoked." in result.output

    result = runner.invoke(did, ["revoke", subject.did])
    assert result.exit_code == 1
    assert "already revoked" in result.output


def test_did_suspend_and_reactivate(cli_core, did_factory):
    """Test `did suspend` and `did reactivate`."""
    target = did_factory("did:example:S")
    runner = CliRunner()

    result = runner.invoke(did, ["suspend", target])
    assert result.exit_code == 0
    assert "DID did:example:S is now suspended." in result.output

    result = runner.invoke(did, ["reactivate", target])
    assert result.exit_code == 0
    assert "DID did:example:S is now active." in result.output


def test_did_history(cli_core, did_factory):
    """Test `did history` lists journal entries, newest first."""
    created = asyncio.run(cli_core.create_did())
    asyncio.run(cli_core.revoke_did(created.did))
    runner = CliRunner()

    result = runner.invoke(did, ["history", created.did])
    assert result.exit_code == 0
    entries = json.loads(result.output)
    assert [entry["transaction_type"] for entry in entries] == ["revoke_did", "create_did"]

    result = runner.invoke(did, ["history", did_factory("did:example:quiet")])
    assert result.exit_code == 0
    assert "No ledger transactions recorded." in result.output


def test_did_update_services(cli_core, tmp_path):
    """Test `did update-services` replaces the document's endpoints."""
    created = asyncio.run(cli_core.create_did())
    services = [{"id": f"{created.did}#site", "type": "LinkedDomains", "serviceEndpoint": "https://site.example"}]
    services_file = tmp_path / "services.json"
    services_file.write_text(json.dumps(services))

    runner = CliRunner()
    result = runner.invoke(did, ["update-services", created.did, "--services-file", str(services_file)])

    assert result.exit_code == 0
    assert f"Updated DID Document for {created.did}" in result.output
    assert "Transaction hash: 0x" in result.output
    assert cli_core.resolve_did(created.did).document["service"] == services


def test_did_update_services_requires_list(cli_core, tmp_path):
    """Test `did update-services` with a file that is not a JSON list."""
    services_file = tmp_path / "services.json"
    services_file.write_text("{}")
    runner = CliRunner()
    result = runner.invoke(did, ["update-services", "did:example:x", "--services-file", str(services_file)])

    assert result.exit_code == 1
    assert "must contain a JSON list" in result.output


def test_did_register_and_show_issuer(cli_core):
    """Test `did register-issuer` followed by `did issuer`."""
    created = asyncio.run(cli_core.create_did())
    runner = CliRunner()

    result = runner.invoke(did, ["register-issuer", created.did, "--name", "Registry", "--organization", "Example Org"])
    assert result.exit_code == 0
    assert f"Registered issuer 'Registry' for {created.did}" in result.output

    result = runner.invoke(did, ["issuer", created.did])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["name"] == "Registry"
    assert data["organization"] == "Example Org"

    result = runner.invoke(did, ["register-issuer", created.did, "--name", "Registry"])
    assert result.exit_code == 1
    assert "already registered as an issuer" in result.output


def test_did_issuer_not_registered(cli_core):
    """Test `did issuer` for a DID without an issuer registration."""
    runner = CliRunner()
    result = runner.invoke(did, ["issuer", "did:example:nobody"])

    assert result.exit_code == 1
    assert "is not a registered issuer" in result.output
