import asyncio
import json
from datetime import date, timedelta

import pytest
from click.testing import CliRunner

from didledger.commands.vc import vc
from didledger.store import crud
from didledger.utils import utcnow


@pytest.fixture
def parties(cli_core):
    issuer = asyncio.run(cli_core.create_did())
    subject = asyncio.run(cli_core.create_did())
    return issuer.did, subject.did


def test_vc_issue(cli_core, parties):
    """Test `vc issue` prints the credential."""
    issuer, subject = parties
    runner = CliRunner()
    result = runner.invoke(
        vc,
        [
            "issue",
            "--issuer-did", issuer,
            "--subject-did", subject,
            "--type", "MembershipCredential",
            "--claims", '{"level": "gold"}',
            "--expiration-days", "30",
        ],
    )

    assert result.exit_code == 0
    assert "Issued credential " in result.output
    assert "Content hash: 0x" in result.output
    credential = json.loads(result.output[result.output.find("{"):])
    assert credential["credentialSubject"] == {"id": subject, "level": "gold"}
    assert "expirationDate" in credential


def test_vc_issue_to_file(cli_core, parties, tmp_path):
    """Test `vc issue --output` writes the credential."""
    issuer, subject = parties
    output_path = tmp_path / "vc.json"
    runner = CliRunner()
    result = runner.invoke(
        vc,
        ["issue", "--issuer-did", issuer, "--subject-did", subject, "--type", "TestCredential", "-o", str(output_path)],
    )

    assert result.exit_code == 0
    assert f"Credential saved to {output_path}" in result.output
    with open(output_path, "r") as f:
        assert json.load(f)["issuer"] == issuer


@pytest.mark.parametrize("claims, message", [("{not json", "is not valid JSON"), ("[1, 2]", "must be a JSON object")])
def test_vc_issue_rejects_bad_claims(cli_core, parties, claims, message):
    """Test `vc issue` with unusable --claims."""
    issuer, subject = parties
    runner = CliRunner()
    result = runner.invoke(
        vc, ["issue", "--issuer-did", issuer, "--subject-did", subject, "--type", "T", "--claims", claims]
    )

    assert result.exit_code == 1
    assert message in result.output


def test_vc_issue_unknown_subject(cli_core, parties):
    """Test `vc issue` with a subject DID that does not exist."""
    issuer, _ = parties
    runner = CliRunner()
    result = runner.invoke(vc, ["issue", "--issuer-did", issuer, "--subject-did", "did:example:nobody", "--type", "T"])

    assert result.exit_code == 1
    assert "Error: DID did:example:nobody not found." in result.output


def test_vc_issue_age(cli_core, store, parties):
    """Test `vc issue-age` attests a user's age."""
    issuer, subject = parties
    with store.session() as db:
        user_id = crud.create_user(db, name="Bob", birth_date=date(2000, 1, 1)).id

    runner = CliRunner()
    result = runner.invoke(
        vc,
        ["issue-age", "--issuer-did", issuer, "--subject-did", subject, "--user-id", user_id, "--min-age", "19"],
    )

    assert result.exit_code == 0
    credential = json.loads(result.output[result.output.find("{"):])
    assert credential["type"] == ["VerifiableCredential", "AgeVerificationCredential"]
    assert credential["credentialSubject"]["isOverMinAge"] is True


def test_vc_verify_and_revoke(cli_core, parties):
    """Test `vc verify` before and after `vc revoke`."""
    issuer, subject = parties
    issued = asyncio.run(cli_core.issue_credential(issuer, subject, "TestCredential", {}))
    runner = CliRunner()

    result = runner.invoke(vc, ["verify", issued.vc_id])
    assert result.exit_code == 0
    assert "Credential is valid." in result.output

    result = runner.invoke(vc, ["revoke", issued.vc_id])
    assert result.exit_code == 0
    assert "Credential revoked." in result.output

    result = runner.invoke(vc, ["verify", issued.vc_id])
    assert result.exit_code == 1
    assert "Credential is invalid: Credential is revoked." in result.output


def test_vc_verify_unknown(cli_core):
    """Test `vc verify` with an unknown credential ID."""
    runner = CliRunner()
    result = runner.invoke(vc, ["verify", "missing"])

    assert result.exit_code == 1
    assert "Error: Verifiable Credential missing not found." in result.output


def test_vc_sweep(cli_core, store, parties):
    """Test `vc sweep` expires overdue credentials."""
    issuer, subject = parties
    issued = asyncio.run(cli_core.issue_credential(issuer, subject, "TestCredential", {}))
    with store.session() as db:
        crud.get_credential(db, issued.vc_id).expiration_date = utcnow() - timedelta(days=1)

    runner = CliRunner()
    result = runner.invoke(vc, ["sweep"])

    assert result.exit_code == 0
    assert "Expired 1 credential(s)." in result.output


def test_vc_history(cli_core, parties):
    """Test `vc history` lists journal entries."""
    issuer, subject = parties
    issued = asyncio.run(cli_core.issue_credential(issuer, subject, "TestCredential", {}))
    runner = CliRunner()

    result = runner.invoke(vc, ["history", issued.vc_id])

    assert result.exit_code == 0
    entries = json.loads(result.output)
    assert entries[0]["transaction_type"] == "create_vc"
    assert entries[0]["status"] == "confirmed"
