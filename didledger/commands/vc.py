import json
from datetime import timedelta
from typing import Optional

import click

from didledger.commands import common
from didledger.utils import utcnow


@click.group("vc")
def vc():
    """Issue, revoke and verify Verifiable Credentials."""
    pass


@vc.command("issue")
@click.option("--issuer-did", required=True, help="DID of the issuer.")
@click.option("--subject-did", required=True, help="DID of the credential subject.")
@click.option("--type", "credential_type", required=True, help="Credential type, e.g. AgeVerificationCredential.")
@click.option("--claims", default="{}", show_default=True, help="Subject claims as a JSON object.")
@click.option("--expiration-days", type=int, help="Number of days until the credential expires.")
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, writable=True),
    help="Also write the credential to this file (JSON).",
)
@common.handle_errors
def issue(
    issuer_did: str,
    subject_did: str,
    credential_type: str,
    claims: str,
    expiration_days: Optional[int],
    output_path: Optional[str],
):
    """Issues a credential and registers its hash on the ledger."""
    try:
        claims_data = json.loads(claims)
    except json.JSONDecodeError as e:
        click.echo(click.style(f"Error: --claims is not valid JSON: {e}", fg="red"), err=True)
        raise SystemExit(1)
    if not isinstance(claims_data, dict):
        click.echo(click.style("Error: --claims must be a JSON object.", fg="red"), err=True)
        raise SystemExit(1)

    expiration = utcnow() + timedelta(days=expiration_days) if expiration_days is not None else None
    result = common.run(
        common.get_core().issue_credential(issuer_did, subject_did, credential_type, claims_data, expiration)
    )
    _report_issuance(result, output_path)


@vc.command("issue-age")
@click.option("--issuer-did", required=True, help="DID of the issuer.")
@click.option("--subject-did", required=True, help="DID of the credential subject.")
@click.option("--user-id", required=True, help="User whose birth date is attested.")
@click.option("--min-age", type=int, required=True, help="Minimum age requirement.")
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, writable=True),
    help="Also write the credential to this file (JSON).",
)
@common.handle_errors
def issue_age(issuer_did: str, subject_did: str, user_id: str, min_age: int, output_path: Optional[str]):
    """Issues an AgeVerificationCredential from a user's birth date."""
    result = common.run(common.get_core().issue_age_verification(issuer_did, subject_did, user_id, min_age))
    _report_issuance(result, output_path)


def _report_issuance(result, output_path: Optional[str]):
    click.echo(click.style(f"Issued credential {result.vc_id}", fg="cyan"))
    click.echo(f"Content hash: {result.content_hash}")
    if result.transaction_hash:
        click.echo(f"Transaction hash: {result.transaction_hash}")
    common.echo_warning(result.warning)
    if output_path:
        with open(output_path, "w") as f:
            json.dump(result.credential, f, indent=2)
        click.echo(click.style(f"Credential saved to {output_path}", fg="green"))
    else:
        common.echo_json(result.credential)


@vc.command("revoke")
@click.argument("vc_id")
@common.handle_errors
def revoke(vc_id: str):
    """Revokes a credential locally and on the ledger."""
    result = common.run(common.get_core().revoke_credential(vc_id))
    click.echo(click.style(result.message, fg="green"))
    common.echo_warning(result.warning)


@vc.command("verify")
@click.argument("vc_id")
@common.handle_errors
def verify(vc_id: str):
    """Verifies a stored credential against its record and the ledger."""
    result = common.run(common.get_core().verify_credential(vc_id))
    if result.valid:
        click.echo(click.style("Credential is valid.", fg="green"))
    else:
        click.echo(click.style(f"Credential is invalid: {result.reason}", fg="red"))
        raise SystemExit(1)


@vc.command("sweep")
@common.handle_errors
def sweep():
    """Marks every credential past its expiration date as expired."""
    count = common.get_core().sweep_expired_credentials()
    click.echo(f"Expired {count} credential(s).")


@vc.command("history")
@click.argument("vc_id")
@common.handle_errors
def history(vc_id: str):
    """Lists the ledger attempts recorded for a credential, newest first."""
    entries = common.get_core().credential_transactions(vc_id)
    if not entries:
        click.echo("No ledger transactions recorded.")
        return
    common.echo_json([entry.model_dump(mode="json") for entry in entries])
