import json
from typing import Optional

import click

from didledger.commands import common
from didledger.models import DIDStatus


@click.group("did")
def did():
    """Create, resolve and revoke DIDs."""
    pass


@did.command("create")
@click.option("--user-id", help="Owning user ID. Omit for an unowned (issuer) DID.")
@click.option(
    "-o",
    "--output",
    "output_file",
    type=click.Path(dir_okay=False, writable=True),
    help="Write the key material to this file (JSON) instead of printing it.",
)
@common.handle_errors
def create(user_id: Optional[str], output_file: Optional[str]):
    """Generates a DID, stores it and anchors its document on the ledger."""
    core = common.get_core()
    result = common.run(core.create_did(owner_user_id=user_id))

    colour = "cyan" if result.status == DIDStatus.ACTIVE else "yellow"
    click.echo(click.style(f"Created DID: {result.did} ({result.status.value})", fg=colour))
    if result.transaction_hash:
        click.echo(f"Transaction hash: {result.transaction_hash}")
    common.echo_warning(result.warning)

    key_data = common.key_file_data(result.did, result.public_key, result.private_key)
    if output_file:
        with open(output_file, "w") as f:
            json.dump(key_data, f, indent=2)
        click.echo(click.style(f"Key information saved to {output_file}", fg="green"))
    else:
        common.echo_json(key_data)


@did.command("resolve")
@click.argument("did_string")
@common.handle_errors
def resolve(did_string: str):
    """Prints the DID Document, status and anchoring transaction of a DID."""
    resolution = common.get_core().resolve_did(did_string)
    if resolution is None:
        click.echo(click.style(f"Error: DID {did_string} not found.", fg="red"), err=True)
        raise SystemExit(1)
    common.echo_json(resolution)


@did.command("revoke")
@click.argument("did_string")
@common.handle_errors
def revoke(did_string: str):
    """Revokes a DID and the active credentials that depend on it."""
    result = common.run(common.get_core().revoke_did(did_string))
    click.echo(click.style(result.message, fg="green"))
    if result.failed_credentials:
        click.echo(
            click.style(f"{result.failed_credentials} credential revocation(s) failed: {result.error}", fg="red"),
            err=True,
        )
    common.echo_warning(result.warning)


@did.command("suspend")
@click.argument("did_string")
@common.handle_errors
def suspend(did_string: str):
    """Temporarily suspends an active DID."""
    resolution = common.get_core().suspend_did(did_string)
    click.echo(click.style(f"DID {resolution.did} is now {resolution.status.value}.", fg="green"))


@did.command("reactivate")
@click.argument("did_string")
@common.handle_errors
def reactivate(did_string: str):
    """Reactivates a suspended DID."""
    resolution = common.get_core().reactivate_did(did_string)
    click.echo(click.style(f"DID {resolution.did} is now {resolution.status.value}.", fg="green"))


@did.command("update-services")
@click.argument("did_string")
@click.option(
    "--services-file",
    type=click.Path(exists=True, dir_okay=False, readable=True),
    required=True,
    help="JSON list of service endpoints ({id, type, serviceEndpoint}). An empty list clears them.",
)
@common.handle_errors
def update_services(did_string: str, services_file: str):
    """Replaces the service endpoints of a DID Document and anchors the new hash."""
    services = common.load_json_file(services_file, "service list")
    if not isinstance(services, list):
        click.echo(click.style(f"Error: {services_file} must contain a JSON list.", fg="red"), err=True)
        raise SystemExit(1)
    result = common.run(common.get_core().update_did_services(did_string, services))
    click.echo(click.style(f"Updated DID Document for {result.did}", fg="green"))
    click.echo(f"Document hash: {result.document_hash}")
    if result.transaction_hash:
        click.echo(f"Transaction hash: {result.transaction_hash}")
    common.echo_warning(result.warning)


@did.command("register-issuer")
@click.argument("did_string")
@click.option("--name", required=True, help="Display name of the issuer.")
@click.option("--organization", help="Organization the issuer belongs to.")
@click.option("--description", help="Free-text description.")
@common.handle_errors
def register_issuer(did_string: str, name: str, organization: Optional[str], description: Optional[str]):
    """Registers a DID as a named credential issuer."""
    issuer = common.get_core().register_issuer(did_string, name, organization, description)
    click.echo(click.style(f"Registered issuer '{issuer.name}' for {issuer.did}", fg="green"))


@did.command("issuer")
@click.argument("did_string")
@common.handle_errors
def issuer(did_string: str):
    """Shows the issuer registration of a DID."""
    info = common.get_core().get_issuer(did_string)
    if info is None:
        click.echo(click.style(f"Error: DID {did_string} is not a registered issuer.", fg="red"), err=True)
        raise SystemExit(1)
    common.echo_json(info)


@did.command("history")
@click.argument("did_string")
@common.handle_errors
def history(did_string: str):
    """Lists the ledger attempts recorded for a DID, newest first."""
    entries = common.get_core().did_transactions(did_string)
    if not entries:
        click.echo("No ledger transactions recorded.")
        return
    common.echo_json([entry.model_dump(mode="json") for entry in entries])
