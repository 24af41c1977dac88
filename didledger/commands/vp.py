import json
from typing import Optional, Tuple

import click

from didledger.commands import common


@click.group("vp")
def vp():
    """Build and verify Verifiable Presentations."""
    pass


@vp.command("build")
@click.option(
    "--key-file",
    type=click.Path(exists=True, dir_okay=False, readable=True),
    required=True,
    help="Holder key file written by `did create --output`.",
)
@click.option("--vc-id", "vc_ids", multiple=True, help="Stored credential ID to embed. Repeatable.")
@click.option(
    "--vc-file",
    "vc_files",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, readable=True),
    help="Credential JSON file to embed. Repeatable.",
)
@click.option("--challenge", help="Verifier challenge. A random one is generated when omitted.")
@click.option("--domain", help="Verifier domain.")
@click.option("--verifier", help="Recorded name of the intended verifier.")
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, writable=True),
    help="Write the presentation to this file (JSON) instead of printing it.",
)
@common.handle_errors
def build(
    key_file: str,
    vc_ids: Tuple[str, ...],
    vc_files: Tuple[str, ...],
    challenge: Optional[str],
    domain: Optional[str],
    verifier: Optional[str],
    output_path: Optional[str],
):
    """Builds and signs a presentation as the key file's holder."""
    if not vc_ids and not vc_files:
        click.echo(click.style("Error: Provide at least one --vc-id or --vc-file.", fg="red"), err=True)
        raise SystemExit(1)
    key = common.load_key_file(key_file)
    credentials = list(vc_ids) + [common.load_json_file(path, "credential") for path in vc_files]

    result = common.get_core().build_presentation(
        key.did, credentials, key.privateKeyMultibase, challenge=challenge, domain=domain, verifier=verifier
    )
    click.echo(click.style(f"Built presentation {result.presentation['id']}", fg="cyan"))
    click.echo(f"Presentation hash: {result.vp_hash}")
    if output_path:
        with open(output_path, "w") as f:
            json.dump(result.presentation, f, indent=2)
        click.echo(click.style(f"Presentation saved to {output_path}", fg="green"))
    else:
        common.echo_json(result.presentation)


@vp.command("verify")
@click.option(
    "--vp-file",
    type=click.Path(exists=True, dir_okay=False, readable=True),
    required=True,
    help="Presentation JSON file.",
)
@click.option(
    "--public-key",
    help="Holder's publicKeyMultibase. Defaults to the key in the holder's stored DID Document.",
)
@common.handle_errors
def verify(vp_file: str, public_key: Optional[str]):
    """Verifies a presentation's holder signature and embedded credentials."""
    presentation = common.load_json_file(vp_file, "presentation")
    result = common.get_core().verify_presentation(presentation, public_key)
    if result.valid:
        click.echo(click.style("Presentation is valid.", fg="green"))
    else:
        click.echo(click.style(f"Presentation is invalid: {result.reason}", fg="red"))
        raise SystemExit(1)
