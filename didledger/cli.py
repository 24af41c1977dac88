import click

from didledger.commands.db import db
from didledger.commands.did import did
from didledger.commands.vc import vc
from didledger.commands.vp import vp


@click.group()
def cli():
    """didledger - DID, Verifiable Credential and Presentation record keeper"""
    pass


cli.add_command(db)
cli.add_command(did)
cli.add_command(vc)
cli.add_command(vp)


if __name__ == "__main__":
    cli()
