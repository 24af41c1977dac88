import click

from didledger.commands import common
from didledger.store.database import head_revision


@click.group("db")
def db():
    """Manage the relational store."""
    pass


@db.command("migrate")
@common.handle_errors
def migrate():
    """Upgrades the schema to the latest alembic revision."""
    core = common.get_core()
    click.echo(f"Migrating {core.store.database_url}")
    revision = core.store.migrate()
    click.echo(click.style(f"Database schema at revision {revision} (head {head_revision()}).", fg="green"))
