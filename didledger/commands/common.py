import asyncio
import functools
import json
import sys
from typing import Any, Dict, Optional

import click
from pydantic import BaseModel, ValidationError

from didledger.core import DIDLedgerCore, create_core
from didledger.exceptions import DIDLedgerError


class KeyFileModel(BaseModel):
    """Holder/issuer key file written by `did create --output`."""
    did: str
    publicKeyMultibase: str
    privateKeyMultibase: str
    verificationMethod: Optional[str] = None


def get_core() -> DIDLedgerCore:
    # Each CLI invocation is a process start, so pending migrations are applied here.
    return create_core(migrate=True)


def run(coro):
    """Drives one lifecycle coroutine to completion from a synchronous command."""
    return asyncio.run(coro)


def handle_errors(func):
    """Turns DIDLedgerError into a red message on stderr and exit status 1."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DIDLedgerError as e:
            click.echo(click.style(f"Error: {e}", fg="red"), err=True)
            sys.exit(1)
    return wrapper


def echo_json(data: Any):
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    click.echo(json.dumps(data, indent=2))


def echo_warning(warning: Optional[str]):
    if warning:
        click.echo(click.style(f"Warning: {warning}", fg="yellow"), err=True)


def load_json_file(path: str, what: str) -> Any:
    try:
        with open(path, "r") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        click.echo(click.style(f"Error: Invalid JSON in {what} file {path}: {e}", fg="red"), err=True)
        sys.exit(1)


def load_key_file(path: str) -> KeyFileModel:
    data = load_json_file(path, "key")
    try:
        return KeyFileModel(**data)
    except (TypeError, ValidationError) as e:
        click.echo(click.style(f"Error: Key file {path} is invalid or missing privateKeyMultibase: {e}", fg="red"), err=True)
        sys.exit(1)


def key_file_data(did: str, public_key: str, private_key: str) -> Dict[str, str]:
    return {
        "did": did,
        "publicKeyMultibase": public_key,
        "privateKeyMultibase": private_key,
        "verificationMethod": f"{did}#{public_key}",
    }
