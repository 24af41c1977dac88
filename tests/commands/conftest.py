import pytest


@pytest.fixture
def cli_core(core, mocker):
    """Routes every command to the test core instead of one built from settings."""
    mocker.patch("didledger.commands.common.get_core", return_value=core)
    return core
