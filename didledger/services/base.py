import asyncio
from typing import Awaitable, Optional, Tuple, TypeVar

from didledger.config import Settings, settings as default_settings
from didledger.exceptions import LedgerError
from didledger.journal import TransactionJournal
from didledger.ledger.client import LedgerClient
from didledger.logging import get_logger
from didledger.store.database import Store

logger = get_logger(__name__)

T = TypeVar("T")


class LifecycleService:
    """Shared wiring for the lifecycle managers.

    Every operation runs in two phases: a local-commit phase inside
    `store.session()`, then a ledger phase through `_call_ledger`, which never
    raises. The ledger phase is never part of the local transaction.
    """

    def __init__(
        self,
        store: Store,
        ledger: LedgerClient,
        journal: Optional[TransactionJournal] = None,
        config: Optional[Settings] = None,
    ):
        self.store = store
        self.ledger = ledger
        self.journal = journal or TransactionJournal()
        self.config = config or default_settings

    async def _call_ledger(self, description: str, call: Awaitable[T]) -> Tuple[Optional[T], Optional[LedgerError]]:
        """Awaits a ledger call under `ledger_timeout`.

        Returns (result, None) on success and (None, error) on any failure,
        so callers can journal the attempt without unwinding local state.
        """
        try:
            result = await asyncio.wait_for(call, timeout=self.config.ledger_timeout)
            return result, None
        except asyncio.TimeoutError:
            error = LedgerError(f"{description} timed out after {self.config.ledger_timeout}s.")
        except LedgerError as e:
            error = e
        except Exception as e:
            # A client bug is still a failed attempt; it must be journaled, not lost.
            logger.exception(f"Unexpected error from ledger client during {description}")
            error = LedgerError(f"{type(e).__name__}: {e}")
        logger.warning(f"Ledger call failed during {description}: {error}")
        return None, error
