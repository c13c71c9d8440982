"""
Ledger Store

The in-memory single source of truth that the rest of the application
reads. It holds exactly one immutable Ledger snapshot at a time; changing
the data means installing a different snapshot.
"""

from typing import Callable, Optional

from biztrack.models.ledger import Ledger


class LedgerStore:
    """
    Holder of the current Ledger snapshot.

    Because Ledger is immutable, snapshot() needs no copying: the object
    returned can be kept and later handed back to replace() to restore
    the exact earlier state.
    """

    def __init__(self, ledger: Optional[Ledger] = None):
        self._ledger = ledger if ledger is not None else Ledger.empty()

    def snapshot(self) -> Ledger:
        return self._ledger

    def replace(self, ledger: Ledger) -> None:
        self._ledger = ledger

    def apply(self, transform: Callable[[Ledger], Ledger]) -> Ledger:
        """Install transform(current) and return it."""
        self._ledger = transform(self._ledger)
        return self._ledger
