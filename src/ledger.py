from decimal import Decimal
from typing import Dict, Optional

from errors import DuplicateTransactionError, InvalidStateTransitionError, UnknownTransactionError
from models import DisputeState, LedgerEntry, TransactionType


class TransactionLedger:
    """
    Append-only store of accepted deposits and withdrawals, keyed by transaction id.
    Single source of truth for what a disputed transaction actually was.
    """

    def __init__(self):
        self._entries: Dict[int, LedgerEntry] = {}

    def record(
        self,
        transaction_id: int,
        client_id: int,
        amount: Decimal,
        transaction_type: TransactionType,
    ) -> LedgerEntry:
        """Insert a new clean entry. Raises DuplicateTransactionError if the id is taken."""
        if transaction_id in self._entries:
            raise DuplicateTransactionError(
                f"transaction id already recorded for client {self._entries[transaction_id].client_id}",
                transaction_id=transaction_id,
                client_id=client_id,
            )

        entry = LedgerEntry(
            transaction_id=transaction_id,
            client_id=client_id,
            amount=amount,
            transaction_type=transaction_type,
        )
        self._entries[transaction_id] = entry
        return entry

    def lookup(self, transaction_id: int) -> Optional[LedgerEntry]:
        """Return the live entry for a transaction id, or None if it was never recorded."""
        return self._entries.get(transaction_id)

    def set_dispute_state(
        self,
        transaction_id: int,
        new_state: DisputeState,
        held_shortfall: Decimal = Decimal("0"),
    ) -> LedgerEntry:
        """
        Move an entry to new_state, raising InvalidStateTransitionError if the
        move is not allowed. held_shortfall is recorded for an opening dispute
        and cleared otherwise.
        """
        entry = self._entries.get(transaction_id)
        if entry is None:
            raise UnknownTransactionError("transaction not found", transaction_id=transaction_id)

        if not entry.dispute_state.can_transition_to(new_state):
            raise InvalidStateTransitionError(
                f"transaction is {entry.dispute_state.value}, cannot become {new_state.value}",
                transaction_id=transaction_id,
                client_id=entry.client_id,
            )

        entry.dispute_state = new_state
        entry.held_shortfall = held_shortfall if new_state == DisputeState.DISPUTED else Decimal("0")
        return entry

    def __contains__(self, transaction_id: int) -> bool:
        return transaction_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
