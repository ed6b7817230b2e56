import sys
import os
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from errors import DuplicateTransactionError, InvalidStateTransitionError, UnknownTransactionError
from ledger import TransactionLedger
from models import DisputeState, TransactionType


class TestTransactionLedger:
    def setup_method(self):
        self.ledger = TransactionLedger()

    def test_record_and_lookup(self):
        entry = self.ledger.record(7, 1, Decimal("12.5"), TransactionType.DEPOSIT)

        assert self.ledger.lookup(7) is entry
        assert entry.client_id == 1
        assert entry.amount == Decimal("12.5")
        assert entry.transaction_type == TransactionType.DEPOSIT
        assert entry.dispute_state == DisputeState.CLEAN
        assert 7 in self.ledger
        assert len(self.ledger) == 1

    def test_lookup_unknown(self):
        assert self.ledger.lookup(99) is None
        assert 99 not in self.ledger

    def test_duplicate_rejected_and_original_kept(self):
        self.ledger.record(1, 1, Decimal("10"), TransactionType.DEPOSIT)

        with pytest.raises(DuplicateTransactionError) as exc_info:
            self.ledger.record(1, 2, Decimal("99"), TransactionType.WITHDRAWAL)

        assert exc_info.value.transaction_id == 1
        assert exc_info.value.client_id == 2
        entry = self.ledger.lookup(1)
        assert entry.client_id == 1
        assert entry.amount == Decimal("10")
        assert len(self.ledger) == 1

    def test_set_dispute_state(self):
        self.ledger.record(1, 1, Decimal("10"), TransactionType.DEPOSIT)

        self.ledger.set_dispute_state(1, DisputeState.DISPUTED)
        assert self.ledger.lookup(1).dispute_state == DisputeState.DISPUTED

        self.ledger.set_dispute_state(1, DisputeState.CLEAN)
        assert self.ledger.lookup(1).dispute_state == DisputeState.CLEAN

    def test_set_dispute_state_unknown(self):
        with pytest.raises(UnknownTransactionError):
            self.ledger.set_dispute_state(5, DisputeState.DISPUTED)

    def test_set_dispute_state_illegal(self):
        self.ledger.record(1, 1, Decimal("10"), TransactionType.DEPOSIT)

        with pytest.raises(InvalidStateTransitionError):
            self.ledger.set_dispute_state(1, DisputeState.CHARGED_BACK)
        assert self.ledger.lookup(1).dispute_state == DisputeState.CLEAN

    def test_charged_back_is_terminal(self):
        self.ledger.record(1, 1, Decimal("10"), TransactionType.DEPOSIT)
        self.ledger.set_dispute_state(1, DisputeState.DISPUTED)
        self.ledger.set_dispute_state(1, DisputeState.CHARGED_BACK)

        for state in DisputeState:
            with pytest.raises(InvalidStateTransitionError):
                self.ledger.set_dispute_state(1, state)

    def test_shortfall_recorded_on_dispute_and_cleared_after(self):
        self.ledger.record(1, 1, Decimal("10"), TransactionType.DEPOSIT)

        self.ledger.set_dispute_state(1, DisputeState.DISPUTED, held_shortfall=Decimal("4"))
        assert self.ledger.lookup(1).held_shortfall == Decimal("4")

        self.ledger.set_dispute_state(1, DisputeState.CLEAN)
        assert self.ledger.lookup(1).held_shortfall == Decimal("0")

    def test_illegal_transition_message_names_both_states(self):
        self.ledger.record(1, 3, Decimal("10"), TransactionType.DEPOSIT)

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            self.ledger.set_dispute_state(1, DisputeState.CLEAN)

        assert "transaction is clean, cannot become clean" in str(exc_info.value)
        assert exc_info.value.client_id == 3
