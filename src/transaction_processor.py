import logging
from dataclasses import replace
from decimal import Decimal, localcontext
from typing import Iterable, List, Optional

from account_store import AccountStore, InMemoryAccountStore
from errors import (
    AccountLockedError,
    ClientMismatchError,
    DuplicateTransactionError,
    InsufficientFundsError,
    InvalidAmountError,
    ProcessingError,
    UnknownTransactionError,
)
from ledger import TransactionLedger
from models import (
    ClientAccount,
    DisputeState,
    LEDGER_DECIMAL_CONTEXT,
    LedgerEntry,
    ProcessingResult,
    ProcessingStats,
    Transaction,
    TransactionType,
)

logger = logging.getLogger(__name__)


class TransactionProcessor:
    """
    Applies transaction records, in arrival order, against the ledger and client accounts.

    Every record is accepted or rejected atomically: all checks run before the
    first mutation, so a rejected record leaves the ledger and accounts untouched
    and never creates an account.
    """

    def __init__(self, ledger: Optional[TransactionLedger] = None, accounts: Optional[AccountStore] = None):
        self._ledger = ledger if ledger is not None else TransactionLedger()
        self._accounts = accounts if accounts is not None else InMemoryAccountStore()
        self._stats = ProcessingStats()

    @property
    def ledger(self) -> TransactionLedger:
        return self._ledger

    @property
    def stats(self) -> ProcessingStats:
        return self._stats

    def apply(self, transaction: Transaction) -> ProcessingResult:
        """
        Apply a single record.

        Returns:
            SUCCESS: State updated
            REJECTED: Record dropped, one diagnostic logged, state unchanged
        """
        try:
            with localcontext(LEDGER_DECIMAL_CONTEXT):
                self._dispatch(transaction)
        except ProcessingError as e:
            self.report_rejection(e, transaction)
            return ProcessingResult.REJECTED

        self._stats.record_success()
        return ProcessingResult.SUCCESS

    def process_stream(self, transactions: Iterable[Transaction]) -> ProcessingStats:
        """Consume records one at a time; the iterable is never materialised."""
        for transaction in transactions:
            self.apply(transaction)
        return self._stats

    def report_rejection(self, error: ProcessingError, transaction: Optional[Transaction] = None) -> None:
        """Count a rejected record and write its diagnostic to the error channel."""
        self._stats.record_rejection(error.kind)
        if transaction is None:
            logger.warning(f"Rejected record: {error}")
        else:
            logger.warning(f"Rejected {transaction}: {error}")

    def summaries(self) -> List[ClientAccount]:
        """Snapshot of every account, ordered by client id."""
        return [replace(account) for account in self._accounts]

    def _dispatch(self, transaction: Transaction) -> None:
        match transaction.transaction_type:
            case TransactionType.DEPOSIT:
                self._handle_deposit(transaction)
            case TransactionType.WITHDRAWAL:
                self._handle_withdrawal(transaction)
            case TransactionType.DISPUTE:
                self._handle_dispute(transaction)
            case TransactionType.RESOLVE:
                self._handle_resolve(transaction)
            case TransactionType.CHARGEBACK:
                self._handle_chargeback(transaction)

    def _handle_deposit(self, transaction: Transaction) -> None:
        amount = self._check_amount(transaction)
        self._check_unlocked(transaction)

        self._ledger.record(transaction.transaction_id, transaction.client_id, amount, TransactionType.DEPOSIT)
        self._accounts.get_or_create(transaction.client_id).credit(amount)

    def _handle_withdrawal(self, transaction: Transaction) -> None:
        amount = self._check_amount(transaction)
        self._check_unlocked(transaction)
        self._check_unused(transaction)

        account = self._accounts.get(transaction.client_id)
        available = account.available if account is not None else Decimal("0")
        if available < amount:
            raise InsufficientFundsError(
                f"withdrawal of {amount} exceeds available {available}",
                transaction_id=transaction.transaction_id,
                client_id=transaction.client_id,
            )

        self._ledger.record(transaction.transaction_id, transaction.client_id, amount, TransactionType.WITHDRAWAL)
        self._accounts.get_or_create(transaction.client_id).debit(amount)

    def _handle_dispute(self, transaction: Transaction) -> None:
        original = self._lookup_disputable(transaction)
        account = self._accounts.get_or_create(original.client_id)

        if original.transaction_type == TransactionType.DEPOSIT:
            shortfall = account.hold_shortfall(original.amount)
            self._ledger.set_dispute_state(original.transaction_id, DisputeState.DISPUTED, held_shortfall=shortfall)
            account.hold(original.amount)
        else:
            # The withdrawn funds already left; hold the amount against the client's other funds.
            self._ledger.set_dispute_state(original.transaction_id, DisputeState.DISPUTED)
            account.add_held(original.amount)

    def _handle_resolve(self, transaction: Transaction) -> None:
        original = self._lookup_disputable(transaction)
        account = self._accounts.get_or_create(original.client_id)
        shortfall = original.held_shortfall

        self._ledger.set_dispute_state(original.transaction_id, DisputeState.CLEAN)
        if original.transaction_type == TransactionType.DEPOSIT:
            account.release_hold(original.amount, shortfall)
        else:
            # Withdrawal stands; only the hold is dropped.
            account.remove_held(original.amount)

    def _handle_chargeback(self, transaction: Transaction) -> None:
        original = self._lookup_disputable(transaction)
        account = self._accounts.get_or_create(original.client_id)
        shortfall = original.held_shortfall

        self._ledger.set_dispute_state(original.transaction_id, DisputeState.CHARGED_BACK)
        if original.transaction_type == TransactionType.DEPOSIT:
            account.remove_held(original.amount, shortfall)
        else:
            # Reverse the withdrawal: the held amount returns to the client.
            account.release_hold(original.amount)
        account.lock()

    def _check_amount(self, transaction: Transaction) -> Decimal:
        if transaction.amount is None or transaction.amount < 0:
            raise InvalidAmountError(
                f"{transaction.transaction_type.value} requires a non-negative amount, got {transaction.amount}",
                transaction_id=transaction.transaction_id,
                client_id=transaction.client_id,
            )
        return transaction.amount

    def _check_unlocked(self, transaction: Transaction) -> None:
        account = self._accounts.get(transaction.client_id)
        if account is not None and account.locked:
            raise AccountLockedError(
                f"{transaction.transaction_type.value} on locked account",
                transaction_id=transaction.transaction_id,
                client_id=transaction.client_id,
            )

    def _check_unused(self, transaction: Transaction) -> None:
        if transaction.transaction_id in self._ledger:
            raise DuplicateTransactionError(
                "transaction id already recorded",
                transaction_id=transaction.transaction_id,
                client_id=transaction.client_id,
            )

    def _lookup_disputable(self, transaction: Transaction) -> LedgerEntry:
        """Return the ledger entry a dispute-lifecycle record refers to; the ledger validates the transition."""
        original = self._ledger.lookup(transaction.transaction_id)
        if original is None:
            raise UnknownTransactionError(
                f"{transaction.transaction_type.value} references unknown transaction",
                transaction_id=transaction.transaction_id,
                client_id=transaction.client_id,
            )

        self._check_owner(transaction, original)
        return original

    def _check_owner(self, transaction: Transaction, original: LedgerEntry) -> None:
        # Strict policy: a mismatched client is rejected, never reattributed to the ledger's client.
        if original.client_id != transaction.client_id:
            raise ClientMismatchError(
                f"transaction belongs to client {original.client_id}",
                transaction_id=transaction.transaction_id,
                client_id=transaction.client_id,
            )
