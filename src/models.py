from collections import Counter
from dataclasses import dataclass, field
from decimal import Context, Decimal, DivisionByZero, InvalidOperation, Overflow, ROUND_HALF_EVEN, localcontext
from enum import Enum
from typing import Optional

# Balances are sums of up to 2**32 amounts below 2**64 with 4 decimal places.
LEDGER_DECIMAL_CONTEXT = Context(
    prec=40,
    rounding=ROUND_HALF_EVEN,
    traps=[InvalidOperation, DivisionByZero, Overflow],
)


class TransactionType(Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    DISPUTE = "dispute"
    RESOLVE = "resolve"
    CHARGEBACK = "chargeback"

    @property
    def carries_amount(self) -> bool:
        return self in (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class DisputeState(Enum):
    CLEAN = "clean"
    DISPUTED = "disputed"
    CHARGED_BACK = "charged_back"

    def can_transition_to(self, new_state: "DisputeState") -> bool:
        return new_state in _DISPUTE_TRANSITIONS[self]


# CHARGED_BACK is terminal.
_DISPUTE_TRANSITIONS = {
    DisputeState.CLEAN: {DisputeState.DISPUTED},
    DisputeState.DISPUTED: {DisputeState.CLEAN, DisputeState.CHARGED_BACK},
    DisputeState.CHARGED_BACK: set(),
}


class ProcessingResult(Enum):
    SUCCESS = "success"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Transaction:
    transaction_type: TransactionType
    client_id: int
    transaction_id: int
    amount: Optional[Decimal] = None

    def __repr__(self) -> str:
        return f"Transaction({self.transaction_type.value}, client={self.client_id}, tx={self.transaction_id}, amount={self.amount})"


@dataclass
class LedgerEntry:
    """
    A historical deposit or withdrawal plus its mutable dispute status.
    held_shortfall is the part of an open deposit dispute that available
    funds could not cover when the dispute was opened.
    """

    transaction_id: int
    client_id: int
    amount: Decimal
    transaction_type: TransactionType
    dispute_state: DisputeState = DisputeState.CLEAN
    held_shortfall: Decimal = Decimal("0")


@dataclass
class ClientAccount:
    """
    Client balances. held includes held_reserve: the part of disputed deposits
    that had already been spent. Later deposits refill the reserve before they
    reach available, so available never goes negative.
    """

    client_id: int
    available: Decimal = Decimal("0")
    held: Decimal = Decimal("0")
    locked: bool = False
    held_reserve: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        with localcontext(LEDGER_DECIMAL_CONTEXT):
            return self.available + self.held

    def credit(self, amount: Decimal) -> None:
        refill = min(self.held_reserve, amount)
        self.held_reserve -= refill
        self.available += amount - refill

    def debit(self, amount: Decimal) -> None:
        self.available -= amount

    def hold_shortfall(self, amount: Decimal) -> Decimal:
        """Part of amount that a hold cannot take from available funds."""
        return amount - min(self.available, amount)

    def hold(self, amount: Decimal) -> Decimal:
        shortfall = self.hold_shortfall(amount)
        self.available -= amount - shortfall
        self.held += amount
        self.held_reserve += shortfall
        return shortfall

    def add_held(self, amount: Decimal) -> None:
        self.held += amount

    def release_hold(self, amount: Decimal, shortfall: Decimal = Decimal("0")) -> None:
        # Whatever of the shortfall is still unfunded is cancelled, not paid out.
        unfunded = min(self.held_reserve, shortfall)
        self.held_reserve -= unfunded
        self.held -= amount
        self.available += amount - unfunded

    def remove_held(self, amount: Decimal, shortfall: Decimal = Decimal("0")) -> None:
        self.held_reserve -= min(self.held_reserve, shortfall)
        self.held -= amount

    def lock(self) -> None:
        self.locked = True


@dataclass
class ProcessingStats:
    """Counters for accepted records and rejections by error kind."""

    accepted: int = 0
    rejections: Counter = field(default_factory=Counter)

    @property
    def rejected(self) -> int:
        return sum(self.rejections.values())

    def record_success(self) -> None:
        self.accepted += 1

    def record_rejection(self, kind: str) -> None:
        self.rejections[kind] += 1

    def __str__(self) -> str:
        breakdown = ", ".join(f"{kind}={count}" for kind, count in sorted(self.rejections.items()))
        summary = f"Accepted: {self.accepted}, Rejected: {self.rejected}"
        return f"{summary} ({breakdown})" if breakdown else summary
