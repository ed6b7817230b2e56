from typing import Optional


class ProcessingError(Exception):
    """
    Base class for a record that could not be applied.
    Every error is local to one record and never aborts the stream.
    """

    kind = "processing_error"

    def __init__(self, message: str, transaction_id: Optional[int] = None, client_id: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.transaction_id = transaction_id
        self.client_id = client_id

    def __str__(self) -> str:
        return f"{self.kind}: tx={self.transaction_id} client={self.client_id}: {self.message}"


class ParseError(ProcessingError):
    kind = "parse_error"

    def __init__(self, message: str, line_number: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.line_number = line_number

    def __str__(self) -> str:
        location = f"line {self.line_number}: " if self.line_number is not None else ""
        return f"{self.kind}: {location}{self.message}"


class DuplicateTransactionError(ProcessingError):
    kind = "duplicate_transaction"


class UnknownTransactionError(ProcessingError):
    kind = "unknown_transaction"


class ClientMismatchError(ProcessingError):
    kind = "client_mismatch"


class InsufficientFundsError(ProcessingError):
    kind = "insufficient_funds"


class AccountLockedError(ProcessingError):
    kind = "account_locked"


class InvalidStateTransitionError(ProcessingError):
    kind = "invalid_state_transition"


class InvalidAmountError(ProcessingError):
    kind = "invalid_amount"
