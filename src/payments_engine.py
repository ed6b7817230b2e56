import csv
import logging
import re
from decimal import Decimal, localcontext
from typing import Callable, Dict, Iterable, Iterator, Optional, TextIO

from errors import ParseError
from models import LEDGER_DECIMAL_CONTEXT, ClientAccount, Transaction, TransactionType
from transaction_processor import TransactionProcessor

logger = logging.getLogger(__name__)

PRECISION = Decimal("0.0001")
MAX_CLIENT_ID = 2**16 - 1
MAX_TRANSACTION_ID = 2**32 - 1
# Whole units fit an unsigned 64-bit integer.
MAX_AMOUNT = Decimal(2**64) - PRECISION
# Plain digits with an optional fraction; either side of the point may be empty, not both.
AMOUNT_PATTERN = re.compile(r"(?=\.?\d)\d*(?:\.(?P<fraction>\d*))?", re.ASCII)

OUTPUT_HEADER = "client,available,held,total,locked"


def _log_parse_error(error: ParseError) -> None:
    logger.warning(f"Skipping malformed row: {error}")


def read_transactions(
    filepath: str,
    on_error: Optional[Callable[[ParseError], None]] = None,
) -> Iterator[Transaction]:
    """
    Lazily read transaction records from a CSV file.
    Malformed rows, including undecodable bytes, are passed to on_error
    (logged by default) and skipped.
    """
    on_error = on_error or _log_parse_error
    # Undecodable bytes become U+FFFD so the row fails validation instead of ending the stream.
    with open(filepath, "r", newline="", encoding="utf-8-sig", errors="replace") as f:
        reader = csv.DictReader(f)
        rows = iter(reader)
        while True:
            try:
                row = next(rows)
            except StopIteration:
                return
            except csv.Error as e:
                on_error(ParseError(f"unreadable row: {e}", line_number=reader.reader.line_num))
                continue

            try:
                yield parse_row(row, line_number=reader.line_num)
            except ParseError as e:
                on_error(e)


def parse_row(row: Dict[Optional[str], object], line_number: Optional[int] = None) -> Transaction:
    """Parse a CSV row into a Transaction, raising ParseError if it is malformed."""
    # Missing trailing columns come through as None; surplus columns under the None key.
    normalized = {k.strip(): (v or "").strip() for k, v in row.items() if isinstance(k, str)}

    type_str = normalized.get("type", "").lower()
    try:
        transaction_type = TransactionType(type_str)
    except ValueError:
        raise ParseError(f"unknown transaction type {type_str!r}", line_number=line_number) from None

    client_id = _parse_id(normalized, "client", MAX_CLIENT_ID, line_number)
    transaction_id = _parse_id(normalized, "tx", MAX_TRANSACTION_ID, line_number)

    amount = None
    if transaction_type.carries_amount:
        amount = _parse_amount(normalized.get("amount", ""), line_number, transaction_id, client_id)

    return Transaction(
        transaction_type=transaction_type,
        client_id=client_id,
        transaction_id=transaction_id,
        amount=amount,
    )


def _parse_id(normalized: Dict[str, str], column: str, upper_bound: int, line_number: Optional[int]) -> int:
    raw = normalized.get(column, "")
    if not (raw.isascii() and raw.isdigit()):
        raise ParseError(f"invalid {column} id {raw!r}", line_number=line_number)

    value = int(raw)
    if value > upper_bound:
        raise ParseError(f"{column} id {value} out of range 0..{upper_bound}", line_number=line_number)
    return value


def _parse_amount(raw: str, line_number: Optional[int], transaction_id: int, client_id: int) -> Decimal:
    context = {"line_number": line_number, "transaction_id": transaction_id, "client_id": client_id}
    if not raw:
        raise ParseError("missing amount", **context)
    if raw.startswith("-"):
        raise ParseError(f"amount {raw!r} is negative", **context)

    match = AMOUNT_PATTERN.fullmatch(raw)
    if match is None:
        raise ParseError(f"invalid amount {raw!r}", **context)
    if len((match.group("fraction") or "").rstrip("0")) > 4:
        raise ParseError(f"amount {raw!r} has more than 4 decimal places", **context)

    amount = Decimal(raw)
    if amount > MAX_AMOUNT:
        raise ParseError(f"amount {raw!r} exceeds maximum {MAX_AMOUNT}", **context)
    return amount


def format_decimal(value: Decimal) -> str:
    """Format decimal with exactly 4 decimal places."""
    with localcontext(LEDGER_DECIMAL_CONTEXT):
        return f"{value.quantize(PRECISION):f}"


def write_summaries(accounts: Iterable[ClientAccount], stream: TextIO) -> None:
    """Write one CSV row per account, in the order given."""
    print(OUTPUT_HEADER, file=stream)
    for account in accounts:
        print(
            f"{account.client_id},"
            f"{format_decimal(account.available)},"
            f"{format_decimal(account.held)},"
            f"{format_decimal(account.total)},"
            f"{str(account.locked).lower()}",
            file=stream,
        )


class PaymentsEngine:
    """
    Streams a CSV file through the transaction processor, one record at a time,
    and hands back the final account states.
    """

    def __init__(self, processor: Optional[TransactionProcessor] = None):
        self._processor = processor or TransactionProcessor()

    @property
    def processor(self) -> TransactionProcessor:
        return self._processor

    def process_file(self, filepath: str) -> Dict[int, ClientAccount]:
        """Process CSV file and return final account states keyed by client id."""
        logger.info(f"Processing transactions from {filepath}")

        transactions = read_transactions(filepath, on_error=self._processor.report_rejection)
        stats = self._processor.process_stream(transactions)

        logger.info(f"Processing complete. {stats}")
        return {account.client_id: account for account in self._processor.summaries()}
