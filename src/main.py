import sys
import logging

from payments_engine import PaymentsEngine, write_summaries

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv

    logging.basicConfig(
        level=logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    if len(argv) != 1:
        print("Usage: python main.py <transactions.csv>", file=sys.stderr)
        return 1

    filepath = argv[0]
    engine = PaymentsEngine()
    try:
        accounts = engine.process_file(filepath)
    except OSError as e:
        logger.error(f"Cannot read {filepath}: {e}")
        return 1

    write_summaries(accounts.values(), sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
