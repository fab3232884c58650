from __future__ import annotations

import logging
from csv import DictReader
from pathlib import Path

from domain.ledger import Transaction
from domain.records import TransactionRecord, normalize_records

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = {"id", "date", "type"}


class CsvTransactionImporter:
    """Read a transaction-store CSV export.

    Expected columns: id,date,type,received_amount,received_currency,sent_amount,sent_currency,
    fee_amount,fee_currency,price (``unit_price`` is accepted instead of ``price``).
    Empty cells are treated as missing values.
    """

    def __init__(self, source_path: str | Path) -> None:
        self._source_path = Path(source_path)

    def load_records(self) -> list[TransactionRecord]:
        records: list[TransactionRecord] = []
        with self._source_path.open(encoding="utf-8", newline="") as handle:
            reader = DictReader(handle)
            if reader.fieldnames is None:
                raise ValueError(f"Transaction CSV {self._source_path} is empty or missing headers")

            missing = REQUIRED_COLUMNS - {name.strip() for name in reader.fieldnames}
            if missing:
                raise ValueError(
                    f"Transaction CSV {self._source_path} missing required columns: {', '.join(sorted(missing))}"
                )

            for row in reader:
                cleaned = {key.strip(): value for key, value in row.items() if key is not None}
                records.append(TransactionRecord.model_validate(cleaned))

        logger.info("Read %d transaction rows from %s", len(records), self._source_path)
        return records

    def load_transactions(self) -> list[Transaction]:
        return normalize_records(self.load_records())
