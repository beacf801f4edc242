"""Parse multi-stock daily price CSV text into typed rows."""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

import pandas as pd

from stockgru.errors import FormatError
from stockgru.utils.logger import setup_logger

logger = setup_logger("csv_parser")

_STRIP_CHARS = "\"' \t\r"


@dataclass(frozen=True)
class Row:
    date: str
    symbol: str
    open: float
    close: float


@dataclass(frozen=True)
class ColumnNames:
    """Header names for the four required columns (matched case-sensitively)."""

    date: str = "Date"
    symbol: str = "Symbol"
    open: str = "Open"
    close: str = "Close"

    @classmethod
    def from_mapping(cls, mapping: Dict[str, str] | None) -> "ColumnNames":
        mapping = mapping or {}
        defaults = cls()
        return cls(
            date=mapping.get("date", defaults.date),
            symbol=mapping.get("symbol", defaults.symbol),
            open=mapping.get("open", defaults.open),
            close=mapping.get("close", defaults.close),
        )

    def required(self) -> Sequence[str]:
        return (self.date, self.symbol, self.open, self.close)


def _clean_field(value: str) -> str:
    return value.strip(_STRIP_CHARS)


def _parse_price(value: str) -> float | None:
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_csv(text: str, columns: ColumnNames | None = None) -> List[Row]:
    """
    Parse CSV text into rows of ``(date, symbol, open, close)``.

    The first line is the header and must contain all four required columns.
    Data lines with the wrong number of fields or non-numeric prices are skipped.
    """
    columns = columns or ColumnNames()
    lines = text.strip().splitlines()
    if len(lines) < 2:
        raise FormatError("CSV must contain a header row and at least one data row.")

    header = [_clean_field(field) for field in lines[0].split(",")]
    missing = [name for name in columns.required() if name not in header]
    if missing:
        raise FormatError(f"CSV is missing required columns: {', '.join(missing)}")

    date_idx = header.index(columns.date)
    symbol_idx = header.index(columns.symbol)
    open_idx = header.index(columns.open)
    close_idx = header.index(columns.close)

    rows: List[Row] = []
    skipped = 0
    for line_no, line in enumerate(lines[1:], start=2):
        if not line.strip():
            continue
        fields = [_clean_field(field) for field in line.split(",")]
        if len(fields) != len(header):
            logger.warning(
                "Skipping row with mismatched field count",
                extra={"line": line_no, "expected": len(header), "found": len(fields)},
            )
            skipped += 1
            continue

        open_price = _parse_price(fields[open_idx])
        close_price = _parse_price(fields[close_idx])
        if open_price is None or close_price is None:
            logger.warning("Skipping row with non-numeric prices", extra={"line": line_no})
            skipped += 1
            continue

        date, symbol = fields[date_idx], fields[symbol_idx]
        if not date or not symbol:
            logger.warning("Skipping row without date or symbol", extra={"line": line_no})
            skipped += 1
            continue

        rows.append(Row(date=date, symbol=symbol, open=open_price, close=close_price))

    logger.info("Parsed CSV", extra={"rows": len(rows), "skipped": skipped})
    return rows


def decode_csv_bytes(data: bytes) -> str:
    """Decode an uploaded payload as UTF-8, tolerating a byte-order mark."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise FormatError("CSV file must be UTF-8 encoded text.") from exc


def load_csv(path: str | Path, columns: ColumnNames | None = None) -> List[Row]:
    """Read a UTF-8 CSV file from disk and parse it."""
    csv_path = Path(path)
    return parse_csv(decode_csv_bytes(csv_path.read_bytes()), columns=columns)


def rows_to_frame(rows: Sequence[Row]) -> pd.DataFrame:
    """Return rows as a long-format dataframe with date, symbol, open, close columns."""
    return pd.DataFrame(
        {
            "date": [row.date for row in rows],
            "symbol": [row.symbol for row in rows],
            "open": [row.open for row in rows],
            "close": [row.close for row in rows],
        }
    )
