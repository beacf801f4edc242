"""CSV loading and parsing modules."""

from .csv_parser import ColumnNames, Row, decode_csv_bytes, load_csv, parse_csv, rows_to_frame

__all__ = [
    "ColumnNames",
    "Row",
    "decode_csv_bytes",
    "load_csv",
    "parse_csv",
    "rows_to_frame",
]
