"""CSV adapter for account uploads.

Reads an uploaded CSV into ``CsvRow`` values keyed by the file's own column
names. Columns are mapped to target fields later (``ColumnMapping``), so the
adapter only checks that the header row is usable: present, non-empty and
free of duplicate column names.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from typing import IO, Iterator, Mapping, Sequence

from clinic_tools.errors import ValidationError


class CSVAdapterError(ValidationError):
    """Base exception for CSV adapter failures."""


class CSVHeaderError(CSVAdapterError):
    """Raised when the CSV header row cannot be used for an upload."""

    def __init__(self, *, empty: bool = False, blank: Sequence[int] | None = None, duplicates: Sequence[str] | None = None) -> None:
        details: list[str] = []
        if empty:
            details.append("The file has no header row.")
        if blank:
            details.append("Blank column names at positions: " + ", ".join(str(position) for position in blank) + ".")
        if duplicates:
            details.append(
                "Duplicate columns detected: "
                + ", ".join(sorted(duplicates))
                + ". Ensure each column name appears only once."
            )

        message = "CSV header validation failed. " + " ".join(details) if details else "CSV header validation failed."
        super().__init__(message)
        self.empty = empty
        self.blank = tuple(blank or ())
        self.duplicates = tuple(duplicates or ())


class CSVRowLimitError(CSVAdapterError):
    """Raised when an upload has more data rows than the configured maximum."""

    def __init__(self, limit: int) -> None:
        super().__init__(f"CSV upload exceeds the maximum of {limit} rows.")
        self.limit = limit


@dataclass(frozen=True)
class CsvRow:
    """One data row of an upload: ``column -> raw cell text`` plus its 1-based row number."""

    row_number: int
    values: Mapping[str, str | None]
    source_line: int | None = None

    def get(self, column: str) -> str | None:
        return self.values.get(column)


@dataclass
class AccountCSVStatistics:
    """Accumulated statistics from CSV parsing."""

    rows_processed: int = 0
    rows_skipped_blank: int = 0
    columns: tuple[str, ...] = field(default_factory=tuple)


def _sanitize_header(header: str | None) -> str:
    token = (header or "").strip()
    return token.lstrip("\ufeff")


def _validate_headers(raw_headers: Sequence[str | None]) -> tuple[str, ...]:
    headers = tuple(_sanitize_header(header) for header in raw_headers)
    if not headers:
        raise CSVHeaderError(empty=True)

    blank = [position for position, header in enumerate(headers, start=1) if not header]
    seen: set[str] = set()
    duplicates: list[str] = []
    for header in headers:
        if not header:
            continue
        if header in seen and header not in duplicates:
            duplicates.append(header)
        seen.add(header)

    # A trailing empty column (e.g. "a,b,") is common in spreadsheet exports
    if blank == [len(headers)] and len(headers) > 1 and not duplicates:
        return headers
    if blank or duplicates:
        raise CSVHeaderError(blank=blank, duplicates=duplicates)
    return headers


def _row_is_blank(row: Mapping[str, object | None]) -> bool:
    return all((value is None or (isinstance(value, str) and value.strip() == "")) for value in row.values())


class AccountCSVAdapter:
    """CSV reader for account upload files."""

    def __init__(self, file_obj: IO[str], *, skip_blank_rows: bool = True, max_rows: int | None = None) -> None:
        self._file_obj = file_obj
        self.skip_blank_rows = skip_blank_rows
        self.max_rows = max_rows
        self._headers: tuple[str, ...] | None = None
        self.statistics = AccountCSVStatistics()

    @property
    def headers(self) -> tuple[str, ...] | None:
        return self._headers

    def _prepare_reader(self) -> csv.DictReader:
        self._file_obj.seek(0)
        reader = csv.DictReader(self._file_obj)
        if reader.fieldnames is None:
            raise CSVHeaderError(empty=True)

        headers = _validate_headers(reader.fieldnames)
        reader.fieldnames = list(headers)
        self._headers = tuple(header for header in headers if header)
        self.statistics.columns = self._headers
        return reader

    def iter_rows(self) -> Iterator[CsvRow]:
        reader = self._prepare_reader()
        for row_number, raw_row in enumerate(reader, start=1):
            # Extra cells beyond the header land under the ``None`` key
            values = {key: value for key, value in raw_row.items() if key}

            if self.skip_blank_rows and _row_is_blank(values):
                self.statistics.rows_skipped_blank += 1
                continue

            if self.max_rows is not None and self.statistics.rows_processed >= self.max_rows:
                raise CSVRowLimitError(self.max_rows)

            self.statistics.rows_processed += 1
            yield CsvRow(row_number=row_number, values=values, source_line=reader.line_num)

    def read_rows(self) -> list[CsvRow]:
        return list(self.iter_rows())


def rows_from_records(records: Sequence[Mapping[str, object | None]]) -> list[CsvRow]:
    """Wrap already-parsed JSON records (one dict per row) as ``CsvRow`` values."""

    rows: list[CsvRow] = []
    for row_number, record in enumerate(records, start=1):
        if not isinstance(record, Mapping):
            raise ValidationError(f"Row {row_number}: expected an object of column values.")
        values = {str(key): (None if value is None else str(value)) for key, value in record.items()}
        rows.append(CsvRow(row_number=row_number, values=values))
    return rows


__all__ = [
    "AccountCSVAdapter",
    "AccountCSVStatistics",
    "CSVAdapterError",
    "CSVHeaderError",
    "CSVRowLimitError",
    "CsvRow",
    "rows_from_records",
]
