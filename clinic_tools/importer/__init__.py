"""Account CSV upload: header contract, file intake, grouping and persistence."""

from __future__ import annotations

from .contracts import ACCOUNT_CSV_FIELDS, FieldSpec, normalize_header, suggest_column_mapping
from .csv_accounts import AccountCSVAdapter, CSVHeaderError, CsvRow, rows_from_records
from .loader import ImportSummary, RevertSummary, list_uploads, load_import_plans, revert_upload
from .planning import AccountDraft, ColumnMapping, ImportPlan, LocationDraft, plan_import, summarize_plans

__all__ = [
    "ACCOUNT_CSV_FIELDS",
    "FieldSpec",
    "normalize_header",
    "suggest_column_mapping",
    "AccountCSVAdapter",
    "CSVHeaderError",
    "CsvRow",
    "rows_from_records",
    "ColumnMapping",
    "AccountDraft",
    "LocationDraft",
    "ImportPlan",
    "plan_import",
    "summarize_plans",
    "ImportSummary",
    "RevertSummary",
    "load_import_plans",
    "revert_upload",
    "list_uploads",
]
