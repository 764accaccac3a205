"""
Turn mapped CSV rows into account import plans.

Rows are grouped by an exact (trimmed, case-folded) parent organization
value: a parent shared by several rows becomes one multi-location account
with a location per row, everything else becomes a single-location account
with exactly one location. No fuzzy matching happens at import time; similar
accounts are reconciled afterwards with the duplicate finder and merge tool.

Planning is pure: nothing here touches the database.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Iterable, Mapping, Sequence

from clinic_tools.errors import ValidationError
from clinic_tools.importer.contracts import ACCOUNT_FIELD_KEYS, LOCATION_FIELD_KEYS, get_field_keys
from clinic_tools.importer.csv_accounts import CsvRow
from clinic_tools.matching.normalize import normalize_group_key
from clinic_tools.matching.records import MULTI_LOCATION, SINGLE_LOCATION

NAME_FIELD = "name"
GROUP_FIELD = "parent_org"


class RowValidationError(ValidationError):
    """Raised when specific upload rows cannot be imported."""

    def __init__(self, message: str, row_numbers: Sequence[int]) -> None:
        super().__init__(message)
        self.row_numbers = tuple(row_numbers)

    def to_dict(self) -> dict[str, object]:
        payload = super().to_dict()
        payload["rows"] = list(self.row_numbers)
        return payload


@dataclass(frozen=True)
class ColumnMapping:
    """CSV column name -> target field key."""

    columns: Mapping[str, str]

    @classmethod
    def from_dict(cls, raw: Mapping[str, object] | None) -> "ColumnMapping":
        """Build from request JSON; columns mapped to a blank target are ignored."""

        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise ValidationError("columnMapping must be an object of column -> field.")
        columns: dict[str, str] = {}
        for column, target in raw.items():
            if target is None:
                continue
            target_text = str(target).strip()
            if target_text:
                columns[str(column)] = target_text
        return cls(columns=columns)

    @classmethod
    def from_pairs(cls, pairs: Iterable[str]) -> "ColumnMapping":
        """Build from ``COLUMN=FIELD`` strings (command line form)."""

        columns: dict[str, str] = {}
        for pair in pairs:
            column, separator, target = pair.partition("=")
            if not separator or not column.strip() or not target.strip():
                raise ValidationError(f"Invalid column mapping '{pair}'. Expected COLUMN=FIELD.")
            columns[column.strip()] = target.strip()
        return cls(columns=columns)

    @property
    def targets(self) -> list[str]:
        return list(self.columns.values())

    def column_for(self, target: str) -> str | None:
        for column, mapped in self.columns.items():
            if mapped == target:
                return column
        return None

    def has_target(self, target: str) -> bool:
        return self.column_for(target) is not None

    def validate(self) -> None:
        if not self.has_target(NAME_FIELD):
            raise ValidationError("no name column mapped")

        known = set(get_field_keys())
        unknown = sorted({target for target in self.targets if target not in known})
        if unknown:
            raise ValidationError(f"Unknown target fields in column mapping: {', '.join(unknown)}.")

        seen: set[str] = set()
        duplicates: list[str] = []
        for target in self.targets:
            if target in seen and target not in duplicates:
                duplicates.append(target)
            seen.add(target)
        if duplicates:
            raise ValidationError(
                f"Each field may be mapped from one column only; mapped more than once: {', '.join(sorted(duplicates))}."
            )

    def as_dict(self) -> dict[str, str]:
        return dict(self.columns)


@dataclass
class AccountDraft:
    name: str
    account_type: str = SINGLE_LOCATION
    website: str | None = None
    industry: str | None = None
    primary_contact_name: str | None = None
    primary_contact_email: str | None = None
    primary_contact_phone: str | None = None
    notes: str | None = None
    external_code: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    phone: str | None = None
    email: str | None = None

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class LocationDraft:
    name: str
    row_number: int
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    phone: str | None = None
    email: str | None = None
    contact_name: str | None = None
    is_primary: bool = False

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


@dataclass
class ImportPlan:
    """One account to create, with its locations and the rows they came from."""

    account: AccountDraft
    locations: list[LocationDraft] = field(default_factory=list)
    row_numbers: list[int] = field(default_factory=list)
    group_key: str | None = None

    @property
    def account_type(self) -> str:
        return self.account.account_type

    @property
    def is_multi_location(self) -> bool:
        return self.account_type == MULTI_LOCATION

    def as_dict(self) -> dict[str, object]:
        return {
            "accountType": self.account_type,
            "groupKey": self.group_key,
            "rowNumbers": list(self.row_numbers),
            "account": self.account.as_dict(),
            "locations": [location.as_dict() for location in self.locations],
        }


@dataclass(frozen=True)
class _MappedRow:
    row_number: int
    fields: Mapping[str, str | None]

    def get(self, key: str) -> str | None:
        return self.fields.get(key)


def _clean(value: object | None) -> str | None:
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    text = text.strip()
    return text or None


def _as_csv_rows(rows: Iterable[CsvRow | Mapping[str, object | None]]) -> list[CsvRow]:
    prepared: list[CsvRow] = []
    for index, row in enumerate(rows, start=1):
        if isinstance(row, CsvRow):
            prepared.append(row)
        elif isinstance(row, Mapping):
            prepared.append(CsvRow(row_number=index, values={str(key): value for key, value in row.items()}))
        else:
            raise ValidationError(f"Row {index}: expected a mapping of column values.")
    return prepared


def _map_row(row: CsvRow, mapping: ColumnMapping) -> _MappedRow:
    fields = {target: _clean(row.get(column)) for column, target in mapping.columns.items()}
    return _MappedRow(row_number=row.row_number, fields=fields)


def _row_name(row: _MappedRow) -> str | None:
    return row.get(NAME_FIELD) or row.get(GROUP_FIELD)


def _location_from_row(row: _MappedRow, name: str, *, is_primary: bool) -> LocationDraft:
    return LocationDraft(
        name=name,
        row_number=row.row_number,
        address_line1=row.get("address_line1"),
        address_line2=row.get("address_line2"),
        city=row.get("city"),
        state=row.get("state"),
        zip_code=row.get("zip_code"),
        country=row.get("country"),
        phone=row.get("phone"),
        email=row.get("email"),
        contact_name=row.get("primary_contact_name"),
        is_primary=is_primary,
    )


def _single_plan(row: _MappedRow, group_key: str | None) -> ImportPlan:
    name = _row_name(row) or ""
    account_values = {key: row.get(key) for key in ACCOUNT_FIELD_KEYS if key != NAME_FIELD}
    # Single accounts keep an account-level copy of their address
    address_values = {key: row.get(key) for key in LOCATION_FIELD_KEYS}
    account = AccountDraft(name=name, account_type=SINGLE_LOCATION, **account_values, **address_values)
    return ImportPlan(
        account=account,
        locations=[_location_from_row(row, name, is_primary=True)],
        row_numbers=[row.row_number],
        group_key=group_key,
    )


def _multi_plan(rows: Sequence[_MappedRow], group_key: str) -> ImportPlan:
    first = rows[0]
    account_values: dict[str, str | None] = {}
    for key in ACCOUNT_FIELD_KEYS:
        if key == NAME_FIELD:
            continue
        account_values[key] = next((row.get(key) for row in rows if row.get(key)), None)

    account = AccountDraft(name=first.get(GROUP_FIELD) or "", account_type=MULTI_LOCATION, **account_values)
    locations = [
        _location_from_row(row, _row_name(row) or "", is_primary=index == 0) for index, row in enumerate(rows)
    ]
    return ImportPlan(
        account=account,
        locations=locations,
        row_numbers=[row.row_number for row in rows],
        group_key=group_key,
    )


def plan_import(rows: Iterable[CsvRow | Mapping[str, object | None]], mapping: ColumnMapping) -> list[ImportPlan]:
    """
    Group mapped rows into account plans.

    Raises ``ValidationError`` when no column is mapped to ``name``, the
    mapping names unknown or repeated targets, there are no rows, or any row
    lacks a usable name. Plans come back in first-occurrence order of their
    grouping key.
    """

    mapping.validate()
    csv_rows = _as_csv_rows(rows)
    if not csv_rows:
        raise ValidationError("No data rows to import.")

    mapped = [_map_row(row, mapping) for row in csv_rows]
    missing = [row.row_number for row in mapped if not _row_name(row)]
    if missing:
        raise RowValidationError(
            "Account name is required; missing on rows: " + ", ".join(str(number) for number in missing) + ".",
            missing,
        )

    grouping = mapping.has_target(GROUP_FIELD)
    buckets: dict[str, list[_MappedRow]] = {}
    for index, row in enumerate(mapped):
        key = normalize_group_key(row.get(GROUP_FIELD)) if grouping else ""
        bucket_key = f"group:{key}" if key else f"row:{index}"
        buckets.setdefault(bucket_key, []).append(row)

    plans: list[ImportPlan] = []
    for bucket_key, bucket in buckets.items():
        group_key = bucket_key.partition(":")[2] if bucket_key.startswith("group:") else None
        if group_key is not None and len(bucket) > 1:
            plans.append(_multi_plan(bucket, group_key))
        else:
            plans.append(_single_plan(bucket[0], group_key))
    return plans


def summarize_plans(plans: Sequence[ImportPlan]) -> dict[str, object]:
    """Counts shown in the upload preview."""

    multi = [plan for plan in plans if plan.is_multi_location]
    return {
        "totalRows": sum(len(plan.row_numbers) for plan in plans),
        "totalAccounts": len(plans),
        "totalLocations": sum(len(plan.locations) for plan in plans),
        "multiLocationAccounts": len(multi),
        "multiLocationRows": sum(len(plan.row_numbers) for plan in multi),
        "singleAccountsFromGroups": sum(1 for plan in plans if not plan.is_multi_location and plan.group_key),
        "ungroupedSingles": sum(1 for plan in plans if plan.group_key is None),
        "groups": [{"name": plan.account.name, "locationCount": len(plan.locations)} for plan in multi],
    }


__all__ = [
    "ColumnMapping",
    "AccountDraft",
    "LocationDraft",
    "ImportPlan",
    "RowValidationError",
    "plan_import",
    "summarize_plans",
]
