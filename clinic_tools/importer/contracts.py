"""Account CSV upload contract.

Single source of truth for the target fields a CSV column can be mapped to,
shared by the upload routes, the CLI and the import planner.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping, Tuple

FIELD_GROUPS: Tuple[str, ...] = ("grouping", "account", "location")


@dataclass(frozen=True)
class FieldSpec:
    """Metadata describing an account upload target field."""

    key: str
    label: str
    group: str
    required: bool = False
    aliases: Tuple[str, ...] = ()

    def headers(self) -> Tuple[str, ...]:
        """Return the key, label and aliases used for header auto-mapping."""

        return (self.key, self.label, *self.aliases)

    def as_dict(self) -> dict[str, object]:
        return {"key": self.key, "label": self.label, "required": self.required, "group": self.group}


ACCOUNT_CSV_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(
        key="parent_org",
        label="Parent Organization",
        group="grouping",
        aliases=("parent", "parent_org_name", "organization", "group", "org"),
    ),
    FieldSpec(
        key="name",
        label="Account/Location Name",
        group="account",
        required=True,
        aliases=("account", "account_name", "clinic", "clinic_name", "company", "location", "location_name", "branch"),
    ),
    FieldSpec(key="website", label="Website", group="account", aliases=("url", "web")),
    FieldSpec(key="industry", label="Industry", group="account"),
    FieldSpec(key="primary_contact_name", label="Contact Name", group="account", aliases=("contact",)),
    FieldSpec(key="primary_contact_email", label="Contact Email", group="account"),
    FieldSpec(key="primary_contact_phone", label="Contact Phone", group="account"),
    FieldSpec(key="notes", label="Notes", group="account", aliases=("comments",)),
    FieldSpec(key="external_code", label="Sage Code", group="account", aliases=("sage_code", "sage")),
    FieldSpec(key="address_line1", label="Address Line 1", group="location", aliases=("address", "address1", "street")),
    FieldSpec(key="address_line2", label="Address Line 2", group="location", aliases=("address2", "suite")),
    FieldSpec(key="city", label="City", group="location"),
    FieldSpec(key="state", label="State", group="location", aliases=("province", "region")),
    FieldSpec(key="zip_code", label="ZIP Code", group="location", aliases=("zip", "postal_code", "postcode")),
    FieldSpec(key="country", label="Country", group="location"),
    FieldSpec(key="phone", label="Phone", group="location", aliases=("phone_number", "telephone")),
    FieldSpec(key="email", label="Email", group="location", aliases=("email_address",)),
)

ACCOUNT_FIELD_KEYS: Tuple[str, ...] = tuple(spec.key for spec in ACCOUNT_CSV_FIELDS if spec.group == "account")
LOCATION_FIELD_KEYS: Tuple[str, ...] = tuple(spec.key for spec in ACCOUNT_CSV_FIELDS if spec.group == "location")


def get_field_keys() -> Tuple[str, ...]:
    """Return every target field a CSV column may be mapped to."""

    return tuple(spec.key for spec in ACCOUNT_CSV_FIELDS)


def get_field_spec(key: str) -> FieldSpec | None:
    return next((spec for spec in ACCOUNT_CSV_FIELDS if spec.key == key), None)


def normalize_header(header: str) -> str:
    """Normalize a CSV header for comparison (case/space/underscore agnostic)."""

    token = header.strip().lstrip("\ufeff").lower()
    for char in (" ", "-", ".", "/"):
        token = token.replace(char, "_")
    while "__" in token:
        token = token.replace("__", "_")
    return token.strip("_")


def get_alias_map() -> Mapping[str, str]:
    """Map normalized header tokens to target field keys (includes labels and aliases)."""

    mapping: dict[str, str] = {}
    for spec in ACCOUNT_CSV_FIELDS:
        for header in spec.headers():
            mapping.setdefault(normalize_header(header), spec.key)
    return mapping


def _compact(token: str) -> str:
    return token.replace("_", "")


def _guess_field(header: str, taken: set[str]) -> str | None:
    token = normalize_header(header)
    if not token:
        return None

    exact = get_alias_map().get(token)
    if exact is not None:
        return exact if exact not in taken else None

    # Substring match on the compacted forms; the longest contained header wins
    compact = _compact(token)
    best: tuple[int, str] | None = None
    for spec in ACCOUNT_CSV_FIELDS:
        if spec.key in taken:
            continue
        for candidate in spec.headers():
            candidate_compact = _compact(normalize_header(candidate))
            if len(candidate_compact) < 4 or candidate_compact not in compact:
                continue
            if best is None or len(candidate_compact) > best[0]:
                best = (len(candidate_compact), spec.key)
    return best[1] if best else None


def suggest_column_mapping(headers: Iterable[str]) -> dict[str, str]:
    """
    Propose a CSV column -> target field mapping from header names.

    Exact matches on a field's key, label or alias win over substring
    matches, and each target field is suggested at most once. Columns
    without a plausible target are left out of the result.
    """

    header_list = [header for header in headers if header is not None]
    suggestions: dict[str, str] = {}
    taken: set[str] = set()

    alias_map = get_alias_map()
    for header in header_list:
        field = alias_map.get(normalize_header(header))
        if field is not None and field not in taken:
            suggestions[header] = field
            taken.add(field)

    for header in header_list:
        if header in suggestions:
            continue
        field = _guess_field(header, taken)
        if field is not None:
            suggestions[header] = field
            taken.add(field)
    return suggestions


__all__ = [
    "FieldSpec",
    "FIELD_GROUPS",
    "ACCOUNT_CSV_FIELDS",
    "ACCOUNT_FIELD_KEYS",
    "LOCATION_FIELD_KEYS",
    "get_field_keys",
    "get_field_spec",
    "get_alias_map",
    "normalize_header",
    "suggest_column_mapping",
]
