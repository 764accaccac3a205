import pytest

from clinic_tools.errors import ValidationError
from clinic_tools.importer.csv_accounts import CsvRow
from clinic_tools.importer.planning import (
    ColumnMapping,
    RowValidationError,
    plan_import,
    summarize_plans,
)

MAPPING = ColumnMapping(
    columns={
        "Clinic": "name",
        "Org": "parent_org",
        "Street": "address_line1",
        "City": "city",
        "Contact": "primary_contact_name",
        "Site": "website",
    }
)


def _rows(*records):
    return [CsvRow(row_number=index, values=record) for index, record in enumerate(records, start=1)]


class TestColumnMapping:
    def test_requires_name_column(self):
        mapping = ColumnMapping(columns={"City": "city"})
        with pytest.raises(ValidationError, match="no name column mapped"):
            plan_import(_rows({"City": "Denver"}), mapping)

    def test_name_check_runs_before_rows_are_read(self):
        with pytest.raises(ValidationError, match="no name column mapped"):
            plan_import([], ColumnMapping(columns={}))

    def test_rejects_unknown_targets(self):
        mapping = ColumnMapping(columns={"Clinic": "name", "Color": "favorite_color"})
        with pytest.raises(ValidationError, match="favorite_color"):
            mapping.validate()

    def test_rejects_duplicate_targets(self):
        mapping = ColumnMapping(columns={"Clinic": "name", "Account": "name"})
        with pytest.raises(ValidationError, match="mapped more than once: name"):
            mapping.validate()

    def test_from_dict_ignores_unmapped_columns(self):
        mapping = ColumnMapping.from_dict({"Clinic": "name", "Notes": "", "Other": None})
        assert mapping.as_dict() == {"Clinic": "name"}

    def test_from_dict_rejects_non_objects(self):
        with pytest.raises(ValidationError):
            ColumnMapping.from_dict(["name"])

    def test_from_pairs(self):
        mapping = ColumnMapping.from_pairs(["Clinic Name=name", " Org = parent_org "])
        assert mapping.as_dict() == {"Clinic Name": "name", "Org": "parent_org"}
        assert mapping.column_for("parent_org") == "Org"

    def test_from_pairs_rejects_malformed_pairs(self):
        with pytest.raises(ValidationError, match="COLUMN=FIELD"):
            ColumnMapping.from_pairs(["Clinic Name"])


def test_without_parent_org_every_row_is_a_single_plan():
    mapping = ColumnMapping(columns={"Clinic": "name", "City": "city"})
    rows = _rows({"Clinic": "A", "City": "Denver"}, {"Clinic": "B", "City": "Austin"}, {"Clinic": "C"})

    plans = plan_import(rows, mapping)

    assert len(plans) == len(rows)
    assert all(len(plan.locations) == 1 for plan in plans)
    assert all(plan.account_type == "single_location" for plan in plans)
    assert [plan.account.name for plan in plans] == ["A", "B", "C"]


def test_parent_org_groups_case_insensitively():
    rows = _rows(
        {"Clinic": "Acme North", "Org": "Acme"},
        {"Clinic": "Acme South", "Org": "acme"},
        {"Clinic": "Beta Clinic", "Org": "Beta"},
    )

    plans = plan_import(rows, MAPPING)

    assert len(plans) == 2
    multi, single = plans
    assert multi.is_multi_location
    assert multi.account.name == "Acme"
    assert [location.name for location in multi.locations] == ["Acme North", "Acme South"]
    assert multi.row_numbers == [1, 2]
    assert single.account_type == "single_location"
    assert len(single.locations) == 1
    assert single.account.name == "Beta Clinic"


def test_plans_follow_first_occurrence_order():
    rows = _rows(
        {"Clinic": "Zeta One", "Org": "Zeta"},
        {"Clinic": "Loner"},
        {"Clinic": "Alpha One", "Org": "Alpha"},
        {"Clinic": "Zeta Two", "Org": " ZETA "},
        {"Clinic": "Alpha Two", "Org": "alpha"},
    )

    plans = plan_import(rows, MAPPING)

    assert [plan.group_key for plan in plans] == ["zeta", None, "alpha"]
    assert [plan.row_numbers for plan in plans] == [[1, 4], [2], [3, 5]]


def test_grouping_is_exact_not_fuzzy():
    rows = _rows({"Clinic": "A", "Org": "Acme Health"}, {"Clinic": "B", "Org": "Acme Heath"})
    plans = plan_import(rows, MAPPING)
    assert len(plans) == 2
    assert not any(plan.is_multi_location for plan in plans)


def test_multi_plan_locations_and_account_fields():
    rows = _rows(
        {"Clinic": "Acme North", "Org": "Acme", "Street": " 1 Main St ", "City": "Denver", "Contact": ""},
        {"Clinic": "Acme South", "Org": "Acme", "Street": "9 Oak Ave", "City": "Austin", "Contact": "Dr. Lee", "Site": "acme.example"},
    )

    plan = plan_import(rows, MAPPING)[0]

    first, second = plan.locations
    assert first.is_primary and not second.is_primary
    assert first.address_line1 == "1 Main St"
    assert second.city == "Austin"
    # Account fields take the first non-empty value across the group
    assert plan.account.primary_contact_name == "Dr. Lee"
    assert plan.account.website == "acme.example"
    # Multi-location accounts keep addresses on their locations only
    assert plan.account.address_line1 is None


def test_single_plan_copies_address_to_account():
    rows = _rows({"Clinic": "Solo", "Street": "5 Elm St", "City": "Omaha"})
    plan = plan_import(rows, MAPPING)[0]
    assert plan.account.address_line1 == "5 Elm St"
    assert plan.account.city == "Omaha"
    assert plan.locations[0].is_primary


def test_blank_name_falls_back_to_parent_org():
    rows = _rows({"Clinic": "  ", "Org": "Acme"})
    plan = plan_import(rows, MAPPING)[0]
    assert plan.account.name == "Acme"
    assert plan.locations[0].name == "Acme"


def test_rows_without_any_name_are_rejected_up_front():
    rows = _rows({"Clinic": "Good"}, {"Clinic": ""}, {"City": "Denver"})

    with pytest.raises(RowValidationError) as excinfo:
        plan_import(rows, MAPPING)

    assert excinfo.value.row_numbers == (2, 3)
    assert excinfo.value.to_dict()["rows"] == [2, 3]


def test_no_rows():
    with pytest.raises(ValidationError, match="No data rows"):
        plan_import([], MAPPING)


def test_plain_dict_rows_are_accepted():
    plans = plan_import([{"Clinic": "A"}, {"Clinic": "B"}], MAPPING)
    assert [plan.row_numbers for plan in plans] == [[1], [2]]


def test_summarize_plans():
    rows = _rows(
        {"Clinic": "Acme North", "Org": "Acme"},
        {"Clinic": "Acme South", "Org": "Acme"},
        {"Clinic": "Beta", "Org": "Beta"},
        {"Clinic": "Solo"},
    )

    summary = summarize_plans(plan_import(rows, MAPPING))

    assert summary["totalRows"] == 4
    assert summary["totalAccounts"] == 3
    assert summary["totalLocations"] == 4
    assert summary["multiLocationAccounts"] == 1
    assert summary["multiLocationRows"] == 2
    assert summary["singleAccountsFromGroups"] == 1
    assert summary["ungroupedSingles"] == 1
    assert summary["groups"] == [{"name": "Acme", "locationCount": 2}]


def test_plan_as_dict_uses_camel_case_keys():
    payload = plan_import(_rows({"Clinic": "Solo"}), MAPPING)[0].as_dict()
    assert payload["accountType"] == "single_location"
    assert payload["rowNumbers"] == [1]
    assert payload["locations"][0]["name"] == "Solo"
