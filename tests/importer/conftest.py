import pytest

from clinic_tools.importer.csv_accounts import CsvRow
from clinic_tools.importer.planning import ColumnMapping, plan_import


@pytest.fixture
def upload_mapping():
    return ColumnMapping(
        columns={
            "Clinic": "name",
            "Parent": "parent_org",
            "Street": "address_line1",
            "City": "city",
            "State": "state",
            "Zip": "zip_code",
            "Country": "country",
        }
    )


@pytest.fixture
def upload_plans(upload_mapping):
    """Three accounts: one multi-location (two rows) and two single-location"""
    records = [
        {"Clinic": "Acme North", "Parent": "Acme", "Street": "1 Main St", "City": "Denver", "State": "CO", "Zip": "80202"},
        {"Clinic": "Acme South", "Parent": "acme", "Street": "2 Main St", "City": "Denver", "State": "CO", "Zip": "80203"},
        {"Clinic": "Beta Clinic", "Parent": "", "Street": "3 Oak Ave", "City": "Austin", "State": "TX", "Country": "USA"},
        {"Clinic": "Gamma Clinic", "Parent": "", "City": "Toronto", "Country": "Canada"},
    ]
    rows = [CsvRow(row_number=index, values=record) for index, record in enumerate(records, start=1)]
    return plan_import(rows, upload_mapping)
