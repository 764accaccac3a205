"""
Tests for MergeService.

Covers survivor selection, location and child re-parenting, optimistic
version checks and rollback on failure.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError

from clinic_tools.errors import MergeError, NotFoundError, ValidationError
from clinic_tools.models import (
    Account,
    AccountType,
    Activity,
    Agreement,
    ChangeActionType,
    ChangeLogEntry,
    Location,
    LocationContact,
    Note,
    db,
)
from clinic_tools.services.merge_service import MergeService, select_survivor


def _utc(year, month=1, day=1):
    return datetime(year, month, day, tzinfo=timezone.utc)


@pytest.fixture
def merge_service(app):
    """Create a MergeService bound to the app session."""
    return MergeService()


@pytest.fixture
def three_accounts(make_account):
    """A (2020) with 2 locations, B (2019) with 1, C (2021) with 3."""
    account_a = make_account(
        "Smith Clinic",
        created_at=_utc(2020),
        locations=[{"name": "A1", "city": "Denver"}, {"name": "A2", "city": "Boulder"}],
    )
    account_b = make_account("Smith Clinic LLC", created_at=_utc(2019), locations=[{"name": "B1", "city": "Austin"}])
    account_c = make_account(
        "Smith Clinic Inc",
        created_at=_utc(2021),
        locations=[{"name": "C1"}, {"name": "C2"}, {"name": "C3"}],
    )
    return account_a, account_b, account_c


class TestPlanMerge:
    @pytest.mark.parametrize("account_ids", [[], ["only-one"], ["same", "same"], [None, " "]])
    def test_requires_two_distinct_ids(self, merge_service, account_ids):
        with pytest.raises(ValidationError, match="At least 2 account IDs"):
            merge_service.plan_merge(account_ids)

    def test_oldest_account_is_the_survivor(self, merge_service, three_accounts):
        account_a, account_b, account_c = three_accounts

        plan = merge_service.plan_merge([account_a.id, account_b.id, account_c.id])

        assert plan.survivor_id == account_b.id
        assert plan.donor_ids == [account_a.id, account_c.id]
        assert plan.projected_location_count == 6
        assert plan.versions == {account_a.id: 1, account_b.id: 1, account_c.id: 1}

    def test_plan_lists_everything_that_moves(self, merge_service, make_account):
        survivor = make_account("Old", created_at=_utc(2018))
        donor = make_account("New", created_at=_utc(2022), locations=[{"name": "New Site"}])
        site = donor.locations[0]
        contact = LocationContact(location=site, name="Dr. Lee")
        agreement = Agreement(account=donor, title="Referral deal")
        note = Note(account=donor, location=site, content="Call back")
        db.session.add_all([contact, agreement, note])
        db.session.commit()

        plan = merge_service.plan_merge([donor.id, survivor.id])

        donor_plan = plan.donors[0]
        assert donor_plan.location_ids == [site.id]
        assert donor_plan.contact_ids == [contact.id]
        assert donor_plan.agreement_ids == [agreement.id]
        assert donor_plan.note_ids == [note.id]
        assert donor_plan.activity_ids == []
        assert plan.as_dict()["donors"][0]["accountName"] == "New"

    def test_missing_account_raises_not_found(self, merge_service, make_account):
        account = make_account("Real Clinic")
        with pytest.raises(NotFoundError, match="missing-id"):
            merge_service.plan_merge([account.id, "missing-id"])

    def test_missing_created_at_is_an_error(self, merge_service, make_account):
        dated = make_account("Dated")
        undated = make_account("Undated")
        undated.created_at = None
        db.session.commit()

        with pytest.raises(MergeError) as excinfo:
            merge_service.plan_merge([dated.id, undated.id])

        assert excinfo.value.step == "select survivor"
        assert undated.id in excinfo.value.message


def test_select_survivor_breaks_ties_by_smallest_id(make_account):
    first = make_account("One", created_at=_utc(2020))
    second = make_account("Two", created_at=_utc(2020))
    expected = min(first.id, second.id)
    assert select_survivor([first, second]).id == expected


class TestExecuteMerge:
    def test_donor_locations_move_and_donors_are_deleted(self, merge_service, three_accounts):
        account_a, account_b, account_c = three_accounts
        donor_location_ids = {location.id for location in account_a.locations + account_c.locations}
        survivor_id = account_b.id
        donor_ids = [account_a.id, account_c.id]

        result = merge_service.merge_accounts([account_a.id, account_b.id, account_c.id])

        assert result.survivor_id == survivor_id
        assert result.locations_reparented == 5
        assert result.location_count == 6
        assert result.account_type == "multi_location"

        for donor_id in donor_ids:
            assert db.session.get(Account, donor_id) is None
        survivor = db.session.get(Account, survivor_id)
        assert survivor.account_type == AccountType.MULTI_LOCATION
        assert {location.id for location in survivor.locations} >= donor_location_ids
        assert Location.query.filter(Location.account_id != survivor_id).count() == 0

    def test_single_primary_after_merge(self, merge_service, three_accounts):
        account_a, account_b, account_c = three_accounts

        merge_service.merge_accounts([account_a.id, account_b.id, account_c.id])

        survivor = db.session.get(Account, account_b.id)
        primaries = [location.name for location in survivor.locations if location.is_primary]
        assert primaries == ["B1"]

    def test_children_are_reparented(self, merge_service, make_account):
        survivor = make_account("Old", created_at=_utc(2018), locations=[{"name": "Old Site"}])
        donor = make_account("New", created_at=_utc(2022), locations=[{"name": "New Site"}])
        site = donor.locations[0]
        db.session.add_all(
            [
                LocationContact(location=site, name="Dr. Lee"),
                Agreement(account=donor, title="Referral deal"),
                Activity(account=donor, location=site, subject="Intro call"),
                Note(account=donor, content="Prefers email"),
            ]
        )
        db.session.commit()
        survivor_id = survivor.id

        result = merge_service.merge_accounts([survivor.id, donor.id])

        assert result.children_reparented == {"agreements": 1, "activities": 1, "notes": 1}
        assert Agreement.query.one().account_id == survivor_id
        assert Activity.query.one().account_id == survivor_id
        assert Note.query.one().account_id == survivor_id
        contact = LocationContact.query.one()
        assert contact.location.account_id == survivor_id

    def test_accounts_without_locations_get_one_from_their_address(self, merge_service, make_account):
        survivor = make_account("Old", created_at=_utc(2018), address_line1="1 Main St", city="Denver")
        donor = make_account("New", created_at=_utc(2022), city="Austin")
        survivor_id = survivor.id

        result = merge_service.merge_accounts([survivor.id, donor.id])

        assert result.locations_created == 2
        assert result.location_count == 2
        survivor = db.session.get(Account, survivor_id)
        assert sorted(location.city for location in survivor.locations) == ["Austin", "Denver"]
        assert sum(1 for location in survivor.locations if location.is_primary) == 1

    def test_survivor_blanks_are_filled_from_donors(self, merge_service, make_account):
        survivor = make_account("Old", created_at=_utc(2018), website="old.example")
        donor = make_account("New", created_at=_utc(2022), website="new.example", phone="555-0100")
        survivor_id = survivor.id

        merge_service.merge_accounts([survivor.id, donor.id])

        survivor = db.session.get(Account, survivor_id)
        assert survivor.website == "old.example"
        assert survivor.phone == "555-0100"
        assert survivor.name == "Old"

    def test_merge_writes_change_log(self, merge_service, make_account, admin_user):
        survivor = make_account("Old", created_at=_utc(2018))
        donor = make_account("New", created_at=_utc(2022))
        donor_id = donor.id

        merge_service.merge_accounts([survivor.id, donor.id], user_id=admin_user.id)

        entry = ChangeLogEntry.query.filter_by(action_type=ChangeActionType.MERGE_ACCOUNTS).one()
        assert entry.entity_id == survivor.id
        assert entry.user_id == admin_user.id
        assert entry.details["donors"] == [{"id": donor_id, "name": "New"}]

    def test_concurrent_modification_aborts_the_merge(self, merge_service, make_account):
        survivor = make_account("Old", created_at=_utc(2018))
        donor = make_account("New", created_at=_utc(2022), locations=[{"name": "New Site"}])
        plan = merge_service.plan_merge([survivor.id, donor.id])

        # Another writer renames the donor after the plan was computed
        donor.name = "Renamed"
        db.session.commit()

        with pytest.raises(MergeError) as excinfo:
            merge_service.execute_merge(plan)

        assert excinfo.value.message == "concurrent modification"
        assert excinfo.value.step == "verify versions"
        assert db.session.get(Account, donor.id) is not None
        assert Location.query.one().account_id == donor.id
        assert ChangeLogEntry.query.count() == 0

    def test_failure_rolls_back_every_step(self, merge_service, three_accounts, monkeypatch):
        account_a, account_b, account_c = three_accounts
        ids = [account_a.id, account_b.id, account_c.id]

        def _boom(*args, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr("clinic_tools.services.merge_service.log_change", _boom)

        with pytest.raises(MergeError) as excinfo:
            merge_service.merge_accounts(ids)

        assert excinfo.value.step == "write change log"
        assert Account.query.count() == 3
        for account_id, expected in zip(ids, (2, 1, 3)):
            assert Location.query.filter_by(account_id=account_id).count() == expected
        assert db.session.get(Account, account_a.id).account_type == AccountType.MULTI_LOCATION
        assert db.session.get(Account, account_b.id).account_type == AccountType.SINGLE_LOCATION

    def test_unexpected_error_is_reported_as_merge_error(self, merge_service, three_accounts, monkeypatch):
        account_a, account_b, account_c = three_accounts

        def _boom(*args, **kwargs):
            raise RuntimeError("serializer exploded")

        monkeypatch.setattr("clinic_tools.services.merge_service.log_change", _boom)

        with pytest.raises(MergeError) as excinfo:
            merge_service.merge_accounts([account_a.id, account_b.id, account_c.id])

        assert excinfo.value.step == "write change log"
        assert "serializer exploded" in excinfo.value.message
        assert Account.query.count() == 3
        assert Location.query.filter_by(account_id=account_b.id).count() == 1

    def test_account_deleted_after_planning(self, merge_service, make_account):
        survivor = make_account("Old", created_at=_utc(2018))
        donor = make_account("New", created_at=_utc(2022))
        plan = merge_service.plan_merge([survivor.id, donor.id])

        db.session.delete(donor)
        db.session.commit()

        with pytest.raises(NotFoundError):
            merge_service.execute_merge(plan)
