"""
Merge service for collapsing duplicate accounts into one survivor.

The backend of the data-tools merge screen: an operator picks two or more
accounts, ``plan_merge`` describes what will happen and ``execute_merge``
applies it in a single transaction.

Survivor rule: the account with the oldest ``created_at`` survives; ties go
to the lexicographically smallest id. Every other account is a donor. Donor
locations move to the survivor unchanged (no location dedup), donor
agreements, activities and notes are re-pointed at the survivor, and the
donors are deleted. Any failure rolls the whole merge back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Sequence

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from clinic_tools.errors import ClinicToolsError, MergeError, NotFoundError, ValidationError
from clinic_tools.models import (
    Account,
    AccountType,
    Activity,
    Agreement,
    ChangeActionType,
    Location,
    LocationContact,
    LocationStatus,
    Note,
    db,
)
from clinic_tools.services.change_log import log_change

logger = logging.getLogger(__name__)

CHILD_MODELS = (("agreements", Agreement), ("activities", Activity), ("notes", Note))

# Survivor blanks are filled from donors (oldest first) for these columns
FILLABLE_FIELDS = (
    "external_code",
    "website",
    "industry",
    "primary_contact_name",
    "primary_contact_email",
    "primary_contact_phone",
    "phone",
    "email",
)


@dataclass
class DonorPlan:
    """Everything that moves off one donor account."""

    account_id: str
    account_name: str
    location_ids: list[str] = field(default_factory=list)
    contact_ids: list[str] = field(default_factory=list)
    agreement_ids: list[str] = field(default_factory=list)
    activity_ids: list[str] = field(default_factory=list)
    note_ids: list[str] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "accountId": self.account_id,
            "accountName": self.account_name,
            "locationIds": list(self.location_ids),
            "contactIds": list(self.contact_ids),
            "agreementIds": list(self.agreement_ids),
            "activityIds": list(self.activity_ids),
            "noteIds": list(self.note_ids),
        }


@dataclass
class MergePlan:
    """Preview of a merge; ``versions`` pins the account rows the plan was computed from."""

    survivor_id: str
    survivor_name: str
    donors: list[DonorPlan]
    versions: dict[str, int]
    materialize_account_ids: list[str] = field(default_factory=list)
    survivor_location_count: int = 0

    @property
    def donor_ids(self) -> list[str]:
        return [donor.account_id for donor in self.donors]

    @property
    def account_ids(self) -> list[str]:
        return [self.survivor_id, *self.donor_ids]

    @property
    def projected_location_count(self) -> int:
        existing = self.survivor_location_count + sum(len(donor.location_ids) for donor in self.donors)
        return existing + len(self.materialize_account_ids)

    def as_dict(self) -> dict[str, Any]:
        return {
            "survivorId": self.survivor_id,
            "survivorName": self.survivor_name,
            "donorIds": self.donor_ids,
            "donors": [donor.as_dict() for donor in self.donors],
            "materializeAccountIds": list(self.materialize_account_ids),
            "projectedLocationCount": self.projected_location_count,
            "versions": dict(self.versions),
        }


@dataclass
class MergeResult:
    survivor_id: str
    survivor_name: str
    donor_ids: list[str]
    locations_reparented: int
    locations_created: int
    children_reparented: dict[str, int]
    location_count: int
    account_type: str

    def as_dict(self) -> dict[str, Any]:
        return {
            "survivorId": self.survivor_id,
            "survivorName": self.survivor_name,
            "donorIds": list(self.donor_ids),
            "locationsReparented": self.locations_reparented,
            "locationsCreated": self.locations_created,
            "childrenReparented": dict(self.children_reparented),
            "locationCount": self.location_count,
            "accountType": self.account_type,
        }


def _dedupe_ids(account_ids: Iterable[object]) -> list[str]:
    seen: list[str] = []
    for raw in account_ids:
        if raw is None:
            continue
        account_id = str(raw).strip()
        if account_id and account_id not in seen:
            seen.append(account_id)
    return seen


def _sort_timestamp(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def select_survivor(accounts: Sequence[Account]) -> Account:
    """Oldest ``created_at`` wins, then the smallest id."""

    undated = sorted(account.id for account in accounts if account.created_at is None)
    if undated:
        raise MergeError(
            f"Cannot choose a survivor: accounts without a creation timestamp: {', '.join(undated)}",
            step="select survivor",
        )
    return min(accounts, key=lambda account: (_sort_timestamp(account.created_at), account.id))


def _child_ids(session: Session, model, account_id: str, location_ids: Sequence[str]) -> list[str]:
    clauses = [model.account_id == account_id]
    if location_ids:
        clauses.append(model.location_id.in_(location_ids))
    rows = session.query(model.id).filter(or_(*clauses)).order_by(model.id).all()
    return [row.id for row in rows]


class MergeService:
    """Service for planning and executing account merges."""

    def __init__(self, session: Session | None = None):
        self.session = session or db.session

    def _load_accounts(self, account_ids: Sequence[str], *, for_update: bool = False) -> list[Account]:
        query = self.session.query(Account).options(selectinload(Account.locations))
        if for_update:
            query = query.populate_existing().with_for_update()
        accounts = query.filter(Account.id.in_(account_ids)).all()

        found = {account.id for account in accounts}
        missing = [account_id for account_id in account_ids if account_id not in found]
        if missing:
            raise NotFoundError(f"Accounts not found: {', '.join(missing)}")
        return accounts

    def plan_merge(self, account_ids: Iterable[object]) -> MergePlan:
        """
        Compute the merge plan for the selected accounts.

        Raises:
            ValidationError: fewer than two distinct ids
            NotFoundError: an id does not exist
            MergeError: a selected account has no ``created_at``
        """

        ids = _dedupe_ids(account_ids)
        if len(ids) < 2:
            raise ValidationError("At least 2 account IDs are required")

        accounts = self._load_accounts(ids)
        survivor = select_survivor(accounts)
        donors = sorted(
            (account for account in accounts if account.id != survivor.id),
            key=lambda account: (_sort_timestamp(account.created_at), account.id),
        )

        donor_plans: list[DonorPlan] = []
        for donor in donors:
            location_ids = [location.id for location in donor.locations]
            contact_ids = []
            if location_ids:
                contact_ids = [
                    row.id
                    for row in self.session.query(LocationContact.id)
                    .filter(LocationContact.location_id.in_(location_ids))
                    .order_by(LocationContact.id)
                    .all()
                ]
            donor_plans.append(
                DonorPlan(
                    account_id=donor.id,
                    account_name=donor.name,
                    location_ids=location_ids,
                    contact_ids=contact_ids,
                    agreement_ids=_child_ids(self.session, Agreement, donor.id, location_ids),
                    activity_ids=_child_ids(self.session, Activity, donor.id, location_ids),
                    note_ids=_child_ids(self.session, Note, donor.id, location_ids),
                )
            )

        materialize = [
            account.id for account in [survivor, *donors] if not account.locations and account.has_address()
        ]
        return MergePlan(
            survivor_id=survivor.id,
            survivor_name=survivor.name,
            donors=donor_plans,
            versions={account.id: account.version for account in accounts},
            materialize_account_ids=materialize,
            survivor_location_count=len(survivor.locations),
        )

    def execute_merge(self, plan: MergePlan, *, user_id: int | None = None) -> MergeResult:
        """
        Apply a merge plan in one transaction.

        Raises:
            NotFoundError: an account in the plan no longer exists
            MergeError: the accounts changed since planning, or a database
                step failed (``step`` names it); nothing is written
        """

        step = "load accounts"
        try:
            accounts = {account.id: account for account in self._load_accounts(plan.account_ids, for_update=True)}

            step = "verify versions"
            for account_id, version in plan.versions.items():
                if accounts[account_id].version != version:
                    raise MergeError("concurrent modification", step=step)

            survivor = accounts[plan.survivor_id]
            donors = [accounts[donor_id] for donor_id in plan.donor_ids]

            step = "materialize locations"
            locations_created = 0
            for account in [survivor, *donors]:
                if not account.locations and account.has_address():
                    self._materialize_location(account)
                    locations_created += 1
            self.session.flush()

            step = "fill survivor fields"
            self._fill_blanks(survivor, donors)

            step = "reparent locations"
            donor_ids = [donor.id for donor in donors]
            donor_location_ids: list[str] = []
            for donor in donors:
                for location in list(donor.locations):
                    donor_location_ids.append(location.id)
                    location.account = survivor
                    location.is_primary = False
            self.session.flush()

            step = "reparent children"
            children_reparented: dict[str, int] = {}
            for kind, model in CHILD_MODELS:
                clauses = [model.account_id.in_(donor_ids)]
                if donor_location_ids:
                    clauses.append(model.location_id.in_(donor_location_ids))
                moved = 0
                for child in self.session.query(model).filter(or_(*clauses)).all():
                    if child.account_id != survivor.id:
                        child.account = survivor
                        moved += 1
                children_reparented[kind] = moved
            self.session.flush()

            step = "delete donors"
            for donor in donors:
                self.session.delete(donor)
            self.session.flush()

            step = "update survivor"
            location_count = len(survivor.locations)
            if location_count > 1:
                survivor.account_type = AccountType.MULTI_LOCATION
            if survivor.locations and not any(location.is_primary for location in survivor.locations):
                survivor.locations[0].is_primary = True

            step = "write change log"
            log_change(
                ChangeActionType.MERGE_ACCOUNTS,
                "account",
                f"Merged {len(donors)} accounts into {survivor.name}",
                entity_id=survivor.id,
                entity_name=survivor.name,
                details={
                    "survivor_id": survivor.id,
                    "donors": [{"id": donor.id, "name": donor.name} for donor in donors],
                    "locations_reparented": len(donor_location_ids),
                    "locations_created": locations_created,
                    "children_reparented": children_reparented,
                },
                user_id=user_id,
                session=self.session,
            )

            step = "commit"
            self.session.commit()
        except StaleDataError as exc:
            self.session.rollback()
            logger.warning("Merge into %s lost a concurrent update during %s: %s", plan.survivor_id, step, exc)
            raise MergeError("concurrent modification", step=step) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Merge into %s failed during %s: %s", plan.survivor_id, step, exc, exc_info=True)
            raise MergeError(f"Merge failed during {step}: {exc}", step=step) from exc
        except ClinicToolsError:
            self.session.rollback()
            raise
        except Exception as exc:
            self.session.rollback()
            logger.exception("Merge into %s failed during %s", plan.survivor_id, step)
            raise MergeError(f"Merge failed during {step}: {exc}", step=step) from exc

        account_type = survivor.account_type
        result = MergeResult(
            survivor_id=survivor.id,
            survivor_name=survivor.name,
            donor_ids=plan.donor_ids,
            locations_reparented=len(donor_location_ids),
            locations_created=locations_created,
            children_reparented=children_reparented,
            location_count=location_count,
            account_type=account_type.value,
        )
        logger.info(
            "Merged accounts %s into %s: %s locations re-parented, %s created",
            ", ".join(result.donor_ids),
            result.survivor_id,
            result.locations_reparented,
            result.locations_created,
        )
        return result

    def merge_accounts(self, account_ids: Iterable[object], *, user_id: int | None = None) -> MergeResult:
        """Plan and execute in one call."""

        return self.execute_merge(self.plan_merge(account_ids), user_id=user_id)

    def _materialize_location(self, account: Account) -> Location:
        location = Location(
            name=account.name,
            address_line1=account.address_line1,
            address_line2=account.address_line2,
            city=account.city,
            state=account.state,
            zip_code=account.zip_code,
            country=account.country or "USA",
            phone=account.phone,
            email=account.email or account.primary_contact_email,
            contact_name=account.primary_contact_name,
            is_primary=True,
            status=LocationStatus.ACTIVE,
        )
        account.locations.append(location)
        return location

    @staticmethod
    def _fill_blanks(survivor: Account, donors: Sequence[Account]) -> None:
        for field_name in FILLABLE_FIELDS:
            if getattr(survivor, field_name):
                continue
            value = next((getattr(donor, field_name) for donor in donors if getattr(donor, field_name)), None)
            if value:
                setattr(survivor, field_name, value)


__all__ = ["DonorPlan", "MergePlan", "MergeResult", "MergeService", "select_survivor"]
