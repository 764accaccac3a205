"""
Location-level data tools: merge two locations, move a location between
accounts, and the pickers the data-tools screen uses to choose them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from clinic_tools.errors import ClinicToolsError, NotFoundError, ValidationError
from clinic_tools.models import (
    Account,
    AccountStatus,
    AccountType,
    Activity,
    Agreement,
    ChangeActionType,
    Location,
    LocationContact,
    Note,
    db,
)
from clinic_tools.services.change_log import log_change

logger = logging.getLogger(__name__)

NOTES_SEPARATOR = "\n\n--- Merged from previous location ---\n\n"

# Target keeps its value; blanks are filled from the source
LOCATION_FILL_FIELDS = (
    "name",
    "address_line1",
    "address_line2",
    "city",
    "state",
    "zip_code",
    "country",
    "phone",
    "email",
    "contact_name",
    "contact_title",
    "clinic_code",
    "external_code",
)

CHILD_MODELS = (Agreement, Activity, Note)


@dataclass
class LocationMergeResult:
    target_location_id: str
    source_location_id: str
    source_account_id: str
    source_account_deleted: bool
    moved: dict[str, int]

    def as_dict(self) -> dict[str, Any]:
        return {
            "targetLocationId": self.target_location_id,
            "sourceLocationId": self.source_location_id,
            "sourceAccountId": self.source_account_id,
            "sourceAccountDeleted": self.source_account_deleted,
            "moved": dict(self.moved),
        }


def _require_id(value: object, label: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{label} is required")
    return text


def serialize_location(location: Location) -> dict[str, Any]:
    payload = location.to_dict()
    account = location.account
    payload["account_name"] = account.name if account else None
    payload["account_type"] = account.account_type.value if account else None
    return payload


class LocationService:
    """Service for location moves and merges; each call is one transaction."""

    def __init__(self, session: Session | None = None):
        self.session = session or db.session

    def _get_location(self, location_id: str, label: str = "Location") -> Location:
        location = self.session.get(Location, location_id)
        if location is None:
            raise NotFoundError(f"{label} {location_id} not found")
        return location

    def _get_account(self, account_id: str, label: str = "Account") -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise NotFoundError(f"{label} {account_id} not found")
        return account

    def _commit(self, action: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("%s failed: %s", action, exc, exc_info=True)
            raise ClinicToolsError(f"{action} failed: {exc}") from exc

    def _move_account_children(self, source: Account, target: Account) -> int:
        moved = 0
        for model in CHILD_MODELS:
            for child in self.session.query(model).filter(model.account_id == source.id).all():
                child.account = target
                moved += 1
        return moved

    def merge_locations(self, source_location_id: object, target_location_id: object, *, user_id: int | None = None) -> LocationMergeResult:
        """
        Fold ``source`` into ``target``.

        The target keeps its own values and fills blanks from the source;
        notes are concatenated. Agreements, activities, notes and contacts of
        the source location move to the target, and the source is deleted.
        A source account left without locations is deleted (its account
        level records move to the target's account); one left with a single
        location becomes ``single_location`` again.
        """

        source_id = _require_id(source_location_id, "Source location ID")
        target_id = _require_id(target_location_id, "Target location ID")
        if source_id == target_id:
            raise ValidationError("Source and target locations must be different")

        source = self._get_location(source_id, "Source location")
        target = self._get_location(target_id, "Target location")
        source_account = source.account
        target_account = target.account

        try:
            for field_name in LOCATION_FILL_FIELDS:
                if not getattr(target, field_name) and getattr(source, field_name):
                    setattr(target, field_name, getattr(source, field_name))
            target.notes = NOTES_SEPARATOR.join(note for note in (target.notes, source.notes) if note) or None
            target.pending_contract_sent = bool(target.pending_contract_sent or source.pending_contract_sent)

            moved: dict[str, int] = {}
            for model in CHILD_MODELS:
                rows = self.session.query(model).filter(model.location_id == source.id).all()
                for row in rows:
                    row.location_id = target.id
                    if row.account_id == source_account.id and source_account.id != target_account.id:
                        row.account = target_account
                moved[model.__tablename__] = len(rows)

            contacts = list(source.contacts)
            for contact in contacts:
                contact.location = target
            moved["location_contacts"] = len(contacts)

            source_name = source.name
            was_primary = source.is_primary
            source_account.locations.remove(source)
            self.session.flush()

            source_account_deleted = False
            remaining = list(source_account.locations)
            if not remaining:
                if source_account.id != target_account.id:
                    moved["account_records"] = self._move_account_children(source_account, target_account)
                    self.session.flush()
                self.session.delete(source_account)
                source_account_deleted = True
            else:
                if len(remaining) == 1:
                    source_account.account_type = AccountType.SINGLE_LOCATION
                if was_primary and not any(location.is_primary for location in remaining):
                    remaining[0].is_primary = True

            log_change(
                ChangeActionType.MERGE_LOCATIONS,
                "location",
                f'Merged location "{source_name}" into "{target.name}"',
                entity_id=target.id,
                entity_name=target.name,
                details={
                    "source_location_id": source_id,
                    "source_location_name": source_name,
                    "target_location_id": target.id,
                    "source_account_id": source_account.id,
                    "source_account_deleted": source_account_deleted,
                    "moved": moved,
                },
                user_id=user_id,
                session=self.session,
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Merging location %s into %s failed: %s", source_id, target_id, exc, exc_info=True)
            raise ClinicToolsError(f"Merging locations failed: {exc}") from exc

        source_account_id = source_account.id
        self._commit("Merging locations")
        logger.info("Merged location %s into %s", source_id, target_id)
        return LocationMergeResult(
            target_location_id=target_id,
            source_location_id=source_id,
            source_account_id=source_account_id,
            source_account_deleted=source_account_deleted,
            moved=moved,
        )

    def add_location_to_multi(self, location_id: object, target_account_id: object, *, user_id: int | None = None) -> dict[str, Any]:
        """Move the only location of a single-location account into a multi-location account."""

        location_key = _require_id(location_id, "Location ID")
        target_key = _require_id(target_account_id, "Target account ID")
        location = self._get_location(location_key)
        source_account = location.account
        target_account = self._get_account(target_key, "Target account")

        if target_account.account_type != AccountType.MULTI_LOCATION:
            raise ValidationError("Target account must be a multi-location account")
        if source_account.id == target_account.id:
            raise ValidationError("Location already belongs to the target account")
        if len(source_account.locations) != 1:
            raise ValidationError("Source account must have exactly one location")

        source_name = source_account.name
        source_id = source_account.id
        try:
            location.account = target_account
            location.is_primary = False
            self.session.flush()
            self._move_account_children(source_account, target_account)
            self.session.flush()
            self.session.delete(source_account)
            log_change(
                ChangeActionType.ADD_LOCATION,
                "location",
                f'Added location "{location.name}" to multi-location account "{target_account.name}"',
                entity_id=location.id,
                entity_name=location.name,
                details={
                    "location_id": location.id,
                    "source_account_id": source_id,
                    "source_account_name": source_name,
                    "target_account_id": target_account.id,
                    "target_account_name": target_account.name,
                },
                user_id=user_id,
                session=self.session,
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Adding location %s to %s failed: %s", location_key, target_key, exc, exc_info=True)
            raise ClinicToolsError(f"Adding location failed: {exc}") from exc

        self._commit("Adding location")
        location_count = (
            self.session.query(func.count(Location.id)).filter(Location.account_id == target_key).scalar() or 0
        )
        logger.info("Moved location %s into account %s", location_key, target_key)
        return {"success": True, "locationCount": location_count, "deletedAccountId": source_id}

    def remove_location_from_multi(self, location_id: object, *, user_id: int | None = None) -> Account:
        """Split a location out of a multi-location account into a new single-location account."""

        location_key = _require_id(location_id, "Location ID")
        location = self._get_location(location_key)
        source_account = location.account

        if source_account.account_type != AccountType.MULTI_LOCATION:
            raise ValidationError("Source account must be a multi-location account")
        if len(source_account.locations) <= 1:
            raise ValidationError("Cannot remove the last location from a multi-location account")

        try:
            new_account = Account(
                name=location.name or "New Account",
                account_type=AccountType.SINGLE_LOCATION,
                status=AccountStatus.ACTIVE,
                industry=source_account.industry,
                primary_contact_name=location.contact_name or source_account.primary_contact_name,
                primary_contact_email=location.email or source_account.primary_contact_email,
                primary_contact_phone=location.phone or source_account.primary_contact_phone,
                notes=location.notes or source_account.notes,
                address_line1=location.address_line1,
                address_line2=location.address_line2,
                city=location.city,
                state=location.state,
                zip_code=location.zip_code,
                country=location.country,
                phone=location.phone,
                email=location.email,
            )
            self.session.add(new_account)
            was_primary = location.is_primary
            location.account = new_account
            location.is_primary = True
            self.session.flush()

            remaining = list(source_account.locations)
            if len(remaining) == 1:
                source_account.account_type = AccountType.SINGLE_LOCATION
            if was_primary and remaining and not any(item.is_primary for item in remaining):
                remaining[0].is_primary = True

            log_change(
                ChangeActionType.REMOVE_LOCATION,
                "location",
                f'Removed location "{location.name}" from multi-location account "{source_account.name}" '
                f'and created new single-location account "{new_account.name}"',
                entity_id=location.id,
                entity_name=location.name,
                details={
                    "location_id": location.id,
                    "source_account_id": source_account.id,
                    "source_account_name": source_account.name,
                    "new_account_id": new_account.id,
                    "new_account_name": new_account.name,
                },
                user_id=user_id,
                session=self.session,
            )
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Removing location %s from its account failed: %s", location_key, exc, exc_info=True)
            raise ClinicToolsError(f"Removing location failed: {exc}") from exc

        self._commit("Removing location")
        logger.info("Split location %s into new account %s", location_key, new_account.id)
        return new_account

    def list_multi_location_accounts(self) -> list[Account]:
        return (
            self.session.query(Account)
            .options(selectinload(Account.locations))
            .filter(
                Account.account_type == AccountType.MULTI_LOCATION,
                Account.status == AccountStatus.ACTIVE,
            )
            .order_by(Account.name, Account.id)
            .all()
        )

    def search_single_locations(self, query: str | None, *, limit: int = 100) -> list[Location]:
        """Locations whose own fields or whose account name contain ``query`` (case-insensitive)."""

        text = (query or "").strip()
        if not text:
            raise ValidationError("Search query is required")
        if limit < 1:
            raise ValidationError("limit must be a positive integer.")

        pattern = f"%{text}%"
        return (
            self.session.query(Location)
            .join(Account, Location.account_id == Account.id)
            .options(joinedload(Location.account))
            .filter(
                or_(
                    Location.name.ilike(pattern),
                    Location.address_line1.ilike(pattern),
                    Location.city.ilike(pattern),
                    Location.state.ilike(pattern),
                    Location.zip_code.ilike(pattern),
                    Account.name.ilike(pattern),
                )
            )
            .order_by(Location.name, Location.id)
            .limit(limit)
            .all()
        )


__all__ = [
    "LocationMergeResult",
    "LocationService",
    "NOTES_SEPARATOR",
    "serialize_location",
]
