"""
Persist import plans and manage the upload lifecycle.

An upload is all-or-nothing: the ``AccountUpload`` row, every account and
location, and the change log entry are written in one transaction. Every
location carries the id of the upload that wrote it, so reverting deletes
exactly those rows even after merges or location moves have re-homed them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from clinic_tools.errors import ClinicToolsError, NotFoundError, ValidationError
from clinic_tools.importer.planning import ColumnMapping, ImportPlan, summarize_plans
from clinic_tools.models import (
    Account,
    AccountStatus,
    AccountType,
    AccountUpload,
    ChangeActionType,
    Location,
    LocationStatus,
    UploadStatus,
    db,
)
from clinic_tools.models.base import utcnow
from clinic_tools.services.change_log import log_change

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY = "USA"


@dataclass
class ImportSummary:
    """Outcome of ``load_import_plans`` (also returned for dry runs)."""

    upload_id: str | None
    list_name: str
    account_count: int
    location_count: int
    multi_location_count: int
    dry_run: bool = False
    account_ids: list[str] = field(default_factory=list)
    preview: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "uploadId": self.upload_id,
            "listName": self.list_name,
            "accountCount": self.account_count,
            "locationCount": self.location_count,
            "multiLocationCount": self.multi_location_count,
            "dryRun": self.dry_run,
            "accountIds": list(self.account_ids),
            "preview": self.preview,
        }


@dataclass
class RevertSummary:
    upload_id: str
    deleted_accounts: int
    deleted_locations: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "uploadId": self.upload_id,
            "deletedAccounts": self.deleted_accounts,
            "deletedLocations": self.deleted_locations,
        }


def _account_from_plan(plan: ImportPlan, upload: AccountUpload, list_name: str) -> Account:
    draft = plan.account
    account = Account(
        name=draft.name,
        account_type=AccountType(draft.account_type),
        status=AccountStatus.ACTIVE,
        website=draft.website,
        industry=draft.industry,
        primary_contact_name=draft.primary_contact_name,
        primary_contact_email=draft.primary_contact_email,
        primary_contact_phone=draft.primary_contact_phone,
        notes=draft.notes,
        external_code=draft.external_code,
        address_line1=draft.address_line1,
        address_line2=draft.address_line2,
        city=draft.city,
        state=draft.state,
        zip_code=draft.zip_code,
        country=draft.country,
        phone=draft.phone,
        email=draft.email,
        upload=upload,
        upload_list_name=list_name,
    )
    for index, draft_location in enumerate(plan.locations):
        account.locations.append(
            Location(
                name=draft_location.name,
                address_line1=draft_location.address_line1,
                address_line2=draft_location.address_line2,
                city=draft_location.city,
                state=draft_location.state,
                zip_code=draft_location.zip_code,
                country=draft_location.country or DEFAULT_COUNTRY,
                phone=draft_location.phone,
                email=draft_location.email,
                contact_name=draft_location.contact_name,
                is_primary=index == 0,
                status=LocationStatus.ACTIVE,
                upload=upload,
            )
        )
    return account


def load_import_plans(
    plans: Sequence[ImportPlan],
    *,
    list_name: str,
    file_name: str,
    mapping: ColumnMapping,
    user_id: int | None = None,
    dry_run: bool = False,
    session: Session | None = None,
) -> ImportSummary:
    """
    Create an ``AccountUpload`` with every planned account and location.

    With ``dry_run`` nothing is written and the summary only carries counts.
    Any database failure rolls the whole upload back.
    """

    session = session or db.session
    list_name = (list_name or "").strip()
    file_name = (file_name or "").strip()
    if not list_name:
        raise ValidationError("listName is required.")
    if not file_name:
        raise ValidationError("fileName is required.")
    if not plans:
        raise ValidationError("No data rows to import.")

    account_count = len(plans)
    location_count = sum(len(plan.locations) for plan in plans)
    multi_count = sum(1 for plan in plans if plan.is_multi_location)
    preview = summarize_plans(plans)

    if dry_run:
        return ImportSummary(
            upload_id=None,
            list_name=list_name,
            account_count=account_count,
            location_count=location_count,
            multi_location_count=multi_count,
            dry_run=True,
            preview=preview,
        )

    try:
        upload = AccountUpload(
            name=list_name,
            file_name=file_name,
            uploaded_by_user_id=user_id,
            account_count=account_count,
            location_count=location_count,
            column_mapping=mapping.as_dict(),
            status=UploadStatus.COMPLETED,
        )
        session.add(upload)
        accounts = [_account_from_plan(plan, upload, list_name) for plan in plans]
        session.add_all(accounts)
        session.flush()

        log_change(
            ChangeActionType.IMPORT_ACCOUNTS,
            "account_upload",
            f"Imported {account_count} accounts ({location_count} locations) from {file_name}",
            entity_id=upload.id,
            entity_name=list_name,
            details={
                "file_name": file_name,
                "account_count": account_count,
                "location_count": location_count,
                "multi_location_count": multi_count,
            },
            user_id=user_id,
            session=session,
        )
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Account upload '%s' failed: %s", list_name, exc, exc_info=True)
        raise ClinicToolsError(f"Failed to import accounts: {exc}") from exc

    logger.info(
        "Account upload %s created %s accounts and %s locations from %s",
        upload.id,
        account_count,
        location_count,
        file_name,
    )
    return ImportSummary(
        upload_id=upload.id,
        list_name=list_name,
        account_count=account_count,
        location_count=location_count,
        multi_location_count=multi_count,
        account_ids=[account.id for account in accounts],
        preview=preview,
    )


def revert_upload(upload_id: str, *, user_id: int | None = None, session: Session | None = None) -> RevertSummary:
    """
    Undo an upload: delete the locations it created, wherever they live now.

    Uploaded accounts left without locations are deleted too. Any other
    account that lost a location keeps its remaining sites, with its primary
    location and account type brought back in line.
    """

    session = session or db.session
    upload = session.get(AccountUpload, upload_id)
    if upload is None:
        raise NotFoundError(f"Upload {upload_id} not found")
    if upload.is_reverted:
        raise ValidationError("Upload has already been reverted")

    locations = (
        session.query(Location)
        .options(selectinload(Location.account).selectinload(Account.locations))
        .filter(Location.upload_id == upload.id)
        .all()
    )
    uploaded_accounts = (
        session.query(Account)
        .options(selectinload(Account.locations))
        .filter(Account.upload_id == upload.id)
        .all()
    )

    try:
        owners: dict[str, Account] = {account.id: account for account in uploaded_accounts}
        for location in locations:
            owner = location.account
            owners[owner.id] = owner
            # delete-orphan removes the row
            owner.locations.remove(location)

        deleted_accounts = [account for account in uploaded_accounts if not account.locations]
        for account in deleted_accounts:
            session.delete(account)
        for owner in owners.values():
            if owner in deleted_accounts or not owner.locations:
                continue
            _realign_account(owner)

        upload.status = UploadStatus.REVERTED
        upload.reverted_at = utcnow()
        upload.reverted_by_user_id = user_id
        log_change(
            ChangeActionType.REVERT_UPLOAD,
            "account_upload",
            f"Reverted upload {upload.name}: deleted {len(deleted_accounts)} accounts",
            entity_id=upload.id,
            entity_name=upload.name,
            details={
                "deleted_accounts": len(deleted_accounts),
                "deleted_locations": len(locations),
                "kept_accounts": [account.id for account in uploaded_accounts if account not in deleted_accounts],
            },
            user_id=user_id,
            session=session,
        )
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Reverting upload %s failed: %s", upload_id, exc, exc_info=True)
        raise ClinicToolsError(f"Failed to revert upload: {exc}") from exc

    logger.info(
        "Reverted upload %s: %s accounts and %s locations deleted",
        upload_id,
        len(deleted_accounts),
        len(locations),
    )
    return RevertSummary(
        upload_id=upload_id, deleted_accounts=len(deleted_accounts), deleted_locations=len(locations)
    )


def _realign_account(account: Account) -> None:
    if not any(location.is_primary for location in account.locations):
        account.locations[0].is_primary = True
    if len(account.locations) == 1 and account.account_type == AccountType.MULTI_LOCATION:
        account.account_type = AccountType.SINGLE_LOCATION


def list_uploads(*, session: Session | None = None) -> list[AccountUpload]:
    """Return every upload, newest first."""

    session = session or db.session
    return session.query(AccountUpload).order_by(AccountUpload.created_at.desc(), AccountUpload.id).all()


__all__ = ["ImportSummary", "RevertSummary", "DEFAULT_COUNTRY", "load_import_plans", "revert_upload", "list_uploads"]
