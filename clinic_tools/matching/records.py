"""
Plain comparison records fed to the similarity scorer and duplicate grouper.

They are built once from ORM rows (or by tests directly) so the matching code
stays pure and never touches the session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from clinic_tools.matching.normalize import normalize_address, normalize_name

SINGLE_LOCATION = "single_location"
MULTI_LOCATION = "multi_location"


@dataclass(frozen=True)
class AddressRecord:
    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None

    @classmethod
    def from_source(cls, source: object) -> "AddressRecord":
        """Build from any object exposing ``address_line1``/``city``/... attributes."""
        return cls(
            line1=getattr(source, "address_line1", None),
            line2=getattr(source, "address_line2", None),
            city=getattr(source, "city", None),
            state=getattr(source, "state", None),
            zip_code=getattr(source, "zip_code", None),
            country=getattr(source, "country", None),
        )

    def is_empty(self) -> bool:
        return not self.normalized()

    def normalized(self) -> str:
        return normalize_address(self.line1, self.line2, self.city, self.state, self.zip_code)

    def as_dict(self) -> dict[str, str | None]:
        return {
            "address_line1": self.line1,
            "address_line2": self.line2,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "country": self.country,
        }


@dataclass(frozen=True)
class AccountRecord:
    """Snapshot of an account used for duplicate detection."""

    id: str
    name: str
    account_type: str = SINGLE_LOCATION
    address: AddressRecord | None = None
    external_code: str | None = None
    primary_contact_name: str | None = None
    primary_contact_email: str | None = None
    created_at: datetime | None = None
    location_count: int = 0
    normalized_name: str = field(init=False, repr=False, compare=False)
    normalized_address: str = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "normalized_name", normalize_name(self.name))
        object.__setattr__(self, "normalized_address", self.address.normalized() if self.address else "")

    @property
    def is_single_location(self) -> bool:
        return self.account_type == SINGLE_LOCATION

    @property
    def has_address(self) -> bool:
        return bool(self.normalized_address)

    @classmethod
    def from_model(cls, account) -> "AccountRecord":
        """
        Build a record from an ``Account`` row.

        The address comes from the primary (else oldest) location and falls
        back to the account's own address columns when no location carries one.
        """

        address = None
        location = account.get_primary_location()
        if location is not None:
            address = AddressRecord.from_source(location)
        if (address is None or address.is_empty()) and account.has_address():
            address = AddressRecord.from_source(account)

        account_type = account.account_type
        return cls(
            id=account.id,
            name=account.name or "",
            account_type=getattr(account_type, "value", account_type),
            address=address,
            external_code=account.external_code,
            primary_contact_name=account.primary_contact_name,
            primary_contact_email=account.primary_contact_email,
            created_at=account.created_at,
            location_count=len(account.locations),
        )

    def as_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "name": self.name,
            "account_type": self.account_type,
            "external_code": self.external_code,
            "primary_contact_name": self.primary_contact_name,
            "primary_contact_email": self.primary_contact_email,
            "address": self.address.as_dict() if self.address else None,
            "location_count": self.location_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


__all__ = ["AccountRecord", "AddressRecord", "SINGLE_LOCATION", "MULTI_LOCATION"]
