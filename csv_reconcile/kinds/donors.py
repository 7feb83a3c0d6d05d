from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from ..normalize.fields import clean_text, parse_bool, parse_date, parse_decimal
from ..store.base import StoredRecord
from .base import DuplicatePolicy, EntitySpec, FlatKind

"""Donor import kind (legacy donor CRM exports).

Donors are reconciled by email with the merge policy: an incoming row whose
email matches an existing donor's primary or alternate email updates that
donor (incoming non-empty values win, blanks keep what is stored) instead of
creating a second record.
"""

__all__ = [
    "DonorRecord",
    "DONORS",
    "donor_entity",
    "normalize_frequency",
]

TABLE = "donors"

ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("Name", "Donor Name", "Full Name"),
    "first_name": ("First Name",),
    "last_name": ("Last Name",),
    "email": ("Email", "EmailID", "Email Address"),
    "alternate_email": ("Alternate Email", "Secondary Email", "Email 2"),
    "phone": ("Phone", "Phone Number", "Home Phone"),
    "mobile_phone": ("Mobile Phone", "Cell Phone", "Mobile"),
    "address_line_1": ("Address", "Street Address", "Address Line 1"),
    "city": ("City",),
    "state": ("State",),
    "postal_code": ("Postal Code", "Zip Code", "Zip"),
    "organization": ("Organization", "Company"),
    "is_organization": ("Is Organization",),
    "amount": ("Amount", "Gift Amount", "Last Gift Amount"),
    "frequency": ("Frequency",),
    "campaign": ("Campaign",),
    "coupon_code": ("Coupon Code",),
    "gift_date": ("Date", "Gift Date", "Last Gift Date"),
}

REQUIRED = ("name", "email")

_FREQUENCIES = {
    "one-time": "one-time",
    "onetime": "one-time",
    "monthly": "monthly",
    "recurring": "monthly",
}

TEMPLATE = (
    "Name,Email,Alternate Email,Phone,Address,Organization,Amount,Frequency,Campaign,Coupon Code,Date\n"
    "Jane Smith,jane@example.org,,555-0100,123 Main Street,,25.00,one-time,Spring Drive,,13 Oct 2025\n"
)


def normalize_frequency(value: str | None) -> str | None:
    if value is None:
        return None
    return _FREQUENCIES.get(value.strip().lower())


def _derive_name(draft: dict[str, str]) -> None:
    if draft.get("name", "").strip():
        return
    parts = [draft.get("first_name", "").strip(), draft.get("last_name", "").strip()]
    joined = " ".join(p for p in parts if p)
    if joined:
        draft["name"] = joined


def _check_amount(draft: Mapping[str, str]) -> str | None:
    raw = draft.get("amount", "")
    if raw and parse_decimal(raw) <= 0:
        return "Amount must be positive"
    return None


def _check_frequency(draft: Mapping[str, str]) -> str | None:
    raw = draft.get("frequency", "")
    if raw and normalize_frequency(raw) is None:
        return "Invalid frequency (must be 'one-time' or 'monthly')"
    return None


def _check_gift_date(draft: Mapping[str, str]) -> str | None:
    raw = draft.get("gift_date", "")
    if raw and parse_date(raw) is None:
        return "Invalid date format"
    return None


@dataclass(frozen=True)
class DonorRecord:
    row_number: int
    name: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    alternate_email: str | None = None
    phone: str | None = None
    mobile_phone: str | None = None
    address_line_1: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    organization: str | None = None
    is_organization: bool | None = None
    amount: Decimal | None = None
    frequency: str | None = None
    campaign: str | None = None
    coupon_code: str | None = None
    gift_date: date | None = None

    @property
    def key(self) -> str:
        return self.email

    def to_store(self) -> dict[str, Any]:
        values = dataclasses.asdict(self)
        values.pop("row_number")
        return values


def _build(draft: Mapping[str, str], row_number: int) -> DonorRecord:
    amount_raw = draft.get("amount")
    is_org_raw = draft.get("is_organization")
    alternate = clean_text(draft.get("alternate_email"))
    return DonorRecord(
        row_number=row_number,
        name=draft["name"].strip(),
        email=draft["email"].strip().lower(),
        first_name=clean_text(draft.get("first_name")),
        last_name=clean_text(draft.get("last_name")),
        alternate_email=alternate.lower() if alternate else None,
        phone=clean_text(draft.get("phone")),
        mobile_phone=clean_text(draft.get("mobile_phone")),
        address_line_1=clean_text(draft.get("address_line_1")),
        city=clean_text(draft.get("city")),
        state=clean_text(draft.get("state")),
        postal_code=clean_text(draft.get("postal_code")),
        organization=clean_text(draft.get("organization")),
        is_organization=parse_bool(is_org_raw) if clean_text(is_org_raw) else None,
        amount=parse_decimal(amount_raw) if clean_text(amount_raw) else None,
        frequency=normalize_frequency(draft.get("frequency")),
        campaign=clean_text(draft.get("campaign")),
        coupon_code=clean_text(draft.get("coupon_code")),
        gift_date=parse_date(draft.get("gift_date")),
    )


def donor_entity(match_alternate_email: bool = True) -> EntitySpec:
    """Entity lookup for donors.

    With ``match_alternate_email`` an incoming email also matches a stored
    donor's alternate email, so two people sharing a contact address are
    treated as one donor.
    """
    def stored_keys(record: StoredRecord) -> list[str]:
        keys = []
        for field_name in ("email", "alternate_email") if match_alternate_email else ("email",):
            value = record.get(field_name)
            if value:
                keys.append(str(value).strip().lower())
        return keys

    fields = ("email", "alternate_email") if match_alternate_email else ("email",)
    return EntitySpec(
        table=TABLE,
        match_fields=fields,
        stored_keys=stored_keys,
        casefold=True,
    )


DONORS = FlatKind(
    name="donors",
    aliases=ALIASES,
    required=REQUIRED,
    build=_build,
    email_fields=("email", "alternate_email"),
    checks=(_check_amount, _check_frequency, _check_gift_date),
    derive=_derive_name,
    template=TEMPLATE,
    entity=donor_entity(),
    policy=DuplicatePolicy.MERGE,
    merge_fields=tuple(
        f.name for f in dataclasses.fields(DonorRecord) if f.name not in ("row_number", "email")
    ),
)
