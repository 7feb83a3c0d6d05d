from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from ..normalize.fields import clean_text, parse_decimal
from ..store.base import StoredRecord
from .base import DuplicatePolicy, EntitySpec, FlatKind

"""Partner (distribution site) import kind.

A partner is identified by its name (case-insensitive) together with its
postal code, so two sites of the same organisation in different areas are
distinct partners.
"""

__all__ = [
    "PartnerRecord",
    "PARTNERS",
    "PARTNER_ENTITY",
    "partner_key",
]

TABLE = "partners"
DEFAULT_COUNTRY = "USA"

ALIASES: dict[str, tuple[str, ...]] = {
    "name": ("Name", "Partner Name"),
    "contact_name": ("Contact Name", "Contact"),
    "email": ("Email", "Email Address"),
    "phone": ("Phone", "Phone Number"),
    "address_line_1": ("Address Line 1", "Address", "Street Address"),
    "address_line_2": ("Address Line 2",),
    "city": ("City",),
    "state": ("State",),
    "postal_code": ("Postal Code", "Zip Code", "Zip"),
    "country": ("Country",),
    "latitude": ("Latitude", "Lat"),
    "longitude": ("Longitude", "Lng", "Long"),
    "notes": ("Notes",),
}

REQUIRED = ("name", "postal_code")

TEMPLATE = (
    "Name,Contact Name,Email,Phone,Address Line 1,Address Line 2,City,State,Postal Code,Country,Latitude,Longitude,Notes\n"
    "Downtown Community Center,Jane Smith,jane@downtown.org,555-0100,123 Main Street,Suite 200,Springfield,IL,62701,USA,39.7817,-89.6501,Primary distribution site\n"
    "Westside Food Bank,John Doe,john@westside.org,555-0200,456 West Ave,,Chicago,IL,60601,USA,41.8781,-87.6298,Monthly pickups\n"
)


def partner_key(name: str, postal_code: str) -> str:
    return f"{name.strip().casefold()}-{postal_code.strip()}"


@dataclass(frozen=True)
class PartnerRecord:
    row_number: int
    name: str
    postal_code: str
    contact_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address_line_1: str | None = None
    address_line_2: str | None = None
    city: str | None = None
    state: str | None = None
    country: str = DEFAULT_COUNTRY
    latitude: Decimal | None = None
    longitude: Decimal | None = None
    notes: str | None = None

    @property
    def key(self) -> str:
        return partner_key(self.name, self.postal_code)

    def to_store(self) -> dict[str, Any]:
        values = dataclasses.asdict(self)
        values.pop("row_number")
        return values


def _coordinate(value: str | None) -> Decimal | None:
    if clean_text(value) is None:
        return None
    return parse_decimal(value)


def _build(draft: Mapping[str, str], row_number: int) -> PartnerRecord:
    return PartnerRecord(
        row_number=row_number,
        name=draft["name"].strip(),
        postal_code=draft["postal_code"].strip(),
        contact_name=clean_text(draft.get("contact_name")),
        email=clean_text(draft.get("email")),
        phone=clean_text(draft.get("phone")),
        address_line_1=clean_text(draft.get("address_line_1")),
        address_line_2=clean_text(draft.get("address_line_2")),
        city=clean_text(draft.get("city")),
        state=clean_text(draft.get("state")),
        country=clean_text(draft.get("country")) or DEFAULT_COUNTRY,
        latitude=_coordinate(draft.get("latitude")),
        longitude=_coordinate(draft.get("longitude")),
        notes=clean_text(draft.get("notes")),
    )


def _stored_keys(record: StoredRecord) -> list[str]:
    name = record.get("name")
    postal_code = record.get("postal_code")
    if not name or postal_code is None:
        return []
    return [partner_key(str(name), str(postal_code))]


# lookup is by name only; postal codes are compared on the stored keys
PARTNER_ENTITY = EntitySpec(
    table=TABLE,
    match_fields=("name",),
    stored_keys=_stored_keys,
    lookup_value=lambda record: record.name,
    casefold=True,
)

PARTNERS = FlatKind(
    name="partners",
    aliases=ALIASES,
    required=REQUIRED,
    build=_build,
    email_fields=("email",),
    template=TEMPLATE,
    entity=PARTNER_ENTITY,
    policy=DuplicatePolicy.SKIP,
    merge_fields=(
        "contact_name",
        "email",
        "phone",
        "address_line_1",
        "address_line_2",
        "city",
        "state",
        "country",
        "latitude",
        "longitude",
        "notes",
    ),
)
