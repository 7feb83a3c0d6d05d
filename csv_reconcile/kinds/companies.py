from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..normalize.fields import clean_text
from .base import DuplicatePolicy, EntitySpec, FlatKind, fallback_identifier

"""Company import kind.

Companies land in the shared ``customers`` table and are matched by exact
customer name. Existing companies are skipped unless the run asks to update
duplicates, in which case their contact and address fields are merged.
"""

__all__ = [
    "CompanyRecord",
    "COMPANIES",
    "COMPANY_ENTITY",
]

TABLE = "customers"
DEFAULT_COUNTRY = "USA"

ALIASES: dict[str, tuple[str, ...]] = {
    "customer_name": ("Company Name", "Companies", "Company", "Customer Name"),
    "contact_id": ("Contact ID",),
    "customer_sub_type": ("Customer Sub Type",),
    "first_name": ("First Name",),
    "last_name": ("Last Name",),
    "email": ("Email", "EmailID", "Email Address"),
    "phone": ("Phone", "Phone Number"),
    "address_line_1": ("Street Address", "Address", "Address Line 1"),
    "city": ("City",),
    "state": ("State",),
    "postal_code": ("Zip Code", "Postal Code", "Zip"),
    "country": ("Country",),
    "notes": ("Notes",),
}

REQUIRED = ("customer_name",)

TEMPLATE = (
    "Company Name,Contact ID,Customer Sub Type,First Name,Last Name,EmailID,Street Address,City,State,Zip Code,Notes\n"
    "Acme Shoes,1001,business,Jane,Smith,jane@acme.example,123 Main Street,Springfield,IL,62701,Net 30 account\n"
)


def _notes(value: str | None) -> str | None:
    # 旧システムは空欄を "None" で出力する
    text = clean_text(value)
    if text is None or text == "None":
        return None
    return text


@dataclass(frozen=True)
class CompanyRecord:
    row_number: int
    customer_name: str
    customer_id: str
    customer_sub_type: str = "business"
    contact_id: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address_line_1: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str = DEFAULT_COUNTRY
    notes: str | None = None

    @property
    def key(self) -> str:
        return self.customer_name

    def to_store(self) -> dict[str, Any]:
        values = dataclasses.asdict(self)
        values.pop("row_number")
        values["company_name"] = self.customer_name
        return values


def _build(draft: Mapping[str, str], row_number: int) -> CompanyRecord:
    email = clean_text(draft.get("email"))
    return CompanyRecord(
        row_number=row_number,
        customer_name=draft["customer_name"].strip(),
        customer_id=fallback_identifier("COMP"),
        customer_sub_type=clean_text(draft.get("customer_sub_type")) or "business",
        contact_id=clean_text(draft.get("contact_id")),
        first_name=clean_text(draft.get("first_name")),
        last_name=clean_text(draft.get("last_name")),
        email=email.lower() if email else None,
        phone=clean_text(draft.get("phone")),
        address_line_1=clean_text(draft.get("address_line_1")),
        city=clean_text(draft.get("city")),
        state=clean_text(draft.get("state")),
        postal_code=clean_text(draft.get("postal_code")),
        country=clean_text(draft.get("country")) or DEFAULT_COUNTRY,
        notes=_notes(draft.get("notes")),
    )


COMPANY_ENTITY = EntitySpec(
    table=TABLE,
    match_fields=("customer_name",),
    stored_keys=lambda record: [str(record["customer_name"])] if record.get("customer_name") else [],
)

COMPANIES = FlatKind(
    name="companies",
    aliases=ALIASES,
    required=REQUIRED,
    build=_build,
    email_fields=("email",),
    template=TEMPLATE,
    entity=COMPANY_ENTITY,
    policy=DuplicatePolicy.SKIP,
    merge_fields=(
        "email",
        "phone",
        "address_line_1",
        "city",
        "state",
        "postal_code",
        "country",
        "notes",
    ),
)
