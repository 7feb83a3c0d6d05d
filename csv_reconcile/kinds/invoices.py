from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from ..models.document_group import DocumentGroup
from ..normalize.fields import clean_text, parse_date, parse_decimal
from .base import EntitySpec, GroupedKind, fallback_identifier
from .sales_orders import CUSTOMER_ENTITY

"""Invoice import kind.

Rows sharing an ``Invoice Number`` become one ``invoices`` parent with
``invoice_items`` children. Items are linked to inventory by exact item name
when a matching inventory record exists; prices are always zero (goods are
donated), so invoice totals are zero as well.
"""

__all__ = [
    "InvoiceLine",
    "INVOICES",
    "INVENTORY_ENTITY",
    "map_status",
]

ALIASES: dict[str, tuple[str, ...]] = {
    "document_number": ("Invoice Number", "Invoice #", "Invoice No"),
    "invoice_date": ("Invoice Date", "Date"),
    "customer_name": ("Customer Name", "Customer"),
    "item_name": ("Item Name", "Item"),
    "quantity": ("Quantity", "Qty"),
    "due_date": ("Due Date",),
    "status": ("Status", "Invoice Status"),
    "notes": ("Notes",),
    "email": ("Customer Email", "Email"),
    "phone": ("Customer Phone", "Phone"),
}

REQUIRED = ("document_number", "invoice_date", "customer_name", "item_name", "quantity")

TEMPLATE = (
    "Invoice Number,Invoice Date,Due Date,Customer Name,Customer Email,Customer Phone,Item Name,Quantity,Status,Notes\n"
    "INV-00001,13 Oct 2025,12 Nov 2025,Springfield Shelter,intake@shelter.example,555-0100,Winter Boots,12,Sent,\n"
    "INV-00001,13 Oct 2025,12 Nov 2025,Springfield Shelter,intake@shelter.example,555-0100,Wool Socks,24,Sent,\n"
)


def map_status(value: str | None) -> str:
    s = (value or "").lower()
    if "fulfilled" in s:
        return "fulfilled"
    if "sent" in s:
        return "sent"
    if "cancel" in s:
        return "cancelled"
    return "draft"


def _check_invoice_date(draft: Mapping[str, str]) -> str | None:
    if parse_date(draft.get("invoice_date")) is None:
        return "Invalid invoice date"
    return None


@dataclass(frozen=True)
class InvoiceLine:
    row_number: int
    document_number: str
    invoice_date: date
    customer_name: str
    item_name: str
    quantity: Decimal
    due_date: date | None = None
    status: str = "draft"
    notes: str | None = None
    email: str | None = None
    phone: str | None = None


def _build(draft: Mapping[str, str], row_number: int) -> InvoiceLine:
    return InvoiceLine(
        row_number=row_number,
        document_number=draft["document_number"].strip(),
        invoice_date=parse_date(draft["invoice_date"]),  # type: ignore[arg-type]
        customer_name=draft["customer_name"].strip(),
        item_name=draft["item_name"].strip(),
        quantity=parse_decimal(draft.get("quantity")),
        due_date=parse_date(draft.get("due_date")),
        status=map_status(draft.get("status")),
        notes=clean_text(draft.get("notes")),
        email=clean_text(draft.get("email")),
        phone=clean_text(draft.get("phone")),
    )


def _new_customer(line: InvoiceLine) -> dict[str, Any]:
    return {
        "customer_id": fallback_identifier("CUST"),
        "customer_name": line.customer_name,
        "email": line.email,
        "phone": line.phone,
    }


def _build_parent(group: DocumentGroup[InvoiceLine], customer_id: Any) -> dict[str, Any]:
    h = group.header
    return {
        "invoice_number": group.document_number,
        "customer_id": customer_id,
        "invoice_date": h.invoice_date,
        "due_date": h.due_date,
        "status": h.status,
        "notes": h.notes,
        "subtotal": Decimal(0),
        "total": Decimal(0),
    }


def _build_children(
    group: DocumentGroup[InvoiceLine], item_ids: Mapping[str, Any]
) -> list[dict[str, Any]]:
    return [
        {
            "inventory_id": item_ids.get(line.item_name),
            "item_name": line.item_name,
            "quantity": line.quantity,
            "price": Decimal(0),
            "total": Decimal(0),
        }
        for line in group.lines
    ]


INVENTORY_ENTITY = EntitySpec(
    table="inventory",
    match_fields=("item_name",),
    stored_keys=lambda record: [str(record["item_name"])] if record.get("item_name") else [],
    key_of=lambda line: line.item_name,
)

INVOICES = GroupedKind(
    name="invoices",
    aliases=ALIASES,
    required=REQUIRED,
    build=_build,
    email_fields=("email",),
    checks=(_check_invoice_date,),
    template=TEMPLATE,
    customer=CUSTOMER_ENTITY,
    new_customer=_new_customer,
    parent_table="invoices",
    child_table="invoice_items",
    parent_fk="invoice_id",
    document_label="Invoice",
    build_parent=_build_parent,
    build_children=_build_children,
    item_lookup=INVENTORY_ENTITY,
)
