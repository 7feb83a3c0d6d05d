from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from ..models.document_group import DocumentGroup
from ..normalize.fields import clean_text, parse_bool, parse_date, parse_decimal
from .base import EntitySpec, GroupedKind, fallback_identifier

"""Sales order import kind.

One CSV row is one order line; rows sharing a ``SalesOrder Number`` become a
``sales_orders`` parent with ``sales_order_items`` children. Customers are
matched by exact name and created on the fly when unknown.
"""

__all__ = [
    "SalesOrderLine",
    "SALES_ORDERS",
    "CUSTOMER_ENTITY",
    "map_order_status",
    "map_invoice_status",
    "map_payment_status",
    "map_shipment_status",
]

ALIASES: dict[str, tuple[str, ...]] = {
    "document_number": ("SalesOrder Number", "Sales Order Number", "Order Number"),
    "order_date": ("Order Date", "Date"),
    "customer_name": ("Customer Name", "Customer"),
    "item_name": ("Item Name", "Item"),
    "quantity_ordered": ("QuantityOrdered", "Quantity Ordered", "Quantity"),
    # customer
    "customer_id": ("Customer ID",),
    "email": ("Email", "Customer Email"),
    "phone": ("Phone", "Customer Phone"),
    "billing_address": ("Billing Address",),
    "shipping_address": ("Shipping Address",),
    # header
    "expected_shipment_date": ("Expected Shipment Date",),
    "status": ("Status", "Order Status"),
    "invoice_status": ("Invoice Status", "Invoice"),
    "payment_status": ("Payment Status", "Payment"),
    "shipment_status": ("Shipment Status", "Shipment"),
    "sales_channel": ("Sales Channel",),
    "template_name": ("Template Name",),
    "currency_code": ("Currency Code",),
    "exchange_rate": ("Exchange Rate",),
    "discount_type": ("Discount Type",),
    "is_discount_before_tax": ("Is Discount Before Tax",),
    "entity_discount_amount": ("Entity Discount Amount",),
    "entity_discount_percent": ("Entity Discount Percent",),
    "subtotal": ("SubTotal", "Subtotal"),
    "total": ("Total",),
    "shipping_charge": ("Shipping Charge",),
    "adjustment": ("Adjustment",),
    "adjustment_description": ("Adjustment Description",),
    "payment_terms": ("Payment Terms",),
    "payment_terms_label": ("Payment Terms Label",),
    "source": ("Source",),
    "notes": ("Notes",),
    # item
    "product_id": ("Product ID",),
    "sku": ("SKU",),
    "account": ("Account",),
    "item_description": ("Item Description",),
    "quantity_invoiced": ("QuantityInvoiced",),
    "quantity_packed": ("QuantityPacked",),
    "quantity_fulfilled": ("QuantityFulfilled",),
    "quantity_cancelled": ("QuantityCancelled",),
    "usage_unit": ("Usage unit", "Usage Unit", "Unit"),
    "item_price": ("Item Price", "Price"),
    "discount": ("Discount",),
    "discount_amount": ("Discount Amount",),
    "item_total": ("Item Total",),
}

REQUIRED = ("document_number", "order_date", "customer_name", "item_name", "quantity_ordered")

TEMPLATE = (
    "SalesOrder Number,Order Date,Customer Name,Email,Status,Item Name,SKU,QuantityOrdered,Usage unit,Item Price,Item Total\n"
    "SO-00001,13 Oct 2025,Springfield Shelter,intake@shelter.example,Open,Winter Boots,WB-10,12,pairs,0,0\n"
    "SO-00001,13 Oct 2025,Springfield Shelter,intake@shelter.example,Open,Wool Socks,WS-02,24,pairs,0,0\n"
)


def map_order_status(value: str | None) -> str:
    s = (value or "").lower()
    if "closed" in s:
        return "closed"
    if "cancel" in s:
        return "cancelled"
    if "draft" in s:
        return "draft"
    return "open"


def map_invoice_status(value: str | None) -> str:
    s = (value or "").lower()
    if "invoiced" in s and "not" not in s:
        return "invoiced"
    if "partial" in s:
        return "partially_invoiced"
    return "not_invoiced"


def map_payment_status(value: str | None) -> str:
    s = (value or "").lower()
    if "paid" in s and "un" not in s:
        return "paid"
    if "partial" in s:
        return "partially_paid"
    return "unpaid"


def map_shipment_status(value: str | None) -> str:
    s = (value or "").lower()
    if "fulfilled" in s and "un" not in s:
        return "fulfilled"
    if "partial" in s:
        return "partially_fulfilled"
    return "unfulfilled"


def _check_order_date(draft: Mapping[str, str]) -> str | None:
    if parse_date(draft.get("order_date")) is None:
        return "Invalid order date"
    return None


@dataclass(frozen=True)
class SalesOrderLine:
    row_number: int
    document_number: str
    order_date: date
    customer_name: str
    item_name: str
    quantity_ordered: Decimal
    # customer
    customer_id: str | None = None
    email: str | None = None
    phone: str | None = None
    billing_address: str | None = None
    shipping_address: str | None = None
    # header
    expected_shipment_date: date | None = None
    order_status: str = "open"
    invoice_status: str = "not_invoiced"
    payment_status: str = "unpaid"
    shipment_status: str = "unfulfilled"
    sales_channel: str | None = None
    template_name: str | None = None
    currency_code: str = "USD"
    exchange_rate: Decimal = Decimal("1.0")
    discount_type: str = "none"
    is_discount_before_tax: bool = False
    entity_discount_amount: Decimal = Decimal(0)
    entity_discount_percent: Decimal = Decimal(0)
    subtotal: Decimal = Decimal(0)
    total: Decimal = Decimal(0)
    shipping_charge: Decimal = Decimal(0)
    adjustment: Decimal = Decimal(0)
    adjustment_description: str | None = None
    payment_terms: str | None = None
    payment_terms_label: str | None = None
    source: str | None = None
    notes: str | None = None
    # item
    product_id: str | None = None
    sku: str | None = None
    account: str | None = None
    item_description: str | None = None
    quantity_invoiced: Decimal = Decimal(0)
    quantity_packed: Decimal = Decimal(0)
    quantity_fulfilled: Decimal = Decimal(0)
    quantity_cancelled: Decimal = Decimal(0)
    usage_unit: str = "pairs"
    item_price: Decimal = Decimal(0)
    discount: Decimal = Decimal(0)
    discount_amount: Decimal = Decimal(0)
    item_total: Decimal = Decimal(0)


def _text(draft: Mapping[str, str], name: str) -> str | None:
    return clean_text(draft.get(name))


def _number(draft: Mapping[str, str], name: str) -> Decimal:
    return parse_decimal(draft.get(name))


def _build(draft: Mapping[str, str], row_number: int) -> SalesOrderLine:
    exchange_rate = _number(draft, "exchange_rate")
    return SalesOrderLine(
        row_number=row_number,
        document_number=draft["document_number"].strip(),
        order_date=parse_date(draft["order_date"]),  # type: ignore[arg-type]
        customer_name=draft["customer_name"].strip(),
        item_name=draft["item_name"].strip(),
        quantity_ordered=_number(draft, "quantity_ordered"),
        customer_id=_text(draft, "customer_id"),
        email=_text(draft, "email"),
        phone=_text(draft, "phone"),
        billing_address=_text(draft, "billing_address"),
        shipping_address=_text(draft, "shipping_address"),
        expected_shipment_date=parse_date(draft.get("expected_shipment_date")),
        order_status=map_order_status(draft.get("status")),
        invoice_status=map_invoice_status(draft.get("invoice_status")),
        payment_status=map_payment_status(draft.get("payment_status")),
        shipment_status=map_shipment_status(draft.get("shipment_status")),
        sales_channel=_text(draft, "sales_channel"),
        template_name=_text(draft, "template_name"),
        currency_code=_text(draft, "currency_code") or "USD",
        exchange_rate=exchange_rate if exchange_rate else Decimal("1.0"),
        discount_type=_text(draft, "discount_type") or "none",
        is_discount_before_tax=parse_bool(draft.get("is_discount_before_tax")),
        entity_discount_amount=_number(draft, "entity_discount_amount"),
        entity_discount_percent=_number(draft, "entity_discount_percent"),
        subtotal=_number(draft, "subtotal"),
        total=_number(draft, "total"),
        shipping_charge=_number(draft, "shipping_charge"),
        adjustment=_number(draft, "adjustment"),
        adjustment_description=_text(draft, "adjustment_description"),
        payment_terms=_text(draft, "payment_terms"),
        payment_terms_label=_text(draft, "payment_terms_label"),
        source=_text(draft, "source"),
        notes=_text(draft, "notes"),
        product_id=_text(draft, "product_id"),
        sku=_text(draft, "sku"),
        account=_text(draft, "account"),
        item_description=_text(draft, "item_description"),
        quantity_invoiced=_number(draft, "quantity_invoiced"),
        quantity_packed=_number(draft, "quantity_packed"),
        quantity_fulfilled=_number(draft, "quantity_fulfilled"),
        quantity_cancelled=_number(draft, "quantity_cancelled"),
        usage_unit=_text(draft, "usage_unit") or "pairs",
        item_price=_number(draft, "item_price"),
        discount=_number(draft, "discount"),
        discount_amount=_number(draft, "discount_amount"),
        item_total=_number(draft, "item_total"),
    )


def _new_customer(line: SalesOrderLine) -> dict[str, Any]:
    return {
        "customer_id": line.customer_id or fallback_identifier("CUST"),
        "customer_name": line.customer_name,
        "email": line.email,
        "phone": line.phone,
        "billing_address": line.billing_address,
        "shipping_address": line.shipping_address,
    }


def _build_parent(group: DocumentGroup[SalesOrderLine], customer_id: Any) -> dict[str, Any]:
    h = group.header
    return {
        "sales_order_number": group.document_number,
        "customer_id": customer_id,
        "order_date": h.order_date,
        "expected_shipment_date": h.expected_shipment_date,
        "order_status": h.order_status,
        "invoice_status": h.invoice_status,
        "payment_status": h.payment_status,
        "shipment_status": h.shipment_status,
        "sales_channel": h.sales_channel,
        "template_name": h.template_name,
        "currency_code": h.currency_code,
        "exchange_rate": h.exchange_rate,
        "discount_type": h.discount_type,
        "is_discount_before_tax": h.is_discount_before_tax,
        "entity_discount_amount": h.entity_discount_amount,
        "entity_discount_percent": h.entity_discount_percent,
        "subtotal": h.subtotal,
        "total": h.total,
        "shipping_charge": h.shipping_charge,
        "adjustment": h.adjustment,
        "adjustment_description": h.adjustment_description,
        "payment_terms": h.payment_terms,
        "payment_terms_label": h.payment_terms_label,
        "source": h.source,
        "notes": h.notes,
    }


def _build_children(
    group: DocumentGroup[SalesOrderLine], item_ids: Mapping[str, Any]
) -> list[dict[str, Any]]:
    return [
        {
            "item_name": line.item_name,
            "product_id": line.product_id,
            "sku": line.sku,
            "account": line.account,
            "item_description": line.item_description,
            "quantity_ordered": line.quantity_ordered,
            "quantity_invoiced": line.quantity_invoiced,
            "quantity_packed": line.quantity_packed,
            "quantity_fulfilled": line.quantity_fulfilled,
            "quantity_cancelled": line.quantity_cancelled,
            "usage_unit": line.usage_unit,
            "item_price": line.item_price,
            "discount": line.discount,
            "discount_amount": line.discount_amount,
            "item_total": line.item_total,
        }
        for line in group.lines
    ]


CUSTOMER_ENTITY = EntitySpec(
    table="customers",
    match_fields=("customer_name",),
    stored_keys=lambda record: [str(record["customer_name"])] if record.get("customer_name") else [],
    key_of=lambda line: line.customer_name,
)

SALES_ORDERS = GroupedKind(
    name="sales_orders",
    aliases=ALIASES,
    required=REQUIRED,
    build=_build,
    email_fields=("email",),
    checks=(_check_order_date,),
    template=TEMPLATE,
    customer=CUSTOMER_ENTITY,
    new_customer=_new_customer,
    parent_table="sales_orders",
    child_table="sales_order_items",
    parent_fk="sales_order_id",
    document_label="Order",
    build_parent=_build_parent,
    build_children=_build_children,
)
