"""CSV exports for the admin back office."""

import csv
from datetime import datetime
from io import StringIO
from typing import Iterable

from storefront.domain.models import Contact, Order

ORDER_COLUMNS = [
    "order_number", "created_at", "customer_name", "customer_email", "customer_phone",
    "shipping_address", "shipping_city", "shipping_state", "shipping_zip", "shipping_country",
    "shipping_carrier", "shipping_service", "status", "payment_status", "payment_method",
    "tracking_number", "items", "subtotal", "shipping_cost", "total",
]

CONTACT_COLUMNS = ["id", "created_at", "name", "email", "phone", "subject", "message", "status", "admin_notes"]


def _dollars(cents: int) -> str:
    return f"{cents / 100:.2f}"


def _write(columns: list[str], rows: Iterable[dict]) -> str:
    output = StringIO()
    writer = csv.DictWriter(output, fieldnames=columns)
    writer.writeheader()
    writer.writerows(rows)
    return output.getvalue()


def orders_to_csv(orders: Iterable[Order]) -> str:
    rows = []
    for order in orders:
        row = {column: getattr(order, column, None) or "" for column in ORDER_COLUMNS}
        row["created_at"] = order.created_at.isoformat() if order.created_at else ""
        row["items"] = "; ".join(f"{item.quantity} x {item.product_name}" for item in order.items)
        row["subtotal"] = _dollars(order.subtotal)
        row["shipping_cost"] = _dollars(order.shipping_cost)
        row["total"] = _dollars(order.total)
        rows.append(row)
    return _write(ORDER_COLUMNS, rows)


def contacts_to_csv(contacts: Iterable[Contact]) -> str:
    rows = []
    for contact in contacts:
        row = {column: getattr(contact, column, None) or "" for column in CONTACT_COLUMNS}
        row["created_at"] = contact.created_at.isoformat() if contact.created_at else ""
        rows.append(row)
    return _write(CONTACT_COLUMNS, rows)


def export_filename(prefix: str) -> str:
    return f"{prefix}_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}.csv"
