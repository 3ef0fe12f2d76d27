"""Transactional emails: order confirmation, low-stock alert, cart recovery.

Every ``send_*`` method returns True/False and never raises; a failed email is
logged and the triggering operation carries on.
"""

import json
from html import escape
from typing import Optional
from urllib.parse import quote

from storefront.core.logging_config import get_logger
from storefront.core_settings import Settings
from storefront.domain.models import AbandonedCart, Order, PaymentMethod, Product
from storefront.errors import NotificationError
from storefront.infrastructure.notifications import NotificationClient

logger = get_logger(__name__)

RECOVERY_SUBJECT = "You left something behind! Complete your order"

_PAYMENT_METHOD_LABELS = {
    PaymentMethod.CARD.value: "Credit/Debit Card",
    PaymentMethod.BITCOIN.value: "Bitcoin (BTC)",
}


def format_cents(cents: int) -> str:
    return f"${cents / 100:,.2f}"


def _page(title: str, heading: str, body: str, color: str = "#3b82f6") -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{escape(title)}</title></head>
<body style="margin:0;padding:0;font-family:Arial,sans-serif;background-color:#f3f4f6;">
  <table width="100%" cellpadding="0" cellspacing="0" style="padding:40px 20px;">
    <tr><td align="center">
      <table width="600" cellpadding="0" cellspacing="0" style="background-color:#ffffff;border-radius:8px;">
        <tr><td style="background-color:{color};padding:32px;text-align:center;">
          <h1 style="margin:0;color:#ffffff;font-size:26px;">{escape(heading)}</h1>
        </td></tr>
        <tr><td style="padding:24px;">{body}</td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


def _item_rows(lines) -> str:
    rows = []
    for name, quantity, price in lines:
        rows.append(
            "<tr>"
            f'<td style="padding:12px;border-bottom:1px solid #e5e7eb;"><strong>{escape(name)}</strong><br>'
            f'<span style="color:#6b7280;font-size:14px;">Quantity: {quantity}</span></td>'
            f'<td style="padding:12px;border-bottom:1px solid #e5e7eb;text-align:right;">'
            f"{format_cents(price * quantity)}</td>"
            "</tr>"
        )
    return "".join(rows)


def render_order_confirmation(order: Order, bitcoin_address: str) -> str:
    items = _item_rows((item.product_name, item.quantity, item.price_per_unit) for item in order.items)
    if order.payment_method == PaymentMethod.BITCOIN.value:
        payment = (
            '<div style="background-color:#fed7aa;border:1px solid #f97316;border-radius:8px;padding:16px;">'
            "<h3>Payment Instructions</h3>"
            "<p>Please send your Bitcoin payment to:</p>"
            f'<p style="font-family:monospace;word-break:break-all;">{escape(bitcoin_address)}</p>'
            f"<p>Amount (USD): <strong>{format_cents(order.total)}</strong></p>"
            '<p style="color:#6b7280;font-size:12px;">Your order will be processed once payment is confirmed.</p>'
            "</div>"
        )
    else:
        label = _PAYMENT_METHOD_LABELS.get(order.payment_method, order.payment_method)
        payment = (
            '<div style="background-color:#d1fae5;border:1px solid #10b981;border-radius:8px;padding:16px;">'
            "<h3>Payment Successful</h3>"
            f"<p>Your payment has been processed successfully via {escape(label)}.</p>"
            "</div>"
        )
    body = (
        f'<p style="text-align:center;font-family:monospace;font-size:20px;"><strong>{escape(order.order_number)}</strong></p>'
        f'<table width="100%" cellpadding="0" cellspacing="0">{items}</table>'
        '<table width="100%" style="margin-top:16px;">'
        f'<tr><td>Subtotal</td><td style="text-align:right;">{format_cents(order.subtotal)}</td></tr>'
        f'<tr><td>Shipping ({escape(order.shipping_carrier)} {escape(order.shipping_service)})</td>'
        f'<td style="text-align:right;">{format_cents(order.shipping_cost)}</td></tr>'
        f'<tr><td><strong>Total</strong></td><td style="text-align:right;"><strong>{format_cents(order.total)}</strong></td></tr>'
        "</table>"
        "<h3>Shipping Address</h3>"
        f"<p>{escape(order.customer_name)}<br>{escape(order.shipping_address)}<br>"
        f"{escape(order.shipping_city)}, {escape(order.shipping_state)} {escape(order.shipping_zip)}<br>"
        f"{escape(order.shipping_country)}</p>"
        f"{payment}"
    )
    return _page(f"Order Confirmation - {order.order_number}", "Order Confirmed!", body)


def render_low_stock_alert(product: Product, current_stock: int) -> str:
    body = (
        f"<p><strong>Product:</strong> {escape(product.name)}</p>"
        f"<p><strong>Category:</strong> {escape(product.category)}</p>"
        f"<p><strong>Current Stock:</strong> {current_stock} units</p>"
        f"<p><strong>Low Stock Threshold:</strong> {product.low_stock_threshold} units</p>"
        "<p>Action required: please restock this product to avoid stockouts. "
        "Stock levels can be updated from the admin inventory page.</p>"
        f'<p style="color:#6b7280;font-size:12px;">Product ID: {product.id}</p>'
    )
    return _page(f"Low Stock Alert: {product.name}", "Low Stock Alert", body, color="#f59e0b")


def recovery_checkout_url(frontend_url: str, email: str) -> str:
    return f"{frontend_url.rstrip('/')}/checkout?email={quote(email)}"


def render_cart_recovery(cart: AbandonedCart, checkout_url: str) -> str:
    try:
        lines = json.loads(cart.cart_data or "[]")
    except ValueError:
        lines = []
    items = _item_rows(
        (line.get("product_name") or f"Product #{line.get('product_id')}",
         int(line.get("quantity", 0)),
         int(line.get("price_per_unit", 0)))
        for line in lines
    )
    greeting = f"Hi {escape(cart.customer_name)}," if cart.customer_name else "Hi there,"
    body = (
        f"<p>{greeting}</p>"
        "<p>You left some items in your cart. They are still waiting for you:</p>"
        f'<table width="100%" cellpadding="0" cellspacing="0">{items}</table>'
        f'<p style="text-align:right;"><strong>Total: {format_cents(cart.total_amount)}</strong></p>'
        f'<p style="text-align:center;"><a href="{escape(checkout_url, quote=True)}" '
        'style="background-color:#3b82f6;color:#ffffff;padding:12px 24px;border-radius:6px;text-decoration:none;">'
        "Complete your order</a></p>"
    )
    return _page(RECOVERY_SUBJECT, "Your cart is waiting", body)


class Notifier:
    def __init__(self, client: NotificationClient, owner_email: str, frontend_url: str, bitcoin_address: str):
        self.client = client
        self.owner_email = owner_email
        self.frontend_url = frontend_url
        self.bitcoin_address = bitcoin_address

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[NotificationClient] = None) -> "Notifier":
        client = client or NotificationClient(
            settings.NOTIFICATION_API_URL,
            settings.NOTIFICATION_API_KEY,
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        )
        return cls(
            client,
            owner_email=settings.OWNER_EMAIL,
            frontend_url=settings.FRONTEND_URL,
            bitcoin_address=settings.BITCOIN_ADDRESS,
        )

    def _send(self, kind: str, to: str, subject: str, html: str, **context) -> bool:
        try:
            self.client.send_email(to, subject, html)
        except NotificationError as exc:
            logger.warning(
                f"Failed to send {kind} email",
                extra={"extra_fields": {"kind": kind, "to": to, "error": str(exc),
                                        "status_code": exc.status_code, **context}},
            )
            return False
        logger.info(f"Sent {kind} email", extra={"extra_fields": {"kind": kind, "to": to, **context}})
        return True

    def send_order_confirmation(self, order: Order) -> bool:
        return self._send(
            "order_confirmation",
            order.customer_email,
            f"Order Confirmation - {order.order_number}",
            render_order_confirmation(order, self.bitcoin_address),
            order_number=order.order_number,
        )

    def send_low_stock_alert(self, product: Product, current_stock: int) -> bool:
        return self._send(
            "low_stock_alert",
            self.owner_email,
            f"Low Stock Alert: {product.name}",
            render_low_stock_alert(product, current_stock),
            product_id=product.id,
            current_stock=current_stock,
            threshold=product.low_stock_threshold,
        )

    def send_cart_recovery(self, cart: AbandonedCart) -> bool:
        return self._send(
            "cart_recovery",
            cart.customer_email,
            RECOVERY_SUBJECT,
            render_cart_recovery(cart, recovery_checkout_url(self.frontend_url, cart.customer_email)),
            cart_id=cart.id,
        )
