"""Admin email sent when a new order is placed."""
import logging
import smtplib
from email.message import EmailMessage
from html import escape
from typing import Optional

import config

logger = logging.getLogger(__name__)


def render_order_email(order: dict, product_name: Optional[str] = None) -> EmailMessage:
    def row(label, value):
        return (f"<tr><td style='padding:8px;border:1px solid #ddd;font-weight:bold'>{label}</td>"
                f"<td style='padding:8px;border:1px solid #ddd'>{escape(str(value))}</td></tr>")

    rows = [
        row("User ID", order.get("user_id")),
        row("Product", product_name or order.get("product_name") or order.get("product_id")),
        row("Amount", f"₹{float(order.get('amount') or 0):.2f}"),
        row("Payment", order.get("payment_type", "Netpay")),
        row("Delivery Status", order.get("delivery_status", "Pending")),
        row("Customer Name", order.get("user_name") or "N/A"),
        row("Mobile", order.get("mobile") or "N/A"),
        row("Delivery Address", order.get("address") or "N/A"),
    ]
    if order.get("emi_months"):
        rows.append(row("EMI Months", order["emi_months"]))
        rows.append(row("Down Payment", f"₹{float(order.get('down_payment') or 0):.2f}"))
    screenshot = ""
    if order.get("screenshot_url"):
        screenshot = f"<p><a href='{escape(order['screenshot_url'])}'>View payment screenshot</a></p>"

    # Header values must stay on one line
    buyer = " ".join(str(order.get("user_name") or "").split()) or "Unknown User"
    msg = EmailMessage()
    msg["Subject"] = f"New Order Received from {buyer}"
    if config.SMTP_USER:
        msg["From"] = config.SMTP_USER
    if config.ADMIN_EMAIL:
        msg["To"] = config.ADMIN_EMAIL
    msg.set_content("A new order was placed. Open the admin panel for details.")
    msg.add_alternative(
        "<div style='font-family:Arial,sans-serif;max-width:650px;margin:auto'>"
        "<h2>New Order Notification</h2>"
        f"<table style='width:100%;border-collapse:collapse'>{''.join(rows)}</table>"
        f"{screenshot}</div>",
        subtype="html",
    )
    return msg


class EmailNotifier:
    def send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=config.API_TIMEOUT) as smtp:
            smtp.starttls()
            if config.SMTP_USER:
                smtp.login(config.SMTP_USER, config.SMTP_PASSWORD or "")
            smtp.send_message(message)

    def notify_new_order(self, order: dict, product_name: Optional[str] = None) -> bool:
        """Best effort: the order is already stored, so failures are only logged."""
        if not config.ADMIN_EMAIL:
            logger.warning("ADMIN_EMAIL not set, skipping notification for order %s", order.get("id"))
            return False
        try:
            self.send(render_order_email(order, product_name))
        except Exception as e:
            logger.exception("Failed to send admin notification for order %s: %s", order.get("id"), e)
            return False
        logger.info("Admin notification sent for order %s", order.get("id"))
        return True
