"""Email service using Resend for transactional emails."""

import logging
from typing import Any

import resend

from src.core.config import get_settings
from src.models.order import Order

logger = logging.getLogger(__name__)


class EmailService:
    """Service for sending transactional emails via Resend."""

    def __init__(self) -> None:
        """Initialize email service with Resend API key."""
        settings = get_settings()
        resend.api_key = settings.resend_api_key
        self.enabled = bool(settings.resend_api_key)
        self.from_email = settings.email_from_address
        self.frontend_url = settings.frontend_url

    async def send_order_confirmation(self, order: Order) -> dict[str, Any]:
        """Send the purchase confirmation for a paid order.

        Never raises; delivery problems are logged and reported in the result.

        Args:
            order: The order that was just paid.

        Returns:
            dict: {"success": bool} plus the Resend email id or the error.
        """
        if not self.enabled:
            logger.warning("Resend not configured; skipping confirmation for order %s", order.id)
            return {"success": False, "error": "email not configured"}

        orders_url = f"{self.frontend_url}/pedidos"
        rows = "".join(
            f"<tr><td style=\"padding: 6px 0;\">{line.quantity} × {line.title}</td>"
            f"<td style=\"padding: 6px 0; text-align: right;\">{line.subtotal:.2f}</td></tr>"
            for line in order.line_items
        )

        html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Gracias por tu compra</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="margin-bottom: 10px;">Gracias por tu compra</h1>
    <p>Tu pedido <strong>{order.external_reference}</strong> ha sido confirmado.</p>

    <table style="width: 100%; border-collapse: collapse; margin: 20px 0;">
        {rows}
        <tr><td style="padding-top: 12px; border-top: 1px solid #e5e7eb;"><strong>Total</strong></td>
        <td style="padding-top: 12px; border-top: 1px solid #e5e7eb; text-align: right;"><strong>{order.currency} {order.total:.2f}</strong></td></tr>
    </table>

    <p style="font-size: 14px; color: #6b7280;">
        Podés seguir el estado de tu pedido en <a href="{orders_url}">{orders_url}</a>.
    </p>
</body>
</html>
"""

        text_lines = "\n".join(f"{line.quantity} x {line.title}: {line.subtotal:.2f}" for line in order.line_items)
        text_content = f"""
Gracias por tu compra

Tu pedido {order.external_reference} ha sido confirmado.

{text_lines}
Total: {order.currency} {order.total:.2f}

Seguí tu pedido en {orders_url}
"""

        try:
            response = resend.Emails.send({
                "from": self.from_email,
                "to": [order.contact_email],
                "subject": "Confirmación de compra",
                "html": html_content,
                "text": text_content,
            })

            logger.info("Confirmation email for order %s sent, id: %s", order.id, response.get("id"))
            return {"success": True, "email_id": response.get("id")}

        except Exception as e:
            logger.error("Failed to send confirmation for order %s: %s", order.id, str(e))
            return {"success": False, "error": str(e)}
