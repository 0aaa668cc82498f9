from typing import Any, Dict, Optional
import html
import logging

from kamkunji.core.exceptions import BaseAPIException, DatabaseError
from kamkunji.repositories.email_log_repository import EmailLogRepository
from kamkunji.services import email_templates
from kamkunji.utils.date_utils import DateUtils

logger = logging.getLogger(__name__)

EMAIL_SENT = "sent"
EMAIL_FAILED = "failed"

ORDER_STATUS_MESSAGES = {
    "processing": "Your order is now being processed and prepared for shipping.",
    "shipped": "Your order has been shipped and is on its way to you!",
    "delivered": "Your order has been delivered successfully.",
    "cancelled": "Your order has been cancelled.",
}
DEFAULT_STATUS_MESSAGE = "Your order status has been updated."


class EmailService:
    """
    Outgoing email with an audit trail

    Every attempt is written to email_logs as 'sent' or 'failed'.
    Order notifications report failure by returning False; they never
    raise, so order changes are not rolled back because of email.
    """

    def __init__(self, email_client, email_log_repository: EmailLogRepository):
        self.client = email_client
        self.log_repo = email_log_repository

    def _log(self, to: str, subject: str, status: str,
             user_id: Optional[int], metadata: Dict[str, Any]) -> Optional[int]:
        try:
            return self.log_repo.log(to, subject, status, user_id=user_id, metadata=metadata)
        except DatabaseError as e:
            logger.error(f"Could not record email log for {to}: {e.internal_message}")
            return None

    def send_email(
        self,
        to: str,
        subject: str,
        text: Optional[str] = None,
        html_body: Optional[str] = None,
        user_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Send one email; html defaults to the escaped text in a paragraph

        Raises:
            ExternalServiceError: when the provider fails (the failure is logged first)
        """
        html_body = html_body or f"<p>{html.escape(text or '')}</p>"
        metadata = dict(metadata or {})

        try:
            message_id = self.client.send(to, subject, html_body, text)
        except BaseAPIException as e:
            metadata["error"] = e.message
            self._log(to, subject, EMAIL_FAILED, user_id, metadata)
            raise

        metadata["message_id"] = message_id
        log_id = self._log(to, subject, EMAIL_SENT, user_id, metadata)
        return {"id": message_id, "log_id": log_id, "status": EMAIL_SENT}

    def _notify(self, order: Dict[str, Any], subject: str, html_body: str, text: str, kind: str) -> bool:
        try:
            self.send_email(
                order["email"],
                subject,
                text=text,
                html_body=html_body,
                user_id=order.get("user_id"),
                metadata={"order_id": order["id"], "type": kind, "status": order["status"]},
            )
            return True
        except BaseAPIException as e:
            logger.warning(f"{kind} email for order {order['id']} not sent: {e.message}")
            return False

    def send_payment_confirmation(self, order: Dict[str, Any]) -> bool:
        context = {
            "order": order,
            "date": DateUtils.now_nairobi().strftime("%d/%m/%Y"),
            "year": DateUtils.now_nairobi().year,
            "title": "Payment Confirmed",
            "accent": "#10b981",
        }
        return self._notify(
            order,
            f"Payment Confirmed - Order #{order['id']}",
            email_templates.PAYMENT_CONFIRMATION_HTML.render(**context),
            email_templates.PAYMENT_CONFIRMATION_TEXT.render(**context),
            "payment_confirmation",
        )

    def send_status_update(self, order: Dict[str, Any]) -> bool:
        context = {
            "order": order,
            "status_message": ORDER_STATUS_MESSAGES.get(order["status"], DEFAULT_STATUS_MESSAGE),
            "status_label": order["status"].replace("_", " ").title(),
            "year": DateUtils.now_nairobi().year,
            "title": "Order Status Update",
            "accent": "#3b82f6",
        }
        return self._notify(
            order,
            f"Order Status Update - Order #{order['id']}",
            email_templates.STATUS_UPDATE_HTML.render(**context),
            email_templates.STATUS_UPDATE_TEXT.render(**context),
            "status_update",
        )
