from typing import Any, Dict, Optional
import logging

import requests
import resend
from resend.exceptions import ResendError

from kamkunji.core.config import EmailConfig
from kamkunji.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class ResendEmailClient:
    """Transactional email through the Resend API"""

    name = "resend"

    def __init__(self, config: EmailConfig):
        self.config = config
        # the SDK reads its key from the module
        if config.resend_api_key:
            resend.api_key = config.resend_api_key

    def send(self, to: str, subject: str, html: str, text: Optional[str] = None) -> str:
        """
        Send one email and return the provider message id

        Raises:
            ExternalServiceError: when Resend is not configured or rejects the message
        """
        if not self.config.resend_api_key:
            raise ExternalServiceError(self.name, "Email service is not configured")

        payload: Dict[str, Any] = {
            "from": self.config.from_address,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if text:
            payload["text"] = text

        try:
            response = resend.Emails.send(payload)
        except (ResendError, requests.RequestException) as e:
            logger.error(f"Resend rejected email to {to}: {str(e)}")
            raise ExternalServiceError(self.name, "Failed to send email") from e

        message_id = response.get("id") if isinstance(response, dict) else None
        if not message_id:
            logger.error(f"Resend returned no message id: {response}")
            raise ExternalServiceError(self.name, "Failed to send email")

        logger.info(f"Email sent to {to}: {subject} ({message_id})")
        return message_id
