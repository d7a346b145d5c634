"""
cush/services/email_service.py

Purpose: Outbound email via Resend

- Sends raw and template-rendered HTML emails
- Skips sending (and reports it) when RESEND_API_KEY is not configured
- Never raises for delivery failures; callers get a result dict
"""

from typing import Any, Dict, List, Optional

import resend
from starlette.concurrency import run_in_threadpool

from cush.core.config import settings
from cush.core.logging import get_logger
from cush.services.email_template_service import get_template_by_name, render_template, render_text

logger = get_logger(__name__)


class EmailService:
    """Service for sending transactional email through Resend"""

    def __init__(self, api_key: Optional[str] = None, sender: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.sender = sender or settings.EMAIL_FROM

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _send_sync(self, payload: Dict[str, Any]) -> Any:
        resend.api_key = self.api_key
        return resend.Emails.send(payload)

    async def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        sender: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Sends a single email.

        Args:
            to: Recipient address
            subject: Subject line
            html: HTML body
            sender: Override for the configured sender

        Returns:
            {
                "success": True/False,
                "skipped": True when email is not configured,
                "id": "Resend message id",
                "error": "Optional error message"
            }
        """
        if not self.is_configured:
            logger.info(f"Email sending skipped (Resend not configured): {subject}")
            return {"success": True, "skipped": True}

        payload = {
            "from": sender or self.sender,
            "to": [to],
            "subject": subject,
            "html": html,
        }

        try:
            response = await run_in_threadpool(self._send_sync, payload)
        except Exception as e:
            logger.error(f"Error sending email '{subject}': {e}", exc_info=True)
            return {"success": False, "error": str(e)}

        message_id = response.get("id") if isinstance(response, dict) else None
        if not message_id:
            logger.error(f"Unexpected Resend response: {response}")
            return {"success": False, "error": str(response)}

        logger.info(f"✅ Email sent: {subject}", extra={"message_id": message_id})
        return {"success": True, "id": message_id}

    async def send_template_email(
        self,
        to: str,
        template_name: str,
        variables: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Renders a named template (stored or default) and sends it.
        """
        template = await get_template_by_name(template_name)
        if not template:
            return {"success": False, "error": f"Template '{template_name}' not found"}

        html = render_template(template["html"], variables)
        subject = render_text(template["subject"], variables)
        return await self.send_email(to, subject, html)

    # Convenience senders

    async def send_welcome_email(self, to: str, name: str) -> Dict[str, Any]:
        return await self.send_template_email(
            to, "welcome", {"name": name, "dashboardUrl": f"{settings.APP_URL}/dashboard"}
        )

    async def send_verification_email(self, to: str, name: str, token: str) -> Dict[str, Any]:
        return await self.send_template_email(
            to,
            "emailVerification",
            {"name": name, "verificationUrl": f"{settings.APP_URL}/verify-email?token={token}"},
        )

    async def send_application_update_email(
        self,
        to: str,
        name: str,
        application_type: str,
        status: str,
        details: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.send_template_email(
            to,
            "applicationUpdate",
            {
                "name": name,
                "applicationType": application_type,
                "status": status,
                "details": details,
                "dashboardUrl": f"{settings.APP_URL}/dashboard",
            },
        )

    async def send_document_request_email(
        self,
        to: str,
        name: str,
        application_type: str,
        documents: List[str]
    ) -> Dict[str, Any]:
        return await self.send_template_email(
            to,
            "documentRequest",
            {
                "name": name,
                "applicationType": application_type,
                "documents": documents,
                "uploadUrl": f"{settings.APP_URL}/dashboard/documents/upload",
            },
        )


# Singleton instance
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create the global email service instance."""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
