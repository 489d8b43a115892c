"""Email delivery with Jinja2 template rendering"""

import aiosmtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Any, Dict, Optional
import logging
from pathlib import Path
from jinja2 import Environment, FileSystemLoader, select_autoescape

from storefront.core.config import settings

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    "processing": "Your order has been received and is being prepared.",
    "shipped": "Your order has been shipped and is on its way!",
    "delivered": "Your order has been delivered and your payment is confirmed.",
    "cancelled": "Your order has been cancelled.",
}

class EmailService:
    """Order emails rendered from templates/emails"""

    def __init__(self):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = settings.SMTP_PORT
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.from_email = settings.SMTP_FROM_EMAIL or settings.SMTP_USER
        self.from_name = settings.SMTP_FROM_NAME

        template_dir = Path(__file__).parent.parent / "templates" / "emails"
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(['html', 'xml'])
        )

    async def send_email(
        self,
        to_email: str,
        subject: str,
        body: str,
        html_body: Optional[str] = None
    ) -> bool:
        """
        Send one email

        Returns:
            True when the message was handed to the SMTP server
        """
        if not settings.email_enabled:
            logger.info(f"SMTP not configured, skipping email to {to_email}: {subject}")
            return False

        try:
            msg = MIMEMultipart('alternative')
            msg['Subject'] = subject
            msg['From'] = f"{self.from_name} <{self.from_email}>"
            msg['To'] = to_email

            msg.attach(MIMEText(body, 'plain', 'utf-8'))
            if html_body:
                msg.attach(MIMEText(html_body, 'html', 'utf-8'))

            await aiosmtplib.send(
                msg,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=True
            )

            logger.info(f"Email sent successfully to {to_email}")
            return True

        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {str(e)}")
            return False

    async def send_order_confirmation(self, to_email: str, order_data: Dict[str, Any]) -> bool:
        """Send the checkout confirmation email"""
        template = self.env.get_template("order_confirmation.html")
        html_body = template.render(
            app_name=settings.APP_NAME,
            store_url=settings.STORE_URL,
            formatted_total=f"{order_data['total']:,.2f}",
            **order_data
        )

        return await self.send_email(
            to_email=to_email,
            subject=f"Order Confirmed - #{order_data['order_number']}",
            body=(
                f"Thank you for your order #{order_data['order_number']}.\n"
                f"Total: {order_data['total']:,.2f}\n"
                f"Track it at {settings.STORE_URL}/orders"
            ),
            html_body=html_body
        )

    async def send_order_status_update(
        self,
        to_email: str,
        order_data: Dict[str, Any],
        new_status: str
    ) -> bool:
        """Send order status update email"""
        template = self.env.get_template("order_update.html")
        status_message = STATUS_MESSAGES.get(new_status, "Your order status has been updated.")

        html_body = template.render(
            app_name=settings.APP_NAME,
            store_url=settings.STORE_URL,
            status=new_status,
            status_message=status_message,
            **order_data
        )

        return await self.send_email(
            to_email=to_email,
            subject=f"Order #{order_data['order_number']} - {new_status.replace('_', ' ').title()}",
            body=f"Your order #{order_data['order_number']} is now {new_status}. {status_message}",
            html_body=html_body
        )
