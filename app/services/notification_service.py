"""
Notification Service - templated transactional emails.

Sending is best-effort: checkout never fails because an email did not go out.
"""

import asyncio
import logging
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.config import settings

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html"]),
)


@dataclass
class MailJob:
    """An email queued by the checkout pipeline."""

    to: str
    subject: str
    template: str
    data: Dict[str, Any] = field(default_factory=dict)


class NotificationService:
    """Renders Jinja2 email templates and sends them over SMTP."""

    def __init__(self):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.user = settings.smtp_user
        self.password = settings.smtp_password
        self.use_ssl = settings.smtp_use_ssl

    def render(self, template: str, data: Dict[str, Any]) -> str:
        """Render `<template>.html` with store defaults."""
        context = {
            "name": "Customer",
            "store_name": "SWISStools",
            "store_url": settings.store_url,
        }
        context.update({k: v for k, v in data.items() if v is not None})
        name = template if template.endswith(".html") else f"{template}.html"
        return _env.get_template(name).render(**context)

    async def send_mail(self, to: str, subject: str, template: str, data: Optional[Dict[str, Any]] = None) -> None:
        """Render and send one email. Raises on failure."""
        if not to:
            raise ValueError("Recipient (to) is required")

        html = self.render(template, data or {})

        message = EmailMessage()
        message["From"] = formataddr((settings.email_from_name, settings.email_from))
        message["To"] = to
        message["Subject"] = subject
        message.set_content("Please view this email in an HTML capable client.")
        message.add_alternative(html, subtype="html")

        if not self.host:
            logger.info(f"SMTP not configured, skipping '{template}' email to {to}")
            return

        await asyncio.to_thread(self._deliver, message)
        logger.info(f"Sent '{template}' email to {to}")

    def _deliver(self, message: EmailMessage) -> None:
        smtp_cls = smtplib.SMTP_SSL if self.use_ssl else smtplib.SMTP
        with smtp_cls(self.host, self.port, timeout=30) as server:
            if not self.use_ssl:
                server.starttls()
            if self.password:
                server.login(self.user, self.password)
            server.send_message(message)

    async def send_quietly(self, job: MailJob) -> bool:
        """Send a queued email, logging instead of raising."""
        try:
            await self.send_mail(job.to, job.subject, job.template, job.data)
            return True
        except Exception as e:
            logger.warning(f"Failed to send '{job.template}' email to {job.to}: {e}")
            return False

    async def send_all(self, jobs: Iterable[MailJob]) -> int:
        """Send queued emails in order; returns how many went out."""
        sent = 0
        for job in jobs:
            if await self.send_quietly(job):
                sent += 1
        return sent


def get_notification_service() -> NotificationService:
    """Dependency returning the notifier."""
    return NotificationService()


def welcome_emails(customer_email: str, name: str, customer_id: str, password: str) -> List[MailJob]:
    """Emails sent once when a guest account is provisioned."""
    return [
        MailJob(
            to=customer_email,
            subject="Welcome to SWISStools",
            template="welcome",
            data={
                "name": name,
                "verification_link": f"{settings.store_url}/verify/{customer_id}",
            },
        ),
        MailJob(
            to=customer_email,
            subject="Account created for you",
            template="guest-welcome",
            data={
                "name": name,
                "password": password,
                "login_link": f"{settings.store_url}/login",
            },
        ),
    ]


def order_confirmation_email(customer_email: str, name: str, order_data: Dict[str, Any]) -> MailJob:
    """Order confirmation listing the purchased lines."""
    return MailJob(
        to=customer_email,
        subject="Your order is received",
        template="order-confirmation",
        data={
            "name": name,
            "order_id": order_data["payment"]["reference"] or order_data["id"],
            "order_total": order_data["totalPrice"],
            "currency": order_data["currency"],
            "order_items": order_data["products"],
            "order_link": f"{settings.store_url}/orders/",
        },
    )
