import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape

import aiosmtplib

from core.breaker import email_breaker
from core.settings import settings

logger = logging.getLogger(__name__)


def build_message(email: str, subject: str, html_content: str) -> MIMEMultipart:
    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = settings.EMAIL_USER or "no-reply@easyville.local"
    message["To"] = email
    message.attach(MIMEText(html_content, "html"))
    return message


async def send_email(email: str, subject: str, html_content: str):
    if not settings.email_enabled:
        logger.info("Email not configured, skipping '%s' to %s", subject, email)
        return

    message = build_message(email, subject, html_content)

    async def handler():
        await aiosmtplib.send(
            message,
            hostname=settings.EMAIL_SERVER,
            port=settings.EMAIL_PORT,
            username=settings.EMAIL_USER,
            password=settings.EMAIL_PASSWORD,
            start_tls=settings.EMAIL_USE_TLS,
        )

    try:
        return await email_breaker.call(handler)
    except Exception as e:
        logger.error("Error sending '%s' email to %s: %s", subject, email, e)
        raise


async def send_proof_approved_email(email: str, name: str, listing_title: str, listing_id: str):
    name, listing_title = escape(name), escape(listing_title)
    listing_link = f"{settings.FRONTEND_URL}/listings/{listing_id}"
    html_content = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6;">
        <h2>Payment Approved</h2>
        <p>Hello {name},</p>
        <p>Your payment for <strong>{listing_title}</strong> has been approved.</p>
        <p>The full address and landlord contact are now available:</p>
        <a href="{listing_link}" style="display:inline-block;background:#28a745;color:white;padding:10px 20px;
           text-decoration:none;border-radius:4px;">View Listing</a>
        <p>Best regards,<br>Easyville Estates</p>
    </body>
    </html>
    """
    return await send_email(email, "Your listing is unlocked", html_content)


async def send_proof_rejected_email(email: str, name: str, listing_title: str, reason: str):
    name, listing_title, reason = escape(name), escape(listing_title), escape(reason)
    html_content = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6;">
        <h2>Payment Proof Rejected</h2>
        <p>Hello {name},</p>
        <p>Your payment proof for <strong>{listing_title}</strong> could not be verified.</p>
        <p>Reason: {reason}</p>
        <p>You can submit a new proof from the listing page.</p>
        <p>Best regards,<br>Easyville Estates</p>
    </body>
    </html>
    """
    return await send_email(email, "Payment proof rejected", html_content)


async def send_proof_submitted_email(email: str, requester_name: str, listing_title: str, reference: str):
    requester_name, listing_title = escape(requester_name), escape(listing_title)
    reference = escape(reference)
    review_link = f"{settings.FRONTEND_URL}/dashboard/admin/payments"
    html_content = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6;">
        <h2>New Payment Proof</h2>
        <p>{requester_name} submitted a payment proof for <strong>{listing_title}</strong>.</p>
        <p>Reference: {reference}</p>
        <a href="{review_link}">Review pending proofs</a>
    </body>
    </html>
    """
    return await send_email(email, "New payment proof awaiting review", html_content)
