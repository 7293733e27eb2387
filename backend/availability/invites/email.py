import logging
from html import escape

import resend
from starlette.concurrency import run_in_threadpool

from availability.invites.settings import email_settings

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """Raised when the email provider is unavailable or rejects a message."""


async def send_email(to: str, subject: str, html: str) -> dict:
    """Send one HTML email through Resend.

    The SDK call is blocking, so it runs in the threadpool. Any failure is
    re-raised as EmailDeliveryError so callers can unwind their own writes.
    """
    if email_settings.resend_api_key is None:
        logger.error("RESEND_API_KEY is not set, cannot send email to %s", to)
        raise EmailDeliveryError("Email service not configured")

    resend.api_key = email_settings.resend_api_key.get_secret_value()
    params = {
        "from": email_settings.email_from,
        "to": [to],
        "subject": subject,
        "html": html,
    }

    try:
        response = await run_in_threadpool(resend.Emails.send, params)
    except Exception as e:
        logger.error("Email send error to %s: %s", to, e)
        raise EmailDeliveryError(f"Failed to send email: {e!s}") from e

    logger.info("Email sent to %s: %s", to, response)
    return response


def render_invite_email(
    group_name: str, sender_name: str, invite_url: str, expiry_days: int
) -> str:
    group_name = escape(group_name)
    sender_name = escape(sender_name)
    return f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>You're invited to join "{group_name}"</h2>
        <p>Hello!</p>
        <p>{sender_name} has invited you to join the group "{group_name}" on Availability Helper.</p>
        <p>Click the link below to accept the invitation:</p>
        <p>
          <a href="{invite_url}" style="background-color: #2563eb; color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px; display: inline-block;">
            Accept Invitation
          </a>
        </p>
        <p>Or copy and paste this link into your browser:</p>
        <p style="color: #666; word-break: break-all;">{invite_url}</p>
        <p style="color: #666; font-size: 14px;">This invitation will expire in {expiry_days} days.</p>
        <hr style="border: none; border-top: 1px solid #eee; margin: 20px 0;">
        <p style="color: #666; font-size: 12px;">
          If you didn't expect this invitation, you can safely ignore this email.
        </p>
      </div>
    """


async def send_invite_email(
    to: str, group_name: str, sender_name: str, invite_url: str, expiry_days: int
) -> dict:
    html = render_invite_email(group_name, sender_name, invite_url, expiry_days)
    return await send_email(
        to=to,
        subject=f'Invitation to join "{group_name}"',
        html=html,
    )
