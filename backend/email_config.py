"""
Email Configuration Module
Provides centralized email sending functionality over SMTP.
"""

import os
import smtplib
from email.message import EmailMessage
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from flask import render_template, has_app_context
import logging

from database import PaymentType
from event_service import to_local_time
from registration_service import mask_email

logger = logging.getLogger(__name__)

# Base site URL for email links (configurable via .env)
SITE_BASE_URL = os.environ.get("SITE_BASE_URL", "https://gameon.baby").rstrip('/')


def render_email_template(template_name: str, **context):
    """
    Safely render an email template, creating app context if needed.

    Args:
        template_name: Template path relative to templates directory
        **context: Template context variables

    Returns:
        str: Rendered HTML template
    """
    context = {'site_base_url': SITE_BASE_URL, **context}
    if has_app_context():
        return render_template(template_name, **context)
    else:
        from flask import Flask
        app = Flask(__name__)
        with app.app_context():
            return render_template(template_name, **context)


def format_event_schedule(event) -> dict:
    """Human-readable date and time range of an event, e.g. {'date': '19. 10. 2026', 'time': '18:00 - 20:00'}"""
    start = to_local_time(event.from_time)
    end = to_local_time(event.to_time)
    return {
        'date': f"{start.day}. {start.month}. {start.year}",
        'time': f"{start:%H:%M} - {end:%H:%M}",
    }


class EmailConfig:
    """Centralized email configuration using SMTP"""

    # SMTP Settings
    SMTP_HOST = os.environ.get("SMTP_HOST", "smtp-relay.brevo.com")
    SMTP_PORT = int(os.environ.get("SMTP_PORT", "587"))
    SMTP_USERNAME = os.environ.get("SMTP_USERNAME")
    SMTP_PASSWORD = os.environ.get("SMTP_PASSWORD")
    SMTP_USE_TLS = os.environ.get("SMTP_USE_TLS", "true").lower() in ("1", "true", "yes")

    # Email defaults
    DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER", "info@gameon.baby")
    DEFAULT_SENDER_NAME = os.environ.get("MAIL_DEFAULT_SENDER_NAME", "Game On Baby")

    @classmethod
    def is_configured(cls) -> bool:
        """Check if SMTP is properly configured"""
        return bool(cls.SMTP_HOST and cls.SMTP_USERNAME and cls.SMTP_PASSWORD)

    @classmethod
    def get_smtp_connection(cls):
        """
        Create and return an authenticated SMTP connection.

        Returns:
            smtplib.SMTP: Authenticated SMTP connection

        Raises:
            RuntimeError: If SMTP is not configured
            smtplib.SMTPException: If connection or authentication fails
        """
        if not cls.is_configured():
            raise RuntimeError(
                "SMTP not configured. Please set SMTP_HOST, SMTP_USERNAME, and SMTP_PASSWORD environment variables."
            )

        try:
            server = smtplib.SMTP(cls.SMTP_HOST, cls.SMTP_PORT, timeout=10)

            if cls.SMTP_USE_TLS:
                server.starttls()

            server.login(cls.SMTP_USERNAME, cls.SMTP_PASSWORD)
            logger.info(f"SMTP connection established to {cls.SMTP_HOST}")
            return server

        except smtplib.SMTPException as e:
            logger.error(f"SMTP connection failed: {e}", exc_info=True)
            raise

    @classmethod
    def send_email(
        cls,
        to_email: str,
        subject: str,
        body: str,
        body_html: str = None,
        from_email: str = None,
        from_name: str = None,
        reply_to: str = None
    ) -> bool:
        """
        Send an email over SMTP.

        Args:
            to_email: Recipient email address
            subject: Email subject
            body: Plain text email body
            body_html: Optional HTML email body
            from_email: Sender email (defaults to DEFAULT_SENDER)
            from_name: Sender name (defaults to DEFAULT_SENDER_NAME)
            reply_to: Optional reply-to address

        Returns:
            bool: True if email sent successfully, False otherwise
        """
        if not cls.is_configured():
            logger.error("Cannot send email: SMTP not configured")
            return False

        try:
            from_email = from_email or cls.DEFAULT_SENDER
            from_name = from_name or cls.DEFAULT_SENDER_NAME

            if body_html:
                msg = MIMEMultipart('alternative')
                # Headers before parts
                msg['Subject'] = subject
                msg['From'] = f"{from_name} <{from_email}>"
                msg['To'] = to_email
                if reply_to:
                    msg['Reply-To'] = reply_to

                msg.attach(MIMEText(body, 'plain', 'utf-8'))
                msg.attach(MIMEText(body_html, 'html', 'utf-8'))
            else:
                msg = EmailMessage()
                msg.set_content(body)
                msg['Subject'] = subject
                msg['From'] = f"{from_name} <{from_email}>"
                msg['To'] = to_email
                if reply_to:
                    msg['Reply-To'] = reply_to

            with cls.get_smtp_connection() as server:
                server.send_message(msg)

            logger.info(f"Email sent successfully to {mask_email(to_email)}: {subject}")
            return True

        except Exception as e:
            logger.error(f"Failed to send email to {mask_email(to_email)}: {e}", exc_info=True)
            return False

    @classmethod
    def send_registration_confirmation(cls, to_email: str, first_name: str, event, qr_code_data: str = None) -> bool:
        """
        Send registration confirmation, with the payment QR code when there is one.

        Args:
            to_email: Recipient email
            first_name: Participant's first name
            event: Event the participant registered for
            qr_code_data: Optional PNG data URL of the payment QR code

        Returns:
            bool: True if sent successfully
        """
        schedule = format_event_schedule(event)
        location = event.place or "See event details online"
        subject = f"Registration confirmed - {event.title}"

        payment_line = (
            "Scan the QR code in the HTML version of this email to pay by bank transfer."
            if qr_code_data else "Please bring cash for payment on arrival."
        )
        body = f"""
Hello {first_name},

Thank you for registering for {event.title}.

EVENT DETAILS
------------------
Date: {schedule['date']}
Time: {schedule['time']}
Location: {location}
Price: {event.price:.2f}

{payment_line}

See you there!

The Game On Baby Team
        """

        body_html = render_email_template(
            'emails/registration_confirmation.html',
            first_name=first_name,
            event_title=event.title,
            event_date=schedule['date'],
            event_time=schedule['time'],
            event_location=location,
            price=f"{event.price:.2f}",
            qr_code_url=qr_code_data
        )

        return cls.send_email(
            to_email=to_email,
            subject=subject,
            body=body,
            body_html=body_html
        )

    @classmethod
    def send_waiting_list_promotion(cls, to_email: str, first_name: str, event, payment_type: str) -> bool:
        """
        Tell a waiting-list participant they have been moved to the registered list.

        Args:
            to_email: Recipient email
            first_name: Participant's first name
            event: Event the participant was promoted into
            payment_type: Payment type carried over from the waiting-list entry

        Returns:
            bool: True if sent successfully
        """
        schedule = format_event_schedule(event)
        location = event.place or "See event details online"
        pays_online = payment_type in PaymentType.ONLINE
        subject = f"You're in! A spot opened up for {event.title}"

        payment_method = "Card/QR Payment" if pays_online else "Cash on arrival"
        payment_note = (
            "Please check your original registration email for payment details, "
            "or log in to your account to see your registration status."
            if pays_online else "Please remember to bring cash for payment on arrival."
        )
        body = f"""
Hello {first_name},

Great news! A spot has opened up for {event.title} and you've been moved
from the waiting list to registered participants.

EVENT DETAILS
------------------
Date: {schedule['date']}
Time: {schedule['time']}
Location: {location}
Payment Method: {payment_method}

{payment_note}

View your dashboard: {SITE_BASE_URL}/dashboard

Best regards,
The Game On Baby Team
        """

        body_html = render_email_template(
            'emails/waiting_list_promotion.html',
            first_name=first_name,
            event_title=event.title,
            event_date=schedule['date'],
            event_time=schedule['time'],
            event_location=location,
            payment_method=payment_method,
            payment_note=payment_note
        )

        return cls.send_email(
            to_email=to_email,
            subject=subject,
            body=body,
            body_html=body_html
        )
