"""
Tests for the SMTP sender's logging.
"""
import logging
from unittest.mock import MagicMock, patch

from email_config import EmailConfig

# The autouse sent_emails fixture replaces send_email; keep the real one
_real_send_email = EmailConfig.__dict__['send_email'].__func__


def test_sent_email_log_masks_recipient(caplog):
    with patch.object(EmailConfig, 'is_configured', return_value=True), \
            patch.object(EmailConfig, 'get_smtp_connection', return_value=MagicMock()):
        with caplog.at_level(logging.INFO, logger='email_config'):
            sent = _real_send_email(EmailConfig, 'alice.smith@example.com', 'Hello', 'Body')

    assert sent is True
    assert 'alice.smith@example.com' not in caplog.text
    assert 'ali***@example.com' in caplog.text


def test_failed_email_log_masks_recipient(caplog):
    with patch.object(EmailConfig, 'is_configured', return_value=True), \
            patch.object(EmailConfig, 'get_smtp_connection', side_effect=RuntimeError('down')):
        with caplog.at_level(logging.INFO, logger='email_config'):
            sent = _real_send_email(EmailConfig, 'alice.smith@example.com', 'Hello', 'Body', body_html='<p>Body</p>')

    assert sent is False
    assert 'alice.smith@example.com' not in caplog.text
    assert 'ali***@example.com' in caplog.text
