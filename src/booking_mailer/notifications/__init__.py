"""Notifications - confirmation email rendering and SMTP delivery."""

from .email_service import SendError, SmtpEmailClient
from .renderer import BookingConfirmationRenderer, EmailTemplateLoader, TemplateError

__all__ = [
    "SendError",
    "SmtpEmailClient",
    "BookingConfirmationRenderer",
    "EmailTemplateLoader",
    "TemplateError",
]
