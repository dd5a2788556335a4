"""
Booking confirmation renderer.

Loads email templates from YAML and renders them with Jinja2. Rendering is a
pure function of the booking's four fields.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union

import jinja2
import yaml

from booking_mailer.config.settings import DEFAULT_TEMPLATES_PATH
from booking_mailer.domain.booking import Booking
from booking_mailer.domain.message import EmailMessage
from booking_mailer.utils.logger import StructuredLogger, get_logger
from booking_mailer.utils.timezone import format_rfc1123


CONFIRMATION_TEMPLATE = "booking_confirmation"


class TemplateError(Exception):
    """Raised when an email template cannot be loaded, parsed or evaluated."""


class EmailTemplateLoader:
    """
    Loader for email templates from YAML configuration.

    Each template entry holds a ``subject`` and a ``body`` string. Templates
    are compiled once and cached in memory.
    """

    def __init__(
        self,
        template_path: Union[str, Path] = DEFAULT_TEMPLATES_PATH,
        logger: Optional[StructuredLogger] = None,
    ):
        """
        Initialize template loader.

        Args:
            template_path: Path to email_templates.yaml
            logger: Optional structured logger instance
        """
        self.template_path = Path(template_path)
        self.logger = logger or get_logger(__name__)
        self._environment = jinja2.Environment(
            undefined=jinja2.StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )
        self._templates: Dict[str, Dict[str, jinja2.Template]] = {}
        self._loaded = False

    def load_templates(self) -> None:
        """Load and compile all templates from the YAML file."""
        if self._loaded:
            return

        try:
            with self.template_path.open("r", encoding="utf-8") as f:
                content = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            self.logger.error(
                f"Failed to load email templates from {self.template_path}",
                operation="load_email_templates",
                error=str(e),
            )
            raise TemplateError(f"Cannot load email templates: {e}") from e

        if not isinstance(content, dict):
            raise TemplateError(f"Email templates file {self.template_path} must contain a mapping")

        compiled: Dict[str, Dict[str, jinja2.Template]] = {}
        for name, entry in content.items():
            if not isinstance(entry, dict) or "subject" not in entry or "body" not in entry:
                raise TemplateError(f"Template '{name}' must define 'subject' and 'body'")
            try:
                compiled[name] = {
                    "subject": self._environment.from_string(str(entry["subject"])),
                    "body": self._environment.from_string(str(entry["body"])),
                }
            except jinja2.TemplateSyntaxError as e:
                raise TemplateError(f"Template '{name}' failed to parse: {e}") from e

        self._templates = compiled
        self._loaded = True
        self.logger.debug(
            f"Loaded {len(self._templates)} email templates",
            operation="load_email_templates",
        )

    def render(self, template_name: str, **context: Any) -> EmailMessage:
        """
        Render a template with context variables.

        Raises:
            TemplateError: If the template is missing or rendering fails
        """
        self.load_templates()

        template = self._templates.get(template_name)
        if template is None:
            raise TemplateError(
                f"Template '{template_name}' not found. Available: {sorted(self._templates)}"
            )

        try:
            subject = template["subject"].render(**context)
            body = template["body"].render(**context)
        except jinja2.TemplateError as e:
            raise TemplateError(f"Template '{template_name}' failed to render: {e}") from e

        return EmailMessage(subject=subject, html_body=body)


class BookingConfirmationRenderer:
    """Renders the confirmation email for one booking."""

    def __init__(
        self,
        loader: Optional[EmailTemplateLoader] = None,
        template_name: str = CONFIRMATION_TEMPLATE,
    ):
        self.loader = loader or EmailTemplateLoader()
        self.template_name = template_name

    def render(self, booking: Booking) -> EmailMessage:
        return self.loader.render(
            self.template_name,
            order_id=booking.order_id,
            user_email=booking.user_email,
            booking_time=format_rfc1123(booking.booking_time),
            check_in_time=format_rfc1123(booking.check_in_time),
        )
