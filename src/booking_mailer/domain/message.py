"""
Email message value object.

Built fresh for each booking by the renderer and discarded after sending.
"""

from dataclasses import dataclass
from email.message import EmailMessage as MimeMessage
from email.policy import SMTP


@dataclass(frozen=True)
class EmailMessage:
    """Rendered subject line and HTML body."""

    subject: str
    html_body: str

    def to_mime(self, from_address: str, to_address: str) -> MimeMessage:
        """Build a MIME message with a UTF-8 ``text/html`` body."""
        mime = MimeMessage(policy=SMTP)
        mime["Subject"] = self.subject
        mime["From"] = from_address
        mime["To"] = to_address
        mime.set_content(self.html_body, subtype="html", charset="utf-8")
        return mime

    def as_bytes(self, from_address: str, to_address: str) -> bytes:
        """Serialise to raw RFC 5322 bytes with CRLF line endings."""
        return self.to_mime(from_address, to_address).as_bytes()
