"""Daily booking confirmation mailer."""

__version__ = "0.1.0"
