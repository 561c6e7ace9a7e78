"""REST API around a single WhatsApp device session."""

__version__ = "1.0.0"
