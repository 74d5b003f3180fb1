"""Calendar-to-billing sync CLI."""

__version__ = "0.1.0"
