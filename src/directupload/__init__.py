"""Direct-to-storage upload service."""

__version__ = "0.1.0"
