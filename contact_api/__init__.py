"""Contact form relay API: validate, store, notify."""

__version__ = "1.0.0"
