from . import contact, health

__all__ = ["contact", "health"]
