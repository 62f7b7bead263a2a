from . import comparison, conversion, enrollment

__all__ = ["comparison", "conversion", "enrollment"]
