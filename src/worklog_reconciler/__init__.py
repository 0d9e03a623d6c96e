"""Reconcile shorthand time-tracking entries against code and ticket evidence."""

__version__ = "0.3.0"

__all__ = ["__version__"]
