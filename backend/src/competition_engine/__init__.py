"""Seasonal competition lifecycle and reward engine."""

__version__ = "1.0.0"
