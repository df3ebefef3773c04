"""Staybook: day-use property booking service."""

__version__ = "0.1.0"
