"""Selfie and GPS verified attendance service."""

__version__ = "0.1.0"
