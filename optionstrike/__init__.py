"""Earnings-driven short put recommendations."""

__version__ = "0.1.0"
